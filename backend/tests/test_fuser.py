"""
Tests for sample sources, the stream fuser and the client recording session.
"""

import math

import pytest

from ridelog.client.fuser import StreamFuser
from ridelog.client.session import RecordingSession
from ridelog.client.sources import SampleSource, replay_events
from ridelog.models.records import FusedRecord, LocationReading, MotionSample
from ridelog.utils.sample_data import generate_loop_ride, interleave_readings


def loc(t, lat=51.0, lon=3.7):
    return LocationReading(latitude=lat, longitude=lon, captured_at=t)


def motion(t, x=0.0, y=0.0, z=1.0):
    return MotionSample(x=x, y=y, z=z, captured_at=t)


class TestRecords:
    """Tests for the record model invariants."""

    def test_motion_magnitude(self):
        assert motion(0, 3.0, 4.0, 0.0).magnitude == 5.0
        assert math.isclose(motion(0, 1.0, 2.0, 2.0).magnitude, 3.0)

    def test_record_needs_a_measurement(self):
        with pytest.raises(ValueError):
            FusedRecord(captured_at=1.0)

    def test_record_to_dict_uses_null_for_absent_fields(self):
        record = FusedRecord(captured_at=5.0, total_accel=2.0)
        assert record.to_dict() == {"capturedAt": 5.0, "location": None, "totalAccel": 2.0}


class TestSampleSource:
    """Tests for push sources and subscription handles."""

    def test_emit_reaches_subscribers(self):
        source = SampleSource("location")
        received = []
        source.subscribe(received.append)

        source.emit(1)
        source.emit(2)

        assert received == [1, 2]

    def test_unsubscribe_is_idempotent(self):
        source = SampleSource("motion")
        received = []
        sub = source.subscribe(received.append)

        sub.unsubscribe()
        sub.unsubscribe()
        source.emit(1)

        assert received == []
        assert source.subscriber_count == 0
        assert not sub.active

    def test_subscription_context_manager(self):
        source = SampleSource("motion")
        with source.subscribe(lambda r: None):
            assert source.subscriber_count == 1
        assert source.subscriber_count == 0


class TestStreamFuser:
    """Tests for merging location and motion readings."""

    def test_location_record(self):
        fuser = StreamFuser()
        fuser.on_location(loc(100, 1.0, 2.0))

        [record] = fuser.snapshot()
        assert record.captured_at == 100
        assert record.location == loc(100, 1.0, 2.0)
        assert record.total_accel is None

    def test_motion_before_any_location_has_no_location(self):
        fuser = StreamFuser()
        fuser.on_motion(motion(10, 0.0, 3.0, 4.0))

        [record] = fuser.snapshot()
        assert record.location is None
        assert record.total_accel == 5.0

    def test_motion_carries_last_known_location(self):
        fuser = StreamFuser()
        first = loc(100, 1.0, 1.0)
        second = loc(1100, 2.0, 2.0)

        fuser.on_location(first)
        fuser.on_motion(motion(120))
        fuser.on_motion(motion(140))
        fuser.on_location(second)
        fuser.on_motion(motion(1120))

        records = fuser.snapshot()
        assert [r.location for r in records] == [first, first, first, second, second]
        assert fuser.last_known_location == second

    def test_arrival_order_is_kept(self):
        """A late-arriving motion sample is appended, not sorted back."""
        fuser = StreamFuser()
        fuser.on_location(loc(1000))
        fuser.on_motion(motion(980))

        records = fuser.snapshot()
        assert [r.captured_at for r in records] == [1000, 980]

    def test_never_carries_a_later_location(self):
        """Motion records only see locations that arrived before them."""
        fuser = StreamFuser()
        locations, motions = generate_loop_ride(duration_s=5.0, seed=1)
        location_source = SampleSource("location")
        motion_source = SampleSource("motion")
        location_source.subscribe(fuser.on_location)
        motion_source.subscribe(fuser.on_motion)

        replay_events(interleave_readings(location_source, motion_source, locations, motions))

        seen = None
        for record in fuser.snapshot():
            if not record.has_motion:
                seen = record.location
            else:
                assert record.location == seen

    def test_per_source_order_preserved(self):
        fuser = StreamFuser()
        locations, motions = generate_loop_ride(duration_s=3.0, seed=2)
        location_source = SampleSource("location")
        motion_source = SampleSource("motion")
        location_source.subscribe(fuser.on_location)
        motion_source.subscribe(fuser.on_motion)

        replay_events(interleave_readings(location_source, motion_source, locations, motions))

        records = fuser.snapshot()
        location_times = [r.captured_at for r in records if not r.has_motion]
        motion_times = [r.captured_at for r in records if r.has_motion]
        assert location_times == [r.captured_at for r in locations]
        assert motion_times == [m.captured_at for m in motions]

    def test_commit_drops_only_snapshotted_prefix(self):
        fuser = StreamFuser()
        fuser.on_location(loc(1))
        fuser.on_motion(motion(2))

        snapshot = fuser.snapshot()
        fuser.on_motion(motion(3))
        fuser.commit(len(snapshot))

        remaining = fuser.snapshot()
        assert [r.captured_at for r in remaining] == [3]

    def test_snapshot_does_not_clear(self):
        fuser = StreamFuser()
        fuser.on_motion(motion(1))
        fuser.snapshot()
        assert fuser.pending == 1

    def test_commit_more_than_buffered(self):
        fuser = StreamFuser()
        with pytest.raises(ValueError):
            fuser.commit(1)


class TestRecordingSession:
    """Tests for subscription lifecycle of a recording."""

    def test_open_and_close(self):
        location_source = SampleSource("location")
        motion_source = SampleSource("motion")
        session = RecordingSession(location_source, motion_source)

        session.open()
        location_source.emit(loc(1))
        motion_source.emit(motion(2))
        session.close()
        location_source.emit(loc(3))

        assert session.fuser.pending == 2
        assert location_source.subscriber_count == 0
        assert motion_source.subscriber_count == 0

    def test_close_twice(self):
        session = RecordingSession(SampleSource("location"), SampleSource("motion"))
        session.open()
        session.close()
        session.close()
        assert not session.is_open

    def test_open_twice_fails(self):
        session = RecordingSession(SampleSource("location"), SampleSource("motion"))
        session.open()
        with pytest.raises(RuntimeError):
            session.open()
        session.close()

    def test_failed_subscribe_releases_first_subscription(self):
        class BrokenSource(SampleSource):
            def subscribe(self, handler):
                raise OSError("sensor permission denied")

        location_source = SampleSource("location")
        session = RecordingSession(location_source, BrokenSource("motion"))

        with pytest.raises(OSError):
            session.open()

        assert location_source.subscriber_count == 0
        assert not session.is_open

    def test_context_manager_releases_on_error(self):
        location_source = SampleSource("location")
        motion_source = SampleSource("motion")

        with pytest.raises(RuntimeError):
            with RecordingSession(location_source, motion_source):
                raise RuntimeError("ride aborted")

        assert location_source.subscriber_count == 0
        assert motion_source.subscriber_count == 0
