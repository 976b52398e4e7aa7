"""
API routes for ride ingestion, finalization and export download.
"""

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse
from starlette.concurrency import run_in_threadpool

from ridelog.api.schemas import (
    ErrorResponse,
    RideSummaryResponse,
    SessionListItem,
    SessionStatusResponse,
    StopResponse,
    UploadResponse,
)
from ridelog.errors import InvalidPayload, NotFound, RideLogError
from ridelog.services.broadcaster import Broadcaster, get_broadcaster
from ridelog.services.export_store import export_filename
from ridelog.services.exporter import frame_to_columns
from ridelog.services.sessions import FinalizeResult, SessionManager, get_session_manager
from ridelog.services.stats import summarize_columns


logger = logging.getLogger(__name__)


router = APIRouter(tags=["rides"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def download_url(external_index: int) -> str:
    return f"/download/{external_index}"


def _internal_index(external_index: int) -> int:
    """Map the 1-based index used in URLs to the 0-based session index."""
    if external_index < 1:
        raise NotFound(f"No ride export for session {external_index}")
    return external_index - 1


def _stop_response(result: FinalizeResult) -> StopResponse:
    return StopResponse(
        message=f"Ride saved as session {result.external_index}",
        index=result.external_index,
        download_url=download_url(result.external_index),
        summary=RideSummaryResponse.from_summary(result.summary),
    )


# ============================================================================
# Ingest / Stop
# ============================================================================

@router.post("/upload", response_model=UploadResponse, responses=ERROR_RESPONSES)
async def upload(request: Request, background_tasks: BackgroundTasks):
    """
    Append a batch of fused records to the open session.

    The body must be a JSON array; the whole batch is rejected if any
    record is malformed. Accepted batches are pushed verbatim to live
    observers after the response.
    """
    try:
        payload = await request.json()
    except ValueError as e:
        # JSONDecodeError and UnicodeDecodeError
        raise InvalidPayload(f"Body is not valid JSON: {e}") from e

    manager = get_session_manager()
    total = await run_in_threadpool(manager.ingest, payload)

    background_tasks.add_task(get_broadcaster().broadcast_batch, payload)

    return UploadResponse(
        message="Data received",
        received=len(payload),
        total_stored=total,
    )


@router.post("/stop", response_model=StopResponse, responses=ERROR_RESPONSES)
def stop():
    """
    Finalize the open session and write its CSV export.

    Fails without saving anything if the session is empty or the export
    cannot be written.
    """
    result = get_session_manager().finalize()
    return _stop_response(result)


# ============================================================================
# Export / Session Queries
# ============================================================================

@router.get("/download/{external_index}", responses=ERROR_RESPONSES)
def download(external_index: int):
    """Download the CSV export of a finalized session (1-based index)."""
    store = get_session_manager().store
    path = store.get(_internal_index(external_index))
    return FileResponse(
        path,
        media_type="text/csv",
        filename=export_filename(external_index - 1),
    )


@router.get("/data")
def current_data():
    """Records of the open session, in arrival order."""
    records = get_session_manager().current_records()
    return [r.to_dict() for r in records]


@router.get("/status", response_model=SessionStatusResponse)
def session_status():
    """State of the open session."""
    snapshot = get_session_manager().status()
    return SessionStatusResponse(
        index=snapshot.index + 1,
        record_count=snapshot.record_count,
        status=snapshot.status.value,
    )


@router.get("/sessions", response_model=list[SessionListItem])
def list_sessions(limit: int = Query(10, ge=1, le=100, description="Number of sessions to return")):
    """Most recent finalized sessions, newest first."""
    store = get_session_manager().store
    return [
        SessionListItem(
            index=index + 1,
            filename=path.name,
            download_url=download_url(index + 1),
            size_bytes=path.stat().st_size,
        )
        for index, path in store.list_recent(limit)
    ]


@router.get("/sessions/{external_index}/summary", response_model=RideSummaryResponse, responses=ERROR_RESPONSES)
def session_summary(external_index: int):
    """Summary statistics recomputed from a stored export."""
    store = get_session_manager().store
    df = store.load_rows(_internal_index(external_index))
    columns = frame_to_columns(df)
    summary = summarize_columns(
        columns["timestamp"],
        columns["latitude"],
        columns["longitude"],
        columns["total_accel"],
    )
    return RideSummaryResponse.from_summary(summary)


# ============================================================================
# Live Channel
# ============================================================================

def _error_frame(error: RideLogError, reply_to: Optional[str]) -> dict[str, Any]:
    frame = {"type": "error", "replyTo": reply_to}
    frame.update(error.to_payload())
    return frame


async def _handle_frame(
    websocket: WebSocket,
    message: Any,
    manager: SessionManager,
    broadcaster: Broadcaster,
) -> Optional[dict[str, Any]]:
    """Process one client frame; returns the reply to send, if any."""
    if not isinstance(message, dict):
        return _error_frame(InvalidPayload("Frames must be JSON objects"), None)

    kind = message.get("type")
    if kind == "data":
        payload = message.get("payload")
        try:
            await run_in_threadpool(manager.ingest, payload)
        except RideLogError as e:
            return _error_frame(e, "data")
        broadcaster.schedule_batch(payload, exclude=websocket)
        return None

    if kind == "stop":
        try:
            result = await run_in_threadpool(manager.finalize)
        except RideLogError as e:
            logger.warning(f"Stop over live channel failed: {e.message}")
            return _error_frame(e, "stop")
        reply = {"type": "stopped"}
        reply.update(_stop_response(result).model_dump(by_alias=True))
        return reply

    return _error_frame(InvalidPayload(f"Unknown frame type: {kind!r}"), kind)


@router.websocket("/ws")
async def live_channel(websocket: WebSocket):
    """
    Duplex channel for senders and passive observers.

    Senders push ``{"type": "data", "payload": [...]}`` frames and end the
    ride with ``{"type": "stop"}``. Every connection receives the batches
    accepted from other connections.
    """
    broadcaster = get_broadcaster()
    manager = get_session_manager()
    await broadcaster.connect(websocket)
    try:
        while True:
            text = await websocket.receive_text()
            try:
                message = json.loads(text)
            except json.JSONDecodeError:
                await websocket.send_json(_error_frame(InvalidPayload("Frame is not valid JSON"), None))
                continue
            reply = await _handle_frame(websocket, message, manager, broadcaster)
            if reply is not None:
                await websocket.send_json(reply)
    except WebSocketDisconnect:
        pass
    finally:
        await broadcaster.disconnect(websocket)
