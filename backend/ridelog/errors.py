"""
Error taxonomy shared by the collection service and the ride client.

Every error carries a ``kind`` that travels over the wire, so the client
can rebuild the same exception from a service error reply.
"""

from typing import Optional


class RideLogError(Exception):
    """Base class for all ride pipeline errors."""

    kind = "RideLogError"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"message": self.message, "error": self.kind}


class InvalidPayload(RideLogError):
    """Ingest body is not a list of fused records. Nothing was stored."""

    kind = "InvalidPayload"
    status_code = 400


class EmptySession(RideLogError):
    """Finalize was requested for a session without records."""

    kind = "EmptySession"
    status_code = 409


class NotFound(RideLogError):
    """No export artifact exists for the requested session index."""

    kind = "NotFound"
    status_code = 404


class ConnectionUnavailable(RideLogError):
    """The client has no ready channel to the service."""

    kind = "ConnectionUnavailable"
    status_code = 503


class StorageWriteFailure(RideLogError):
    """The export artifact could not be written. Nothing was saved."""

    kind = "StorageWriteFailure"
    status_code = 500


_ERRORS_BY_KIND = {
    cls.kind: cls
    for cls in (InvalidPayload, EmptySession, NotFound, ConnectionUnavailable, StorageWriteFailure)
}


def error_from_payload(kind: Optional[str], message: str) -> RideLogError:
    """Rebuild the exception matching a service error reply."""
    cls = _ERRORS_BY_KIND.get(kind or "", RideLogError)
    return cls(message)
