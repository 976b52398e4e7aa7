"""
Client connections to the collection service.

Both implementations speak the same message protocol: ``data`` frames
carrying a batch, a ``stop`` frame ending the ride, and a ``stopped`` or
``error`` reply to the stop.
"""

import logging
from collections import deque
from typing import Any, Optional, Protocol

import httpx

from ridelog.errors import ConnectionUnavailable, error_from_payload


logger = logging.getLogger(__name__)


class Connection(Protocol):
    """Persistent channel used by the batch sender."""

    @property
    def is_ready(self) -> bool:
        ...

    def send_json(self, message: dict[str, Any]) -> None:
        ...

    def receive_json(self) -> dict[str, Any]:
        ...


class ChannelConnection:
    """
    Adapts a duplex JSON channel (e.g. a WebSocket session) to ``Connection``.

    The wrapped object needs ``send_json`` and ``receive_json``. A message
    counts as delivered once ``send_json`` returns.
    """

    def __init__(self, channel: Any):
        self._channel = channel
        self._closed = False

    @property
    def is_ready(self) -> bool:
        return not self._closed

    def send_json(self, message: dict[str, Any]) -> None:
        if self._closed:
            raise ConnectionUnavailable("Channel is closed")
        self._channel.send_json(message)

    def receive_json(self) -> dict[str, Any]:
        if self._closed:
            raise ConnectionUnavailable("Channel is closed")
        return self._channel.receive_json()

    def close(self) -> None:
        self._closed = True
        close = getattr(self._channel, "close", None)
        if close is not None:
            close()


class HttpConnection:
    """
    Discrete-upload form of the protocol over HTTP.

    ``data`` frames become ``POST /upload`` and ``stop`` becomes
    ``POST /stop``; the stop response is queued as the reply frame.
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ):
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(base_url=base_url, timeout=timeout)
        self._replies: deque[dict[str, Any]] = deque()
        self._closed = False

    @property
    def is_ready(self) -> bool:
        return not self._closed

    def send_json(self, message: dict[str, Any]) -> None:
        if self._closed:
            raise ConnectionUnavailable("HTTP connection is closed")

        kind = message.get("type")
        if kind == "data":
            response = self._post("/upload", message.get("payload"))
            if response.status_code >= 400:
                body = self._body(response)
                raise error_from_payload(body.get("error"), body.get("message", response.text))
            logger.debug(f"Upload accepted: {self._body(response)}")
        elif kind == "stop":
            response = self._post("/stop", None)
            body = self._body(response)
            if response.status_code < 400:
                self._replies.append({"type": "stopped", **body})
            else:
                self._replies.append({"type": "error", "replyTo": "stop", **body})
        else:
            raise ValueError(f"Unknown message type: {kind!r}")

    def receive_json(self) -> dict[str, Any]:
        if not self._replies:
            raise ConnectionUnavailable("No reply pending from the service")
        return self._replies.popleft()

    def close(self) -> None:
        self._closed = True
        if self._owns_client:
            self._client.close()

    def _post(self, path: str, payload: Any) -> httpx.Response:
        try:
            if payload is None:
                return self._client.post(path)
            return self._client.post(path, json=payload)
        except httpx.HTTPError as e:
            raise ConnectionUnavailable(f"Request to {path} failed: {e}") from e

    @staticmethod
    def _body(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {"message": response.text}
        return body if isinstance(body, dict) else {"message": str(body)}
