"""
Live-update broadcaster for passive observers on the WebSocket channel.
"""

import asyncio
import json
import logging
from typing import Any, Optional, Set

from fastapi import WebSocket


logger = logging.getLogger(__name__)


class Broadcaster:
    """
    Tracks connected WebSocket observers and pushes accepted batches to them.

    Sends are fire-and-forget. An observer whose send fails is dropped on
    that attempt; ingestion never waits on a slow or dead observer.
    """

    def __init__(self) -> None:
        self._clients: Set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._clients.add(websocket)
        logger.debug(f"Observer connected ({len(self._clients)} total)")

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._clients.discard(websocket)

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def broadcast_json(self, message: dict[str, Any], exclude: Optional[WebSocket] = None) -> None:
        payload = json.dumps(message, separators=(",", ":"))
        async with self._lock:
            targets = [ws for ws in self._clients if ws is not exclude]
        if not targets:
            return
        results = await asyncio.gather(*(self._send(ws, payload) for ws in targets))
        dead = [ws for ws, ok in zip(targets, results) if not ok]
        if dead:
            async with self._lock:
                for ws in dead:
                    self._clients.discard(ws)
            logger.info(f"Pruned {len(dead)} disconnected observers")

    async def broadcast_batch(self, batch: list, exclude: Optional[WebSocket] = None) -> None:
        """Push an accepted batch verbatim to every observer."""
        await self.broadcast_json({"type": "data", "payload": batch}, exclude=exclude)

    def schedule_batch(self, batch: list, exclude: Optional[WebSocket] = None) -> asyncio.Task:
        """Start ``broadcast_batch`` in the background; the task is kept until it finishes."""
        task = asyncio.create_task(self.broadcast_batch(batch, exclude=exclude))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Live broadcast failed: {task.exception()!r}")

    @staticmethod
    async def _send(ws: WebSocket, payload: str) -> bool:
        try:
            await ws.send_text(payload)
            return True
        except Exception as e:
            logger.debug(f"Observer send failed: {e!r}")
            return False


# Global broadcaster (one per process)
_broadcaster: Optional[Broadcaster] = None


def get_broadcaster() -> Broadcaster:
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = Broadcaster()
    return _broadcaster
