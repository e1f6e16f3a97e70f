"""Websocket pool of the rendering surfaces attached to a session."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class PresentationConnectionManager:
    """Track the websockets of each user and deliver messages in order.

    Pushes for one user are serialized through a per-user lock, so snapshots
    reach every socket in the order they were published even though each
    push runs as its own task. Replies sent on a single socket take the same
    lock and cannot interleave with a push.
    """

    def __init__(self) -> None:
        self._connections: dict[str, list[WebSocket]] = {}
        self._send_locks: dict[str, asyncio.Lock] = {}

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        sockets = self._connections.setdefault(user_id, [])
        if websocket not in sockets:
            sockets.append(websocket)
        logger.debug("Surface connected for %s (%d open)", user_id, len(sockets))

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        sockets = self._connections.get(user_id)
        if not sockets or websocket not in sockets:
            return
        sockets.remove(websocket)
        if not sockets:
            del self._connections[user_id]
            self._send_locks.pop(user_id, None)
        logger.debug("Surface disconnected for %s", user_id)

    def connection_count(self, user_id: str) -> int:
        return len(self._connections.get(user_id, ()))

    async def send(self, user_id: str, websocket: WebSocket, message: dict[str, Any]) -> None:
        """Send ``message`` on one socket without overtaking queued pushes."""

        async with self._lock_for(user_id):
            await websocket.send_json(message)

    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> int:
        """Push ``message`` to every socket of ``user_id``; returns deliveries.

        Sockets that fail to receive are dropped from the pool.
        """

        delivered = 0
        async with self._lock_for(user_id):
            for websocket in list(self._connections.get(user_id, ())):
                try:
                    await websocket.send_json(message)
                except Exception as exc:
                    logger.debug("Dropping websocket for %s: %s", user_id, exc)
                    self.disconnect(user_id, websocket)
                else:
                    delivered += 1
        return delivered

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._send_locks.get(user_id)
        if lock is None:
            lock = self._send_locks[user_id] = asyncio.Lock()
        return lock


__all__ = ["PresentationConnectionManager"]
