"""In-process registry of authenticated relay sockets."""
from __future__ import annotations

import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class UserSocketManager:
    """Tracks authenticated WebSocket connections per user id.

    A user may hold several sockets (tabs, devices); pushes go to all of
    them. Sockets that fail on send are dropped.
    """

    def __init__(self) -> None:
        self._connections: dict[int, set[WebSocket]] = {}

    @property
    def user_count(self) -> int:
        return len(self._connections)

    def is_connected(self, user_id: int) -> bool:
        return user_id in self._connections

    def register(self, user_id: int, ws: WebSocket) -> None:
        self._connections.setdefault(user_id, set()).add(ws)
        logger.info("User %s authenticated on realtime channel (users=%d)", user_id, self.user_count)

    def unregister(self, user_id: int, ws: WebSocket) -> None:
        conns = self._connections.get(user_id)
        if not conns:
            return
        conns.discard(ws)
        if not conns:
            del self._connections[user_id]
        logger.info("User %s disconnected from realtime channel", user_id)

    async def send_to_user(self, user_id: int, raw: str) -> bool:
        """Push an encoded frame to every socket of ``user_id``.

        Returns whether at least one socket took it.
        """
        delivered = False
        dead: list[WebSocket] = []
        for ws in list(self._connections.get(user_id, ())):
            try:
                await ws.send_text(raw)
                delivered = True
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.unregister(user_id, ws)
        return delivered

    async def broadcast(self, raw: str) -> int:
        """Push an encoded frame to every connected user. Returns users reached."""
        reached = 0
        for user_id in list(self._connections):
            if await self.send_to_user(user_id, raw):
                reached += 1
        return reached
