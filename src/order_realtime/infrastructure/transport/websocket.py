"""Realtime transport backed by the ``websockets`` client."""
from __future__ import annotations

import logging
from functools import partial
from typing import AsyncIterator

from websockets.asyncio.client import ClientConnection, connect

from order_realtime.application.ports.transport import TransportFactory

logger = logging.getLogger(__name__)


class WebSocketTransport:
    """Implements application.ports.transport.Transport."""

    def __init__(self, connection: ClientConnection) -> None:
        self._connection = connection

    async def send(self, data: str) -> None:
        await self._connection.send(data)

    async def close(self) -> None:
        await self._connection.close()

    async def __aiter__(self) -> AsyncIterator[str]:
        async for message in self._connection:
            if isinstance(message, bytes):
                message = message.decode("utf-8", errors="replace")
            yield message


async def open_websocket(url: str, *, open_timeout: float = 10.0) -> WebSocketTransport:
    connection = await connect(url, open_timeout=open_timeout)
    logger.debug("WebSocket opened to %s", url)
    return WebSocketTransport(connection)


def websocket_factory(open_timeout: float) -> TransportFactory:
    return partial(open_websocket, open_timeout=open_timeout)
