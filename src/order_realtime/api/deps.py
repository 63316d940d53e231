"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from starlette.requests import HTTPConnection

from order_realtime.application.ports.bus import EventPublisher
from order_realtime.infrastructure.ws.manager import UserSocketManager


def get_publisher(conn: HTTPConnection) -> EventPublisher:
    return conn.app.state.publisher


PublisherDep = Annotated[EventPublisher, Depends(get_publisher)]


def get_socket_manager(conn: HTTPConnection) -> UserSocketManager:
    return conn.app.state.sockets


SocketManagerDep = Annotated[UserSocketManager, Depends(get_socket_manager)]
