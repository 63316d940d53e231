from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from order_realtime.api.deps import PublisherDep, SocketManagerDep
from order_realtime.application.ports.bus import EventPublisher
from order_realtime.config import settings
from order_realtime.infrastructure.ws.protocol import (
    AuthAckFrame,
    AuthFrame,
    ClientChatFrame,
    ErrorFrame,
    MalformedFrameError,
    load_frame,
)
from order_realtime.services import relay_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

AUTH_FAILED_CODE = 4001


async def _authenticate(ws: WebSocket) -> int | None:
    """Wait for the ``auth`` frame. Returns the user id, or None on bad or missing auth."""
    try:
        raw = await asyncio.wait_for(ws.receive_text(), settings.WS_AUTH_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.debug("WS auth timed out")
        return None
    try:
        return AuthFrame.model_validate_json(raw).user_id
    except PydanticValidationError:
        logger.debug("WS auth rejected: %.200r", raw)
        return None


@router.websocket(settings.WS_PATH)
async def realtime_ws(
    websocket: WebSocket,
    sockets: SocketManagerDep,
    publisher: PublisherDep,
) -> None:
    await websocket.accept()
    try:
        user_id = await _authenticate(websocket)
    except WebSocketDisconnect:
        return
    if user_id is None:
        await websocket.close(code=AUTH_FAILED_CODE, reason="Authentication failed")
        return

    sockets.register(user_id, websocket)
    try:
        await websocket.send_text(AuthAckFrame().encode())
        await _read_loop(websocket, user_id, publisher)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for user %s", user_id)
    finally:
        sockets.unregister(user_id, websocket)


async def _send_error(ws: WebSocket, code: str, **extra: str) -> None:
    await ws.send_text(ErrorFrame(data={"code": code, **extra}).encode())


async def _read_loop(ws: WebSocket, user_id: int, publisher: EventPublisher) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            data = load_frame(raw)
        except MalformedFrameError:
            await _send_error(ws, "invalid_payload")
            continue

        if data["type"] == "chat_message":
            try:
                frame = ClientChatFrame.model_validate(data)
            except PydanticValidationError:
                await _send_error(ws, "invalid_data")
                continue
            try:
                await relay_service.relay_user_chat(publisher, user_id, frame.content)
            except Exception:
                logger.exception("Chat relay failed for user %s", user_id)
                await _send_error(ws, "relay_failed")

        elif data["type"] == "auth":
            await _send_error(ws, "already_authenticated")

        else:
            await _send_error(ws, "unknown_type", type=data["type"])
