"""Ingest endpoints for backend collaborators pushing to connected clients."""
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Path

from order_realtime.api.deps import PublisherDep
from order_realtime.api.v1.schemas.events import (
    ChatPushRequest,
    NotificationRequest,
    QueuedResponse,
    RealtimeUpdateRequest,
)
from order_realtime.services import relay_service

router = APIRouter(prefix="/api/v1/realtime", tags=["realtime"])

UserIdPath = Annotated[int, Path(gt=0)]


@router.post("/users/{user_id}/updates", response_model=QueuedResponse, status_code=202)
async def push_update(
    user_id: UserIdPath,
    body: RealtimeUpdateRequest,
    publisher: PublisherDep,
) -> QueuedResponse:
    await relay_service.send_realtime_update(publisher, user_id, body.update_type, body.data)
    return QueuedResponse()


@router.post("/users/{user_id}/notifications", response_model=QueuedResponse, status_code=202)
async def push_notification(
    user_id: UserIdPath,
    body: NotificationRequest,
    publisher: PublisherDep,
) -> QueuedResponse:
    await relay_service.send_notification(
        publisher, user_id, body.to_payload(), body.unread_count,
    )
    return QueuedResponse()


@router.post("/users/{user_id}/chat", response_model=QueuedResponse, status_code=202)
async def push_chat(
    user_id: UserIdPath,
    body: ChatPushRequest,
    publisher: PublisherDep,
) -> QueuedResponse:
    await relay_service.send_chat_message(publisher, user_id, body.content)
    return QueuedResponse()


@router.post("/broadcast", response_model=QueuedResponse, status_code=202)
async def push_broadcast(
    body: RealtimeUpdateRequest,
    publisher: PublisherDep,
) -> QueuedResponse:
    await relay_service.broadcast_update(publisher, body.update_type, body.data)
    return QueuedResponse()
