"""Server-side push operations.

Backend collaborators (order, payment, notification and support flows) call
these to reach connected clients. Frames are published on the fan-out
channel and delivered by whichever relay process holds the user's socket.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

from order_realtime.application.exceptions import ValidationError
from order_realtime.application.ports.bus import EventPublisher
from order_realtime.application.ports.clock import utcnow
from order_realtime.config import settings
from order_realtime.domain.value_objects.enums import UpdateKind
from order_realtime.infrastructure.ws.manager import UserSocketManager
from order_realtime.infrastructure.ws.protocol import (
    ChatMessageFrame,
    NotificationFrame,
    RealtimeUpdateFrame,
)

logger = logging.getLogger(__name__)

FANOUT_EVENT = "realtime.fanout"
CHAT_INBOUND_EVENT = "chat.user_message"


def _require_user(user_id: int) -> None:
    if user_id <= 0:
        raise ValidationError(f"invalid user id: {user_id}")


async def _fanout(
    publisher: EventPublisher,
    user_id: int | None,
    frame: ChatMessageFrame | NotificationFrame | RealtimeUpdateFrame,
) -> None:
    await publisher.publish(
        settings.REDIS_PUBSUB_CHANNEL,
        FANOUT_EVENT,
        {
            "user_id": user_id,
            "frame": frame.model_dump(mode="json", by_alias=True, exclude_none=True),
        },
    )


async def send_realtime_update(
    publisher: EventPublisher,
    user_id: int,
    update_type: str,
    data: dict[str, Any] | None = None,
) -> None:
    _require_user(user_id)
    if not update_type:
        raise ValidationError("update type is required")
    frame = RealtimeUpdateFrame(update_type=update_type, data=data or {}, timestamp=utcnow())
    await _fanout(publisher, user_id, frame)
    logger.debug("Queued %s update for user %s", update_type, user_id)


async def send_notification(
    publisher: EventPublisher,
    user_id: int,
    notification: dict[str, Any],
    unread_count: int | None = None,
) -> None:
    """Push a notification, then a ``notifications_updated`` refresh signal."""
    _require_user(user_id)
    if not notification.get("title"):
        raise ValidationError("notification title is required")
    await _fanout(publisher, user_id, NotificationFrame(data=notification, timestamp=utcnow()))

    update: dict[str, Any] = {}
    if unread_count is not None:
        update["unreadCount"] = unread_count
    await send_realtime_update(
        publisher, user_id, UpdateKind.NOTIFICATIONS_UPDATED.value, update,
    )


async def send_chat_message(
    publisher: EventPublisher,
    user_id: int,
    content: str,
    timestamp: datetime | None = None,
) -> None:
    """Push a support reply into the user's chat."""
    _require_user(user_id)
    if not content.strip():
        raise ValidationError("chat content is empty")
    frame = ChatMessageFrame(content=content, is_from_user=False, timestamp=timestamp or utcnow())
    await _fanout(publisher, user_id, frame)


async def broadcast_update(
    publisher: EventPublisher,
    update_type: str,
    data: dict[str, Any] | None = None,
) -> None:
    if not update_type:
        raise ValidationError("update type is required")
    frame = RealtimeUpdateFrame(update_type=update_type, data=data or {}, timestamp=utcnow())
    await _fanout(publisher, None, frame)


async def relay_user_chat(publisher: EventPublisher, user_id: int, content: str) -> None:
    """Hand a chat message typed by the user to the support backends."""
    await publisher.publish(
        settings.REDIS_CHAT_INBOUND_CHANNEL,
        CHAT_INBOUND_EVENT,
        {"user_id": user_id, "content": content, "timestamp": utcnow().isoformat()},
    )
    logger.info("Relayed chat message from user %s", user_id)


async def deliver_fanout(manager: UserSocketManager, data: dict[str, Any]) -> int:
    """Deliver one fan-out bus event to local sockets. Returns users reached."""
    frame = data.get("frame")
    if not isinstance(frame, dict) or not isinstance(frame.get("type"), str):
        logger.error("Fan-out event without a frame: %.200r", data)
        return 0
    raw = json.dumps(frame)

    user_id = data.get("user_id")
    if user_id is None:
        return await manager.broadcast(raw)
    try:
        target = int(user_id)
    except (TypeError, ValueError):
        logger.error("Fan-out event with bad user_id %r", user_id)
        return 0
    return 1 if await manager.send_to_user(target, raw) else 0
