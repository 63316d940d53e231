"""WebSocket frame models for the ``/ws`` channel.

Field names on the wire are camelCase (``userId``, ``isFromUser``,
``updateType``); the models expose snake_case attributes and dump with
``by_alias=True``.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from order_realtime.domain.entities.envelope import Envelope
from order_realtime.domain.value_objects.enums import EventKind, UpdateKind


class FrameError(ValueError):
    pass


class MalformedFrameError(FrameError):
    """Frame is not JSON, not an object, or does not match its type's shape."""


class UnknownEventError(FrameError):
    """Frame is well formed but its type or subkind is not recognised."""


class _Frame(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def encode(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


# Client → Server


class AuthFrame(_Frame):
    type: Literal["auth"] = "auth"
    user_id: int = Field(alias="userId", gt=0)


class ClientChatFrame(_Frame):
    type: Literal["chat_message"] = "chat_message"
    content: str = Field(min_length=1)


# Server → Client


class AuthAckFrame(_Frame):
    type: Literal["auth_ack"] = "auth_ack"


class ChatMessageFrame(_Frame):
    type: Literal["chat_message"] = "chat_message"
    content: str
    is_from_user: bool = Field(False, alias="isFromUser")
    timestamp: datetime | None = None


class NotificationFrame(_Frame):
    type: Literal["notification"] = "notification"
    data: dict[str, Any] = {}
    timestamp: datetime | None = None


class RealtimeUpdateFrame(_Frame):
    type: Literal["realtime_update"] = "realtime_update"
    update_type: str = Field(alias="updateType")
    data: dict[str, Any] = {}
    timestamp: datetime | None = None


class ErrorFrame(_Frame):
    type: Literal["error"] = "error"
    data: dict[str, Any] = {}


_SERVER_FRAMES: dict[EventKind, type[_Frame]] = {
    EventKind.AUTH_ACK: AuthAckFrame,
    EventKind.CHAT_MESSAGE: ChatMessageFrame,
    EventKind.NOTIFICATION: NotificationFrame,
    EventKind.REALTIME_UPDATE: RealtimeUpdateFrame,
}


def load_frame(raw: str | bytes) -> dict[str, Any]:
    """Parse raw text into a JSON object carrying a ``type`` field."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError, RecursionError) as exc:
        raise MalformedFrameError(f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedFrameError("frame is not a JSON object")
    if not isinstance(data.get("type"), str):
        raise MalformedFrameError("frame has no string 'type'")
    return data


def decode_envelope(raw: str | bytes) -> Envelope:
    """Turn a server frame into an :class:`Envelope`.

    Raises :class:`MalformedFrameError` or :class:`UnknownEventError`.
    """
    data = load_frame(raw)
    try:
        kind = EventKind(data["type"])
    except ValueError:
        raise UnknownEventError(data["type"]) from None

    try:
        frame = _SERVER_FRAMES[kind].model_validate(data)
    except PydanticValidationError as exc:
        raise MalformedFrameError(f"bad {kind} frame: {exc.error_count()} error(s)") from exc

    if isinstance(frame, RealtimeUpdateFrame):
        try:
            subkind = UpdateKind(frame.update_type)
        except ValueError:
            raise UnknownEventError(f"{kind}:{frame.update_type}") from None
        return Envelope(kind=kind, payload=frame.data, subkind=subkind)

    if isinstance(frame, NotificationFrame):
        return Envelope(kind=kind, payload=frame.data)

    if isinstance(frame, ChatMessageFrame):
        return Envelope(
            kind=kind,
            payload={
                "content": frame.content,
                "isFromUser": frame.is_from_user,
                "timestamp": frame.timestamp,
            },
        )

    return Envelope(kind=kind)
