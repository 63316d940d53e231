from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class RealtimeUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    update_type: str = Field(alias="updateType", min_length=1)
    data: dict[str, Any] = {}


class NotificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["order", "payment", "delivery", "system"] = "system"
    title: str = Field(min_length=1)
    message: str
    order_id: int | None = Field(None, alias="orderId")
    unread_count: int | None = Field(None, alias="unreadCount", ge=0)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, exclude={"unread_count"})


class ChatPushRequest(BaseModel):
    content: str = Field(min_length=1)


class QueuedResponse(BaseModel):
    status: Literal["queued"] = "queued"
