from __future__ import annotations

from enum import StrEnum


class EventKind(StrEnum):
    AUTH_ACK = "auth_ack"
    CHAT_MESSAGE = "chat_message"
    NOTIFICATION = "notification"
    REALTIME_UPDATE = "realtime_update"


class UpdateKind(StrEnum):
    """Subkind carried by ``realtime_update`` envelopes."""

    CART_CLEARED = "cart_cleared"
    ORDER_CREATED = "order_created"
    PAYMENT_COMPLETED = "payment_completed"
    ORDER_STATUS_UPDATED = "order_status_updated"
    RIDER_ASSIGNED = "rider_assigned"
    NOTIFICATIONS_UPDATED = "notifications_updated"


class ConnectionState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
