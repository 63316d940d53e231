"""Cache invalidation bridge.

Turns routed events into staleness signals for the local resource cache.
The bridge never reads or writes resource data.
"""
from __future__ import annotations

import logging

from order_realtime.application.ports.alerts import AlertSink
from order_realtime.application.ports.cache import CacheInvalidator
from order_realtime.client.router import EventRouter
from order_realtime.domain.entities.envelope import Envelope
from order_realtime.domain.value_objects.enums import EventKind, UpdateKind

logger = logging.getLogger(__name__)

CART = "cart"
ORDERS = "orders"
NOTIFICATIONS = "notifications"
NOTIFICATIONS_COUNT = "notifications/count"

# Per-order keys ("orders/<id>") are added when the payload carries an orderId.
INVALIDATIONS: dict[UpdateKind, tuple[tuple[str, ...], bool]] = {
    UpdateKind.CART_CLEARED: ((CART,), False),
    UpdateKind.ORDER_CREATED: ((ORDERS,), True),
    UpdateKind.PAYMENT_COMPLETED: ((ORDERS,), False),
    UpdateKind.ORDER_STATUS_UPDATED: ((ORDERS,), True),
    UpdateKind.RIDER_ASSIGNED: ((ORDERS,), True),
    UpdateKind.NOTIFICATIONS_UPDATED: ((NOTIFICATIONS, NOTIFICATIONS_COUNT), False),
}

UPDATE_ALERTS: dict[UpdateKind, tuple[str, str]] = {
    UpdateKind.CART_CLEARED: (
        "Cart Updated",
        "Your cart has been cleared after successful payment.",
    ),
    UpdateKind.PAYMENT_COMPLETED: (
        "Payment Successful",
        "Your order has been confirmed and is being prepared.",
    ),
}


def order_key(order_id: int) -> str:
    return f"{ORDERS}/{order_id}"


def keys_for_update(subkind: UpdateKind, order_id: int | None = None) -> list[str]:
    keys, per_order = INVALIDATIONS[subkind]
    result = list(keys)
    if per_order and order_id is not None:
        result.append(order_key(order_id))
    return result


class CacheInvalidationBridge:
    def __init__(self, cache: CacheInvalidator, alerts: AlertSink) -> None:
        self._cache = cache
        self._alerts = alerts

    def attach(self, router: EventRouter) -> None:
        router.register(EventKind.REALTIME_UPDATE, self.on_realtime_update)
        router.register(EventKind.NOTIFICATION, self.on_notification)

    def on_realtime_update(self, envelope: Envelope) -> None:
        if envelope.subkind is None:
            return
        keys = keys_for_update(envelope.subkind, envelope.order_id)
        self._invalidate(keys)
        alert = UPDATE_ALERTS.get(envelope.subkind)
        if alert is not None:
            self._alerts.alert(*alert)

    def on_notification(self, envelope: Envelope) -> None:
        self._invalidate([NOTIFICATIONS, NOTIFICATIONS_COUNT])
        title = envelope.payload.get("title") or "Notification"
        message = envelope.payload.get("message") or ""
        self._alerts.alert(str(title), str(message))

    def _invalidate(self, keys: list[str]) -> None:
        for key in keys:
            logger.debug("Invalidating %s", key)
            self._cache.invalidate(key)
