from __future__ import annotations

import json

import pytest

from order_realtime.client.invalidation import CacheInvalidationBridge, keys_for_update
from order_realtime.client.router import EventRouter
from order_realtime.domain.value_objects.enums import UpdateKind
from tests.conftest import FakeInvalidator, RecordingAlerts


@pytest.fixture
def wired():
    router = EventRouter()
    cache = FakeInvalidator()
    alerts = RecordingAlerts()
    CacheInvalidationBridge(cache, alerts).attach(router)
    return router, cache, alerts


def _update(subkind: str, **data) -> str:
    return json.dumps({"type": "realtime_update", "updateType": subkind, "data": data})


@pytest.mark.parametrize(
    ("subkind", "expected"),
    [
        ("cart_cleared", ["cart"]),
        ("order_created", ["orders", "orders/7"]),
        ("payment_completed", ["orders"]),
        ("order_status_updated", ["orders", "orders/7"]),
        ("rider_assigned", ["orders", "orders/7"]),
        ("notifications_updated", ["notifications", "notifications/count"]),
    ],
)
def test_each_subkind_invalidates_exactly_its_keys(wired, subkind, expected):
    router, cache, _ = wired

    router.dispatch(_update(subkind, orderId=7))

    assert cache.keys == expected


def test_every_subkind_has_an_entry():
    for subkind in UpdateKind:
        assert keys_for_update(subkind)


@pytest.mark.parametrize("subkind", ["order_created", "order_status_updated", "rider_assigned"])
def test_order_key_needs_order_id(wired, subkind):
    router, cache, _ = wired

    router.dispatch(_update(subkind, status="preparing"))

    assert cache.keys == ["orders"]


@pytest.mark.parametrize("order_id", [1e999, float("nan"), True, 3.7, "abc", [7]])
def test_unusable_order_id_still_invalidates_collection(wired, order_id):
    router, cache, _ = wired

    router.dispatch(_update("order_status_updated", orderId=order_id))

    assert cache.keys == ["orders"]


@pytest.mark.parametrize(("order_id", "key"), [(7, "orders/7"), ("7", "orders/7"), (7.0, "orders/7")])
def test_integral_order_id_forms(wired, order_id, key):
    router, cache, _ = wired

    router.dispatch(_update("rider_assigned", orderId=order_id))

    assert cache.keys == ["orders", key]


def test_sequence_of_updates_accumulates_in_order(wired):
    router, cache, _ = wired

    router.dispatch(_update("order_created", orderId=1))
    router.dispatch(_update("payment_completed", orderId=1))
    router.dispatch(_update("cart_cleared"))
    router.dispatch(_update("rider_assigned", orderId=1))

    assert cache.keys == ["orders", "orders/1", "orders", "cart", "orders", "orders/1"]


def test_unknown_subkind_invalidates_nothing(wired):
    router, cache, alerts = wired

    router.dispatch(_update("wallet_credited", amount=5))

    assert cache.keys == []
    assert alerts.alerts == []


def test_notification_invalidates_and_alerts(wired):
    router, cache, alerts = wired

    router.dispatch(json.dumps({
        "type": "notification",
        "data": {"title": "Order on its way", "message": "Rider picked up #7", "orderId": 7},
    }))

    assert cache.keys == ["notifications", "notifications/count"]
    assert alerts.alerts == [("Order on its way", "Rider picked up #7")]


def test_notification_without_title_gets_default(wired):
    router, _, alerts = wired

    router.dispatch(json.dumps({"type": "notification", "data": {}}))

    assert alerts.alerts == [("Notification", "")]


def test_payment_events_surface_alerts(wired):
    router, _, alerts = wired

    router.dispatch(_update("payment_completed", orderId=3))
    router.dispatch(_update("cart_cleared"))
    router.dispatch(_update("order_status_updated", orderId=3))

    assert [title for title, _ in alerts.alerts] == ["Payment Successful", "Cart Updated"]
