from __future__ import annotations

import json

import pytest

from order_realtime.application.exceptions import ValidationError
from order_realtime.config import settings
from order_realtime.infrastructure.ws.manager import UserSocketManager
from order_realtime.services import relay_service
from tests.conftest import FakeSocket


@pytest.mark.asyncio
async def test_realtime_update_is_published_as_frame(publisher):
    await relay_service.send_realtime_update(publisher, 42, "order_created", {"orderId": 7})

    [(channel, event, data)] = publisher.records
    assert channel == settings.REDIS_PUBSUB_CHANNEL
    assert event == relay_service.FANOUT_EVENT
    assert data["user_id"] == 42
    frame = data["frame"]
    assert frame["type"] == "realtime_update"
    assert frame["updateType"] == "order_created"
    assert frame["data"] == {"orderId": 7}
    assert "timestamp" in frame


@pytest.mark.asyncio
async def test_notification_is_followed_by_refresh_signal(publisher):
    await relay_service.send_notification(
        publisher, 42, {"title": "Payment received", "message": "Thanks"}, unread_count=3,
    )

    frames = [data["frame"] for _, _, data in publisher.records]
    assert [f["type"] for f in frames] == ["notification", "realtime_update"]
    assert frames[0]["data"]["title"] == "Payment received"
    assert frames[1]["updateType"] == "notifications_updated"
    assert frames[1]["data"] == {"unreadCount": 3}


@pytest.mark.asyncio
async def test_notification_needs_title(publisher):
    with pytest.raises(ValidationError):
        await relay_service.send_notification(publisher, 42, {"message": "no title"})
    assert publisher.records == []


@pytest.mark.asyncio
async def test_chat_message_is_from_support(publisher):
    await relay_service.send_chat_message(publisher, 42, "Your rider is 5 minutes away")

    frame = publisher.records[0][2]["frame"]
    assert frame["type"] == "chat_message"
    assert frame["isFromUser"] is False
    assert frame["content"] == "Your rider is 5 minutes away"


@pytest.mark.asyncio
@pytest.mark.parametrize("user_id", [0, -3])
async def test_invalid_user_is_rejected(publisher, user_id):
    with pytest.raises(ValidationError):
        await relay_service.send_realtime_update(publisher, user_id, "cart_cleared")


@pytest.mark.asyncio
async def test_empty_chat_is_rejected(publisher):
    with pytest.raises(ValidationError):
        await relay_service.send_chat_message(publisher, 42, "  ")


@pytest.mark.asyncio
async def test_broadcast_has_no_user(publisher):
    await relay_service.broadcast_update(publisher, "order_status_updated", {"status": "delayed"})

    assert publisher.records[0][2]["user_id"] is None


@pytest.mark.asyncio
async def test_user_chat_goes_to_inbound_channel(publisher):
    await relay_service.relay_user_chat(publisher, 42, "hi")

    [(channel, event, data)] = publisher.records
    assert channel == settings.REDIS_CHAT_INBOUND_CHANNEL
    assert event == relay_service.CHAT_INBOUND_EVENT
    assert data["user_id"] == 42
    assert data["content"] == "hi"


@pytest.mark.asyncio
async def test_deliver_fanout_to_one_user():
    manager = UserSocketManager()
    mine, other = FakeSocket(), FakeSocket()
    manager.register(42, mine)
    manager.register(7, other)

    frame = {"type": "realtime_update", "updateType": "cart_cleared", "data": {}}
    reached = await relay_service.deliver_fanout(manager, {"user_id": 42, "frame": frame})

    assert reached == 1
    assert [json.loads(s) for s in mine.sent] == [frame]
    assert other.sent == []


@pytest.mark.asyncio
async def test_deliver_fanout_to_user_without_socket():
    manager = UserSocketManager()
    frame = {"type": "auth_ack"}

    assert await relay_service.deliver_fanout(manager, {"user_id": 42, "frame": frame}) == 0


@pytest.mark.asyncio
async def test_deliver_fanout_broadcast_reaches_every_user():
    manager = UserSocketManager()
    sockets = [FakeSocket(), FakeSocket(), FakeSocket()]
    manager.register(1, sockets[0])
    manager.register(2, sockets[1])
    manager.register(2, sockets[2])

    frame = {"type": "notification", "data": {"title": "Maintenance"}}
    reached = await relay_service.deliver_fanout(manager, {"user_id": None, "frame": frame})

    assert reached == 2
    assert all(len(s.sent) == 1 for s in sockets)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "data",
    [
        {"user_id": 42},
        {"user_id": 42, "frame": "text"},
        {"user_id": 42, "frame": {"data": {}}},
        {"user_id": "abc", "frame": {"type": "auth_ack"}},
    ],
)
async def test_deliver_fanout_drops_bad_events(data):
    manager = UserSocketManager()
    socket = FakeSocket()
    manager.register(42, socket)

    assert await relay_service.deliver_fanout(manager, data) == 0
    assert socket.sent == []


@pytest.mark.asyncio
async def test_broken_socket_is_unregistered():
    manager = UserSocketManager()
    good, broken = FakeSocket(), FakeSocket(broken=True)
    manager.register(42, good)
    manager.register(42, broken)

    assert await manager.send_to_user(42, "{}") is True

    broken_only = FakeSocket(broken=True)
    manager.register(7, broken_only)
    assert await manager.send_to_user(7, "{}") is False
    assert not manager.is_connected(7)
    assert manager.user_count == 1


def test_unregister_keeps_other_sockets():
    manager = UserSocketManager()
    first, second = FakeSocket(), FakeSocket()
    manager.register(42, first)
    manager.register(42, second)

    manager.unregister(42, first)
    assert manager.is_connected(42)

    manager.unregister(42, second)
    manager.unregister(42, second)
    assert not manager.is_connected(42)
