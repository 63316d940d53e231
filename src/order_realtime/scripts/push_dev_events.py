"""Development script: push a sample order lifecycle to one user."""
from __future__ import annotations

import argparse
import asyncio
import logging

import redis.asyncio as aioredis

from order_realtime.config import settings
from order_realtime.domain.value_objects.enums import UpdateKind
from order_realtime.infrastructure.bus.redis_pubsub import RedisPubSubPublisher
from order_realtime.services import relay_service

logger = logging.getLogger(__name__)


async def push(user_id: int, order_id: int, pause: float) -> None:
    r = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    publisher = RedisPubSubPublisher(r)
    try:
        steps = [
            (UpdateKind.ORDER_CREATED, {"orderId": order_id}),
            (UpdateKind.PAYMENT_COMPLETED, {"orderId": order_id}),
            (UpdateKind.CART_CLEARED, {}),
            (UpdateKind.ORDER_STATUS_UPDATED, {"orderId": order_id, "status": "preparing"}),
            (UpdateKind.RIDER_ASSIGNED, {"orderId": order_id}),
            (UpdateKind.ORDER_STATUS_UPDATED, {"orderId": order_id, "status": "delivered"}),
        ]
        for update_type, data in steps:
            await relay_service.send_realtime_update(publisher, user_id, update_type.value, data)
            logger.info("Pushed %s to user %d", update_type, user_id)
            await asyncio.sleep(pause)

        await relay_service.send_notification(
            publisher,
            user_id,
            {
                "type": "delivery",
                "title": "Order delivered",
                "message": f"Order #{order_id} has been delivered. Enjoy!",
                "orderId": order_id,
            },
            unread_count=1,
        )
        await relay_service.send_chat_message(
            publisher, user_id, "How was your order? Reply here if anything was wrong.",
        )
        logger.info("Pushed notification and chat message to user %d", user_id)
    finally:
        await r.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--user-id", type=int, required=True)
    parser.add_argument("--order-id", type=int, default=1001)
    parser.add_argument("--pause", type=float, default=1.0)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    asyncio.run(push(args.user_id, args.order_id, args.pause))


if __name__ == "__main__":
    main()
