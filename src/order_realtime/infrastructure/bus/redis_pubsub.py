"""Redis Pub/Sub: publish side + subscriber background task."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis

from order_realtime.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)

RESUBSCRIBE_DELAY_SECONDS = 5.0


class RedisPubSubPublisher:
    """Implements application.ports.bus.EventPublisher."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def publish(self, channel: str, event_type: str, data: dict[str, Any]) -> None:
        receivers = await self._redis.publish(channel, serialize_event(event_type, data))
        logger.debug("Published %s to %s (%d receivers)", event_type, channel, receivers)


OnEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisPubSubSubscriber:
    """Background task that listens to a Redis channel and dispatches events.

    A lost Redis connection is retried every ``resubscribe_delay`` seconds;
    events published in between are not seen.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEventCallback,
        *,
        resubscribe_delay: float = RESUBSCRIBE_DELAY_SECONDS,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._resubscribe_delay = resubscribe_delay
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="redis-pubsub-subscriber")
        logger.info("Redis Pub/Sub subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Redis Pub/Sub subscriber stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self._listen()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Pub/Sub listener failed, resubscribing in %.0fs", self._resubscribe_delay,
                )
                await asyncio.sleep(self._resubscribe_delay)

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                await self.handle_raw(message["data"])
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()

    async def handle_raw(self, raw: str | bytes) -> None:
        try:
            event_type, data = deserialize_event(raw)
        except ValueError:
            logger.error("Dropping malformed Pub/Sub message: %.200r", raw)
            return
        try:
            await self._callback(event_type, data)
        except Exception:
            logger.exception("Error processing Pub/Sub event %s", event_type)
