"""Client composition root.

A :class:`RealtimeSession` wires one connection manager, one router, the
cache invalidation bridge and the unread tracker for the signed-in user.
Create one per application and pass it where it is needed; there is no
module-level instance.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from types import TracebackType
from typing import Any, Self

import httpx

from order_realtime.application.ports.alerts import AlertSink, LoggingAlertSink
from order_realtime.application.ports.clock import Clock, SystemClock
from order_realtime.application.ports.storage import WatermarkStore
from order_realtime.application.ports.transport import TransportFactory
from order_realtime.client.connection import SleepFn, ConnectionManager
from order_realtime.client.invalidation import CacheInvalidationBridge
from order_realtime.client.router import EventRouter
from order_realtime.client.unread import UnreadTracker
from order_realtime.config import settings
from order_realtime.domain.entities.chat_message import ChatMessage
from order_realtime.domain.entities.envelope import Envelope
from order_realtime.domain.value_objects.enums import ConnectionState, EventKind, UpdateKind
from order_realtime.infrastructure.cache.resource_cache import HttpResourceFetcher, ResourceCache
from order_realtime.infrastructure.storage.watermark_store import JsonFileWatermarkStore
from order_realtime.infrastructure.transport.websocket import websocket_factory
from order_realtime.infrastructure.ws.protocol import ClientChatFrame

logger = logging.getLogger(__name__)

CHAT_MESSAGES_PATH = "/api/chat/messages"
CHAT_ERROR_REPLY = "Sorry, I'm having trouble connecting. Please try again."


def _as_utc(value: Any) -> datetime | None:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def message_from_history(row: dict[str, Any]) -> ChatMessage:
    timestamp = _as_utc(row["timestamp"])
    if timestamp is None:
        raise ValueError(f"bad timestamp in chat history: {row['timestamp']!r}")
    return ChatMessage(
        id=str(row["id"]),
        content=str(row["content"]),
        is_from_user=bool(row["isFromUser"]),
        timestamp=timestamp,
    )


class RealtimeSession:
    def __init__(
        self,
        *,
        url: str,
        http: httpx.AsyncClient,
        store: WatermarkStore,
        transport_factory: TransportFactory,
        alerts: AlertSink | None = None,
        clock: Clock | None = None,
        cache: ResourceCache | None = None,
        max_attempts: int = settings.RECONNECT_MAX_ATTEMPTS,
        base_delay: float = settings.RECONNECT_BASE_DELAY,
        max_delay: float = settings.RECONNECT_MAX_DELAY,
        sleep: SleepFn = asyncio.sleep,
        owns_http: bool = False,
    ) -> None:
        self._http = http
        self._owns_http = owns_http
        self._store = store
        self._clock = clock or SystemClock()
        self._tracker: UnreadTracker | None = None

        self.router = EventRouter()
        self.connection = ConnectionManager(
            url,
            transport_factory,
            self.router,
            max_attempts=max_attempts,
            base_delay=base_delay,
            max_delay=max_delay,
            sleep=sleep,
        )
        self.cache = cache or ResourceCache(HttpResourceFetcher(http))
        self.bridge = CacheInvalidationBridge(self.cache, alerts or LoggingAlertSink())
        self.bridge.attach(self.router)
        self.router.register(EventKind.CHAT_MESSAGE, self._on_chat_message)
        self.router.register(
            EventKind.REALTIME_UPDATE,
            self._on_notifications_updated,
            subkind=UpdateKind.NOTIFICATIONS_UPDATED,
        )

    @classmethod
    def from_settings(cls, *, alerts: AlertSink | None = None, url: str | None = None) -> Self:
        http = httpx.AsyncClient(
            base_url=settings.API_BASE_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
        return cls(
            url=url or settings.REALTIME_URL,
            http=http,
            store=JsonFileWatermarkStore(settings.WATERMARK_STORE_PATH),
            transport_factory=websocket_factory(settings.CONNECT_TIMEOUT_SECONDS),
            alerts=alerts,
            owns_http=True,
        )

    @property
    def tracker(self) -> UnreadTracker | None:
        return self._tracker

    async def start(self, user_id: int) -> None:
        """Sign-in hook. A different user id tears the old channel down first."""
        if self._tracker is None or self._tracker.user_id != user_id:
            self._tracker = UnreadTracker(user_id, self._store, self._clock)
        elif self.connection.identity == user_id and self.connection.state in (
            ConnectionState.CONNECTING,
            ConnectionState.OPEN,
        ):
            return
        await self.connection.connect(user_id)

    async def stop(self) -> None:
        """Sign-out hook. Chat history of the session is kept."""
        await self.connection.disconnect()
        await self.cache.aclose()

    async def aclose(self) -> None:
        await self.stop()
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def mark_seen(self) -> datetime:
        return self._require_tracker().mark_seen()

    async def send_chat(self, content: str) -> None:
        """Record and deliver a support chat message.

        Uses the realtime channel when it is open, otherwise the HTTP
        endpoint, whose reply is recorded directly.
        """
        tracker = self._require_tracker()
        if not content.strip():
            return
        tracker.record_message(
            ChatMessage(content=content, is_from_user=True, timestamp=self._clock.now())
        )

        if self.connection.is_open:
            if await self.connection.send(ClientChatFrame(content=content).encode()):
                return

        logger.info("Realtime channel unavailable, sending chat over HTTP")
        try:
            response = await self._http.post(CHAT_MESSAGES_PATH, json={"content": content})
            response.raise_for_status()
            reply = response.json().get("response")
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.warning("Chat send failed: %s", exc)
            tracker.record_message(
                ChatMessage(content=CHAT_ERROR_REPLY, is_from_user=False, timestamp=self._clock.now())
            )
            return

        if reply:
            tracker.record_message(
                ChatMessage(content=str(reply), is_from_user=False, timestamp=self._clock.now())
            )

    async def load_history(self) -> bool:
        tracker = self._require_tracker()
        try:
            response = await self._http.get(
                CHAT_MESSAGES_PATH, headers={"Cache-Control": "no-cache"},
            )
            response.raise_for_status()
            messages = [message_from_history(row) for row in response.json()]
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Failed to load chat history: %s", exc)
            return False
        tracker.replace_messages(messages)
        logger.debug("Loaded %d chat messages", len(messages))
        return True

    def _require_tracker(self) -> UnreadTracker:
        if self._tracker is None:
            raise RuntimeError("RealtimeSession.start() has not been called")
        return self._tracker

    def _on_chat_message(self, envelope: Envelope) -> None:
        if self._tracker is None:
            logger.debug("Chat message with no active user, dropped")
            return
        payload = envelope.payload
        self._tracker.record_message(
            ChatMessage(
                content=str(payload.get("content", "")),
                is_from_user=bool(payload.get("isFromUser", False)),
                timestamp=_as_utc(payload.get("timestamp")) or self._clock.now(),
            )
        )

    def _on_notifications_updated(self, envelope: Envelope) -> None:
        count = envelope.payload.get("unreadCount")
        if self._tracker is None or isinstance(count, bool) or not isinstance(count, int):
            return
        self._tracker.set_notification_unread(count)
