"""Unread tracking for support chat and notifications."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Sequence

from order_realtime.application.ports.clock import Clock, SystemClock
from order_realtime.application.ports.storage import WatermarkStore
from order_realtime.domain.entities.chat_message import ChatMessage

logger = logging.getLogger(__name__)


def watermark_key(user_id: int) -> str:
    return f"chat_last_seen_{user_id}"


def compute_unread(messages: Iterable[ChatMessage], watermark: datetime | None) -> int:
    """Count messages not sent by the user that arrived after ``watermark``.

    With no watermark every non-user message counts.
    """
    return sum(
        1
        for m in messages
        if not m.is_from_user and (watermark is None or m.timestamp > watermark)
    )


class UnreadTracker:
    """Holds the session's chat sequence and the per-user last-seen watermark.

    The chat unread count is recomputed from scratch after every mutation.
    The watermark moves only through :meth:`mark_seen` and never backwards.
    """

    def __init__(
        self,
        user_id: int,
        store: WatermarkStore,
        clock: Clock | None = None,
    ) -> None:
        self._user_id = user_id
        self._store = store
        self._clock = clock or SystemClock()
        self._messages: list[ChatMessage] = []
        self._watermark = self._load_watermark()
        self._unread = 0
        self._notification_unread = 0

    @property
    def user_id(self) -> int:
        return self._user_id

    @property
    def messages(self) -> Sequence[ChatMessage]:
        return tuple(self._messages)

    @property
    def watermark(self) -> datetime | None:
        return self._watermark

    @property
    def unread_count(self) -> int:
        return self._unread

    @property
    def notification_unread_count(self) -> int:
        return self._notification_unread

    def record_message(self, message: ChatMessage) -> None:
        self._messages.append(message)
        self._recompute()

    def replace_messages(self, messages: Iterable[ChatMessage]) -> None:
        """Swap in a fetched history."""
        self._messages = list(messages)
        self._recompute()

    def mark_seen(self) -> datetime:
        now = self._clock.now()
        if self._watermark is None or now > self._watermark:
            self._watermark = now
        self._store.set(watermark_key(self._user_id), self._watermark.isoformat())
        self._recompute()
        return self._watermark

    def compute_unread(self) -> int:
        return compute_unread(self._messages, self._watermark)

    def set_notification_unread(self, count: int) -> None:
        self._notification_unread = max(0, count)

    def _recompute(self) -> None:
        self._unread = self.compute_unread()

    def _load_watermark(self) -> datetime | None:
        raw = self._store.get(watermark_key(self._user_id))
        if not raw:
            return None
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Ignoring unreadable watermark %r for user %s", raw, self._user_id)
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
