from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from order_realtime.domain.value_objects.enums import EventKind, UpdateKind


@dataclass(frozen=True, slots=True)
class Envelope:
    """A single routed event.

    ``subkind`` is set only for ``realtime_update`` envelopes. ``payload`` is
    the event body as received: the ``data`` object for notifications and
    realtime updates, the message fields for chat messages.
    """

    kind: EventKind
    payload: dict[str, Any] = field(default_factory=dict)
    subkind: UpdateKind | None = None

    @property
    def order_id(self) -> int | None:
        raw = self.payload.get("orderId")
        if raw is None or isinstance(raw, bool):
            return None
        if isinstance(raw, float) and not raw.is_integer():
            return None
        try:
            return int(raw)
        except (TypeError, ValueError, OverflowError):
            return None
