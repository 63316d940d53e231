"""Event router: classifies inbound frames and fans them out to handlers."""
from __future__ import annotations

import logging
from typing import Callable

from order_realtime.domain.entities.envelope import Envelope
from order_realtime.domain.value_objects.enums import EventKind, UpdateKind
from order_realtime.infrastructure.ws.protocol import (
    MalformedFrameError,
    UnknownEventError,
    decode_envelope,
)

logger = logging.getLogger(__name__)

EventHandler = Callable[[Envelope], None]

_RouteKey = tuple[EventKind, UpdateKind | None]


class EventRouter:
    """Maps (kind, subkind) to handlers, invoked synchronously in registration order.

    A handler registered for ``REALTIME_UPDATE`` without a subkind receives
    every recognised subkind. Handlers must not block; anything slow is to be
    scheduled, not awaited.
    """

    def __init__(self) -> None:
        self._routes: list[tuple[_RouteKey, EventHandler]] = []

    def register(
        self,
        kind: EventKind,
        handler: EventHandler,
        *,
        subkind: UpdateKind | None = None,
    ) -> None:
        if subkind is not None and kind != EventKind.REALTIME_UPDATE:
            raise ValueError(f"subkind is only valid for {EventKind.REALTIME_UPDATE}")
        key = (kind, subkind)
        self._routes.append((key, handler))

    def handlers_for(self, envelope: Envelope) -> list[EventHandler]:
        keys = {(envelope.kind, None)}
        if envelope.subkind is not None:
            keys.add((envelope.kind, envelope.subkind))
        return [handler for key, handler in self._routes if key in keys]

    def dispatch(self, raw_frame: str | bytes) -> int:
        """Route one raw frame. Returns the number of handlers invoked.

        Never raises: malformed frames and unknown types are logged and dropped.
        """
        try:
            envelope = decode_envelope(raw_frame)
        except MalformedFrameError as exc:
            logger.error("Dropping malformed frame: %s", exc)
            return 0
        except UnknownEventError as exc:
            logger.info("Ignoring unknown event type: %s", exc)
            return 0
        return self.route(envelope)

    def route(self, envelope: Envelope) -> int:
        handlers = self.handlers_for(envelope)
        if not handlers:
            logger.debug("No handler for %s/%s", envelope.kind, envelope.subkind)
            return 0
        for handler in handlers:
            try:
                handler(envelope)
            except Exception:
                logger.exception(
                    "Handler %r failed for %s/%s",
                    handler, envelope.kind, envelope.subkind,
                )
        return len(handlers)
