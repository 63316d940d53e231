from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class AlertSink(Protocol):
    def alert(self, title: str, message: str) -> None: ...


class LoggingAlertSink:
    """Default sink: writes alerts to the log."""

    def alert(self, title: str, message: str) -> None:
        logger.info("ALERT %s: %s", title, message)
