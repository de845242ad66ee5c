from __future__ import annotations

import json
import logging

from detector.notification.base import NotificationEvent

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Writes every notification payload to the log as one JSON line."""

    def __init__(self, level: int = logging.INFO):
        self._level = level

    def notify(self, event: NotificationEvent) -> None:
        logger.log(
            self._level,
            "[%s] key=%s target=%s %s",
            event.type,
            event.key,
            event.target,
            json.dumps(event.payload, sort_keys=True, default=str),
        )
