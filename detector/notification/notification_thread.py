from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import List, Optional

from detector.notification.base import NotificationEvent, Notifier

logger = logging.getLogger(__name__)

_STOP = NotificationEvent(type="__stop__", payload={})


@dataclass(frozen=True)
class NotificationThreadConfig:
    max_queue: int = 2000
    retry_count: int = 3
    retry_backoff_s: float = 0.5
    poll_timeout_s: float = 0.5


class NotificationWorkerThread:
    """
    Background delivery of notification events.

    Events are queued by :meth:`emit` (never blocks) and delivered to every
    notifier in order. A failing notifier is retried with exponential backoff;
    after the last attempt the event is dropped for that notifier and counted
    in ``failed``. Detector state is never rolled back.
    """

    def __init__(self, notifiers: List[Notifier], cfg: Optional[NotificationThreadConfig] = None):
        self._notifiers = notifiers
        self._cfg = cfg or NotificationThreadConfig()
        self._q: "queue.Queue[NotificationEvent]" = queue.Queue(maxsize=self._cfg.max_queue)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="notification-worker", daemon=True)
        self.sent = 0
        self.failed = 0
        self.dropped = 0

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        try:
            self._q.put_nowait(_STOP)
        except queue.Full:
            pass
        self._thread.join(timeout=2.0)

    def emit(self, event: NotificationEvent) -> None:
        try:
            self._q.put_nowait(event)
        except queue.Full:
            # Drop newest if overloaded; detector processing must not block.
            self.dropped += 1
            logger.warning("Notification queue full, dropped %s for key=%s", event.type, event.key)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                event = self._q.get(timeout=self._cfg.poll_timeout_s)
            except queue.Empty:
                continue

            if event is _STOP:
                break

            for notifier in self._notifiers:
                self._send_with_retries(notifier, event)

    def _send_with_retries(self, notifier: Notifier, event: NotificationEvent) -> None:
        for attempt in range(self._cfg.retry_count + 1):
            try:
                notifier.notify(event)
                self.sent += 1
                return
            except Exception:
                if attempt >= self._cfg.retry_count:
                    self.failed += 1
                    logger.exception(
                        "Notifier %s gave up on %s for key=%s after %d attempts",
                        type(notifier).__name__,
                        event.type,
                        event.key,
                        attempt + 1,
                    )
                    return
                logger.debug("Notifier %s failed (attempt %d), retrying", type(notifier).__name__, attempt + 1, exc_info=True)
                time.sleep(self._cfg.retry_backoff_s * (2 ** attempt))
