from __future__ import annotations

import logging
import threading
from queue import Empty

from detector.domain.events import DetectorOutput
from detector.notification.notification_thread import NotificationWorkerThread
from detector.notification.payload import to_notification_events
from detector.runtime.event_bus import EventBus

logger = logging.getLogger(__name__)


class NotificationAdapterThread:
    """
    Adapter thread that bridges DetectorOutput -> NotificationWorkerThread.

    Responsibilities
    ----------------
    - Consume `EventBus.outputs_q`.
    - Build one notification event per notify action (plus a state-change
      event when enabled).
    - Emit them into the `NotificationWorkerThread`.

    Parameters
    ----------
    bus
        Event bus providing detector outputs.
    notifier
        Notification worker responsible for delivery.
    stop_event
        Stop signal for the thread.
    include_state_changes
        Also notify every state transition, not only model notify actions.
    """

    def __init__(
        self,
        bus: EventBus,
        notifier: NotificationWorkerThread,
        stop_event: threading.Event,
        include_state_changes: bool = False,
    ):
        self._bus = bus
        self._notifier = notifier
        self._stop = stop_event
        self._include_state_changes = include_state_changes
        self._thread = threading.Thread(target=self._run, name="notification-adapter", daemon=True)

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = 2.0) -> None:
        self._thread.join(timeout=timeout)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                out: DetectorOutput = self._bus.outputs_q.get(timeout=0.5)
            except Empty:
                continue

            try:
                for event in to_notification_events(out, self._include_state_changes):
                    self._notifier.emit(event)
            except Exception:
                logger.exception("Building notifications failed for key=%s", out.result.key)
