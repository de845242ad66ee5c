from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from queue import Full, Queue

from detector.domain.events import DetectorOutput

logger = logging.getLogger(__name__)


@dataclass
class EventBus:
    """
    In-process bus between detector workers and the notification layer.

    - Producers publish :class:`~detector.domain.events.DetectorOutput` via :meth:`publish`.
    - Consumers (the notification adapter thread) read from :attr:`outputs_q`.

    Concurrency Model
    -----------------
    :class:`queue.Queue` is thread-safe; every detector worker publishes
    without extra locking. ``dropped`` is guarded by a small lock.

    Backpressure Policy
    -------------------
    If the queue is full the output is dropped and counted. Detector state
    already reflects the reading, so only the notification is lost.

    Attributes
    ----------
    outputs_q
        Bounded queue of detector outputs.
    dropped
        Number of outputs dropped because the queue was full.
    """

    outputs_q: "Queue[DetectorOutput]" = field(default_factory=lambda: Queue(maxsize=5000))
    dropped: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def publish(self, out: DetectorOutput) -> None:
        """Publish a detector output (non-blocking)."""
        try:
            self.outputs_q.put_nowait(out)
        except Full:
            with self._lock:
                self.dropped += 1
            logger.warning("Event bus full, dropped output for key=%s", out.result.key)
