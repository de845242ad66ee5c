from __future__ import annotations

import logging
import threading
import zlib
from queue import Empty, Full, Queue
from typing import List

from detector.domain.models import Reading
from detector.services.controller import DetectorController

logger = logging.getLogger(__name__)


def partition_for(key: str, partitions: int) -> int:
    """Stable partition index for a detector key."""
    return zlib.crc32(key.encode("utf-8")) % partitions


class _PartitionWorker:
    def __init__(self, index: int, controller: DetectorController, q: "Queue[Reading]", stop_event: threading.Event):
        self._controller = controller
        self._q = q
        self._stop = stop_event
        self._thread = threading.Thread(target=self._run, name=f"detector-worker-{index}", daemon=True)

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def join(self, timeout: float | None = 2.0) -> None:
        self._thread.join(timeout=timeout)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                reading = self._q.get(timeout=0.5)
            except Empty:
                continue

            try:
                self._controller.handle_reading(reading)
            except Exception:
                logger.exception("Reading for key=%s failed", reading.key)
            finally:
                self._q.task_done()


class DetectorWorkerPool:
    """
    Partitioned worker threads for detector evaluation.

    Concurrency Model
    -----------------
    - Each key is always routed to the same partition (CRC32 of the key), and
      each partition is drained by a single thread. Readings for one key are
      therefore applied in arrival order, while different partitions run in
      parallel.
    - An exception while processing one reading is logged and does not stop
      the worker.

    Parameters
    ----------
    controller
        Controller that evaluates readings and publishes results.
    stop_event
        Shared stop signal.
    workers
        Number of partitions / threads.
    max_queue
        Capacity of each partition queue; newest readings are dropped when full.
    """

    def __init__(
        self,
        controller: DetectorController,
        stop_event: threading.Event,
        workers: int = 4,
        max_queue: int = 5000,
    ):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._stop = stop_event
        self._queues: List["Queue[Reading]"] = [Queue(maxsize=max_queue) for _ in range(workers)]
        self._workers = [
            _PartitionWorker(i, controller, q, stop_event) for i, q in enumerate(self._queues)
        ]
        self.dropped = 0
        self._dropped_lock = threading.Lock()

    @property
    def partitions(self) -> int:
        return len(self._queues)

    def submit(self, reading: Reading) -> None:
        """Queue a reading on its key's partition (non-blocking)."""
        q = self._queues[partition_for(reading.key, len(self._queues))]
        try:
            q.put_nowait(reading)
        except Full:
            with self._dropped_lock:
                self.dropped += 1
            logger.warning("Partition queue full, dropped reading for key=%s", reading.key)

    def drain(self) -> None:
        """Block until every queued reading has been processed."""
        for q in self._queues:
            q.join()

    def start(self) -> None:
        for w in self._workers:
            w.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = 2.0) -> None:
        for w in self._workers:
            w.join(timeout=timeout)
