from __future__ import annotations

import threading
from dataclasses import dataclass

from detector.notification.notification_thread import NotificationWorkerThread
from detector.runtime.detector_worker_pool import DetectorWorkerPool
from detector.runtime.event_bus import EventBus
from detector.runtime.notification_adapter_thread import NotificationAdapterThread
from detector.runtime.readings_receiver_thread import ReadingsReceiverConfig, ReadingsReceiverThread
from detector.services.controller import DetectorController
from detector.transport.topic_rule import TopicRule


@dataclass(frozen=True)
class AppRuntimeConfig:
    """
    Runtime configuration for thread orchestration and transport connection.

    Parameters
    ----------
    readings_host
        TCP host of the readings stream server.
    readings_port
        TCP port of the readings stream server.
    rule
        Topic rule applied to incoming messages.
    workers
        Number of detector partitions / worker threads.
    reconnect_delay_s
        Delay (seconds) between reconnect attempts after network errors.
    connect_timeout_s
        TCP connect timeout (seconds).
    notify_state_changes
        Emit a notification for every state transition.
    """

    readings_host: str
    readings_port: int
    rule: TopicRule
    workers: int = 4
    reconnect_delay_s: float = 0.5
    connect_timeout_s: float = 5.0
    notify_state_changes: bool = False


class AppRuntime:
    """
    Thread supervisor for the detector service.

    Thread Topology
    ---------------
    1) ReadingsReceiverThread (I/O)
       - owns the TCP connection, decodes NDJSON, applies the topic rule
       - submits readings to the worker pool
    2) DetectorWorkerPool (business logic)
       - one thread per partition; a key always lands on the same partition
       - DetectorController runs the engine and publishes to the EventBus
    3) NotificationAdapterThread (adapter)
       - turns detector outputs into notification events
       - emits them into the NotificationWorkerThread (owned by the caller)

    Notes
    -----
    All threads are daemon threads; `stop()` + `join()` still give a clean
    shutdown.
    """

    def __init__(
        self,
        cfg: AppRuntimeConfig,
        controller: DetectorController,
        bus: EventBus,
        notifier: NotificationWorkerThread,
    ):
        self._cfg = cfg
        self._stop = threading.Event()

        self.pool = DetectorWorkerPool(controller=controller, stop_event=self._stop, workers=cfg.workers)

        self._receiver = ReadingsReceiverThread(
            ReadingsReceiverConfig(
                host=cfg.readings_host,
                port=cfg.readings_port,
                rule=cfg.rule,
                reconnect_delay_s=cfg.reconnect_delay_s,
                connect_timeout_s=cfg.connect_timeout_s,
            ),
            submit=self.pool.submit,
            stop_event=self._stop,
        )

        self._notify_adapter = NotificationAdapterThread(
            bus=bus,
            notifier=notifier,
            stop_event=self._stop,
            include_state_changes=cfg.notify_state_changes,
        )

    def start(self) -> None:
        """Start consumers before the producer so no reading waits on a cold pool."""
        self._notify_adapter.start()
        self.pool.start()
        self._receiver.start()

    def stop(self) -> None:
        """Stop all runtime threads and wait briefly for shutdown."""
        self._receiver.stop()
        self.pool.stop()
        self._notify_adapter.stop()

        self._receiver.join(timeout=2.0)
        self.pool.join(timeout=2.0)
        self._notify_adapter.join(timeout=2.0)
