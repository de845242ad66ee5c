from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from detector.domain.models import Reading
from detector.transport.tcp_client import TCPNDJSONClient
from detector.transport.topic_rule import TopicRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadingsReceiverConfig:
    """
    Configuration for the readings receiver thread.

    Parameters
    ----------
    host
        TCP server host.
    port
        TCP server port.
    rule
        Topic rule used to key and flatten incoming messages.
    reconnect_delay_s
        Delay in seconds between reconnect attempts after a failure.
    connect_timeout_s
        TCP connect timeout (seconds) used during the connect phase.
    """

    host: str
    port: int
    rule: TopicRule
    reconnect_delay_s: float = 0.5
    connect_timeout_s: float = 5.0


class ReadingsReceiverThread:
    """
    Dedicated I/O thread that receives keyed readings from a TCP NDJSON stream.

    Responsibilities
    ----------------
    - Own and manage the TCP connection lifecycle.
    - Auto-reconnect on failures until stopped.
    - Hand every reading to ``submit`` (normally ``DetectorWorkerPool.submit``),
      preserving arrival order.

    Stop Behavior
    -------------
    :meth:`stop` sets the shared stop event and closes the socket to break
    any blocking receive.
    """

    def __init__(
        self,
        cfg: ReadingsReceiverConfig,
        submit: Callable[[Reading], None],
        stop_event: threading.Event,
    ):
        self._cfg = cfg
        self._submit = submit
        self._stop = stop_event
        self._thread = threading.Thread(target=self._run, name="readings-receiver", daemon=True)
        self._client: Optional[TCPNDJSONClient] = None

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        client = self._client
        if client is not None:
            client.close()

    def join(self, timeout: float | None = 2.0) -> None:
        self._thread.join(timeout=timeout)

    def _run(self) -> None:
        """Connect, receive readings, and reconnect on errors until stopped."""
        while not self._stop.is_set():
            try:
                self._client = TCPNDJSONClient(
                    rule=self._cfg.rule,
                    host=self._cfg.host,
                    port=self._cfg.port,
                    timeout_s=self._cfg.connect_timeout_s,
                )
                self._client.connect()

                for reading in self._client.readings():
                    if self._stop.is_set():
                        break
                    self._submit(reading)

            except (OSError, RuntimeError) as e:
                if self._stop.is_set():
                    break
                logger.warning("Readings connection error: %r; reconnecting in %.1fs", e, self._cfg.reconnect_delay_s)
                time.sleep(self._cfg.reconnect_delay_s)

            finally:
                if self._client is not None:
                    self._client.close()
                self._client = None
