from __future__ import annotations

import logging
import socket
from dataclasses import dataclass, field
from typing import Iterator, Optional

from detector.domain.models import Reading
from detector.transport.client_config import HOST, PORT, TIMEOUT_S
from detector.transport.ndjson import decode_message
from detector.transport.topic_rule import TopicRule

logger = logging.getLogger(__name__)


@dataclass
class TCPNDJSONClient:
    """
    TCP client that receives NDJSON telemetry messages from a streaming server.

    This transport adapter connects to a TCP server (e.g., the simulator) and yields:
    - raw NDJSON lines via :meth:`lines`
    - keyed readings via :meth:`readings`

    Notes
    -----
    - This class is an infrastructure component. It does not evaluate
      detector rules.
    - Malformed lines are logged and skipped.

    Parameters
    ----------
    rule
        Topic rule used to extract the key and flatten payloads.
    host
        Remote host address of the NDJSON stream server.
    port
        Remote TCP port.
    timeout_s
        Connection timeout (seconds) used for initial connect only.
    """

    rule: TopicRule
    host: str = HOST
    port: int = PORT
    timeout_s: float = TIMEOUT_S

    _sock: Optional[socket.socket] = field(default=None, repr=False)

    def connect(self) -> None:
        """
        Open a TCP connection to the configured host/port.

        The timeout applies to the connect only; the socket is then switched
        to blocking mode for streaming.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(self.timeout_s)
        sock.connect((self.host, self.port))
        sock.settimeout(None)  # streaming mode
        self._sock = sock
        logger.info("Connected to readings stream at %s:%s", self.host, self.port)

    def lines(self) -> Iterator[str]:
        """
        Yield complete NDJSON lines from the socket stream.

        Raises
        ------
        RuntimeError
            If called before :meth:`connect`.
        ConnectionError
            If the remote side closes the connection.
        """
        if not self._sock:
            raise RuntimeError("Not connected")

        buf = b""
        while True:
            chunk = self._sock.recv(4096)
            if not chunk:
                raise ConnectionError("Server closed connection")
            buf += chunk

            while b"\n" in buf:
                line, buf = buf.split(b"\n", 1)
                s = line.decode("utf-8", errors="replace").strip()
                if s:
                    yield s

    def readings(self) -> Iterator[Reading]:
        """
        Yield keyed readings from the NDJSON stream.

        Lines filtered out by the topic rule are skipped silently; malformed
        lines are logged and skipped.
        """
        for line in self.lines():
            try:
                reading = decode_message(line, self.rule)
            except ValueError as e:
                logger.warning("Bad line skipped (%s): %r", e, line[:200])
                continue
            if reading is not None:
                yield reading

    def close(self) -> None:
        """Close the underlying socket if open."""
        if self._sock:
            try:
                self._sock.close()
            except OSError:
                logger.debug("Error while closing readings socket", exc_info=True)
            self._sock = None
