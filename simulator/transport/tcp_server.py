from __future__ import annotations

import logging
import socket
import threading
from dataclasses import dataclass, field
from typing import Optional

from simulator.domain.models import MotorStatus
from simulator.transport.ndjson import encode_message
from simulator.transport.server_config import HOST, PORT

logger = logging.getLogger(__name__)


@dataclass
class TCPPublishServer:
    """
    Single-client TCP server that publishes motor status messages as NDJSON.

    Behavior
    --------
    - Binds and listens on (host, port)
    - Accepts one TCP client at a time; a new client replaces the old one
    - Sends each message as one UTF-8 NDJSON line

    Concurrency Model
    -----------------
    The client socket is guarded by a lock so accept/send/close can be called
    from different threads.
    """

    host: str = HOST
    port: int = PORT

    _server_sock: Optional[socket.socket] = field(default=None, repr=False)
    _client_sock: Optional[socket.socket] = field(default=None, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def has_client(self) -> bool:
        with self._lock:
            return self._client_sock is not None

    def start(self) -> None:
        """
        Create, bind, and listen on the server socket.

        Raises
        ------
        OSError
            If binding or listening fails (e.g., port already in use).
        """
        self._server_sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server_sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server_sock.bind((self.host, self.port))
        self._server_sock.listen(1)
        logger.info("Simulator listening on %s:%s", self.host, self.port)

    def accept_one(self) -> None:
        """Block until a client connects; replaces any previous client."""
        if not self._server_sock:
            raise RuntimeError("Server not started")

        client, addr = self._server_sock.accept()
        with self._lock:
            old, self._client_sock = self._client_sock, client
        if old is not None:
            old.close()
        logger.info("Client connected from %s", addr)

    def send(self, msg: MotorStatus) -> None:
        """
        Send one message to the connected client.

        Does nothing without a client; a client that disconnected during the
        send is dropped.
        """
        data = (encode_message(msg) + "\n").encode("utf-8")

        with self._lock:
            sock = self._client_sock
        if not sock:
            return

        try:
            sock.sendall(data)
        except OSError:
            with self._lock:
                if self._client_sock is sock:
                    self._client_sock = None
            sock.close()
            logger.info("Client disconnected")

    def close(self) -> None:
        """Close client and server sockets. Safe to call more than once."""
        with self._lock:
            client, self._client_sock = self._client_sock, None
        if client is not None:
            client.close()
        if self._server_sock is not None:
            self._server_sock.close()
            self._server_sock = None
