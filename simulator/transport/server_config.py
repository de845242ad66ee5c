"""
Default bind address of the simulator's NDJSON publisher.

Attributes
----------
HOST
    Default bind address for the simulator TCP server.
PORT
    Default TCP port; matches the detector's ``transport.tcp_client.port``.
"""

from __future__ import annotations

HOST: str = "127.0.0.1"
PORT: int = 9009
