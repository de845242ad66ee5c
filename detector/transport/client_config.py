"""
Default TCP client configuration for the readings transport.

Attributes
----------
HOST
    Default address of the readings stream server.
PORT
    Default TCP port of the readings stream server.
TIMEOUT_S
    Default connection timeout (seconds).
"""

from __future__ import annotations

HOST: str = "127.0.0.1"
PORT: int = 9009
TIMEOUT_S: float = 5.0
