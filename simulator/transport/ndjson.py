from __future__ import annotations

import json

from simulator.domain.models import MotorStatus


def encode_message(msg: MotorStatus) -> str:
    """
    Encode a motor status into one NDJSON envelope (without trailing newline).

    The envelope carries the topic next to the payload so the detector's
    topic rule can extract the key::

        {"topic": "motors/A32/status", "payload": {...}}

    Raises
    ------
    TypeError
        If `msg` is not a MotorStatus.
    """
    if not isinstance(msg, MotorStatus):
        raise TypeError(f"Unsupported message type: {type(msg).__name__}")
    return json.dumps({"topic": msg.topic, "payload": msg.payload()}, separators=(",", ":"))
