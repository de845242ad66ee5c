"""
Simulator message models.

The simulator publishes motor status messages shaped like the payloads a
motor gateway sends on ``motors/<id>/status``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict


@dataclass(frozen=True)
class MotorStatus:
    """
    One motor status message.

    Parameters
    ----------
    motor_id
        Motor identifier; also used as the second topic level.
    pressure
        Line pressure reading.
    temperature
        Motor temperature reading.
    timestamp
        Time the sample was generated.
    """

    motor_id: str
    pressure: float
    temperature: float
    timestamp: datetime

    @property
    def topic(self) -> str:
        return f"motors/{self.motor_id}/status"

    def payload(self) -> Dict[str, Any]:
        return {
            "motorid": f"Fulton-{self.motor_id}",
            "timestamp": self.timestamp.isoformat(),
            "sensorData": {
                "pressure": round(self.pressure, 2),
                "temperature": round(self.temperature, 2),
            },
        }
