from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from simulator.domain.models import MotorStatus

PRESSURE_BASELINE = 55.0
PRESSURE_NOISE_SIGMA = 4.0
TEMPERATURE_BASELINE = 47.0


@dataclass
class MotorPressureModel:
    """
    Pressure model for one motor.

    Normal samples are Gaussian around ``baseline``. With probability
    ``breach_probability`` per sample the motor enters a breach episode of
    ``breach_length`` samples, each ``breach_delta`` above the baseline, long
    enough to push a hysteresis counter up before it decays again.

    Parameters
    ----------
    motor_id
        Motor identifier (second topic level).
    seed
        Random seed; None for non-deterministic output.
    """

    motor_id: str
    baseline: float = PRESSURE_BASELINE
    noise_sigma: float = PRESSURE_NOISE_SIGMA
    breach_probability: float = 0.03
    breach_length: int = 4
    breach_delta: float = 25.0
    seed: Optional[int] = None

    _rng: random.Random = field(init=False, repr=False)
    _breach_left: int = field(default=0, init=False, repr=False)

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)

    def sample(self, now: datetime) -> MotorStatus:
        if self._breach_left == 0 and self._rng.random() < self.breach_probability:
            self._breach_left = self.breach_length

        pressure = self.baseline + self._rng.gauss(0.0, self.noise_sigma)
        if self._breach_left > 0:
            pressure += self.breach_delta
            self._breach_left -= 1

        return MotorStatus(
            motor_id=self.motor_id,
            pressure=max(pressure, 0.0),
            temperature=TEMPERATURE_BASELINE + self._rng.gauss(0.0, 1.0),
            timestamp=now,
        )


def build_fleet(motor_ids: List[str], seed: Optional[int] = None) -> List[MotorPressureModel]:
    """One model per motor; seeds are derived so the fleet is reproducible."""
    return [
        MotorPressureModel(motor_id=m, seed=None if seed is None else seed + i)
        for i, m in enumerate(motor_ids)
    ]
