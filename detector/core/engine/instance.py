from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict

from detector.domain.models import DetectorSnapshot


@dataclass
class DetectorInstance:
    """
    Live mutable state of one detector key.

    Notes
    -----
    - ``lock`` serializes every read and write of ``state_name`` and
      ``variables``; the engine holds it for the whole evaluation of a reading.
    - ``initialized`` flips once the initial state's ``onEnter`` rules have run.

    Parameters
    ----------
    key
        Detector key (e.g. motor id).
    state_name
        Current state; always names a state of the model.
    variables
        Variable store, written only by ``setVariable`` actions.
    """

    key: str
    state_name: str
    variables: Dict[str, float] = field(default_factory=dict)
    initialized: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def snapshot(self) -> DetectorSnapshot:
        """Copy of the current state. Caller must hold ``lock``."""
        return DetectorSnapshot(key=self.key, state_name=self.state_name, variables=dict(self.variables))
