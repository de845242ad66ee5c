"""
Domain models and enums.

This module defines the core domain-level types shared across layers:
- Evaluation method and event phase enums
- Incoming readings (key + flattened attributes)
- Detector snapshots, a read-only view of one live detector instance

These are immutable (frozen) dataclasses so they can be passed across threads
without copying.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping, Optional, Union

AttributeValue = Union[float, int, str, bool]


class EvaluationMethod(str, Enum):
    """
    How ``onInput`` rules of a state observe variable updates.

    Members
    -------
    SERIAL : str
        Rules are evaluated in order and each rule sees the variables written
        by the rules before it.
    BATCH : str
        All guards are evaluated against the variables as they were before
        any ``onInput`` action of the reading ran.
    """

    SERIAL = "SERIAL"
    BATCH = "BATCH"


class EventPhase(str, Enum):
    """
    Rule group an executed action belongs to.

    Members
    -------
    ENTER : str
        ``onEnter`` rule of the arriving state.
    INPUT : str
        ``onInput`` rule of the current state.
    EXIT : str
        ``onExit`` rule of the departing state.
    """

    ENTER = "ENTER"
    INPUT = "INPUT"
    EXIT = "EXIT"


@dataclass(frozen=True)
class Reading:
    """
    One keyed telemetry reading ready for the engine.

    Parameters
    ----------
    key
        Detector instance key (e.g. a motor id).
    attributes
        Flattened attributes keyed by dotted path (``sensorData.pressure``).
    input_name
        Name of the model input this reading belongs to. None means the
        model's only input.
    received_at
        Local receive timestamp, used for notification payloads only.
    topic
        Optional transport topic the reading arrived on.
    """

    key: str
    attributes: Mapping[str, AttributeValue]
    input_name: Optional[str] = None
    received_at: datetime = field(default_factory=datetime.now)
    topic: Optional[str] = None


@dataclass(frozen=True)
class DetectorSnapshot:
    """
    Point-in-time view of a detector instance.

    Parameters
    ----------
    key
        Detector instance key.
    state_name
        Current state of the instance.
    variables
        Copy of the instance variable store.
    """

    key: str
    state_name: str
    variables: Mapping[str, float]
