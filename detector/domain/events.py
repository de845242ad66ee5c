"""
Detector output domain models.

An engine call produces a :class:`ProcessResult`: *what happened* for one
reading. It carries the executed actions in execution order and, when the
instance changed state, the :class:`StateTransition`.

Results are typically used for:
- dispatching notifications
- logging and audit trails
- tests asserting on engine behaviour
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from detector.domain.models import EventPhase


@dataclass(frozen=True)
class VariableSet:
    """
    A ``setVariable`` action that ran.

    Parameters
    ----------
    event_name
        Name of the rule that ran the action.
    state_name
        State the instance was in when the action ran.
    phase
        Rule group of the rule.
    variable_name
        Variable written.
    value
        New value, or None if the expression was unavailable and the
        variable was left untouched.
    """

    event_name: str
    state_name: str
    phase: EventPhase
    variable_name: str
    value: Optional[float]

    @property
    def applied(self) -> bool:
        return self.value is not None


@dataclass(frozen=True)
class NotificationAction:
    """
    A notify-style action that ran, with its payload already resolved.

    Parameters
    ----------
    event_name
        Name of the rule that ran the action.
    state_name
        State the instance was in when the action ran.
    phase
        Rule group of the rule.
    action_type
        Action kind from the model document (``sns``, ``notify``, ...).
    target
        Opaque target identifier from the model (topic ARN, channel name).
    payload
        Resolved payload handed to the notification sink.
    """

    event_name: str
    state_name: str
    phase: EventPhase
    action_type: str
    target: Optional[str]
    payload: Any


ExecutedAction = Union[VariableSet, NotificationAction]


@dataclass(frozen=True)
class StateTransition:
    """
    A change of current state for one detector instance.

    Parameters
    ----------
    event_name
        Name of the transition rule that fired.
    from_state
        Departing state.
    to_state
        Arriving state.
    """

    event_name: str
    from_state: str
    to_state: str


@dataclass(frozen=True)
class ProcessResult:
    """
    Outcome of processing one reading for one key.

    Parameters
    ----------
    key
        Detector instance key.
    input_name
        Input the reading was bound to.
    created
        True if this reading created the instance.
    state_name
        Current state after the reading was applied.
    variables
        Copy of the variable store after the reading was applied.
    actions
        Every executed action, in execution order.
    transition
        The state change, if one happened.
    """

    key: str
    input_name: Optional[str]
    created: bool
    state_name: str
    variables: Mapping[str, float] = field(default_factory=dict)
    actions: Tuple[ExecutedAction, ...] = ()
    transition: Optional[StateTransition] = None

    @property
    def notifications(self) -> Tuple[NotificationAction, ...]:
        return tuple(a for a in self.actions if isinstance(a, NotificationAction))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "inputName": self.input_name,
            "created": self.created,
            "stateName": self.state_name,
            "variables": dict(self.variables),
            "transition": None
            if self.transition is None
            else {
                "eventName": self.transition.event_name,
                "from": self.transition.from_state,
                "to": self.transition.to_state,
            },
        }


@dataclass(frozen=True)
class DetectorOutput:
    """
    A processed reading travelling from the detector worker to notifiers.

    Parameters
    ----------
    model_name
        Name of the detector model that produced the result.
    result
        Engine output for one reading.
    timestamp
        Receive time of the reading.
    """

    model_name: str
    result: ProcessResult
    timestamp: datetime
