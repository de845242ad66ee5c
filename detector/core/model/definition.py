"""
Detector model definition types.

A :class:`DetectorModel` is the validated, immutable form of a detector model
document. It is produced by :func:`detector.core.model.validation.validate_model`
and shared read-only by every engine and detector instance built from it.

Notes
-----
- All types are frozen dataclasses holding tuples, so a model can be used
  concurrently by many engines without copying.
- Expressions are stored both as source text (for diagnostics) and as parsed
  trees (for evaluation).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple, Union

from detector.core.expression.nodes import UNAVAILABLE, EvaluationScope, Node
from detector.domain.models import EvaluationMethod

logger = logging.getLogger(__name__)


def format_value(value: Any, null: str = "null") -> str:
    """Render an evaluated value for text payloads (``71.0`` -> ``"71"``)."""
    if value is UNAVAILABLE or value is None:
        return null
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class PayloadTemplate:
    """
    Content template of a notify action.

    ``${<expression>}`` placeholders are replaced by the evaluated expression.
    With ``payload_type="JSON"`` the rendered text is decoded into a JSON value.

    Parameters
    ----------
    content
        Template source text.
    payload_type
        ``"JSON"`` or ``"STRING"``.
    parts
        Literal text fragments interleaved with parsed placeholder nodes.
    """

    content: str
    payload_type: str
    parts: Tuple[Union[str, Node], ...]

    def render(self, scope: EvaluationScope) -> Any:
        is_json = self.payload_type == "JSON"
        chunks = []
        for part in self.parts:
            if isinstance(part, str):
                chunks.append(part)
            else:
                chunks.append(format_value(part.evaluate(scope), null="null" if is_json else ""))
        text = "".join(chunks)
        if not is_json:
            return text
        try:
            return json.loads(text)
        except ValueError:
            logger.warning("Notify payload is not valid JSON, sending as text: %r", text[:200])
            return text


@dataclass(frozen=True)
class SetVariable:
    """Assign the value of ``expression`` to ``variable_name``."""

    variable_name: str
    value_text: str
    expression: Node = field(repr=False, compare=False)


@dataclass(frozen=True)
class Notify:
    """
    Side-effecting action handed to the notification sink.

    Parameters
    ----------
    action_type
        Document action key (``sns``, ``notify``, ...).
    target
        Opaque target identifier.
    payload
        Optional content template; None uses the default payload.
    """

    action_type: str
    target: Optional[str] = None
    payload: Optional[PayloadTemplate] = None


Action = Union[SetVariable, Notify]


@dataclass(frozen=True)
class EventRule:
    """
    Guarded rule of a state.

    Parameters
    ----------
    name
        Diagnostic name, not necessarily unique.
    condition_text
        Guard source text.
    condition
        Parsed guard.
    actions
        Actions run in order when the guard holds.
    next_state
        Target state for transition rules; None otherwise.
    """

    name: str
    condition_text: str
    condition: Node = field(repr=False, compare=False)
    actions: Tuple[Action, ...] = ()
    next_state: Optional[str] = None

    @property
    def is_transition(self) -> bool:
        return self.next_state is not None


@dataclass(frozen=True)
class State:
    name: str
    on_enter: Tuple[EventRule, ...] = ()
    on_input: Tuple[EventRule, ...] = ()
    on_exit: Tuple[EventRule, ...] = ()


@dataclass(frozen=True)
class InputDefinition:
    """
    Declared input schema.

    Only the listed dotted attribute paths are visible to the model.
    """

    name: str
    attributes: Tuple[str, ...]

    def select(self, attributes: Mapping[str, Any]) -> Mapping[str, Any]:
        return {k: v for k, v in attributes.items() if k in self.attributes}


@dataclass(frozen=True)
class DetectorModel:
    """
    Immutable detector model.

    Parameters
    ----------
    name
        Model name, copied into notification payloads.
    states
        Ordered states.
    initial_state_name
        State a new detector instance starts in.
    key
        Attribute path whose value identifies a detector instance.
    inputs
        Declared inputs. Empty means attributes are not filtered.
    evaluation_method
        How ``onInput`` guards observe variable updates.
    """

    name: str
    states: Tuple[State, ...]
    initial_state_name: str
    key: Optional[str] = None
    inputs: Tuple[InputDefinition, ...] = ()
    evaluation_method: EvaluationMethod = EvaluationMethod.SERIAL
    _by_name: Mapping[str, State] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_name", MappingProxyType({s.name: s for s in self.states}))

    @property
    def initial_state(self) -> State:
        return self._by_name[self.initial_state_name]

    @property
    def state_names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.states)

    @property
    def default_input_name(self) -> Optional[str]:
        return self.inputs[0].name if len(self.inputs) == 1 else None

    def state(self, name: str) -> State:
        return self._by_name[name]

    def input(self, name: Optional[str]) -> Optional[InputDefinition]:
        for inp in self.inputs:
            if inp.name == name:
                return inp
        return None
