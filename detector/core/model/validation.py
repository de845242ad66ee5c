"""
Detector model validation.

:func:`validate_model` turns a model document (a plain mapping, as produced by
YAML/JSON decoding) into an immutable :class:`DetectorModel`, or raises
:class:`ValidationError` listing every problem found.

Two document shapes are accepted:

- a bare definition: ``{"states": [...], "initialStateName": "..."}``
- a full document: ``{"detectorModelName", "key", "evaluationMethod",
  "inputs", "detectorModelDefinition": {"states", "initialStateName"}}``
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from detector.core.errors import ExpressionSyntaxError, ValidationError
from detector.core.expression.evaluator import input_references
from detector.core.expression.nodes import Node
from detector.core.expression.parser import parse_expression
from detector.core.model.definition import (
    Action,
    DetectorModel,
    EventRule,
    InputDefinition,
    Notify,
    PayloadTemplate,
    SetVariable,
    State,
    format_value,
)
from detector.domain.models import EvaluationMethod

_PLACEHOLDER_RE = re.compile(r"\$\{([^}]*)\}")

# Body keys that carry the target of a notify-style action, in lookup order.
_TARGET_KEYS = ("targetArn", "target", "mqttTopic", "functionArn", "url")

DEFAULT_MODEL_NAME = "DetectorModel"


class _Collector:
    """Accumulates problems so validation reports all of them at once."""

    def __init__(self) -> None:
        self.problems: List[str] = []

    def add(self, msg: str) -> None:
        self.problems.append(msg)

    def parse(self, text: Any, where: str) -> Optional[Node]:
        try:
            return parse_expression(text)
        except ExpressionSyntaxError as e:
            self.add(f"{where}: malformed expression: {e}")
            return None


def _expr_text(value: Any) -> str:
    # YAML decodes `condition: true` or `value: 0` into non-strings.
    if isinstance(value, str):
        return value
    return format_value(value)


def _as_list(value: Any, where: str, c: _Collector) -> Sequence[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        c.add(f"{where}: expected a list")
        return []
    return value


def _parse_template(payload: Any, where: str, c: _Collector) -> Optional[PayloadTemplate]:
    if payload is None:
        return None
    if not isinstance(payload, Mapping) or "contentExpression" not in payload:
        c.add(f"{where}: payload must be a mapping with 'contentExpression'")
        return None

    content = str(payload["contentExpression"])
    payload_type = str(payload.get("type", "JSON")).upper()
    if payload_type not in ("JSON", "STRING"):
        c.add(f"{where}: payload type must be JSON or STRING, got {payload_type!r}")
        return None

    parts: List[Any] = []
    pos = 0
    for m in _PLACEHOLDER_RE.finditer(content):
        if m.start() > pos:
            parts.append(content[pos : m.start()])
        node = c.parse(m.group(1), f"{where} placeholder")
        if node is None:
            return None
        parts.append(node)
        pos = m.end()
    if pos < len(content):
        parts.append(content[pos:])

    return PayloadTemplate(content=content, payload_type=payload_type, parts=tuple(parts))


def _parse_action(raw: Any, where: str, c: _Collector) -> Optional[Action]:
    if not isinstance(raw, Mapping) or len(raw) != 1:
        c.add(f"{where}: action must be a mapping with exactly one action type")
        return None

    ((kind, body),) = raw.items()
    if not isinstance(body, Mapping):
        c.add(f"{where}: '{kind}' action body must be a mapping")
        return None

    if kind == "setVariable":
        name = body.get("variableName")
        value = body.get("value")
        if not name or value is None:
            c.add(f"{where}: setVariable needs 'variableName' and 'value'")
            return None
        text = _expr_text(value)
        node = c.parse(text, f"{where} setVariable {name}")
        if node is None:
            return None
        return SetVariable(variable_name=str(name), value_text=text, expression=node)

    target = next((str(body[k]) for k in _TARGET_KEYS if body.get(k) is not None), None)
    template = _parse_template(body.get("payload"), f"{where} {kind}", c)
    if body.get("payload") is not None and template is None:
        return None
    return Notify(action_type=str(kind), target=target, payload=template)


def _parse_rule(raw: Any, where: str, c: _Collector, allow_transition: bool) -> Optional[EventRule]:
    if not isinstance(raw, Mapping):
        c.add(f"{where}: event must be a mapping")
        return None

    name = str(raw.get("eventName", ""))
    where = f"{where} '{name}'"
    if not name:
        c.add(f"{where}: missing 'eventName'")

    condition_text = _expr_text(raw.get("condition", "true"))
    condition = c.parse(condition_text, where)

    actions: List[Action] = []
    for i, a in enumerate(_as_list(raw.get("actions"), f"{where} actions", c)):
        action = _parse_action(a, f"{where} action[{i}]", c)
        if action is not None:
            actions.append(action)

    next_state = raw.get("nextState")
    if allow_transition and not next_state:
        c.add(f"{where}: transition event needs 'nextState'")
    if not allow_transition and next_state:
        c.add(f"{where}: 'nextState' is only allowed in onInput.transitionEvents")

    if condition is None:
        return None
    return EventRule(
        name=name,
        condition_text=condition_text,
        condition=condition,
        actions=tuple(actions),
        next_state=str(next_state) if allow_transition and next_state else None,
    )


def _parse_rules(
    group: Any, list_key: str, where: str, c: _Collector, allow_transition: bool
) -> List[EventRule]:
    if group is None:
        return []
    if not isinstance(group, Mapping):
        c.add(f"{where}: expected a mapping")
        return []
    rules = []
    for i, raw in enumerate(_as_list(group.get(list_key), f"{where}.{list_key}", c)):
        rule = _parse_rule(raw, f"{where}.{list_key}[{i}]", c, allow_transition)
        if rule is not None:
            rules.append(rule)
    return rules


def _parse_state(raw: Any, index: int, c: _Collector) -> Optional[State]:
    if not isinstance(raw, Mapping) or not raw.get("stateName"):
        c.add(f"states[{index}]: state must be a mapping with 'stateName'")
        return None

    name = str(raw["stateName"])
    where = f"state '{name}'"

    for group in ("onEnter", "onExit"):
        g = raw.get(group)
        if isinstance(g, Mapping) and g.get("transitionEvents"):
            c.add(f"{where}.{group}: transitionEvents are only allowed in onInput")

    on_input = raw.get("onInput")
    return State(
        name=name,
        on_enter=tuple(_parse_rules(raw.get("onEnter"), "events", f"{where}.onEnter", c, False)),
        on_input=tuple(
            _parse_rules(on_input, "events", f"{where}.onInput", c, False)
            + _parse_rules(on_input, "transitionEvents", f"{where}.onInput", c, True)
        ),
        on_exit=tuple(_parse_rules(raw.get("onExit"), "events", f"{where}.onExit", c, False)),
    )


def _parse_inputs(raw: Any, c: _Collector) -> Tuple[InputDefinition, ...]:
    inputs: List[InputDefinition] = []
    for i, item in enumerate(_as_list(raw, "inputs", c)):
        if not isinstance(item, Mapping) or not item.get("inputName"):
            c.add(f"inputs[{i}]: input must be a mapping with 'inputName'")
            continue
        paths: List[str] = []
        for a in _as_list(item.get("attributes"), f"inputs[{i}].attributes", c):
            path = a.get("jsonPath") if isinstance(a, Mapping) else a
            if not path:
                c.add(f"inputs[{i}].attributes: attribute needs a 'jsonPath'")
                continue
            paths.append(str(path))
        inputs.append(InputDefinition(name=str(item["inputName"]), attributes=tuple(paths)))
    return tuple(inputs)


def _check_references(states: Sequence[State], inputs: Sequence[InputDefinition], c: _Collector) -> None:
    declared: Dict[str, Tuple[str, ...]] = {i.name: i.attributes for i in inputs}

    def nodes_of(rule: EventRule) -> List[Node]:
        out = [rule.condition]
        for a in rule.actions:
            if isinstance(a, SetVariable):
                out.append(a.expression)
            elif isinstance(a, Notify) and a.payload is not None:
                out.extend(p for p in a.payload.parts if isinstance(p, Node))
        return out

    for state in states:
        for rule in state.on_enter + state.on_input + state.on_exit:
            for node in nodes_of(rule):
                for ref in input_references(node):
                    if ref.input_name not in declared:
                        c.add(f"state '{state.name}' event '{rule.name}': unknown input {ref.input_name!r}")
                    elif ref.path not in declared[ref.input_name]:
                        c.add(
                            f"state '{state.name}' event '{rule.name}': "
                            f"attribute {ref.path!r} is not declared by input {ref.input_name!r}"
                        )


def validate_model(document: Mapping[str, Any]) -> DetectorModel:
    """
    Validate a detector model document.

    Parameters
    ----------
    document
        Bare definition or full model document (see module docstring).

    Returns
    -------
    DetectorModel
        Immutable model.

    Raises
    ------
    ValidationError
        If the initial state is unknown, a transition target dangles, two
        states share a name, an expression is malformed, an action is
        malformed, or an ``$input`` reference is not declared.
    """
    c = _Collector()
    if not isinstance(document, Mapping):
        raise ValidationError(["model document must be a mapping"])

    if "detectorModelDefinition" in document:
        definition = document["detectorModelDefinition"]
        if not isinstance(definition, Mapping):
            raise ValidationError(["'detectorModelDefinition' must be a mapping"])
    else:
        definition = document

    name = str(document.get("detectorModelName") or DEFAULT_MODEL_NAME)
    key = document.get("key")

    method_raw = str(document.get("evaluationMethod", EvaluationMethod.SERIAL.value)).upper()
    try:
        method = EvaluationMethod(method_raw)
    except ValueError:
        c.add(f"evaluationMethod must be SERIAL or BATCH, got {method_raw!r}")
        method = EvaluationMethod.SERIAL

    inputs = _parse_inputs(document.get("inputs"), c)

    raw_states = definition.get("states")
    if not raw_states:
        c.add("model has no states")
    states: List[State] = []
    for i, raw in enumerate(_as_list(raw_states, "states", c)):
        state = _parse_state(raw, i, c)
        if state is not None:
            states.append(state)

    names = [s.name for s in states]
    seen = set()
    for n in names:
        if n in seen:
            c.add(f"duplicate state name {n!r}")
        seen.add(n)

    initial = definition.get("initialStateName")
    if not initial:
        c.add("missing 'initialStateName'")
    elif str(initial) not in seen:
        c.add(f"initial state {initial!r} does not exist")

    for state in states:
        for rule in state.on_input:
            if rule.next_state is not None and rule.next_state not in seen:
                c.add(f"state '{state.name}' event '{rule.name}': unknown nextState {rule.next_state!r}")

    if inputs:
        _check_references(states, inputs, c)
        if key and not any(str(key) in i.attributes for i in inputs):
            c.add(f"key attribute {key!r} is not declared by any input")

    if c.problems:
        raise ValidationError(c.problems)

    return DetectorModel(
        name=name,
        states=tuple(states),
        initial_state_name=str(initial),
        key=str(key) if key else None,
        inputs=inputs,
        evaluation_method=method,
    )
