"""
Unit tests for detector model validation.

Each rejection reason is exercised separately; a valid model must come back
as an immutable DetectorModel.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from typing import Any, Dict, List

import pytest

from detector.core.errors import ValidationError
from detector.core.model.definition import Notify, SetVariable
from detector.core.model.validation import DEFAULT_MODEL_NAME, validate_model
from detector.domain.models import EvaluationMethod


def _state(name: str, **groups: Any) -> Dict[str, Any]:
    return {"stateName": name, **groups}


def _doc(states: List[Dict[str, Any]], initial: str = "Normal") -> Dict[str, Any]:
    return {"states": states, "initialStateName": initial}


def _problems(doc: Dict[str, Any]) -> List[str]:
    with pytest.raises(ValidationError) as exc:
        validate_model(doc)
    return exc.value.problems


def test_bare_definition_is_accepted() -> None:
    model = validate_model(
        _doc(
            [
                _state(
                    "Normal",
                    onInput={
                        "transitionEvents": [
                            {"eventName": "up", "condition": "$input.In.p > 70", "nextState": "Dangerous"}
                        ]
                    },
                ),
                _state("Dangerous"),
            ]
        )
    )

    assert model.name == DEFAULT_MODEL_NAME
    assert model.state_names == ("Normal", "Dangerous")
    assert model.initial_state.name == "Normal"
    assert model.evaluation_method is EvaluationMethod.SERIAL
    assert model.inputs == ()
    assert model.state("Normal").on_input[0].next_state == "Dangerous"


def test_full_document_is_accepted() -> None:
    model = validate_model(
        {
            "detectorModelName": "M",
            "key": "motorid",
            "evaluationMethod": "batch",
            "inputs": [{"inputName": "In", "attributes": [{"jsonPath": "p"}, {"jsonPath": "motorid"}]}],
            "detectorModelDefinition": _doc([_state("Normal")]),
        }
    )

    assert model.name == "M"
    assert model.key == "motorid"
    assert model.evaluation_method is EvaluationMethod.BATCH
    assert model.default_input_name == "In"
    assert model.input("In").attributes == ("p", "motorid")


def test_model_is_frozen() -> None:
    model = validate_model(_doc([_state("Normal")]))
    with pytest.raises(FrozenInstanceError):
        model.name = "other"  # type: ignore[misc]


def test_unknown_initial_state() -> None:
    assert any("initial state 'Nope' does not exist" in p for p in _problems(_doc([_state("Normal")], "Nope")))


def test_missing_initial_state_name() -> None:
    assert "missing 'initialStateName'" in _problems({"states": [_state("Normal")]})


def test_missing_states() -> None:
    assert "model has no states" in _problems({"initialStateName": "Normal"})


def test_dangling_transition_target() -> None:
    doc = _doc(
        [_state("Normal", onInput={"transitionEvents": [{"eventName": "t", "condition": "true", "nextState": "Gone"}]})]
    )
    assert any("unknown nextState 'Gone'" in p for p in _problems(doc))


def test_duplicate_state_names() -> None:
    assert "duplicate state name 'Normal'" in _problems(_doc([_state("Normal"), _state("Normal")]))


def test_malformed_expression() -> None:
    doc = _doc([_state("Normal", onInput={"events": [{"eventName": "e", "condition": "$input.In.p >"}]})])
    assert any("malformed expression" in p for p in _problems(doc))


def test_malformed_set_variable_action() -> None:
    doc = _doc(
        [
            _state(
                "Normal",
                onEnter={"events": [{"eventName": "e", "actions": [{"setVariable": {"variableName": "x"}}]}]},
            )
        ]
    )
    assert any("setVariable needs" in p for p in _problems(doc))


def test_action_with_two_kinds_is_rejected() -> None:
    doc = _doc(
        [
            _state(
                "Normal",
                onEnter={"events": [{"eventName": "e", "actions": [{"sns": {}, "lambda": {}}]}]},
            )
        ]
    )
    assert any("exactly one action type" in p for p in _problems(doc))


def test_transition_outside_on_input_is_rejected() -> None:
    doc = _doc(
        [
            _state(
                "Normal",
                onEnter={"transitionEvents": [{"eventName": "t", "condition": "true", "nextState": "Normal"}]},
                onExit={"events": [{"eventName": "x", "condition": "true", "nextState": "Normal"}]},
            )
        ]
    )
    problems = _problems(doc)
    assert any("transitionEvents are only allowed in onInput" in p for p in problems)
    assert any("'nextState' is only allowed" in p for p in problems)


def test_undeclared_input_references_are_rejected() -> None:
    doc = {
        "inputs": [{"inputName": "In", "attributes": [{"jsonPath": "p"}]}],
        "detectorModelDefinition": _doc(
            [
                _state(
                    "Normal",
                    onInput={
                        "events": [
                            {"eventName": "a", "condition": "$input.Other.p > 1"},
                            {"eventName": "b", "condition": "$input.In.q > 1"},
                        ]
                    },
                )
            ]
        ),
    }
    problems = _problems(doc)
    assert any("unknown input 'Other'" in p for p in problems)
    assert any("attribute 'q' is not declared by input 'In'" in p for p in problems)


def test_key_must_be_a_declared_attribute() -> None:
    doc = {
        "key": "motorid",
        "inputs": [{"inputName": "In", "attributes": ["p"]}],
        "detectorModelDefinition": _doc([_state("Normal")]),
    }
    assert any("key attribute 'motorid'" in p for p in _problems(doc))


def test_invalid_evaluation_method() -> None:
    doc = {"evaluationMethod": "PARALLEL", **_doc([_state("Normal")])}
    assert any("evaluationMethod must be SERIAL or BATCH" in p for p in _problems(doc))


def test_all_problems_are_reported_together() -> None:
    doc = _doc([_state("A"), _state("A")], "Missing")
    assert len(_problems(doc)) == 2


def test_events_come_before_transition_events() -> None:
    model = validate_model(
        _doc(
            [
                _state(
                    "Normal",
                    onInput={
                        "transitionEvents": [{"eventName": "t", "condition": "true", "nextState": "Normal"}],
                        "events": [{"eventName": "e", "condition": "true"}],
                    },
                )
            ]
        )
    )
    assert [r.name for r in model.state("Normal").on_input] == ["e", "t"]


def test_non_string_yaml_scalars_become_expressions() -> None:
    model = validate_model(
        _doc(
            [
                _state(
                    "Normal",
                    onEnter={
                        "events": [
                            {
                                "eventName": "init",
                                "condition": True,
                                "actions": [{"setVariable": {"variableName": "c", "value": 0}}],
                            }
                        ]
                    },
                )
            ]
        )
    )
    rule = model.state("Normal").on_enter[0]
    assert rule.condition_text == "true"
    action = rule.actions[0]
    assert isinstance(action, SetVariable)
    assert action.value_text == "0"


def test_notify_actions_keep_type_target_and_template() -> None:
    model = validate_model(
        _doc(
            [
                _state(
                    "Normal",
                    onEnter={
                        "events": [
                            {
                                "eventName": "alert",
                                "actions": [
                                    {"sns": {"targetArn": "arn:aws:sns:eu-west-1:1:Topic"}},
                                    {
                                        "notify": {
                                            "target": "ops",
                                            "payload": {"contentExpression": "p=${$input.In.p}", "type": "STRING"},
                                        }
                                    },
                                ],
                            }
                        ]
                    },
                )
            ]
        )
    )
    sns, notify = model.state("Normal").on_enter[0].actions
    assert isinstance(sns, Notify) and isinstance(notify, Notify)
    assert (sns.action_type, sns.target, sns.payload) == ("sns", "arn:aws:sns:eu-west-1:1:Topic", None)
    assert notify.target == "ops"
    assert notify.payload is not None
    assert notify.payload.payload_type == "STRING"
    assert notify.payload.parts[0] == "p="


def test_bad_payload_template_is_rejected() -> None:
    doc = _doc(
        [
            _state(
                "Normal",
                onEnter={
                    "events": [
                        {
                            "eventName": "alert",
                            "actions": [{"notify": {"payload": {"contentExpression": "${1 +}"}}}],
                        }
                    ]
                },
            )
        ]
    )
    assert any("placeholder: malformed expression" in p for p in _problems(doc))
