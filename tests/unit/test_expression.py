"""
Unit tests for the expression language (parser + evaluator).

We verify:
- arithmetic precedence and associativity
- UNAVAILABLE propagation for missing attributes and division by zero
- guards stay closed on missing data
- huge, NaN and infinite numbers read as UNAVAILABLE
- uninitialized variables read as zero
- string comparison and numeric coercion of string attributes
- syntax errors surface as ExpressionSyntaxError at parse time
"""

from __future__ import annotations

import pytest

from detector.core.errors import ExpressionSyntaxError
from detector.core.expression.evaluator import (
    compile_expression,
    evaluate,
    input_references,
)
from detector.core.expression.nodes import UNAVAILABLE, EvaluationScope
from detector.core.expression.parser import parse_expression, tokenize


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1 + 2 * 3", 7.0),
        ("(1 + 2) * 3", 9.0),
        ("10 - 4 - 3", 3.0),
        ("8 / 4 / 2", 1.0),
        ("-3 + 5", 2.0),
        ("2 * -3", -6.0),
        ("1e3", 1000.0),
        (".5 + .5", 1.0),
    ],
)
def test_arithmetic(text: str, expected: float) -> None:
    assert evaluate(text, {}, {}) == expected


def test_division_by_zero_is_unavailable() -> None:
    assert evaluate("1 / 0", {}, {}) is UNAVAILABLE
    assert evaluate("1 / 0 > 0", {}, {}) is False


def test_input_reference_reads_flattened_attribute() -> None:
    attrs = {"sensorData.pressure": 71}
    assert evaluate("$input.PressureInput.sensorData.pressure > 70", attrs, {}, "PressureInput") is True
    assert evaluate("$input.PressureInput.sensorData.pressure > 70", attrs, {}) is True


def test_missing_attribute_propagates_unavailable() -> None:
    assert evaluate("$input.In.p + 1", {}, {}) is UNAVAILABLE
    assert evaluate("$input.In.p > 70", {}, {}) is False
    assert evaluate("$input.In.p <= 70", {}, {}) is False
    assert evaluate("!$input.In.p", {}, {}) is False


def test_reference_to_other_input_is_unavailable() -> None:
    assert evaluate("$input.Other.p", {"p": 1}, {}, input_name="In") is UNAVAILABLE


def test_uninitialized_variable_reads_zero() -> None:
    assert evaluate("$variable.counter + 1", {}, {}) == 1.0
    assert evaluate("$variable.counter", {}, {"counter": 3.0}) == 3.0


def test_evaluate_does_not_mutate_inputs() -> None:
    attrs = {"p": 5}
    variables = {"v": 1.0}
    evaluate("$input.In.p * $variable.v + $variable.w", attrs, variables)
    assert attrs == {"p": 5}
    assert variables == {"v": 1.0}


def test_string_comparison_and_numeric_coercion() -> None:
    attrs = {"status": "OK", "p": "71"}
    assert evaluate("$input.In.status == 'OK'", attrs, {}) is True
    assert evaluate("$input.In.status != \"OK\"", attrs, {}) is False
    assert evaluate("$input.In.status > 1", attrs, {}) is False
    assert evaluate("$input.In.status + 1", attrs, {}) is UNAVAILABLE
    assert evaluate("$input.In.p > 70", attrs, {}) is True


def test_logical_operators_short_circuit_and_treat_non_bool_as_false() -> None:
    assert evaluate("true && false", {}, {}) is False
    assert evaluate("true || $input.In.missing > 1", {}, {}) is True
    assert evaluate("false || !false", {}, {}) is True
    assert evaluate("1 && true", {}, {}) is False
    assert compile_expression("1").holds(EvaluationScope(attributes={}, variables={})) is False
    assert compile_expression("2 > 1").holds(EvaluationScope(attributes={}, variables={})) is True


@pytest.mark.parametrize("raw", [10 ** 400, -(10 ** 400), float("nan"), float("inf"), "nan", "-Infinity", "1e999"])
def test_non_finite_attribute_is_unavailable(raw: object) -> None:
    attrs = {"p": raw}
    assert evaluate("$input.In.p * 1", attrs, {}) is UNAVAILABLE
    assert evaluate("$input.In.p + 1", attrs, {}) is UNAVAILABLE
    assert evaluate("$input.In.p > 70", attrs, {}) is False
    assert evaluate("$input.In.p <= 70", attrs, {}) is False


def test_arithmetic_overflow_is_unavailable() -> None:
    assert evaluate("$variable.v * 10", {}, {"v": 1e308}) is UNAVAILABLE
    assert evaluate("$variable.v * 10 > 0", {}, {"v": 1e308}) is False


def test_backtick_quoted_path_segment() -> None:
    assert evaluate("$input.In.`motor-id` == 'A'", {"motor-id": "A"}, {}) is True


def test_input_references_lists_every_attribute_reference() -> None:
    refs = input_references("$input.In.sensorData.pressure > $input.In.limit")
    assert [(r.input_name, r.path) for r in refs] == [("In", "sensorData.pressure"), ("In", "limit")]


def test_compile_expression_is_cached() -> None:
    assert compile_expression("1 + 1") is compile_expression("1 + 1")


@pytest.mark.parametrize(
    "text",
    ["", "1 +", "(1 + 2", "1 > 2 > 3", "foo", "$variable.a.b", "$input.In", "1 # 2", "1 2"],
)
def test_malformed_expressions_raise(text: str) -> None:
    with pytest.raises(ExpressionSyntaxError):
        parse_expression(text)


def test_syntax_error_reports_position() -> None:
    with pytest.raises(ExpressionSyntaxError) as exc:
        parse_expression("1 + @")
    assert exc.value.position == 4
    assert exc.value.expression == "1 + @"


def test_tokenize_skips_whitespace() -> None:
    kinds = [t.kind for t in tokenize("$variable.x >= 2")]
    assert kinds == ["ref", "op", "number"]
