from __future__ import annotations

from functools import lru_cache
from typing import Any, List, Mapping, Optional, Union

from detector.core.expression.nodes import (
    EvaluationScope,
    InputRef,
    Node,
    Value,
)
from detector.core.expression.parser import parse_expression

Expression = Union[str, Node]


@lru_cache(maxsize=1024)
def compile_expression(text: str) -> Node:
    """Parse and cache an expression; raises ExpressionSyntaxError."""
    return parse_expression(text)


def _as_node(expr: Expression) -> Node:
    return expr if isinstance(expr, Node) else compile_expression(expr)


def evaluate(
    expr: Expression,
    attributes: Mapping[str, Any],
    variables: Mapping[str, float],
    input_name: Optional[str] = None,
) -> Value:
    """
    Evaluate an expression against a reading's attributes and a variable store.

    Pure: neither mapping is modified.

    Parameters
    ----------
    expr
        Expression text or an already parsed node.
    attributes
        Flattened attributes of the current reading.
    variables
        Variable store of the detector instance.
    input_name
        Input the reading belongs to; ``$input`` references to other inputs
        evaluate to ``UNAVAILABLE``.

    Returns
    -------
    float, bool, str or UNAVAILABLE
    """
    scope = EvaluationScope(attributes=attributes, variables=variables, input_name=input_name)
    return _as_node(expr).evaluate(scope)


def input_references(expr: Expression) -> List[InputRef]:
    return [n for n in _as_node(expr).walk() if isinstance(n, InputRef)]
