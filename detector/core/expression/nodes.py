"""
Expression tree for guards and variable-update expressions.

Nodes are immutable and evaluate against an :class:`EvaluationScope`. The
``UNAVAILABLE`` sentinel stands for a value that cannot be computed (missing
attribute, division by zero, arithmetic on a string). It propagates through
arithmetic, and any comparison or boolean operator that sees it yields
``False``, so guards stay closed on missing data.
"""

from __future__ import annotations

import math
import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Tuple, Union


class _Unavailable:
    """Singleton marker for values that cannot be computed."""

    _instance: Optional["_Unavailable"] = None

    def __new__(cls) -> "_Unavailable":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNAVAILABLE"

    def __bool__(self) -> bool:
        return False


UNAVAILABLE = _Unavailable()

Value = Union[float, bool, str, _Unavailable]


@dataclass(frozen=True)
class EvaluationScope:
    """
    Read-only inputs visible to an expression.

    Parameters
    ----------
    attributes
        Flattened attributes of the current reading.
    variables
        Variable store of the detector instance.
    input_name
        Input the current reading belongs to. None accepts any input name.
    """

    attributes: Mapping[str, Any]
    variables: Mapping[str, float]
    input_name: Optional[str] = None


def _finite(value: Union[int, float, str]) -> Union[float, _Unavailable]:
    """``float(value)``, or UNAVAILABLE for overflow, NaN, infinities and non-numeric text."""
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return UNAVAILABLE
    return number if math.isfinite(number) else UNAVAILABLE


def _as_number(value: Any) -> Union[float, _Unavailable]:
    if value is UNAVAILABLE or value is None:
        return UNAVAILABLE
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float, str)):
        return _finite(value)
    return UNAVAILABLE


def _attribute_value(value: Any) -> Value:
    # Attribute values keep strings as strings unless they look numeric.
    if value is None:
        return UNAVAILABLE
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return _finite(value)
    if isinstance(value, str):
        num = _as_number(value)
        return value if num is UNAVAILABLE else num
    return UNAVAILABLE


class Node:
    """Base class for expression nodes."""

    def evaluate(self, scope: EvaluationScope) -> Value:
        raise NotImplementedError

    def holds(self, scope: EvaluationScope) -> bool:
        """Guard semantics: true only for exactly ``True``."""
        return self.evaluate(scope) is True

    def children(self) -> Tuple["Node", ...]:
        return ()

    def walk(self) -> Iterator["Node"]:
        yield self
        for child in self.children():
            yield from child.walk()


@dataclass(frozen=True)
class Literal(Node):
    value: Union[float, bool, str]

    def evaluate(self, scope: EvaluationScope) -> Value:
        return self.value


@dataclass(frozen=True)
class InputRef(Node):
    """``$input.<input_name>.<path>``"""

    input_name: str
    path: str

    def evaluate(self, scope: EvaluationScope) -> Value:
        if scope.input_name is not None and scope.input_name != self.input_name:
            return UNAVAILABLE
        if self.path not in scope.attributes:
            return UNAVAILABLE
        return _attribute_value(scope.attributes[self.path])


@dataclass(frozen=True)
class VariableRef(Node):
    """``$variable.<name>``; unset variables read as zero."""

    name: str

    def evaluate(self, scope: EvaluationScope) -> Value:
        return float(scope.variables.get(self.name, 0.0))


@dataclass(frozen=True)
class Negate(Node):
    operand: Node

    def evaluate(self, scope: EvaluationScope) -> Value:
        value = _as_number(self.operand.evaluate(scope))
        if value is UNAVAILABLE:
            return UNAVAILABLE
        return -value

    def children(self) -> Tuple[Node, ...]:
        return (self.operand,)


@dataclass(frozen=True)
class Not(Node):
    operand: Node

    def evaluate(self, scope: EvaluationScope) -> Value:
        value = self.operand.evaluate(scope)
        if not isinstance(value, bool):
            return False
        return not value

    def children(self) -> Tuple[Node, ...]:
        return (self.operand,)


def _divide(a: float, b: float) -> Union[float, _Unavailable]:
    if b == 0.0:
        return UNAVAILABLE
    return a / b


ARITHMETIC: Dict[str, Callable[[float, float], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": _divide,
}

ORDERING: Dict[str, Callable[[Any, Any], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}


@dataclass(frozen=True)
class Arithmetic(Node):
    op: str
    left: Node
    right: Node

    def evaluate(self, scope: EvaluationScope) -> Value:
        a = _as_number(self.left.evaluate(scope))
        b = _as_number(self.right.evaluate(scope))
        if a is UNAVAILABLE or b is UNAVAILABLE:
            return UNAVAILABLE
        # Overflow to inf or nan reads as unavailable.
        return _as_number(ARITHMETIC[self.op](a, b))

    def children(self) -> Tuple[Node, ...]:
        return (self.left, self.right)


@dataclass(frozen=True)
class Comparison(Node):
    op: str
    left: Node
    right: Node

    def evaluate(self, scope: EvaluationScope) -> Value:
        a = self.left.evaluate(scope)
        b = self.right.evaluate(scope)
        if a is UNAVAILABLE or b is UNAVAILABLE:
            return False

        if self.op in ("==", "!="):
            if isinstance(a, str) or isinstance(b, str):
                equal = isinstance(a, str) and isinstance(b, str) and a == b
            else:
                equal = _as_number(a) == _as_number(b)
            return equal if self.op == "==" else not equal

        x = _as_number(a)
        y = _as_number(b)
        if x is UNAVAILABLE or y is UNAVAILABLE or isinstance(a, str) or isinstance(b, str):
            return False
        return ORDERING[self.op](x, y)

    def children(self) -> Tuple[Node, ...]:
        return (self.left, self.right)


@dataclass(frozen=True)
class Logical(Node):
    """``&&`` / ``||`` with short-circuit; non-boolean operands count as false."""

    op: str
    left: Node
    right: Node

    def evaluate(self, scope: EvaluationScope) -> Value:
        a = self.left.holds(scope)
        if self.op == "&&":
            return a and self.right.holds(scope)
        return a or self.right.holds(scope)

    def children(self) -> Tuple[Node, ...]:
        return (self.left, self.right)
