"""
Recursive-descent parser for the detector expression language.

Precedence, lowest first: ``||``, ``&&``, comparisons, ``+ -``, ``* /``,
unary ``- !``. References use the ``$input.<Input>.<path>`` and
``$variable.<name>`` forms; a path segment that is not a plain identifier can
be quoted with backticks (``$input.In.`motor-id```).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from detector.core.errors import ExpressionSyntaxError
from detector.core.expression.nodes import (
    Arithmetic,
    Comparison,
    InputRef,
    Literal,
    Logical,
    Negate,
    Node,
    Not,
    VariableRef,
)

_SEGMENT = r"(?:[A-Za-z_][A-Za-z0-9_]*|`[^`]+`)"

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?)
  | (?P<string>'[^']*'|"[^"]*")
  | (?P<ref>\$(?:input|variable)(?:\.""" + _SEGMENT + r""")+)
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>>=|<=|==|!=|&&|\|\||[-+*/<>()!])
    """,
    re.VERBOSE,
)

_SEGMENT_RE = re.compile(_SEGMENT)


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int


def tokenize(text: str) -> List[Token]:
    """
    Split an expression into tokens.

    Raises
    ------
    ExpressionSyntaxError
        If an unexpected character is found.
    """
    tokens: List[Token] = []
    i = 0
    while i < len(text):
        m = _TOKEN_RE.match(text, i)
        if m is None:
            raise ExpressionSyntaxError(f"Unexpected character {text[i]!r}", text, i)
        kind = m.lastgroup or ""
        if kind != "ws":
            tokens.append(Token(kind=kind, text=m.group(), pos=i))
        i = m.end()
    return tokens


def _ref_segments(ref: str) -> List[str]:
    return [s.strip("`") for s in _SEGMENT_RE.findall(ref[1:])]


class _Parser:
    def __init__(self, text: str):
        self._text = text
        self._tokens = tokenize(text)
        self._i = 0

    def _peek(self) -> Optional[Token]:
        if self._i < len(self._tokens):
            return self._tokens[self._i]
        return None

    def _accept(self, *ops: str) -> Optional[Token]:
        tok = self._peek()
        if tok is not None and tok.kind == "op" and tok.text in ops:
            self._i += 1
            return tok
        return None

    def _error(self, message: str, tok: Optional[Token]) -> ExpressionSyntaxError:
        pos = tok.pos if tok is not None else len(self._text)
        return ExpressionSyntaxError(message, self._text, pos)

    def parse(self) -> Node:
        if not self._tokens:
            raise ExpressionSyntaxError("Empty expression", self._text, 0)
        node = self._or()
        tok = self._peek()
        if tok is not None:
            raise self._error(f"Unexpected token {tok.text!r}", tok)
        return node

    def _or(self) -> Node:
        node = self._and()
        while self._accept("||"):
            node = Logical("||", node, self._and())
        return node

    def _and(self) -> Node:
        node = self._comparison()
        while self._accept("&&"):
            node = Logical("&&", node, self._comparison())
        return node

    def _comparison(self) -> Node:
        node = self._sum()
        tok = self._accept(">", ">=", "<", "<=", "==", "!=")
        if tok is not None:
            node = Comparison(tok.text, node, self._sum())
            nxt = self._accept(">", ">=", "<", "<=", "==", "!=")
            if nxt is not None:
                raise self._error("Chained comparison", nxt)
        return node

    def _sum(self) -> Node:
        node = self._product()
        while True:
            tok = self._accept("+", "-")
            if tok is None:
                return node
            node = Arithmetic(tok.text, node, self._product())

    def _product(self) -> Node:
        node = self._unary()
        while True:
            tok = self._accept("*", "/")
            if tok is None:
                return node
            node = Arithmetic(tok.text, node, self._unary())

    def _unary(self) -> Node:
        if self._accept("-"):
            return Negate(self._unary())
        if self._accept("!"):
            return Not(self._unary())
        return self._primary()

    def _primary(self) -> Node:
        tok = self._peek()
        if tok is None:
            raise self._error("Unexpected end of expression", None)

        if tok.kind == "op" and tok.text == "(":
            self._i += 1
            node = self._or()
            if not self._accept(")"):
                raise self._error("Missing ')'", self._peek())
            return node

        self._i += 1
        if tok.kind == "number":
            return Literal(float(tok.text))
        if tok.kind == "string":
            return Literal(tok.text[1:-1])
        if tok.kind == "name":
            if tok.text == "true":
                return Literal(True)
            if tok.text == "false":
                return Literal(False)
            raise self._error(f"Unknown name {tok.text!r}", tok)
        if tok.kind == "ref":
            segments = _ref_segments(tok.text)
            if segments[0] == "variable":
                if len(segments) != 2:
                    raise self._error("Variable reference must be $variable.<name>", tok)
                return VariableRef(segments[1])
            if len(segments) < 3:
                raise self._error("Input reference must be $input.<input>.<path>", tok)
            return InputRef(input_name=segments[1], path=".".join(segments[2:]))

        raise self._error(f"Unexpected token {tok.text!r}", tok)


def parse_expression(text: str) -> Node:
    """
    Parse an expression string into a node tree.

    Parameters
    ----------
    text
        Expression source, e.g. ``"$input.In.sensorData.pressure > 70"``.

    Returns
    -------
    Node
        Root of the parsed expression.

    Raises
    ------
    ExpressionSyntaxError
        If the text is not a valid expression.
    """
    if not isinstance(text, str):
        raise ExpressionSyntaxError(f"Expression must be a string, got {type(text).__name__}")
    return _Parser(text).parse()
