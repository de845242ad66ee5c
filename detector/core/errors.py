"""
Error taxonomy for the detector engine.

Only load-time problems are modelled as exceptions. Evaluation of a reading
never raises for data reasons: missing attributes and uninitialized variables
are handled inside the expression evaluator.
"""

from __future__ import annotations

from typing import Iterable, List


class DetectorError(Exception):
    """Base class for all detector errors."""


class ExpressionSyntaxError(DetectorError):
    """
    Raised when a guard or value expression cannot be parsed.

    Parameters
    ----------
    message
        Description of the problem.
    expression
        The offending expression text.
    position
        Character offset where parsing failed.
    """

    def __init__(self, message: str, expression: str = "", position: int = -1):
        self.expression = expression
        self.position = position
        if expression and position >= 0:
            message = f"{message} at position {position} in {expression!r}"
        super().__init__(message)


class ValidationError(DetectorError):
    """
    Raised when a detector model definition is rejected.

    All problems found during validation are collected into ``problems`` so a
    model author can fix them in one pass.
    """

    def __init__(self, problems: Iterable[str]):
        self.problems: List[str] = list(problems)
        summary = "; ".join(self.problems) if self.problems else "invalid detector model"
        super().__init__(f"Invalid detector model: {summary}")


class ConfigError(DetectorError):
    """Raised when the application configuration is missing or malformed."""
