"""Error taxonomy for aumos-authz.

Every error raised by the engine derives from :class:`AuthzError` so callers
can catch the whole family in one place.  The subclasses map onto the four
failure classes the enforcer distinguishes:

- configuration errors   — raised at construction or reload time
- request-shape errors   — raised from a single ``enforce`` call
- evaluation errors      — raised by the expression evaluator for one row
- adapter capability     — raised when an adapter cannot do what was asked

Example
-------
>>> from aumos_authz.errors import ArityError, AuthzError
>>> issubclass(ArityError, AuthzError)
True
"""
from __future__ import annotations


class AuthzError(Exception):
    """Base class for all aumos-authz errors."""


class ConfigurationError(AuthzError, ValueError):
    """Raised when a model, effect rule, or enforcer setup is invalid.

    Attributes
    ----------
    source:
        Optional identifier of the offending model file or section.
    """

    def __init__(self, message: str, source: str | None = None) -> None:
        self.source = source
        prefix = f"[{source}] " if source else ""
        super().__init__(f"{prefix}{message}")


class RequestShapeError(AuthzError):
    """Raised when a request or policy row has the wrong number of values."""

    def __init__(self, message: str, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"{message}: expected {expected} values, got {actual}")


class ArityError(RequestShapeError):
    """The request tuple does not match the ``r`` assertion's token count."""


class PolicyShapeError(RequestShapeError):
    """A policy row does not match the ``p`` assertion's token count.

    Attributes
    ----------
    rule:
        The offending policy row.
    """

    def __init__(self, message: str, expected: int, actual: int, rule: list[str]) -> None:
        self.rule = list(rule)
        super().__init__(message, expected, actual)


class EvaluationError(AuthzError):
    """Raised when a matcher expression cannot be evaluated.

    Attributes
    ----------
    expression:
        The expression text that failed, when known.
    """

    def __init__(self, message: str, expression: str | None = None) -> None:
        self.expression = expression
        super().__init__(message)


class ExpressionSyntaxError(EvaluationError):
    """The expression text could not be parsed or uses a forbidden construct."""


class AdapterCapabilityError(AuthzError, ValueError):
    """Raised when an adapter is asked for an operation it does not support."""
