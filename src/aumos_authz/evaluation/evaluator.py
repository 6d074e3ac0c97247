"""Sandboxed matcher-expression evaluator.

Matcher expressions use the PERM syntax (``&&``, ``||``, ``!``) over flat
variable names produced by :func:`aumos_authz.util.escape_assertion`.  The
evaluator translates the logical operators to Python tokens, parses the
result with :mod:`ast` in ``eval`` mode, validates the tree against a
whitelist of node types, and walks it directly.  Nothing is ever passed to
``eval``/``exec``, so policy and model text cannot run arbitrary code.

Supported forms: literals, names, ``true``/``false``, attribute and
subscript access on bound values, function calls (``keyMatch(a, b)``) and
their postfix form (``a.keyMatch(b)``), comparison, arithmetic, logical
operators, tuples/lists, conditional expressions, and parentheses.

Comparison rules
----------------
``==``/``!=``/``in``/``not in`` use Python semantics.  For ordering
comparisons (``<``, ``<=``, ``>``, ``>=``) a string compared with a number is
converted to a number first; when that conversion fails the comparison is an
:class:`~aumos_authz.errors.EvaluationError`.

Example
-------
>>> evaluator = ExpressionEvaluator()
>>> evaluator.evaluate(
...     "r_sub == p_sub && keyMatch(r_obj, p_obj)",
...     {"r_sub": "alice", "p_sub": "alice", "r_obj": "/a/b", "p_obj": "/a/*"},
...     {"keyMatch": lambda k1, k2: k2.endswith("*") and k1.startswith(k2[:-1])},
... )
True
"""
from __future__ import annotations

import ast
import logging
import operator
import re
from collections.abc import Mapping
from functools import lru_cache
from typing import Callable

from aumos_authz.errors import EvaluationError, ExpressionSyntaxError

logger = logging.getLogger(__name__)

# String literals are matched first so operators inside them are left alone.
_OPERATOR_REG = re.compile(r"('(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\")|&&|\|\||!(?!=)")

_OPERATOR_WORDS: dict[str, str] = {"&&": " and ", "||": " or ", "!": " not "}

_ALLOWED_NODES: tuple[type[ast.AST], ...] = (
    ast.Expression,
    ast.BoolOp, ast.And, ast.Or,
    ast.UnaryOp, ast.Not, ast.USub, ast.UAdd,
    ast.BinOp, ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod,
    ast.Compare, ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE, ast.In, ast.NotIn,
    ast.Name, ast.Load, ast.Constant,
    ast.Attribute, ast.Subscript, ast.Call,
    ast.Tuple, ast.List, ast.IfExp,
)

_LITERAL_NAMES: dict[str, bool] = {"true": True, "false": False}

_BINARY_OPERATORS: dict[type[ast.operator], Callable[[object, object], object]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

_COMPARE_OPERATORS: dict[type[ast.cmpop], Callable[[object, object], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda left, right: left in right,  # type: ignore[operator]
    ast.NotIn: lambda left, right: left not in right,  # type: ignore[operator]
}

_ORDERING_OPERATORS: tuple[type[ast.cmpop], ...] = (ast.Lt, ast.LtE, ast.Gt, ast.GtE)

# Errors raised by user values or matcher functions that count as a failed
# evaluation of the current row rather than a crash.
_RECOVERABLE_ERRORS: tuple[type[Exception], ...] = (
    TypeError,
    ValueError,
    LookupError,
    ArithmeticError,
    AttributeError,
    re.error,
)


def translate_operators(expression: str) -> str:
    """Rewrite ``&&``, ``||`` and ``!`` into Python's ``and``/``or``/``not``."""
    return _OPERATOR_REG.sub(_translate_match, expression)


def _translate_match(match: re.Match[str]) -> str:
    if match.group(1) is not None:
        return match.group(1)
    return _OPERATOR_WORDS[match.group(0)]


@lru_cache(maxsize=2048)
def _parse(source: str) -> ast.Expression:
    try:
        tree = ast.parse(source.strip(), mode="eval")
    except SyntaxError as exc:
        raise ExpressionSyntaxError(f"Invalid expression syntax: {exc.msg}", source) from exc

    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise ExpressionSyntaxError(
                f"Disallowed expression element: {type(node).__name__}", source
            )
        if isinstance(node, ast.Name) and node.id.startswith("__"):
            raise ExpressionSyntaxError("Dunder names are forbidden", source)
        if isinstance(node, ast.Attribute) and node.attr.startswith("__"):
            raise ExpressionSyntaxError("Dunder attribute access is forbidden", source)
        if isinstance(node, ast.Call) and node.keywords:
            raise ExpressionSyntaxError("Keyword arguments are not supported", source)
    return tree


class CompiledExpression:
    """A parsed, validated matcher expression ready for repeated evaluation.

    Parameters
    ----------
    expression:
        The original (PERM-syntax) expression text.
    """

    def __init__(self, expression: str) -> None:
        self._expression = expression
        self._source = translate_operators(expression)
        self._tree = _parse(self._source)

    @property
    def expression(self) -> str:
        return self._expression

    def evaluate(
        self,
        bindings: Mapping[str, object],
        functions: Mapping[str, Callable[..., object]],
    ) -> object:
        """Evaluate against ``bindings`` using only ``functions`` as callables.

        Raises
        ------
        EvaluationError
            On unknown identifiers, unknown functions, wrong call arity, or
            type errors raised while computing the value.
        """
        try:
            return self._eval(self._tree.body, bindings, functions)
        except EvaluationError:
            raise
        except _RECOVERABLE_ERRORS as exc:
            raise EvaluationError(
                f"{type(exc).__name__}: {exc}", self._expression
            ) from exc

    # ------------------------------------------------------------------
    # Tree walk
    # ------------------------------------------------------------------

    def _eval(
        self,
        node: ast.AST,
        bindings: Mapping[str, object],
        functions: Mapping[str, Callable[..., object]],
    ) -> object:
        match node:
            case ast.Constant(value=value):
                return value

            case ast.Name(id=name):
                if name in bindings:
                    return bindings[name]
                if name in _LITERAL_NAMES:
                    return _LITERAL_NAMES[name]
                raise EvaluationError(f"Unknown identifier: {name}", self._expression)

            case ast.BoolOp(op=ast.And(), values=values):
                result: object = True
                for value_node in values:
                    result = self._eval(value_node, bindings, functions)
                    if not result:
                        return result
                return result

            case ast.BoolOp(op=ast.Or(), values=values):
                result = False
                for value_node in values:
                    result = self._eval(value_node, bindings, functions)
                    if result:
                        return result
                return result

            case ast.UnaryOp(op=op, operand=operand):
                value = self._eval(operand, bindings, functions)
                if isinstance(op, ast.Not):
                    return not value
                if isinstance(op, ast.USub):
                    return -value  # type: ignore[operator]
                return +value  # type: ignore[operator]

            case ast.BinOp(left=left, op=op, right=right):
                return _BINARY_OPERATORS[type(op)](
                    self._eval(left, bindings, functions),
                    self._eval(right, bindings, functions),
                )

            case ast.Compare(left=left, ops=ops, comparators=comparators):
                current = self._eval(left, bindings, functions)
                for op, comparator in zip(ops, comparators):
                    other = self._eval(comparator, bindings, functions)
                    lhs, rhs = current, other
                    if isinstance(op, _ORDERING_OPERATORS):
                        lhs, rhs = _coerce_for_ordering(lhs, rhs)
                    if not _COMPARE_OPERATORS[type(op)](lhs, rhs):
                        return False
                    current = other
                return True

            case ast.IfExp(test=test, body=body, orelse=orelse):
                branch = body if self._eval(test, bindings, functions) else orelse
                return self._eval(branch, bindings, functions)

            case ast.Attribute(value=base_node, attr=attr):
                return _read_attribute(
                    self._eval(base_node, bindings, functions), attr, self._expression
                )

            case ast.Subscript(value=base_node, slice=key_node):
                base = self._eval(base_node, bindings, functions)
                key = self._eval(key_node, bindings, functions)
                # r_obj['Owner'] on a plain object reads the attribute.
                if isinstance(key, str) and not isinstance(base, (Mapping, list, tuple, str)):
                    return _read_attribute(base, key, self._expression)
                try:
                    return base[key]  # type: ignore[index]
                except (KeyError, IndexError) as exc:
                    raise EvaluationError(
                        f"Unknown attribute {key!r}", self._expression
                    ) from exc

            case ast.Call(func=func, args=arg_nodes):
                args = [self._eval(a, bindings, functions) for a in arg_nodes]
                return self._call(func, args, bindings, functions)

            case ast.Tuple(elts=elements):
                return tuple(self._eval(e, bindings, functions) for e in elements)

            case ast.List(elts=elements):
                return [self._eval(e, bindings, functions) for e in elements]

            case _:
                raise ExpressionSyntaxError(
                    f"Unsupported expression element: {type(node).__name__}",
                    self._expression,
                )

    def _call(
        self,
        func: ast.expr,
        args: list[object],
        bindings: Mapping[str, object],
        functions: Mapping[str, Callable[..., object]],
    ) -> object:
        # keyMatch(a, b)
        if isinstance(func, ast.Name):
            fn = functions.get(func.id)
            if fn is None:
                raise EvaluationError(f"Unknown function: {func.id}", self._expression)
            return fn(*args)

        # a.keyMatch(b) is keyMatch(a, b)
        if isinstance(func, ast.Attribute) and func.attr in functions:
            receiver = self._eval(func.value, bindings, functions)
            return functions[func.attr](receiver, *args)

        raise EvaluationError("Only registered matcher functions may be called", self._expression)

    def __repr__(self) -> str:
        return f"CompiledExpression({self._expression!r})"


class ExpressionEvaluator:
    """Compiles and evaluates matcher expressions.

    Parsing is cached per expression text, so compiling the same matcher on
    every request is cheap.
    """

    def compile(self, expression: str) -> CompiledExpression:
        """Parse and validate ``expression``.

        Raises
        ------
        ExpressionSyntaxError
            If the text cannot be parsed or uses a forbidden construct.
        """
        return CompiledExpression(expression)

    def evaluate(
        self,
        expression: str,
        bindings: Mapping[str, object],
        functions: Mapping[str, Callable[..., object]],
    ) -> object:
        """Compile ``expression`` and evaluate it in one step."""
        return self.compile(expression).evaluate(bindings, functions)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_attribute(base: object, attr: str, expression: str) -> object:
    if isinstance(base, Mapping):
        if attr not in base:
            raise EvaluationError(f"Unknown attribute {attr!r}", expression)
        return base[attr]
    if isinstance(base, (str, int, float, bool)) or base is None:
        raise EvaluationError(
            f"Cannot read attribute {attr!r} of {type(base).__name__}", expression
        )
    try:
        return getattr(base, attr)
    except AttributeError as exc:
        raise EvaluationError(f"Unknown attribute {attr!r}", expression) from exc


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _coerce_for_ordering(left: object, right: object) -> tuple[object, object]:
    if _is_number(left) and isinstance(right, str):
        return left, _to_number(right)
    if isinstance(left, str) and _is_number(right):
        return _to_number(left), right
    return left, right


def _to_number(text: str) -> float:
    try:
        return float(text)
    except ValueError as exc:
        raise EvaluationError(f"Cannot compare non-numeric string {text!r} with a number") from exc
