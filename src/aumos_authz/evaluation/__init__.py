"""Sandboxed matcher expression evaluation for aumos-authz."""
from __future__ import annotations

from aumos_authz.evaluation.evaluator import (
    CompiledExpression,
    ExpressionEvaluator,
    translate_operators,
)

__all__ = ["CompiledExpression", "ExpressionEvaluator", "translate_operators"]
