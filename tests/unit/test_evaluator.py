"""Unit tests for evaluation/evaluator.py — the sandboxed matcher evaluator."""
from __future__ import annotations

from dataclasses import dataclass

import pytest

from aumos_authz.errors import EvaluationError, ExpressionSyntaxError
from aumos_authz.evaluation.evaluator import (
    CompiledExpression,
    ExpressionEvaluator,
    translate_operators,
)
from aumos_authz.functions.builtins import BUILTIN_FUNCTIONS


@dataclass
class Document:
    Owner: str
    Pages: int = 1


@pytest.fixture()
def evaluator() -> ExpressionEvaluator:
    return ExpressionEvaluator()


class TestTranslateOperators:
    def test_and_or(self) -> None:
        assert translate_operators("a && b || c").split() == ["a", "and", "b", "or", "c"]

    def test_not(self) -> None:
        assert translate_operators("!a").split() == ["not", "a"]

    def test_not_equal_is_preserved(self) -> None:
        assert translate_operators("a != b") == "a != b"

    def test_string_literals_are_untouched(self) -> None:
        source = "a != 'hello!' && b == \"x || y && !z\""
        assert translate_operators(source) == "a != 'hello!'  and  b == \"x || y && !z\""

    def test_escaped_quote_inside_literal(self) -> None:
        assert translate_operators(r"a == 'it\'s!'") == r"a == 'it\'s!'"

    def test_bang_in_literal_keeps_guard(self, evaluator: ExpressionEvaluator) -> None:
        expression = "r_sub == p_sub && r_act != 'hello!'"
        bindings = {"r_sub": "alice", "p_sub": "alice", "r_act": "hello!"}
        assert evaluator.evaluate(expression, bindings, {}) is False
        bindings["r_act"] = "read"
        assert evaluator.evaluate(expression, bindings, {}) is True


class TestEvaluation:
    def test_equality(self, evaluator: ExpressionEvaluator) -> None:
        bindings = {"r_sub": "alice", "p_sub": "alice"}
        assert evaluator.evaluate("r_sub == p_sub", bindings, {}) is True

    def test_logical_operators(self, evaluator: ExpressionEvaluator) -> None:
        bindings = {"a": True, "b": False}
        assert evaluator.evaluate("a && !b", bindings, {}) is True
        assert evaluator.evaluate("b || !a", bindings, {}) is False

    def test_true_false_literals(self, evaluator: ExpressionEvaluator) -> None:
        assert evaluator.evaluate("true && !false", {}, {}) is True

    def test_arithmetic(self, evaluator: ExpressionEvaluator) -> None:
        assert evaluator.evaluate("a + 2 * 3", {"a": 1}, {}) == 7

    def test_ordering_coerces_numeric_strings(self, evaluator: ExpressionEvaluator) -> None:
        assert evaluator.evaluate("age > 18", {"age": "25"}, {}) is True

    def test_ordering_with_non_numeric_string_fails(
        self, evaluator: ExpressionEvaluator
    ) -> None:
        with pytest.raises(EvaluationError):
            evaluator.evaluate("age > 18", {"age": "old"}, {})

    def test_chained_comparison(self, evaluator: ExpressionEvaluator) -> None:
        assert evaluator.evaluate("1 < x < 10", {"x": 5}, {}) is True

    def test_in_operator(self, evaluator: ExpressionEvaluator) -> None:
        bindings = {"r_act": "read"}
        assert evaluator.evaluate("r_act in ('read', 'write')", bindings, {}) is True

    def test_conditional_expression(self, evaluator: ExpressionEvaluator) -> None:
        assert evaluator.evaluate("1 if flag else 0", {"flag": False}, {}) == 0

    def test_function_call(self, evaluator: ExpressionEvaluator) -> None:
        bindings = {"r_obj": "/alice_data/x", "p_obj": "/alice_data/*"}
        assert evaluator.evaluate("keyMatch(r_obj, p_obj)", bindings, BUILTIN_FUNCTIONS) is True

    def test_postfix_function_call(self, evaluator: ExpressionEvaluator) -> None:
        bindings = {"r_obj": "/alice_data/x", "p_obj": "/alice_data/*"}
        assert evaluator.evaluate("r_obj.keyMatch(p_obj)", bindings, BUILTIN_FUNCTIONS) is True

    def test_mapping_subscript(self, evaluator: ExpressionEvaluator) -> None:
        bindings = {"r_obj": {"Owner": "alice"}, "r_sub": "alice"}
        assert evaluator.evaluate("r_obj['Owner'] == r_sub", bindings, {}) is True

    def test_object_subscript_reads_attribute(self, evaluator: ExpressionEvaluator) -> None:
        bindings = {"r_obj": Document(Owner="alice"), "r_sub": "alice"}
        assert evaluator.evaluate("r_obj['Owner'] == r_sub", bindings, {}) is True

    def test_object_attribute(self, evaluator: ExpressionEvaluator) -> None:
        bindings = {"r_obj": Document(Owner="bob", Pages=3)}
        assert evaluator.evaluate("r_obj.Pages > 2", bindings, {}) is True

    def test_short_circuit_skips_failing_branch(self, evaluator: ExpressionEvaluator) -> None:
        assert evaluator.evaluate("false && missing", {}, {}) is False


class TestEvaluationErrors:
    def test_unknown_identifier(self, evaluator: ExpressionEvaluator) -> None:
        with pytest.raises(EvaluationError, match="Unknown identifier"):
            evaluator.evaluate("missing == 1", {}, {})

    def test_unknown_function(self, evaluator: ExpressionEvaluator) -> None:
        with pytest.raises(EvaluationError, match="Unknown function"):
            evaluator.evaluate("nope(1)", {}, {})

    def test_missing_mapping_key(self, evaluator: ExpressionEvaluator) -> None:
        with pytest.raises(EvaluationError, match="Unknown attribute"):
            evaluator.evaluate("r_obj['Owner'] == 'a'", {"r_obj": {}}, {})

    def test_attribute_of_string(self, evaluator: ExpressionEvaluator) -> None:
        with pytest.raises(EvaluationError):
            evaluator.evaluate("r_obj['Owner'] == 'a'", {"r_obj": "data1"}, {})

    def test_function_raising_value_error_is_wrapped(
        self, evaluator: ExpressionEvaluator
    ) -> None:
        with pytest.raises(EvaluationError):
            evaluator.evaluate("ipMatch(r_ip, '10.0.0.0/8')", {"r_ip": "bad"}, BUILTIN_FUNCTIONS)

    def test_division_by_zero_is_wrapped(self, evaluator: ExpressionEvaluator) -> None:
        with pytest.raises(EvaluationError):
            evaluator.evaluate("1 / x", {"x": 0}, {})


class TestSandbox:
    def test_syntax_error(self) -> None:
        with pytest.raises(ExpressionSyntaxError):
            CompiledExpression("r_sub ==")

    def test_lambda_rejected(self) -> None:
        with pytest.raises(ExpressionSyntaxError):
            CompiledExpression("(lambda: 1)()")

    def test_comprehension_rejected(self) -> None:
        with pytest.raises(ExpressionSyntaxError):
            CompiledExpression("[x for x in y]")

    def test_dunder_attribute_rejected(self) -> None:
        with pytest.raises(ExpressionSyntaxError):
            CompiledExpression("r_sub.__class__")

    def test_dunder_name_rejected(self) -> None:
        with pytest.raises(ExpressionSyntaxError):
            CompiledExpression("__import__('os')")

    def test_keyword_arguments_rejected(self) -> None:
        with pytest.raises(ExpressionSyntaxError):
            CompiledExpression("keyMatch(a, key2=b)")

    def test_arbitrary_method_calls_rejected(self) -> None:
        with pytest.raises(EvaluationError):
            CompiledExpression("r_sub.upper()").evaluate({"r_sub": "alice"}, {})

    def test_compiled_expression_is_reusable(self) -> None:
        compiled = CompiledExpression("r_sub == p_sub")
        assert compiled.evaluate({"r_sub": "a", "p_sub": "a"}, {}) is True
        assert compiled.evaluate({"r_sub": "a", "p_sub": "b"}, {}) is False
        assert compiled.expression == "r_sub == p_sub"
