"""CoreEnforcer — answers "may this subject perform this action on this object?".

The enforcer owns a :class:`~aumos_authz.model.model.Model`, one role
manager per role definition (``g``, ``g2``, …), an optional policy adapter
and an optional watcher.  :meth:`CoreEnforcer.enforce` binds the request to
the model's ``r`` tokens, evaluates the matcher once per ``p`` row, merges
the per-row effects with the model's effect rule, and logs the decision.

Concurrency
-----------
``enforce`` holds the read side of a :class:`~aumos_authz.sync.ReadWriteLock`;
every mutation holds the write side.  Reloads build a fresh model and fresh
role graphs and swap them in together, so a concurrent ``enforce`` sees
either the old pair or the new pair, never a mix.

Example
-------
>>> enforcer = CoreEnforcer("examples/basic_model.conf", "examples/basic_policy.csv")
>>> enforcer.enforce("alice", "data1", "read")
True
>>> enforcer.enforce("alice", "data2", "write")
False
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from aumos_authz.audit.logger import DecisionAuditLog
from aumos_authz.config import EnforcerConfig
from aumos_authz.effect.effector import PRIORITY_EFFECT, Effect, Effector, normalize_effect_expression
from aumos_authz.errors import (
    AdapterCapabilityError,
    ArityError,
    ConfigurationError,
    EvaluationError,
    PolicyShapeError,
)
from aumos_authz.evaluation.evaluator import CompiledExpression, ExpressionEvaluator
from aumos_authz.functions.function_map import FunctionMap, MatcherFunction, generate_g_function
from aumos_authz.model.loader import ModelLoader
from aumos_authz.model.model import Model
from aumos_authz.persist.adapter import Adapter, FilteredAdapter
from aumos_authz.persist.file_adapter import FileAdapter
from aumos_authz.persist.watcher import Watcher
from aumos_authz.rbac.role_manager import DefaultRoleManager, MatchingFunction, RoleManager
from aumos_authz.sync import ReadWriteLock
from aumos_authz.util import (
    array_to_string,
    escape_assertion,
    get_eval_value,
    has_eval,
    replace_eval,
)

logger = logging.getLogger(__name__)

_EFFECT_TOKEN = "p_eft"


@dataclass
class EnforceResult:
    """Outcome of :meth:`CoreEnforcer.enforce_ex`.

    Attributes
    ----------
    allowed:
        The decision.
    explain:
        The policy row that decided the request, or an empty list when no
        single row did (no match, or a zero-row model).
    effects:
        Per-row effects in policy order.  Shorter than the policy when a
        priority model stopped at the first decisive row.
    """

    allowed: bool
    explain: list[str] = field(default_factory=list)
    effects: list[Effect] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.allowed


class CoreEnforcer:
    """Model-driven access-control enforcer.

    Parameters
    ----------
    model:
        A :class:`Model`, or a path to a ``.conf`` model file.  ``None``
        builds an enforcer with no model; call :meth:`set_model` before
        enforcing.
    adapter:
        A policy :class:`Adapter`, or a path to a CSV policy file (wrapped in
        a :class:`FileAdapter`).  When given, the policy is loaded straight
        away.
    config:
        Optional :class:`EnforcerConfig`.  Defaults apply when omitted.

    Raises
    ------
    ConfigurationError
        If an adapter is given without a model, or the model is invalid.
    FileNotFoundError
        If a model or policy path does not exist.
    """

    def __init__(
        self,
        model: Model | str | Path | None = None,
        adapter: Adapter | str | Path | None = None,
        *,
        config: EnforcerConfig | None = None,
    ) -> None:
        self._config = config or EnforcerConfig()
        self._lock = ReadWriteLock()
        self._evaluator = ExpressionEvaluator()
        self._effector = Effector()
        self._function_map = FunctionMap.load_function_map()

        self._enabled: bool = self._config.enabled
        self._auto_build_role_links: bool = self._config.auto_build_role_links
        self._auto_save: bool = self._config.auto_save
        self._log_decisions: bool = self._config.log_decisions
        self._audit_log: DecisionAuditLog | None = (
            DecisionAuditLog(self._config.audit.log_path) if self._config.audit.enabled else None
        )

        self._model_path: Path | None = None
        self._model: Model | None = None
        self._matcher: CompiledExpression | None = None
        self._role_managers: dict[str, RoleManager] = {}
        self._g_functions: dict[str, MatcherFunction] = {}
        self._matching_functions: dict[str, MatchingFunction] = {}
        self._watcher: Watcher | None = None

        if isinstance(adapter, (str, Path)):
            adapter = FileAdapter(adapter)
        if adapter is not None and model is None:
            raise ConfigurationError("A model is required when a policy adapter is given")
        self._adapter: Adapter | None = adapter

        if isinstance(model, (str, Path)):
            self._model_path = Path(model)
            model = self.new_model(path=model)
        if model is not None:
            self._install_model(model)

        if self._adapter is not None and not self.is_filtered():
            self.load_policy()

    @classmethod
    def from_config(cls, config: EnforcerConfig) -> "CoreEnforcer":
        """Build an enforcer from a validated :class:`EnforcerConfig`.

        Raises
        ------
        ConfigurationError
            If ``config.model_path`` is not set.
        """
        if config.model_path is None:
            raise ConfigurationError("model_path is required", "config")
        return cls(config.model_path, config.policy_path, config=config)

    @staticmethod
    def new_model(path: str | Path = "", text: str = "") -> Model:
        """Build a model from a file path or from model text.

        ``text`` wins when both are given; with neither an empty, unvalidated
        :class:`Model` is returned for programmatic assembly.
        """
        loader = ModelLoader()
        if text:
            return loader.load_from_text(text)
        if path:
            return loader.load(path)
        return Model()

    # ------------------------------------------------------------------
    # Enforcement
    # ------------------------------------------------------------------

    def enforce(self, *rvals: object) -> bool:
        """Decide whether the request ``rvals`` is permitted.

        Parameters
        ----------
        *rvals:
            Request values in the order of the model's ``r`` tokens, usually
            ``(subject, object, action)``.  Values may be strings or, for
            ABAC models, mappings or objects whose attributes the matcher
            reads.

        Returns
        -------
        bool
            True when the merged effect permits the request.  A disabled
            enforcer returns False without evaluating anything.

        Raises
        ------
        ArityError
            If ``len(rvals)`` differs from the number of ``r`` tokens.
        PolicyShapeError
            If a policy row's length differs from the number of ``p`` tokens.
        ConfigurationError
            If the enforcer has no model, or ``eval()`` is used with no policy
            rows.
        """
        return self.enforce_ex(*rvals).allowed

    def enforce_ex(self, *rvals: object) -> EnforceResult:
        """Like :meth:`enforce` but also return the deciding row and effects."""
        if not self._enabled:
            logger.debug("Enforcement disabled; denying %s", array_to_string(list(rvals)))
            return EnforceResult(allowed=False)

        with self._lock.read():
            result = self._enforce_unlocked(rvals)

        self._record_decision(rvals, result)
        return result

    def _enforce_unlocked(self, rvals: Sequence[object]) -> EnforceResult:
        model = self._require_model()
        r_tokens = model.get("r").tokens
        p_assertion = model.get("p")
        p_tokens = p_assertion.tokens
        matcher_text = model.get("m").value
        effect_text = model.get("e").value

        if len(rvals) != len(r_tokens):
            raise ArityError("Invalid request size", len(r_tokens), len(rvals))

        functions = self._function_map.get_functions()
        functions.update(self._g_functions)

        r_bindings: dict[str, object] = dict(zip(r_tokens, rvals))
        uses_eval = has_eval(matcher_text)
        stop_at_first = normalize_effect_expression(effect_text) == PRIORITY_EFFECT

        effects: list[Effect] = []
        weights: list[float] = []

        if p_assertion.policy:
            for rule in p_assertion.policy:
                if len(rule) != len(p_tokens):
                    raise PolicyShapeError("Invalid policy size", len(p_tokens), len(rule), rule)
                bindings = {**r_bindings, **dict(zip(p_tokens, rule))}
                effect = self._evaluate_rule(matcher_text, uses_eval, bindings, functions, weights)
                effects.append(effect)
                if stop_at_first and effect is not Effect.INDETERMINATE:
                    break
        else:
            if uses_eval:
                raise ConfigurationError(
                    "please make sure rule exists in policy when using eval() in matcher",
                    "matchers",
                )
            bindings = {**r_bindings, **{token: "" for token in p_tokens}}
            effects.append(self._evaluate_empty_policy(bindings, functions))

        allowed = self._effector.merge(effect_text, effects, weights)
        explain: list[str] = []
        if p_assertion.policy:
            decisive = Effect.ALLOW if allowed else Effect.DENY
            for index, effect in enumerate(effects):
                if effect is decisive:
                    explain = list(p_assertion.policy[index])
                    break
        return EnforceResult(allowed=allowed, explain=explain, effects=effects)

    def _evaluate_rule(
        self,
        matcher_text: str,
        uses_eval: bool,
        bindings: dict[str, object],
        functions: dict[str, MatcherFunction],
        weights: list[float],
    ) -> Effect:
        """Evaluate the matcher against one policy row.

        Evaluation failures are confined to the row: they are logged and the
        row counts as INDETERMINATE.
        """
        try:
            if uses_eval:
                rules = [
                    escape_assertion(str(self._lookup_eval_rule(bindings, name)))
                    for name in get_eval_value(matcher_text)
                ]
                expression = self._evaluator.compile(replace_eval(matcher_text, rules))
            else:
                expression = self._compiled_matcher()
            result = expression.evaluate(bindings, functions)
            matched = self._interpret_result(result, weights)
        except EvaluationError as exc:
            logger.warning("Matcher failed for policy row %s: %s", _row_of(bindings), exc)
            return Effect.INDETERMINATE

        if not matched:
            return Effect.INDETERMINATE
        if _EFFECT_TOKEN not in bindings:
            return Effect.ALLOW
        match bindings[_EFFECT_TOKEN]:
            case "allow":
                return Effect.ALLOW
            case "deny":
                return Effect.DENY
            case _:
                return Effect.INDETERMINATE

    def _evaluate_empty_policy(
        self,
        bindings: dict[str, object],
        functions: dict[str, MatcherFunction],
    ) -> Effect:
        try:
            result = self._compiled_matcher().evaluate(bindings, functions)
            matched = self._interpret_result(result, [])
        except EvaluationError as exc:
            logger.warning("Matcher failed with an empty policy: %s", exc)
            return Effect.INDETERMINATE
        return Effect.ALLOW if matched else Effect.INDETERMINATE

    @staticmethod
    def _interpret_result(result: object, weights: list[float]) -> bool:
        if isinstance(result, bool):
            return result
        if isinstance(result, (int, float)):
            if result == 0:
                return False
            weights.append(float(result))
            return True
        raise EvaluationError(
            f"matcher result should be bool or number, got {type(result).__name__}"
        )

    @staticmethod
    def _lookup_eval_rule(bindings: dict[str, object], name: str) -> object:
        token = escape_assertion(name)
        if token not in bindings:
            raise EvaluationError(f"eval() refers to unknown policy field {name!r}")
        return bindings[token]

    def _compiled_matcher(self) -> CompiledExpression:
        if self._matcher is None:
            raise ConfigurationError("Matcher is not compiled", "matchers")
        return self._matcher

    def _record_decision(self, rvals: Sequence[object], result: EnforceResult) -> None:
        try:
            if self._log_decisions:
                line = "Request: %s ---> %s"
                request = array_to_string(list(rvals))
                if result.allowed:
                    logger.info(line, request, result.allowed)
                else:
                    logger.warning(line, request, result.allowed)
            if self._audit_log is not None:
                self._audit_log.log_decision(
                    [str(value) for value in rvals], result.allowed, result.explain
                )
        except Exception:  # noqa: BLE001
            logger.exception("Failed to record enforcement decision")

    # ------------------------------------------------------------------
    # Model
    # ------------------------------------------------------------------

    def load_model(self) -> None:
        """Reload the model from the path the enforcer was built with.

        The policy is dropped; call :meth:`load_policy` afterwards.

        Raises
        ------
        ConfigurationError
            If the enforcer was not built from a model path.
        """
        if self._model_path is None:
            raise ConfigurationError("No model path to reload from")
        model = self.new_model(path=self._model_path)
        with self._lock.write():
            self._install_model(model)

    def set_model(self, model: Model) -> None:
        """Replace the model.  Role graphs are rebuilt from the model's rows."""
        with self._lock.write():
            self._install_model(model)

    def get_model(self) -> Model | None:
        return self._model

    def _install_model(self, model: Model) -> None:
        model.validate()
        model.sort_policies_by_priority()
        matcher_text = model.get("m").value
        matcher: CompiledExpression | None = None
        if not has_eval(matcher_text):
            matcher = self._compile_matcher(matcher_text)

        role_managers = {key: self._new_role_manager(key) for key in model.role_keys()}
        if self._auto_build_role_links:
            model.build_role_links(role_managers)

        self._model = model
        self._matcher = matcher
        self._swap_role_managers(role_managers)

    def _compile_matcher(self, matcher_text: str) -> CompiledExpression:
        try:
            return self._evaluator.compile(matcher_text)
        except EvaluationError as exc:
            raise ConfigurationError(f"Invalid matcher: {exc}", "matchers") from exc

    # ------------------------------------------------------------------
    # Adapter and watcher
    # ------------------------------------------------------------------

    def set_adapter(self, adapter: Adapter | None) -> None:
        with self._lock.write():
            self._adapter = adapter

    def get_adapter(self) -> Adapter | None:
        return self._adapter

    def set_watcher(self, watcher: Watcher | None) -> None:
        """Install a watcher.  Its callback reloads the policy."""
        self._watcher = watcher
        if watcher is not None:
            watcher.set_update_callback(self.load_policy)

    def _notify_watcher(self) -> None:
        if self._watcher is None:
            return
        try:
            self._watcher.update()
        except Exception:  # noqa: BLE001
            logger.exception("Watcher update failed")

    # ------------------------------------------------------------------
    # Role managers
    # ------------------------------------------------------------------

    def set_role_manager(self, role_manager: RoleManager, ptype: str = "g") -> None:
        """Replace the role manager used by the ``ptype`` role definition.

        The new manager is populated from the current grouping rows when
        automatic role building is on.
        """
        with self._lock.write():
            model = self._require_model()
            if ptype not in model.role_keys():
                raise ConfigurationError(f"Model has no role definition {ptype!r}")
            role_manager.clear()
            if self._auto_build_role_links:
                model.get(ptype).build_role_links(role_manager)
            self._swap_role_managers({**self._role_managers, ptype: role_manager})

    def get_role_manager(self, ptype: str = "g") -> RoleManager | None:
        return self._role_managers.get(ptype)

    @property
    def role_manager(self) -> RoleManager | None:
        """The role manager of the ``g`` relation."""
        return self._role_managers.get("g")

    def build_role_links(self) -> None:
        """Rebuild every role graph from the model's grouping rows."""
        with self._lock.write():
            self._build_role_links_unlocked()

    def _build_role_links_unlocked(self) -> None:
        model = self._require_model()
        role_managers = {key: rm.fresh() for key, rm in self._role_managers.items()}
        model.build_role_links(role_managers)
        self._swap_role_managers(role_managers)

    def add_named_matching_func(self, ptype: str, fn: MatchingFunction) -> None:
        """Install a name matching function on the ``ptype`` role manager.

        With ``keyMatch`` installed on ``g2``, a grouping row
        ``g2, /book/*, book_group`` puts ``/book/1`` in ``book_group``.
        """
        with self._lock.write():
            self._matching_functions[ptype] = fn
            role_manager = self._role_managers.get(ptype)
            if role_manager is not None:
                role_manager.set_matching_function(fn)

    def add_role_link(self, name1: str, name2: str, *domain: str, ptype: str = "g") -> None:
        """Add an inheritance edge to the role graph without touching the policy."""
        with self._lock.write():
            self._role_manager_unlocked(ptype).add_link(name1, name2, *domain)

    def delete_role_link(self, name1: str, name2: str, *domain: str, ptype: str = "g") -> None:
        """Remove an inheritance edge from the role graph without touching the policy."""
        with self._lock.write():
            self._role_manager_unlocked(ptype).delete_link(name1, name2, *domain)

    def _role_manager_unlocked(self, ptype: str) -> RoleManager:
        role_manager = self._role_managers.get(ptype)
        if role_manager is None:
            raise ConfigurationError(f"Model has no role definition {ptype!r}")
        return role_manager

    def _new_role_manager(self, ptype: str) -> RoleManager:
        return DefaultRoleManager(
            max_hierarchy_level=self._config.max_hierarchy_level,
            matching_function=self._matching_functions.get(ptype),
        )

    def _swap_role_managers(self, role_managers: dict[str, RoleManager]) -> None:
        self._role_managers = role_managers
        self._g_functions = {key: generate_g_function(rm) for key, rm in role_managers.items()}

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def clear_policy(self) -> None:
        """Drop every policy and grouping row from the in-memory model."""
        with self._lock.write():
            model = self._require_model().copy(with_policy=False)
            self._model = model
            if self._auto_build_role_links:
                self._build_role_links_unlocked()

    def load_policy(self) -> None:
        """Reload the whole policy from the adapter.

        Raises
        ------
        ConfigurationError
            If no adapter is set.
        """
        adapter = self._require_adapter()
        with self._lock.write():
            self._reload_unlocked(adapter.load_policy, keep_rows=False)

    def load_filtered_policy(self, policy_filter: object) -> None:
        """Replace the policy with the rows accepted by ``policy_filter``.

        Raises
        ------
        AdapterCapabilityError
            If the adapter cannot load filtered policies.  Nothing is
            modified in that case.
        """
        adapter = self._require_filtered_adapter()
        with self._lock.write():
            self._reload_unlocked(
                lambda model: adapter.load_filtered_policy(model, policy_filter),
                keep_rows=False,
            )

    def load_increment_filtered_policy(self, policy_filter: object) -> None:
        """Add the rows accepted by ``policy_filter`` to the current policy."""
        adapter = self._require_filtered_adapter()
        with self._lock.write():
            self._reload_unlocked(
                lambda model: adapter.load_filtered_policy(model, policy_filter),
                keep_rows=True,
            )

    def is_filtered(self) -> bool:
        """Return True when the loaded policy is a filtered subset."""
        return isinstance(self._adapter, FilteredAdapter) and self._adapter.is_filtered()

    def save_policy(self) -> None:
        """Persist the in-memory policy through the adapter.

        Raises
        ------
        AdapterCapabilityError
            If the loaded policy is filtered.
        ConfigurationError
            If no adapter is set.
        """
        if self.is_filtered():
            raise AdapterCapabilityError("Cannot save a filtered policy")
        adapter = self._require_adapter()
        with self._lock.read():
            adapter.save_policy(self._require_model())
        self._notify_watcher()

    def _reload_unlocked(self, loader: Callable[[Model], None], *, keep_rows: bool) -> None:
        current = self._require_model()
        model = current.copy(with_policy=keep_rows)
        loader(model)
        model.sort_policies_by_priority()
        model.print_policy()

        if self._auto_build_role_links:
            role_managers = {key: rm.fresh() for key, rm in self._role_managers.items()}
            model.build_role_links(role_managers)
            self._model = model
            self._swap_role_managers(role_managers)
        else:
            self._model = model

    # ------------------------------------------------------------------
    # Switches
    # ------------------------------------------------------------------

    def enable_enforce(self, enabled: bool = True) -> None:
        self._enabled = enabled

    def enable_auto_build_role_links(self, enabled: bool = True) -> None:
        self._auto_build_role_links = enabled

    def enable_auto_save(self, enabled: bool = True) -> None:
        self._auto_save = enabled

    def enable_log(self, enabled: bool = True) -> None:
        self._log_decisions = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def add_function(self, name: str, fn: MatcherFunction) -> None:
        """Register a custom function callable from the matcher."""
        with self._lock.write():
            self._function_map.add_function(name, fn)

    def set_effector(self, effector: Effector) -> None:
        """Replace the effector used to merge per-row effects."""
        with self._lock.write():
            self._effector = effector

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_model(self) -> Model:
        if self._model is None:
            raise ConfigurationError("Model is undefined; call set_model() first")
        return self._model

    def _require_adapter(self) -> Adapter:
        if self._adapter is None:
            raise ConfigurationError("No policy adapter is set")
        return self._adapter

    def _require_filtered_adapter(self) -> FilteredAdapter:
        adapter = self._require_adapter()
        if not isinstance(adapter, FilteredAdapter):
            raise AdapterCapabilityError(
                f"{type(adapter).__name__} does not support filtered policy loading"
            )
        return adapter

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(model={self._model!r}, adapter={self._adapter!r}, "
            f"enabled={self._enabled})"
        )


def _row_of(bindings: dict[str, object]) -> list[object]:
    return [value for token, value in bindings.items() if token.startswith("p")]
