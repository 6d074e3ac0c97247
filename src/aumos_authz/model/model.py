"""In-memory PERM model: assertions plus the policy rows attached to them.

Sections and their keys:

- ``r`` — request definition (``r = sub, obj, act``)
- ``p`` — policy definition (``p = sub, obj, act[, eft]``)
- ``g``, ``g2``, … — role definitions (``g = _, _`` or ``g = _, _, _``)
- ``e`` — policy effect expression
- ``m`` — matcher expression

Example
-------
>>> model = Model()
>>> model.add_def("r", "sub, obj, act")
True
>>> model.get("r").tokens
['r_sub', 'r_obj', 'r_act']
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from aumos_authz.effect.effector import Effector
from aumos_authz.errors import ConfigurationError
from aumos_authz.model.assertion import Assertion, section_of
from aumos_authz.rbac.role_manager import RoleManager
from aumos_authz.util import escape_assertion, remove_comments

logger = logging.getLogger(__name__)

SECTION_NAMES: dict[str, str] = {
    "r": "request_definition",
    "p": "policy_definition",
    "g": "role_definition",
    "e": "policy_effect",
    "m": "matchers",
}

REQUIRED_SECTIONS: tuple[str, ...] = ("r", "p", "e", "m")


class Model:
    """Ordered collection of :class:`Assertion` objects keyed by assertion key."""

    def __init__(self) -> None:
        self._assertions: dict[str, Assertion] = {}

    # ------------------------------------------------------------------
    # Definition
    # ------------------------------------------------------------------

    def add_def(self, key: str, value: str) -> bool:
        """Add an assertion from its definition text.

        Returns ``False`` (and adds nothing) when ``value`` is empty.

        Raises
        ------
        ConfigurationError
            If ``key`` does not belong to a known section.
        """
        sec = section_of(key)
        if sec not in SECTION_NAMES:
            raise ConfigurationError(f"Unknown model section for key {key!r}")

        value = remove_comments(value)
        if not value:
            return False

        if sec in ("r", "p"):
            tokens = [f"{key}_{token.strip()}" for token in value.split(",")]
            assertion = Assertion(key=key, value=value, tokens=tokens)
        elif sec == "g":
            tokens = [token.strip() for token in value.split(",")]
            assertion = Assertion(key=key, value=value, tokens=tokens)
        else:
            assertion = Assertion(key=key, value=escape_assertion(value))

        self._assertions[key] = assertion
        return True

    def validate(self) -> None:
        """Check that the model can be enforced.

        Raises
        ------
        ConfigurationError
            If a required section is missing or the effect is unsupported.
        """
        missing = [
            SECTION_NAMES[sec] for sec in REQUIRED_SECTIONS if sec not in self._assertions
        ]
        if missing:
            raise ConfigurationError(f"Model is missing required sections: {missing}")
        Effector.kind_of(self._assertions["e"].value)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, key: str) -> Assertion:
        """Return the assertion for ``key``.

        Raises
        ------
        ConfigurationError
            If the model has no such assertion.
        """
        try:
            return self._assertions[key]
        except KeyError as exc:
            raise ConfigurationError(f"Model has no assertion {key!r}") from exc

    def keys(self, section: str | None = None) -> list[str]:
        """Return assertion keys, optionally only those of ``section``."""
        if section is None:
            return list(self._assertions)
        return [key for key in self._assertions if section_of(key) == section]

    def role_keys(self) -> list[str]:
        return self.keys("g")

    def __contains__(self, key: object) -> bool:
        return key in self._assertions

    def copy(self, with_policy: bool = True) -> "Model":
        """Return an independent copy, optionally without any policy rows."""
        clone = Model()
        for key, assertion in self._assertions.items():
            clone._assertions[key] = Assertion(
                key=assertion.key,
                value=assertion.value,
                tokens=list(assertion.tokens),
                policy=[list(rule) for rule in assertion.policy] if with_policy else [],
            )
        return clone

    # ------------------------------------------------------------------
    # Policy rows
    # ------------------------------------------------------------------

    def get_policy(self, key: str) -> list[list[str]]:
        return [list(rule) for rule in self.get(key).policy]

    def has_policy(self, key: str, rule: list[str]) -> bool:
        return key in self._assertions and self._assertions[key].has_rule(rule)

    def add_policy(self, key: str, rule: list[str]) -> bool:
        """Append ``rule`` unless it is already present."""
        return self.get(key).add_rule(rule)

    def add_policies(self, key: str, rules: Iterable[list[str]]) -> int:
        return sum(1 for rule in rules if self.add_policy(key, rule))

    def remove_policy(self, key: str, rule: list[str]) -> bool:
        return key in self._assertions and self._assertions[key].remove_rule(rule)

    def remove_filtered_policy(self, key: str, field_index: int, *field_values: str) -> bool:
        """Remove rows whose fields from ``field_index`` match ``field_values``.

        An empty string in ``field_values`` matches any value.
        """
        if key not in self._assertions:
            return False
        assertion = self._assertions[key]
        kept: list[list[str]] = []
        removed = False
        for rule in assertion.policy:
            fields = rule[field_index : field_index + len(field_values)]
            if len(fields) == len(field_values) and all(
                value == "" or value == actual for value, actual in zip(field_values, fields)
            ):
                removed = True
            else:
                kept.append(rule)
        assertion.set_policy(kept)
        return removed

    def get_values_for_field_in_policy(self, key: str, field_index: int) -> list[str]:
        values: dict[str, None] = {}
        for rule in self.get(key).policy:
            values.setdefault(rule[field_index], None)
        return list(values)

    def clear_policy(self) -> None:
        """Drop every ``p`` and ``g`` row, keeping the definitions."""
        for assertion in self._assertions.values():
            if assertion.section in ("p", "g"):
                assertion.set_policy([])

    def sort_policies_by_priority(self) -> None:
        """Stable-sort ``p`` rows by their integer ``priority`` column, if any."""
        for key in self.keys("p"):
            assertion = self._assertions[key]
            token = f"{key}_priority"
            if token not in assertion.tokens:
                continue
            index = assertion.tokens.index(token)
            try:
                assertion.policy.sort(key=lambda rule: int(rule[index]))
            except (ValueError, IndexError) as exc:
                raise ConfigurationError(
                    f"Policy {key!r} has a non-integer priority value: {exc}"
                ) from exc

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def build_role_links(self, role_managers: dict[str, RoleManager]) -> None:
        """Populate each relation's role manager from its grouping rows."""
        for key in self.role_keys():
            role_manager = role_managers.get(key)
            if role_manager is None:
                raise ConfigurationError(f"No role manager for role definition {key!r}")
            self._assertions[key].build_role_links(role_manager)

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def print_model(self) -> None:
        logger.info("Model:")
        for key, assertion in self._assertions.items():
            logger.info("%s.%s: %s", SECTION_NAMES[assertion.section], key, assertion.value)

    def print_policy(self) -> None:
        logger.info("Policy:")
        for key, assertion in self._assertions.items():
            if assertion.section in ("p", "g"):
                logger.info("%s: %s: %s", key, ", ".join(assertion.tokens), assertion.policy)

    def __repr__(self) -> str:
        return f"Model(keys={list(self._assertions)})"
