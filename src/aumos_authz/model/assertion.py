"""A single model assertion (one ``key = value`` line of a PERM model)."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from aumos_authz.errors import ConfigurationError, PolicyShapeError
from aumos_authz.rbac.role_manager import RoleManager

logger = logging.getLogger(__name__)

_SECTION_REG = re.compile(r"^[a-z]+")


def section_of(key: str) -> str:
    """Return the section letter(s) of an assertion key (``"g2"`` → ``"g"``)."""
    match = _SECTION_REG.match(key)
    if match is None:
        raise ConfigurationError(f"Invalid assertion key {key!r}")
    return match.group(0)


@dataclass
class Assertion:
    """One assertion of the model.

    Attributes
    ----------
    key:
        Assertion key, e.g. ``"r"``, ``"p"``, ``"g2"``, ``"m"``.
    value:
        Definition text.  For ``m`` and ``e`` this is the escaped expression.
    tokens:
        Prefixed token names for ``r``/``p`` (``r_sub``) or the raw
        placeholders for ``g`` (``_``).
    policy:
        Policy rows attached to ``p``/``g`` assertions.
    """

    key: str
    value: str
    tokens: list[str] = field(default_factory=list)
    policy: list[list[str]] = field(default_factory=list)
    _rule_index: set[tuple[str, ...]] = field(
        default_factory=set, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self._rule_index = {tuple(rule) for rule in self.policy}

    @property
    def section(self) -> str:
        return section_of(self.key)

    @property
    def role_arity(self) -> int:
        """Number of ``_`` placeholders of a role definition."""
        return self.value.count("_")

    # ------------------------------------------------------------------
    # Policy rows
    # ------------------------------------------------------------------

    def has_rule(self, rule: list[str]) -> bool:
        return tuple(rule) in self._rule_index

    def add_rule(self, rule: list[str]) -> bool:
        """Append ``rule`` unless it is already present."""
        row = tuple(rule)
        if row in self._rule_index:
            return False
        self._rule_index.add(row)
        self.policy.append(list(rule))
        return True

    def remove_rule(self, rule: list[str]) -> bool:
        row = tuple(rule)
        if row not in self._rule_index:
            return False
        self._rule_index.discard(row)
        self.policy.remove(list(rule))
        return True

    def set_policy(self, rules: list[list[str]]) -> None:
        """Replace every row, keeping the duplicate index in step."""
        self.policy = [list(rule) for rule in rules]
        self._rule_index = {tuple(rule) for rule in self.policy}

    def build_role_links(self, role_manager: RoleManager) -> None:
        """Add one edge per grouping row to ``role_manager``.

        Rows have the shape ``[child, parent]`` or ``[child, parent, domain]``.

        Raises
        ------
        ConfigurationError
            If the role definition has fewer than two or more than three
            placeholders.
        PolicyShapeError
            If a grouping row is shorter than the role definition.
        """
        count = self.role_arity
        if count < 2:
            raise ConfigurationError(
                f'The number of "_" in role definition {self.key!r} should be at least 2.',
                "role_definition",
            )
        if count > 3:
            raise ConfigurationError(
                f"Role definition {self.key!r} supports at most one domain.",
                "role_definition",
            )

        for rule in self.policy:
            if len(rule) < count:
                raise PolicyShapeError(
                    f"Grouping policy {self.key!r} row does not meet its role definition",
                    count,
                    len(rule),
                    rule,
                )
            if count == 2:
                role_manager.add_link(rule[0], rule[1])
            else:
                role_manager.add_link(rule[0], rule[1], rule[2])

        logger.debug("Built %d role links for %s", len(self.policy), self.key)
