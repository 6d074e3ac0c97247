"""Effect merging: turning per-row effects into one decision.

The model's ``[policy_effect]`` expression selects one of four merge
strategies by its literal text:

==========================================================  =======================
Effect expression                                           Kind
==========================================================  =======================
``some(where (p.eft == allow))``                            allow-override
``!some(where (p.eft == deny))``                            deny-override
``some(where (p.eft == allow)) && !some(where (p.eft == deny))``  allow-and-deny-override
``priority(p.eft) || deny``                                 priority
==========================================================  =======================

Example
-------
>>> effector = Effector()
>>> effector.merge("some(where (p_eft == allow))", [Effect.INDETERMINATE, Effect.ALLOW])
True
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum

from aumos_authz.errors import ConfigurationError
from aumos_authz.util import escape_assertion

logger = logging.getLogger(__name__)


class Effect(str, Enum):
    """Outcome contributed by a single policy row."""

    ALLOW = "allow"
    DENY = "deny"
    INDETERMINATE = "indeterminate"


class EffectKind(str, Enum):
    """Merge strategies, valued by their escaped effect expression."""

    ALLOW_OVERRIDE = "some(where (p_eft == allow))"
    DENY_OVERRIDE = "!some(where (p_eft == deny))"
    ALLOW_AND_DENY_OVERRIDE = "some(where (p_eft == allow)) && !some(where (p_eft == deny))"
    PRIORITY = "priority(p_eft) || deny"


PRIORITY_EFFECT: str = EffectKind.PRIORITY.value


def normalize_effect_expression(expression: str) -> str:
    """Escape ``p.eft`` and collapse whitespace so lookups are exact."""
    return " ".join(escape_assertion(expression).split())


class Effector:
    """Merges the ordered effect sequence of one request into a boolean."""

    @staticmethod
    def kind_of(expression: str) -> EffectKind:
        """Return the :class:`EffectKind` selected by ``expression``.

        Raises
        ------
        ConfigurationError
            If the expression is not one of the supported effect rules.
        """
        normalized = normalize_effect_expression(expression)
        try:
            return EffectKind(normalized)
        except ValueError as exc:
            raise ConfigurationError(
                f"Unsupported policy effect {expression!r}. "
                f"Supported: {[k.value for k in EffectKind]}.",
                "policy_effect",
            ) from exc

    def merge(
        self,
        expression: str,
        effects: Sequence[Effect],
        weights: Sequence[float] = (),
    ) -> bool:
        """Merge ``effects`` according to the kind named by ``expression``.

        Parameters
        ----------
        expression:
            The model's effect expression.
        effects:
            Per-row effects in policy order (INDETERMINATE for rows that did
            not match).
        weights:
            Raw numeric matcher results of matched rows.  Recorded for
            debugging only; they never change the outcome.
        """
        kind = self.kind_of(expression)
        if weights:
            logger.debug("Numeric matcher results: %s", list(weights))

        match kind:
            case EffectKind.ALLOW_OVERRIDE:
                return Effect.ALLOW in effects
            case EffectKind.DENY_OVERRIDE | EffectKind.ALLOW_AND_DENY_OVERRIDE:
                return Effect.ALLOW in effects and Effect.DENY not in effects
            case EffectKind.PRIORITY:
                for effect in effects:
                    if effect is Effect.INDETERMINATE:
                        continue
                    return effect is Effect.ALLOW
                return False
            case _:
                # Unreachable: kind_of only returns known kinds.
                raise ConfigurationError(f"Unhandled effect kind: {kind!r}")
