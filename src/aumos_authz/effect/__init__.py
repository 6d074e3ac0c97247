"""Effect merging package for aumos-authz.

Turns the ordered per-row effects of one request into a single decision.
"""
from __future__ import annotations

from aumos_authz.effect.effector import Effect, EffectKind, Effector

__all__ = ["Effect", "EffectKind", "Effector"]
