"""PERM model package for aumos-authz.

Provides the assertion type, the in-memory model with its policy rows, and
the ``.conf`` loader.
"""
from __future__ import annotations

from aumos_authz.model.assertion import Assertion
from aumos_authz.model.loader import ModelLoader
from aumos_authz.model.model import Model

__all__ = ["Assertion", "Model", "ModelLoader"]
