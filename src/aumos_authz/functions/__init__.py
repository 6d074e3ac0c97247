"""Matcher function registry and built-in matching functions.

The built-ins (``keyMatch``, ``keyMatch2``, ``keyMatch3``, ``regexMatch``,
``ipMatch``, ``globMatch``) are available to every matcher and can also be
installed as role-manager matching functions.
"""
from __future__ import annotations

from aumos_authz.functions.builtins import (
    BUILTIN_FUNCTIONS,
    glob_match,
    ip_match,
    key_match,
    key_match2,
    key_match3,
    regex_match,
)
from aumos_authz.functions.function_map import FunctionMap, generate_g_function

__all__ = [
    "BUILTIN_FUNCTIONS",
    "FunctionMap",
    "generate_g_function",
    "glob_match",
    "ip_match",
    "key_match",
    "key_match2",
    "key_match3",
    "regex_match",
]
