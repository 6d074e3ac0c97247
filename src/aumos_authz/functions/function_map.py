"""Per-enforcer function namespace for matcher expressions.

A :class:`FunctionMap` is an explicit object rather than a process-wide
registry, so two enforcers with different custom functions can live in the
same process without stepping on each other.

Example
-------
>>> fm = FunctionMap.load_function_map()
>>> fm.add_function("isOwner", lambda sub, owner: sub == owner)
>>> sorted(fm.get_functions())[:3]
['globMatch', 'ipMatch', 'isOwner']
"""
from __future__ import annotations

from typing import Callable

from aumos_authz.functions.builtins import BUILTIN_FUNCTIONS
from aumos_authz.rbac.role_manager import RoleManager

MatcherFunction = Callable[..., object]


class FunctionMap:
    """Mapping of matcher function names to Python callables."""

    def __init__(self) -> None:
        self._functions: dict[str, MatcherFunction] = {}

    @classmethod
    def load_function_map(cls) -> "FunctionMap":
        """Return a map pre-populated with the built-in matching functions."""
        fm = cls()
        for name, fn in BUILTIN_FUNCTIONS.items():
            fm.add_function(name, fn)
        return fm

    def add_function(self, name: str, fn: MatcherFunction) -> None:
        """Register ``fn`` under ``name``, replacing any previous entry.

        Raises
        ------
        ValueError
            If ``name`` is not a valid identifier or ``fn`` is not callable.
        """
        if not name.isidentifier() or name.startswith("__"):
            raise ValueError(f"Invalid matcher function name: {name!r}")
        if not callable(fn):
            raise ValueError(f"Matcher function {name!r} must be callable.")
        self._functions[name] = fn

    def get_functions(self) -> dict[str, MatcherFunction]:
        """Return a copy of the namespace."""
        return dict(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __len__(self) -> int:
        return len(self._functions)


def generate_g_function(role_manager: RoleManager | None) -> MatcherFunction:
    """Build the reachability predicate for one role relation.

    The returned callable has the matcher signature
    ``g(name1, name2[, domain])``.  Without a role manager it degrades to
    plain equality.
    """

    def g(name1: str, name2: str, domain: str = "") -> bool:
        if role_manager is None:
            return name1 == name2
        return role_manager.has_link(name1, name2, domain)

    return g
