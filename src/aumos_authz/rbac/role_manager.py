"""Role inheritance graph with domain scoping and pluggable name matching.

A role manager stores directed "child inherits from parent" edges.  Each
edge carries a domain label (``""`` when the model has no domains), so a
single graph can hold the hierarchies of many tenants side by side.

Name comparisons go through the *matching function* when one is installed.
That is what lets a resource-group edge such as ``("/book/*", "book_admin")``
answer ``has_link("/book/1", "book_admin")`` without the enforcement loop
knowing anything about patterns.

Example
-------
>>> rm = DefaultRoleManager()
>>> rm.add_link("alice", "admin")
>>> rm.add_link("admin", "root")
>>> rm.has_link("alice", "root")
True
>>> rm.get_roles("alice")
['admin']
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable

logger = logging.getLogger(__name__)

MatchingFunction = Callable[[str, str], bool]

DEFAULT_MAX_HIERARCHY_LEVEL: int = 10


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------


class RoleManager(ABC):
    """Abstract role manager.

    Subclasses own the edge storage and answer reachability queries.  The
    enforcer only relies on the methods declared here.
    """

    @abstractmethod
    def clear(self) -> None:
        """Drop every edge."""

    @abstractmethod
    def add_link(self, name1: str, name2: str, domain: str = "") -> None:
        """Record that ``name1`` inherits from ``name2`` within ``domain``."""

    @abstractmethod
    def delete_link(self, name1: str, name2: str, domain: str = "") -> None:
        """Remove the ``name1`` → ``name2`` edge if it exists."""

    @abstractmethod
    def has_link(self, name1: str, name2: str, domain: str = "") -> bool:
        """Return True when ``name2`` is reachable from ``name1``."""

    @abstractmethod
    def get_roles(self, name: str, domain: str = "") -> list[str]:
        """Return the direct parents of ``name``."""

    @abstractmethod
    def get_users(self, name: str, domain: str = "") -> list[str]:
        """Return the direct children of ``name``."""

    @abstractmethod
    def set_matching_function(self, fn: MatchingFunction | None) -> None:
        """Install (or with ``None`` remove) a custom name-equality predicate."""

    def print_roles(self) -> None:
        """Log the role graph.  Optional for subclasses."""

    def fresh(self) -> "RoleManager":
        """Return an empty role manager configured like this one."""
        return type(self)()


# ---------------------------------------------------------------------------
# DefaultRoleManager
# ---------------------------------------------------------------------------


class DefaultRoleManager(RoleManager):
    """In-memory role manager with bounded, cycle-safe reachability.

    Parameters
    ----------
    max_hierarchy_level:
        Maximum number of inheritance hops followed by :meth:`has_link`.
        Chains longer than this are reported as "not reachable", which also
        keeps accidental cycles from looping forever.
    matching_function:
        Optional predicate ``fn(name, stored_name) -> bool`` used instead of
        string equality when comparing names against stored graph nodes.

    Raises
    ------
    ValueError
        If ``max_hierarchy_level`` is less than 1.
    """

    def __init__(
        self,
        max_hierarchy_level: int = DEFAULT_MAX_HIERARCHY_LEVEL,
        matching_function: MatchingFunction | None = None,
    ) -> None:
        if max_hierarchy_level < 1:
            raise ValueError(
                f"max_hierarchy_level must be >= 1; got {max_hierarchy_level!r}."
            )
        self._max_hierarchy_level = max_hierarchy_level
        self._matching_function = matching_function
        # Insertion-ordered set of (child, parent, domain).
        self._edges: dict[tuple[str, str, str], None] = {}

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def clear(self) -> None:
        self._edges.clear()

    def add_link(self, name1: str, name2: str, domain: str = "") -> None:
        self._edges.setdefault((name1, name2, domain), None)

    def delete_link(self, name1: str, name2: str, domain: str = "") -> None:
        self._edges.pop((name1, name2, domain), None)

    def set_matching_function(self, fn: MatchingFunction | None) -> None:
        self._matching_function = fn

    def fresh(self) -> "DefaultRoleManager":
        return DefaultRoleManager(self._max_hierarchy_level, self._matching_function)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_link(self, name1: str, name2: str, domain: str = "") -> bool:
        """Return True when ``name2`` is reachable from ``name1`` in ``domain``.

        The search is breadth-first, never revisits a node, and stops after
        ``max_hierarchy_level`` hops.
        """
        if self._name_matches(name1, name2):
            return True

        edges = [(child, parent) for child, parent, dom in self._edges if dom == domain]
        frontier: list[str] = [name1]
        visited: set[str] = {name1}

        for _ in range(self._max_hierarchy_level):
            next_frontier: list[str] = []
            for current in frontier:
                for child, parent in edges:
                    if parent in visited or not self._name_matches(current, child):
                        continue
                    if self._name_matches(name2, parent):
                        return True
                    visited.add(parent)
                    next_frontier.append(parent)
            if not next_frontier:
                return False
            frontier = next_frontier

        return False

    def get_roles(self, name: str, domain: str = "") -> list[str]:
        roles: dict[str, None] = {}
        for child, parent, dom in self._edges:
            if dom == domain and self._name_matches(name, child):
                roles.setdefault(parent, None)
        return list(roles)

    def get_users(self, name: str, domain: str = "") -> list[str]:
        users: dict[str, None] = {}
        for child, parent, dom in self._edges:
            if dom == domain and self._name_matches(name, parent):
                users.setdefault(child, None)
        return list(users)

    def get_domains(self) -> list[str]:
        """Return every domain label that has at least one edge."""
        domains: dict[str, None] = {}
        for _, _, dom in self._edges:
            domains.setdefault(dom, None)
        return list(domains)

    def print_roles(self) -> None:
        logger.info(
            "Role graph (%d edges): %s",
            len(self._edges),
            ", ".join(
                f"{child} < {parent}" + (f" @{dom}" if dom else "")
                for child, parent, dom in self._edges
            ),
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        """``"empty"`` when the graph has no edges, ``"built"`` otherwise."""
        return "built" if self._edges else "empty"

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    @property
    def max_hierarchy_level(self) -> int:
        return self._max_hierarchy_level

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _name_matches(self, name: str, stored_name: str) -> bool:
        if name == stored_name:
            return True
        if self._matching_function is None:
            return False
        return bool(self._matching_function(name, stored_name))

    def __repr__(self) -> str:
        return (
            f"DefaultRoleManager(edges={len(self._edges)}, "
            f"max_hierarchy_level={self._max_hierarchy_level})"
        )
