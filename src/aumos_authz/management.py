"""Enforcer — CoreEnforcer plus policy management and role queries.

Mutations change the in-memory model under the write lock.  Grouping
changes update the matching role graph edge by edge instead of rebuilding
it.  When auto-save is on and an unfiltered adapter is set, the whole policy
is written back after every successful change.

Example
-------
>>> enforcer = Enforcer("examples/rbac_model.conf", "examples/rbac_policy.csv")
>>> enforcer.add_grouping_policy("bob", "data2_admin")
True
>>> enforcer.get_roles_for_user("bob")
['data2_admin']
"""
from __future__ import annotations

import logging

from aumos_authz.enforcer import CoreEnforcer
from aumos_authz.errors import ConfigurationError
from aumos_authz.model.model import Model

logger = logging.getLogger(__name__)


class Enforcer(CoreEnforcer):
    """Full enforcer: enforcement, policy management and RBAC helpers."""

    # ------------------------------------------------------------------
    # Policy reads
    # ------------------------------------------------------------------

    def get_policy(self) -> list[list[str]]:
        return self.get_named_policy("p")

    def get_named_policy(self, ptype: str) -> list[list[str]]:
        with self._lock.read():
            return self._require_model().get_policy(ptype)

    def get_grouping_policy(self) -> list[list[str]]:
        return self.get_named_grouping_policy("g")

    def get_named_grouping_policy(self, ptype: str) -> list[list[str]]:
        with self._lock.read():
            return self._require_model().get_policy(ptype)

    def has_policy(self, *params: str) -> bool:
        with self._lock.read():
            return self._require_model().has_policy("p", list(params))

    def has_grouping_policy(self, *params: str) -> bool:
        with self._lock.read():
            return self._require_model().has_policy("g", list(params))

    def get_all_subjects(self) -> list[str]:
        with self._lock.read():
            return self._require_model().get_values_for_field_in_policy("p", 0)

    def get_all_roles(self) -> list[str]:
        with self._lock.read():
            return self._require_model().get_values_for_field_in_policy("g", 1)

    # ------------------------------------------------------------------
    # Policy writes
    # ------------------------------------------------------------------

    def add_policy(self, *params: str) -> bool:
        """Add a ``p`` row.  Returns False if it already exists."""
        return self.add_named_policy("p", *params)

    def add_named_policy(self, ptype: str, *params: str) -> bool:
        with self._lock.write():
            model = self._require_model()
            rule = list(params)
            added = model.add_policy(ptype, rule)
            if added:
                self._sort_after_add(model, ptype, rule)
            saved = added and self._auto_save_unlocked()
        if saved:
            self._notify_watcher()
        return added

    def remove_policy(self, *params: str) -> bool:
        """Remove a ``p`` row.  Returns False if it was not present."""
        return self.remove_named_policy("p", *params)

    def remove_named_policy(self, ptype: str, *params: str) -> bool:
        with self._lock.write():
            removed = self._require_model().remove_policy(ptype, list(params))
            saved = removed and self._auto_save_unlocked()
        if saved:
            self._notify_watcher()
        return removed

    def remove_filtered_policy(self, field_index: int, *field_values: str) -> bool:
        """Remove every ``p`` row whose fields from ``field_index`` match.

        An empty string in ``field_values`` matches any value.
        """
        with self._lock.write():
            removed = self._require_model().remove_filtered_policy("p", field_index, *field_values)
            saved = removed and self._auto_save_unlocked()
        if saved:
            self._notify_watcher()
        return removed

    def add_grouping_policy(self, *params: str) -> bool:
        """Add a ``g`` row and the matching role edge."""
        return self.add_named_grouping_policy("g", *params)

    def add_named_grouping_policy(self, ptype: str, *params: str) -> bool:
        with self._lock.write():
            model = self._require_model()
            rule = list(params)
            link = self._link_args(ptype, rule)
            added = model.add_policy(ptype, rule)
            if added and self._auto_build_role_links:
                self._role_manager_unlocked(ptype).add_link(*link)
            saved = added and self._auto_save_unlocked()
        if saved:
            self._notify_watcher()
        return added

    def remove_grouping_policy(self, *params: str) -> bool:
        """Remove a ``g`` row and the matching role edge."""
        return self.remove_named_grouping_policy("g", *params)

    def remove_named_grouping_policy(self, ptype: str, *params: str) -> bool:
        with self._lock.write():
            model = self._require_model()
            rule = list(params)
            link = self._link_args(ptype, rule)
            removed = model.remove_policy(ptype, rule)
            if removed and self._auto_build_role_links:
                self._role_manager_unlocked(ptype).delete_link(*link)
            saved = removed and self._auto_save_unlocked()
        if saved:
            self._notify_watcher()
        return removed

    # ------------------------------------------------------------------
    # RBAC queries
    # ------------------------------------------------------------------

    def get_roles_for_user(self, name: str, domain: str = "") -> list[str]:
        """Return the roles ``name`` is directly assigned."""
        with self._lock.read():
            return self._role_manager_unlocked("g").get_roles(name, domain)

    def get_users_for_role(self, name: str, domain: str = "") -> list[str]:
        """Return the users directly assigned the role ``name``."""
        with self._lock.read():
            return self._role_manager_unlocked("g").get_users(name, domain)

    def has_role_for_user(self, name: str, role: str, domain: str = "") -> bool:
        """Return True when ``name`` holds ``role``, directly or by inheritance."""
        with self._lock.read():
            return self._role_manager_unlocked("g").has_link(name, role, domain)

    def add_role_for_user(self, user: str, role: str, *domain: str) -> bool:
        return self.add_grouping_policy(user, role, *domain)

    def delete_role_for_user(self, user: str, role: str, *domain: str) -> bool:
        return self.remove_grouping_policy(user, role, *domain)

    def get_permissions_for_user(self, user: str) -> list[list[str]]:
        """Return the ``p`` rows whose subject is ``user``."""
        with self._lock.read():
            return [
                rule for rule in self._require_model().get_policy("p") if rule and rule[0] == user
            ]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _link_args(self, ptype: str, rule: list[str]) -> list[str]:
        arity = self._require_model().get(ptype).role_arity
        if len(rule) < arity:
            raise ConfigurationError(
                f"Grouping rule {rule} is shorter than role definition {ptype!r}"
            )
        return rule[:arity]

    @staticmethod
    def _sort_after_add(model: Model, ptype: str, rule: list[str]) -> None:
        """Keep priority order after an insert; a bad priority value is not kept."""
        try:
            model.sort_policies_by_priority()
        except ConfigurationError:
            model.remove_policy(ptype, rule)
            raise

    def _auto_save_unlocked(self) -> bool:
        """Write the policy back when auto-save applies.  Returns True if saved."""
        if not self._auto_save or self._adapter is None or self.is_filtered():
            return False
        self._adapter.save_policy(self._require_model())
        return True
