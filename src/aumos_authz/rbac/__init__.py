"""Role inheritance package for aumos-authz."""
from __future__ import annotations

from aumos_authz.rbac.role_manager import DefaultRoleManager, RoleManager

__all__ = ["DefaultRoleManager", "RoleManager"]
