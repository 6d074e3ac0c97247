"""Decision audit trail package for aumos-authz."""
from __future__ import annotations

from aumos_authz.audit.logger import DecisionAuditLog

__all__ = ["DecisionAuditLog"]
