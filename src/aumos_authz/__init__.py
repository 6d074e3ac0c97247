"""aumos-authz — Embeddable model-driven authorization engine.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import aumos_authz as authz
>>> authz.__version__
'0.1.0'
>>> enforcer = authz.Enforcer("examples/rbac_model.conf", "examples/rbac_policy.csv")
>>> enforcer.enforce("alice", "data2", "read")
True
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ---------------------------------------------------------------------------
# Enforcers
# ---------------------------------------------------------------------------
from aumos_authz.enforcer import CoreEnforcer, EnforceResult
from aumos_authz.management import Enforcer

# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------
from aumos_authz.model.assertion import Assertion
from aumos_authz.model.loader import ModelLoader
from aumos_authz.model.model import Model

# ---------------------------------------------------------------------------
# Evaluation and effects
# ---------------------------------------------------------------------------
from aumos_authz.effect.effector import Effect, EffectKind, Effector
from aumos_authz.evaluation.evaluator import CompiledExpression, ExpressionEvaluator
from aumos_authz.functions.function_map import FunctionMap, generate_g_function

# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------
from aumos_authz.rbac.role_manager import DefaultRoleManager, RoleManager

# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------
from aumos_authz.persist.adapter import Adapter, FilteredAdapter
from aumos_authz.persist.file_adapter import FileAdapter
from aumos_authz.persist.filtered_adapter import Filter, FilteredFileAdapter
from aumos_authz.persist.watcher import Watcher

# ---------------------------------------------------------------------------
# Audit and configuration
# ---------------------------------------------------------------------------
from aumos_authz.audit.logger import DecisionAuditLog
from aumos_authz.config import AuditConfig, ConfigLoader, EnforcerConfig

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
from aumos_authz.errors import (
    AdapterCapabilityError,
    ArityError,
    AuthzError,
    ConfigurationError,
    EvaluationError,
    ExpressionSyntaxError,
    PolicyShapeError,
    RequestShapeError,
)

__all__ = [
    "__version__",
    # Enforcers
    "CoreEnforcer",
    "EnforceResult",
    "Enforcer",
    # Model
    "Assertion",
    "Model",
    "ModelLoader",
    # Evaluation and effects
    "CompiledExpression",
    "Effect",
    "EffectKind",
    "Effector",
    "ExpressionEvaluator",
    "FunctionMap",
    "generate_g_function",
    # Roles
    "DefaultRoleManager",
    "RoleManager",
    # Persistence
    "Adapter",
    "FileAdapter",
    "Filter",
    "FilteredAdapter",
    "FilteredFileAdapter",
    "Watcher",
    # Audit and configuration
    "AuditConfig",
    "ConfigLoader",
    "DecisionAuditLog",
    "EnforcerConfig",
    # Errors
    "AdapterCapabilityError",
    "ArityError",
    "AuthzError",
    "ConfigurationError",
    "EvaluationError",
    "ExpressionSyntaxError",
    "PolicyShapeError",
    "RequestShapeError",
]
