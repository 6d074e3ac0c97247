"""Enforcer configuration loader with Pydantic v2 validation.

Loads and validates an ``authz.yaml`` file into a typed
:class:`EnforcerConfig`.  Unknown keys are allowed so newer config files
keep loading on older releases.

Example ``authz.yaml``::

    model_path: ./model.conf
    policy_path: ./policy.csv
    max_hierarchy_level: 10
    log_decisions: true
    audit:
      enabled: true
      log_path: ./authz_audit.jsonl

Example
-------
>>> loader = ConfigLoader()
>>> config = loader.load(Path("authz.yaml"))
>>> config.max_hierarchy_level
10
"""
from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator


class AuditConfig(BaseModel):
    """Configuration for the decision audit trail."""

    model_config = {"extra": "allow"}

    enabled: bool = Field(default=False)
    log_path: Path = Field(default=Path("./authz_audit.jsonl"))


class EnforcerConfig(BaseModel):
    """Top-level enforcer configuration schema.

    All fields are optional.  ``model_path`` is required only when the
    enforcer is built with :meth:`CoreEnforcer.from_config`.
    """

    model_config = {"extra": "allow", "protected_namespaces": ()}

    model_path: Path | None = Field(default=None)
    policy_path: Path | None = Field(default=None)
    enabled: bool = Field(default=True)
    auto_build_role_links: bool = Field(default=True)
    auto_save: bool = Field(default=True)
    max_hierarchy_level: int = Field(default=10, ge=1)
    log_decisions: bool = Field(default=True)
    audit: AuditConfig = Field(default_factory=AuditConfig)

    @field_validator("model_path", "policy_path")
    @classmethod
    def validate_file_path(cls, value: Path | None) -> Path | None:
        if value is not None and not value.name:
            raise ValueError("Path must name a file")
        return value


class ConfigLoader:
    """Loads and validates enforcer YAML configuration."""

    def load(self, config_path: Path) -> EnforcerConfig:
        """Load and validate a YAML config file.

        Raises
        ------
        FileNotFoundError:
            When the config file does not exist.
        ValueError:
            When the YAML content fails Pydantic validation.
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Enforcer config not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as fh:
            raw: dict[str, object] = yaml.safe_load(fh) or {}

        return EnforcerConfig.model_validate(raw)

    def load_string(self, yaml_content: str) -> EnforcerConfig:
        """Load and validate a YAML string directly."""
        raw: dict[str, object] = yaml.safe_load(yaml_content) or {}
        return EnforcerConfig.model_validate(raw)

    def defaults(self) -> EnforcerConfig:
        """Return a configuration with every default applied."""
        return EnforcerConfig()
