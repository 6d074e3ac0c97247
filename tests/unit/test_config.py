"""Unit tests for config.py — EnforcerConfig and ConfigLoader."""
from __future__ import annotations

import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from aumos_authz.config import AuditConfig, ConfigLoader, EnforcerConfig


@pytest.fixture()
def loader() -> ConfigLoader:
    return ConfigLoader()


class TestEnforcerConfig:
    def test_defaults(self) -> None:
        config = EnforcerConfig()
        assert config.model_path is None
        assert config.enabled is True
        assert config.auto_build_role_links is True
        assert config.auto_save is True
        assert config.max_hierarchy_level == 10
        assert config.log_decisions is True
        assert config.audit == AuditConfig()

    def test_max_hierarchy_level_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            EnforcerConfig(max_hierarchy_level=0)

    def test_path_must_name_a_file(self) -> None:
        with pytest.raises(ValidationError):
            EnforcerConfig(model_path=Path(""))

    def test_extra_keys_allowed(self) -> None:
        config = EnforcerConfig.model_validate({"future_option": 1})
        assert config.model_extra == {"future_option": 1}


class TestConfigLoader:
    def test_load_string(self, loader: ConfigLoader) -> None:
        config = loader.load_string(
            textwrap.dedent(
                """\
                model_path: ./model.conf
                policy_path: ./policy.csv
                max_hierarchy_level: 4
                audit:
                  enabled: true
                  log_path: ./audit.jsonl
                """
            )
        )
        assert config.model_path == Path("model.conf")
        assert config.max_hierarchy_level == 4
        assert config.audit.enabled is True
        assert config.audit.log_path == Path("audit.jsonl")

    def test_empty_string_gives_defaults(self, loader: ConfigLoader) -> None:
        assert loader.load_string("") == EnforcerConfig()

    def test_load_file(self, loader: ConfigLoader, tmp_path: Path) -> None:
        path = tmp_path / "authz.yaml"
        path.write_text("enabled: false\n", encoding="utf-8")
        assert loader.load(path).enabled is False

    def test_missing_file(self, loader: ConfigLoader, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            loader.load(tmp_path / "missing.yaml")

    def test_invalid_value(self, loader: ConfigLoader) -> None:
        with pytest.raises(ValueError):
            loader.load_string("max_hierarchy_level: -1\n")

    def test_bundled_example(self, loader: ConfigLoader, examples_dir: Path) -> None:
        config = loader.load(examples_dir / "authz.yaml")
        assert config.model_path == Path("rbac_model.conf")

    def test_defaults(self, loader: ConfigLoader) -> None:
        assert loader.defaults() == EnforcerConfig()
