"""Unit tests for management.py — policy management and RBAC queries."""
from __future__ import annotations

import shutil
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from aumos_authz.config import EnforcerConfig
from aumos_authz.errors import ConfigurationError
from aumos_authz.management import Enforcer
from aumos_authz.persist.filtered_adapter import Filter, FilteredFileAdapter
from aumos_authz.persist.watcher import Watcher


@pytest.fixture()
def policy_path(examples_dir: Path, tmp_path: Path) -> Path:
    path = tmp_path / "rbac_policy.csv"
    shutil.copy(examples_dir / "rbac_policy.csv", path)
    return path


@pytest.fixture()
def enforcer(examples_dir: Path, policy_path: Path) -> Enforcer:
    return Enforcer(examples_dir / "rbac_model.conf", policy_path)


class TestPolicyReads:
    def test_get_policy(self, enforcer: Enforcer) -> None:
        assert ["alice", "data1", "read"] in enforcer.get_policy()
        assert len(enforcer.get_policy()) == 4

    def test_get_grouping_policy(self, enforcer: Enforcer) -> None:
        assert enforcer.get_grouping_policy() == [["alice", "data2_admin"]]

    def test_has_policy(self, enforcer: Enforcer) -> None:
        assert enforcer.has_policy("bob", "data2", "write")
        assert not enforcer.has_policy("bob", "data2", "read")

    def test_has_grouping_policy(self, enforcer: Enforcer) -> None:
        assert enforcer.has_grouping_policy("alice", "data2_admin")

    def test_get_all_subjects(self, enforcer: Enforcer) -> None:
        assert enforcer.get_all_subjects() == ["alice", "bob", "data2_admin"]

    def test_get_all_roles(self, enforcer: Enforcer) -> None:
        assert enforcer.get_all_roles() == ["data2_admin"]


class TestPolicyWrites:
    def test_add_policy(self, enforcer: Enforcer) -> None:
        assert not enforcer.enforce("carol", "data3", "read")
        assert enforcer.add_policy("carol", "data3", "read")
        assert enforcer.enforce("carol", "data3", "read")

    def test_add_existing_policy(self, enforcer: Enforcer) -> None:
        assert not enforcer.add_policy("alice", "data1", "read")

    def test_remove_policy(self, enforcer: Enforcer) -> None:
        assert enforcer.remove_policy("alice", "data1", "read")
        assert not enforcer.enforce("alice", "data1", "read")
        assert not enforcer.remove_policy("alice", "data1", "read")

    def test_remove_filtered_policy(self, enforcer: Enforcer) -> None:
        assert enforcer.remove_filtered_policy(1, "data2")
        assert enforcer.get_policy() == [["alice", "data1", "read"]]

    def test_auto_save_writes_file(self, enforcer: Enforcer, policy_path: Path) -> None:
        enforcer.add_policy("carol", "data3", "read")
        assert "p, carol, data3, read" in policy_path.read_text(encoding="utf-8")

    def test_auto_save_disabled(self, enforcer: Enforcer, policy_path: Path) -> None:
        enforcer.enable_auto_save(False)
        enforcer.add_policy("carol", "data3", "read")
        assert "carol" not in policy_path.read_text(encoding="utf-8")

    def test_auto_save_from_config(self, examples_dir: Path, policy_path: Path) -> None:
        config = EnforcerConfig(auto_save=False)
        enforcer = Enforcer(examples_dir / "rbac_model.conf", policy_path, config=config)
        enforcer.add_policy("carol", "data3", "read")
        assert "carol" not in policy_path.read_text(encoding="utf-8")

    def test_auto_save_notifies_watcher(self, enforcer: Enforcer) -> None:
        watcher = MagicMock(spec=Watcher)
        enforcer.set_watcher(watcher)
        enforcer.add_policy("carol", "data3", "read")
        watcher.update.assert_called_once_with()

    def test_unchanged_policy_does_not_notify(self, enforcer: Enforcer) -> None:
        watcher = MagicMock(spec=Watcher)
        enforcer.set_watcher(watcher)
        enforcer.add_policy("alice", "data1", "read")
        watcher.update.assert_not_called()

    def test_no_auto_save_when_filtered(self, examples_dir: Path, tmp_path: Path) -> None:
        path = tmp_path / "policy.csv"
        shutil.copy(examples_dir / "rbac_with_domains_policy.csv", path)
        original = path.read_text(encoding="utf-8")
        enforcer = Enforcer(examples_dir / "rbac_with_domains_model.conf", FilteredFileAdapter(path))
        enforcer.load_filtered_policy(Filter(p=["", "domain1"]))
        assert enforcer.add_policy("carol", "domain1", "data1", "read")
        assert path.read_text(encoding="utf-8") == original


class TestGroupingWrites:
    def test_add_grouping_policy_updates_roles(self, enforcer: Enforcer) -> None:
        assert not enforcer.enforce("bob", "data2", "read")
        assert enforcer.add_grouping_policy("bob", "data2_admin")
        assert enforcer.enforce("bob", "data2", "read")
        assert enforcer.has_role_for_user("bob", "data2_admin")

    def test_remove_grouping_policy_updates_roles(self, enforcer: Enforcer) -> None:
        assert enforcer.remove_grouping_policy("alice", "data2_admin")
        assert not enforcer.enforce("alice", "data2", "read")
        assert enforcer.get_roles_for_user("alice") == []

    def test_short_grouping_rule_rejected(self, enforcer: Enforcer) -> None:
        with pytest.raises(ConfigurationError, match="shorter than role definition"):
            enforcer.add_grouping_policy("bob")
        assert enforcer.get_grouping_policy() == [["alice", "data2_admin"]]

    def test_add_role_for_user(self, enforcer: Enforcer, policy_path: Path) -> None:
        enforcer.add_role_for_user("bob", "data2_admin")
        assert "g, bob, data2_admin" in policy_path.read_text(encoding="utf-8")

    def test_delete_role_for_user(self, enforcer: Enforcer) -> None:
        assert enforcer.delete_role_for_user("alice", "data2_admin")
        assert not enforcer.has_role_for_user("alice", "data2_admin")


class TestRbacQueries:
    def test_get_roles_for_user(self, enforcer: Enforcer) -> None:
        assert enforcer.get_roles_for_user("alice") == ["data2_admin"]

    def test_get_users_for_role(self, enforcer: Enforcer) -> None:
        assert enforcer.get_users_for_role("data2_admin") == ["alice"]

    def test_has_role_for_user(self, enforcer: Enforcer) -> None:
        assert enforcer.has_role_for_user("alice", "data2_admin")
        assert not enforcer.has_role_for_user("bob", "data2_admin")

    def test_get_permissions_for_user(self, enforcer: Enforcer) -> None:
        assert enforcer.get_permissions_for_user("data2_admin") == [
            ["data2_admin", "data2", "read"],
            ["data2_admin", "data2", "write"],
        ]

    def test_roles_in_domain(self, examples_dir: Path) -> None:
        enforcer = Enforcer(
            examples_dir / "rbac_with_domains_model.conf",
            examples_dir / "rbac_with_domains_policy.csv",
        )
        assert enforcer.get_roles_for_user("alice", "domain1") == ["admin"]
        assert enforcer.get_roles_for_user("alice", "domain2") == []

    def test_model_without_roles(self, examples_dir: Path) -> None:
        enforcer = Enforcer(examples_dir / "basic_model.conf", examples_dir / "basic_policy.csv")
        with pytest.raises(ConfigurationError, match="no role definition"):
            enforcer.get_roles_for_user("alice")


class TestPriorityWrites:
    @pytest.fixture()
    def enforcer(self, examples_dir: Path, tmp_path: Path) -> Enforcer:
        path = tmp_path / "explicit_priority_policy.csv"
        shutil.copy(examples_dir / "explicit_priority_policy.csv", path)
        return Enforcer(examples_dir / "explicit_priority_model.conf", path)

    def test_added_row_takes_its_priority_place(self, enforcer: Enforcer) -> None:
        assert enforcer.enforce("alice", "data1", "write")
        assert enforcer.add_policy("0", "alice", "data1", "write", "deny")
        assert enforcer.get_policy()[0] == ["0", "alice", "data1", "write", "deny"]
        assert not enforcer.enforce("alice", "data1", "write")

    def test_non_integer_priority_is_not_kept(self, enforcer: Enforcer) -> None:
        before = enforcer.get_policy()
        with pytest.raises(ConfigurationError, match="non-integer priority"):
            enforcer.add_policy("high", "alice", "data1", "write", "deny")
        assert enforcer.get_policy() == before
