"""
Unit tests for the access policy config loader.

Tests cover:
- Packaged defaults
- Explicit path and environment variable overrides
- Fallbacks for missing or invalid values
- Singleton caching and reload
"""

import pytest

from retail_access.config.access_policy import (
    AccessPolicyLoader,
    CONFIG_ENV_VAR,
    get_access_policy,
)
from retail_access.constants.hierarchy import DepartmentType
from retail_access.platform.errors import ValidationError


@pytest.fixture(autouse=True)
def isolated_policy(reset_access_policy):
    """Every test starts from an unloaded policy."""
    yield


class TestPackagedDefaults:

    def test_defaults(self):
        policy = get_access_policy()
        assert policy.max_traversal_depth == 32
        assert policy.impersonation_grants_all_departments is True
        assert policy.go_position_title == "General Operator"
        assert policy.store_manager_position_title == "Store Manager"
        assert policy.store_manager_department == DepartmentType.ADMINISTRATIVE

    def test_singleton(self):
        assert get_access_policy() is get_access_policy()


class TestOverrides:

    def test_explicit_path(self, make_yaml_config):
        path = make_yaml_config("policy.yml", {"max_traversal_depth": 4})
        assert get_access_policy(str(path)).max_traversal_depth == 4

    def test_environment_variable(self, make_yaml_config, monkeypatch):
        path = make_yaml_config("policy.yml", {
            "impersonation_grants_all_departments": False,
            "go_position": {"title": "Head of Operations"},
        })
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        policy = get_access_policy()
        assert policy.impersonation_grants_all_departments is False
        assert policy.go_position_title == "Head of Operations"

    def test_missing_override_falls_back_to_packaged_file(self, temp_config_dir, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(temp_config_dir / "missing.yml"))
        assert get_access_policy().max_traversal_depth == 32

    def test_reload_picks_up_changes(self, make_yaml_config):
        path = make_yaml_config("policy.yml", {"max_traversal_depth": 4})
        policy = get_access_policy(str(path))
        make_yaml_config("policy.yml", {"max_traversal_depth": 8})
        policy.reload()
        assert policy.max_traversal_depth == 8


class TestFallbacks:

    def test_empty_file_uses_defaults(self, temp_config_dir):
        path = temp_config_dir / "empty.yml"
        path.write_text("")
        policy = get_access_policy(str(path))
        assert policy.max_traversal_depth == 32
        assert policy.impersonation_grants_all_departments is True

    @pytest.mark.parametrize("depth", [0, -5])
    def test_non_positive_depth_uses_default(self, make_yaml_config, depth):
        path = make_yaml_config("policy.yml", {"max_traversal_depth": depth})
        assert get_access_policy(str(path)).max_traversal_depth == 32

    def test_unknown_department_fails_at_load(self, make_yaml_config):
        path = make_yaml_config("policy.yml", {"store_manager_position": {"department": "legal"}})
        with pytest.raises(ValidationError):
            AccessPolicyLoader(str(path))

    def test_graph_uses_configured_depth(self, make_yaml_config, monkeypatch):
        from retail_access.tests.helpers.graphs import madnezz_graph

        path = make_yaml_config("policy.yml", {"max_traversal_depth": 2})
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert madnezz_graph().max_depth == 2
