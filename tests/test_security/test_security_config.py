"""Tests for loading the YAML security config."""

import pytest

from emp_accounts.security.config import load_security_config


def test_bundled_config_loads(security_config):
    assert security_config.policy.elevated_role == "SUPER_ADMIN"
    assert security_config.policy.department_resource == "departments"
    assert "MANAGER" in security_config.model.roles
    assert "accounts:read_own" in security_config.model.roles["EMPLOYEE"].permissions
    assert security_config.auth.bearer_prefix == "Bearer"


def test_is_elevated_is_case_insensitive(security_config):
    assert security_config.is_elevated("super_admin")
    assert not security_config.is_elevated("ADMIN")


def test_role_names_are_upper_cased(tmp_path):
    path = tmp_path / "security.yaml"
    path.write_text(
        "security:\n"
        "  policy:\n"
        "    elevated_role: root\n"
        "  roles:\n"
        "    viewer:\n"
        "      permissions: [accounts:read]\n"
        "  user_types: [internal]\n",
        encoding="utf-8",
    )

    config = load_security_config(path)

    assert config.policy.elevated_role == "ROOT"
    assert list(config.model.roles) == ["VIEWER"]
    assert config.model.user_types == ["INTERNAL"]
    assert config.policy.self_scope_actions == frozenset({"read", "update"})


def test_missing_security_key(tmp_path):
    path = tmp_path / "security.yaml"
    path.write_text("roles: {}\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_security_config(path)

