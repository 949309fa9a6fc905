"""
Tests for access policy construction and YAML loading.
"""
from pathlib import Path

import pytest
import yaml

from config.access_policy import (
    AccessPolicy,
    FieldRestriction,
    PolicyLimits,
    default_access_policy,
    load_access_policy,
)

EXAMPLE_POLICY = Path(__file__).resolve().parent.parent / "access_policy.example.yaml"


def write_policy(tmp_path, content: str) -> str:
    path = tmp_path / "policy.yaml"
    path.write_text(content, encoding="utf-8")
    return str(path)


class TestDefaultPolicy:

    def test_bundled_tables(self):
        policy = default_access_policy()

        assert "clients" in policy.allowed_tables
        assert "users" in policy.restricted_tables
        assert policy.is_forbidden("audit_log")
        assert not policy.is_forbidden("payrolls")
        assert "password_hash" in policy.restriction_for("users").forbidden
        assert policy.restriction_for("clients") is None

    def test_default_limits(self):
        limits = default_access_policy().limits

        assert (limits.max_depth, limits.max_complexity, limits.max_field_count) == (6, 100, 50)

    def test_policy_is_immutable(self):
        policy = default_access_policy()

        with pytest.raises(AttributeError):
            policy.allowed_tables = frozenset()
        with pytest.raises(TypeError):
            policy.field_restrictions["clients"] = FieldRestriction()


class TestPolicyValidation:

    def test_forbidden_and_allowed_overlap(self):
        with pytest.raises(ValueError, match="both forbidden and accessible"):
            AccessPolicy(
                allowed_tables=frozenset({"clients"}),
                restricted_tables=frozenset(),
                forbidden_tables=frozenset({"clients"}),
            )

    def test_restriction_for_unknown_table(self):
        with pytest.raises(ValueError, match="unknown tables"):
            AccessPolicy(
                allowed_tables=frozenset({"clients"}),
                restricted_tables=frozenset(),
                forbidden_tables=frozenset(),
                field_restrictions={"ghosts": FieldRestriction()},
            )

    def test_field_both_allowed_and_forbidden(self):
        with pytest.raises(ValueError):
            FieldRestriction(forbidden=frozenset({"email"}), allowed=frozenset({"email"}))

    @pytest.mark.parametrize("kwargs", [
        {"max_depth": 0},
        {"max_complexity": -1},
        {"max_field_count": 0},
    ])
    def test_limits_must_be_positive(self, kwargs):
        with pytest.raises(ValueError):
            PolicyLimits(**kwargs)


class TestLoadAccessPolicy:

    def test_load_example_file(self):
        policy = load_access_policy(str(EXAMPLE_POLICY))

        assert "clients" in policy.allowed_tables
        assert policy.is_forbidden("roles")
        assert "clerk_id" in policy.restriction_for("users").forbidden
        assert policy.limits.max_depth == 6

    def test_limits_override(self, tmp_path):
        path = write_policy(tmp_path, """
tables:
  allowed: [clients]
limits:
  max_depth: 3
""")
        policy = load_access_policy(path)

        assert policy.limits.max_depth == 3
        assert policy.limits.max_field_count == 50
        assert policy.restricted_tables == frozenset()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_access_policy(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = write_policy(tmp_path, "tables: [unclosed")

        with pytest.raises(yaml.YAMLError):
            load_access_policy(path)

    def test_empty_file(self, tmp_path):
        with pytest.raises(ValueError, match="empty"):
            load_access_policy(write_policy(tmp_path, ""))

    @pytest.mark.parametrize("content,message", [
        ("tables: {allowed: [clients]}\nextras: 1\n", "Unknown policy keys"),
        ("tables: {allowed: [clients], hidden: [x]}\n", "Unknown tables keys"),
        ("tables: {allowed: clients}\n", "must be a list"),
        ("tables: {allowed: [users]}\nfield_restrictions: {users: {blocked: [x]}}\n", "Unknown keys"),
        ("tables: {allowed: [clients]}\nlimits: {max_depth: deep}\n", "must be a number"),
        ("tables: {allowed: [clients]}\nlimits: {max_rows: 5}\n", "Unknown keys in limits"),
        ("field_restrictions: {}\n", "Missing required 'tables'"),
    ])
    def test_strict_validation(self, tmp_path, content, message):
        with pytest.raises(ValueError, match=message):
            load_access_policy(write_policy(tmp_path, content))
