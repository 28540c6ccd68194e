"""
Tests for AbilityGate: registry, argument contracts, capability policy
and dispatch to FileSystemGate.
"""

import pytest

import sitegate.AbilityGate as AbilityGate
from sitegate.AbilityGate import (
    AbilityRegistry,
    CapabilityPolicy,
    PolicyClass,
    apply_defaults,
    validate_args,
)


EXPECTED_ABILITIES = [
    "filesystem/read-file",
    "filesystem/write-file",
    "filesystem/append-file",
    "filesystem/delete-file",
    "filesystem/copy-file",
    "filesystem/move-file",
    "filesystem/list-directory",
    "filesystem/file-info",
    "filesystem/create-directory",
    "filesystem/get-changelog",
    "filesystem/sweep-backups",
]


class TestRegistry:
    """Tests for the ability registry."""

    def test_all_abilities_registered(self):
        assert AbilityGate.list_ability_names() == EXPECTED_ABILITIES

    def test_every_ability_needs_manage_options(self):
        assert all(a.required_capability == "manage_options" for a in AbilityGate.list_abilities())

    def test_policy_filter(self):
        read_only = AbilityGate.list_ability_names({PolicyClass.READ_ONLY})
        assert "filesystem/read-file" in read_only
        assert "filesystem/write-file" not in read_only

    def test_annotations(self):
        read = AbilityGate.get_ability("filesystem/read-file")
        delete = AbilityGate.get_ability("filesystem/delete-file")
        assert read.annotations.readonly and read.annotations.idempotent
        assert delete.annotations.destructive and not delete.annotations.readonly

    def test_json_schema_is_closed(self):
        schema = AbilityGate.get_ability("filesystem/write-file").get_json_schema()
        assert schema["additionalProperties"] is False
        assert schema["required"] == ["path", "content"]
        assert schema["properties"]["backup"]["default"] is True

    def test_to_dict(self):
        data = AbilityGate.get_ability("filesystem/copy-file").to_dict()
        assert data["permission"] == "manage_options"
        assert data["category"] == "site"
        assert data["meta"]["annotations"]["destructive"] is False

    def test_reset(self):
        AbilityGate.initialize()
        AbilityGate.reset()
        assert not AbilityGate.is_initialized()
        assert AbilityRegistry._abilities == {}


class TestArgumentContracts:
    """Tests for validate_args() and apply_defaults()."""

    @pytest.fixture
    def write_ability(self):
        return AbilityGate.get_ability("filesystem/write-file")

    def test_valid(self, write_ability):
        assert validate_args(write_ability, {"path": "a.txt", "content": "x"}) == (True, None)

    def test_missing_required(self, write_ability):
        valid, error = validate_args(write_ability, {"path": "a.txt"})
        assert not valid
        assert error == "Missing required argument: content"

    def test_unknown_argument(self, write_ability):
        valid, error = validate_args(write_ability, {"path": "a.txt", "content": "x", "mode": "w"})
        assert not valid
        assert error == "Unknown argument: mode"

    def test_wrong_type(self, write_ability):
        valid, error = validate_args(write_ability, {"path": "a.txt", "content": "x", "backup": "yes"})
        assert not valid
        assert "must be boolean" in error

    def test_bool_is_not_integer(self):
        ability = AbilityGate.get_ability("filesystem/get-changelog")
        assert validate_args(ability, {"lines": 20}) == (True, None)
        assert not validate_args(ability, {"lines": True})[0]

    def test_not_a_dict(self, write_ability):
        assert not validate_args(write_ability, ["a.txt"])[0]

    def test_defaults_applied(self, write_ability):
        merged = apply_defaults(write_ability, {"path": "a.txt", "content": "x", "context": None})
        assert merged == {"path": "a.txt", "content": "x", "backup": True}


class TestCapabilityPolicy:
    """Tests for CapabilityPolicy."""

    def test_admin_allowed(self, admin_actor):
        ability = AbilityGate.get_ability("filesystem/read-file")
        assert CapabilityPolicy().check(ability, admin_actor) == (True, None)

    def test_subscriber_denied(self, subscriber_actor):
        ability = AbilityGate.get_ability("filesystem/read-file")
        allowed, reason = CapabilityPolicy().check(ability, subscriber_actor)
        assert not allowed
        assert "filesystem/read-file" in reason
        assert "manage_options" in reason

    def test_custom_authorizer(self, subscriber_actor):
        ability = AbilityGate.get_ability("filesystem/read-file")
        policy = CapabilityPolicy(lambda actor, capability: True)
        assert policy.check(ability, subscriber_actor)[0]


class TestExecute:
    """Tests for execute()."""

    def test_unknown_ability(self, gate):
        result = AbilityGate.execute("filesystem/format-disk", {})
        assert result["success"] is False
        assert result["error_kind"] == "invalid_input"

    def test_unknown_argument_rejected(self, gate, site_root):
        result = AbilityGate.execute(
            "filesystem/write-file",
            {"path": "wp-content/x.txt", "content": "x", "mode": "0777"},
        )
        assert result["error_kind"] == "invalid_input"
        assert "Unknown argument: mode" in result["error"]
        assert not (site_root / "wp-content" / "x.txt").exists()

    def test_subscriber_denied_before_validation(self, gate, subscriber_actor):
        """Capability is checked before arguments are looked at."""
        result = AbilityGate.execute("filesystem/write-file", {"bogus": 1}, actor=subscriber_actor)
        assert result["error_kind"] == "access_denied"
        assert "Sorry, you are not allowed" in result["error"]

    def test_write_and_read(self, gate):
        written = AbilityGate.execute(
            "filesystem/write-file",
            {"path": "wp-content/hello.txt", "content": "hello", "context": "greeting"},
        )
        assert written["success"] is True
        assert written["data"] == {"bytes": 5}

        read = AbilityGate.execute("filesystem/read-file", {"path": "wp-content/hello.txt"})
        assert read["data"]["content"] == "hello"

    def test_defaults_reach_operation(self, gate, site_root):
        result = AbilityGate.execute("filesystem/list-directory")
        assert result["success"] is True
        assert result["path"] == str(site_root)

    def test_explicit_actor(self, gate, admin_actor):
        result = AbilityGate.execute("filesystem/file-info", {"path": "readme.txt"}, actor=admin_actor)
        assert result["data"]["size"] == 11

    def test_security_block_reported(self, gate):
        result = AbilityGate.execute(
            "filesystem/write-file",
            {"path": "wp-content/uploads/a.jpg", "content": "<?php phpinfo();"},
        )
        assert result["error_kind"] == "security_blocked"
        assert result["reason"] == "polyglot_php_signature"

    def test_lone_surrogate_content_reported(self, gate, site_root):
        """JSON "\\ud800" decodes to a string that cannot be encoded."""
        result = AbilityGate.execute(
            "filesystem/write-file",
            {"path": "wp-content/x.txt", "content": "a\ud800b"},
        )
        assert result["success"] is False
        assert result["error_kind"] == "invalid_input"
        assert not (site_root / "wp-content" / "x.txt").exists()

    def test_changelog(self, gate):
        AbilityGate.execute("filesystem/write-file", {"path": "wp-content/a.txt", "content": "a"})
        result = AbilityGate.execute("filesystem/get-changelog", {"lines": 5})
        assert result["data"]["lines"] == 5
        assert "WRITE" in result["data"]["log"]

    def test_sweep(self, gate):
        result = AbilityGate.execute("filesystem/sweep-backups")
        assert result["data"]["removed"] == 0

    def test_gate_not_configured(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        result = AbilityGate.execute("filesystem/read-file", {"path": "readme.txt"})
        assert result["error_kind"] == "io_failure"


class TestHealthAndInfo:
    """Tests for health and documentation."""

    def test_health(self, gate):
        AbilityGate.initialize()
        status = AbilityGate.get_health_status()
        assert status["healthy"] is True
        assert status["details"]["ability_count"] == len(EXPECTED_ABILITIES)
        assert AbilityGate.is_healthy()

    def test_not_initialized(self):
        assert not AbilityGate.is_healthy()
        assert AbilityGate.get_dependencies() == ["FileSystemGate"]

    def test_info(self):
        info = AbilityGate.get_info()
        assert set(info["abilities"]) == set(EXPECTED_ABILITIES)
        assert info["abilities"]["filesystem/read-file"]["input_schema"]["required"] == ["path"]
