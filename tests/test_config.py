"""Tests for RotationConfig and SystemPaths."""
from pathlib import Path

import pytest
from pydantic import ValidationError

from session_ticket_keys.exceptions import ConfigurationError
from session_ticket_keys.rotation import KeySlot, RotationConfig, SystemPaths


class TestRotationConfig:
    """Validation and defaults."""

    def test_defaults(self):
        """Test values inherited from the shell installer."""
        config = RotationConfig(servers=["web1"])
        assert config.generations == 3
        assert config.key_length == 48
        assert config.storage_root == Path("/mnt/session_ticket_keys")
        assert config.rotation_schedule == "0 0,12 * * *"
        assert config.reload_schedule == "30 0,12 * * *"
        assert config.server_min_version == "1.5.7"
        assert config.effective_lock_path == Path("/mnt/session_ticket_keys/.rotation.lock")

    def test_slot_paths(self):
        """Test the {root}/{server}.{generation}.key convention."""
        config = RotationConfig(servers=["example.com"], storage_root="/keys")
        assert [str(config.slot_path(s)) for s in config.slots("example.com")] == [
            "/keys/example.com.1.key",
            "/keys/example.com.2.key",
            "/keys/example.com.3.key",
        ]
        assert KeySlot("example.com", 2).older() == KeySlot("example.com", 3)

    def test_immutable(self):
        """Test configuration cannot change during a cycle."""
        config = RotationConfig(servers=["web1"])
        with pytest.raises(ValidationError):
            config.generations = 5

    @pytest.mark.parametrize(
        "values",
        [
            {"servers": []},
            {"servers": ["../etc"]},
            {"servers": [".hidden"]},
            {"servers": ["a/b"]},
            {"servers": ["web1", "web1"]},
            {"servers": ["web1"], "generations": 0},
            {"servers": ["web1"], "key_length": 32},
            {"servers": ["web1"], "random_device": "/dev/random"},
            {"servers": ["web1"], "rotation_schedule": "hourly"},
            {"servers": ["web1"], "reload_schedule": "0 0,12 * * *"},
            {"servers": ["web1"], "server_min_version": "latest"},
        ],
    )
    def test_invalid(self, values):
        """Test invalid values are reported as ConfigurationError."""
        with pytest.raises(ConfigurationError):
            RotationConfig.build(**values)


class TestFromEnv:
    """Loading from TICKET_KEYS_* variables."""

    def test_from_env(self):
        environ = {
            "TICKET_KEYS_SERVERS": "web1, web2",
            "TICKET_KEYS_GENERATIONS": "4",
            "TICKET_KEYS_PATH": "/run/keys",
            "TICKET_KEYS_LENGTH": "80",
            "UNRELATED": "x",
        }
        config = RotationConfig.from_env(environ)
        assert config.servers == ("web1", "web2")
        assert config.generations == 4
        assert config.key_length == 80
        assert config.storage_root == Path("/run/keys")

    def test_servers_required(self):
        """Test a missing server list is fatal."""
        with pytest.raises(ConfigurationError, match="TICKET_KEYS_SERVERS"):
            RotationConfig.from_env({})

    def test_blank_values_use_defaults(self):
        config = RotationConfig.from_env(
            {"TICKET_KEYS_SERVERS": "web1", "TICKET_KEYS_GENERATIONS": " "}
        )
        assert config.generations == 3

    def test_invalid_value(self):
        with pytest.raises(ConfigurationError, match="generations"):
            RotationConfig.from_env(
                {"TICKET_KEYS_SERVERS": "web1", "TICKET_KEYS_GENERATIONS": "three"}
            )

    def test_system_paths_follow_storage_root(self):
        paths = SystemPaths.from_env({"TICKET_KEYS_PATH": "/run/keys"})
        assert paths.mount_point == Path("/run/keys")
        assert paths.init_name == "session_ticket_keys"
