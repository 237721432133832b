"""Tests for onionnet.core.config - OnionSettings and global config management.

Tests cover:
- Settings loading with defaults
- Environment variable overrides
- Validation of circuit length and key size
- Singleton behavior (get_config / clear_config_cache)
- Address helpers (registry_url, router_port, user_port)
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from onionnet.core.config import (
    OnionSettings,
    clear_config_cache,
    get_config,
)
from onionnet.core.exceptions import ConfigException

# ============================================================================
# OnionSettings - Default Values
# ============================================================================


class TestOnionSettingsDefaults:
    """Test that OnionSettings loads with correct default values."""

    def test_addressing_defaults(self, clean_env):
        """Well-known ports match the reference layout."""
        settings = OnionSettings()

        assert settings.host == "localhost"
        assert settings.registry_port == 8080
        assert settings.base_router_port == 4000
        assert settings.base_user_port == 3000

    def test_routing_defaults(self, clean_env):
        settings = OnionSettings()

        assert settings.circuit_length == 3
        assert settings.rsa_key_size == 2048
        assert settings.registry_timeout_seconds == 10.0

    def test_logging_defaults(self, clean_env):
        """Test logging settings have correct defaults."""
        settings = OnionSettings()

        assert settings.log_level == "INFO"
        assert settings.log_format == "auto"
        assert settings.log_file is None


# ============================================================================
# OnionSettings - Environment Variable Overrides
# ============================================================================


class TestOnionSettingsEnvOverrides:
    """Test that environment variables properly override settings."""

    def test_port_env_overrides(self, monkeypatch, clean_env):
        monkeypatch.setenv("ONIONNET_HOST", "127.0.0.1")
        monkeypatch.setenv("ONIONNET_REGISTRY_PORT", "9080")
        monkeypatch.setenv("ONIONNET_BASE_ROUTER_PORT", "5000")
        monkeypatch.setenv("ONIONNET_BASE_USER_PORT", "6000")

        settings = OnionSettings()

        assert settings.host == "127.0.0.1"
        assert settings.registry_port == 9080
        assert settings.base_router_port == 5000
        assert settings.base_user_port == 6000

    def test_routing_env_overrides(self, monkeypatch, clean_env):
        monkeypatch.setenv("ONIONNET_CIRCUIT_LENGTH", "5")
        monkeypatch.setenv("ONIONNET_RSA_KEY_SIZE", "3072")
        monkeypatch.setenv("ONIONNET_REGISTRY_TIMEOUT_SECONDS", "2.5")

        settings = OnionSettings()

        assert settings.circuit_length == 5
        assert settings.rsa_key_size == 3072
        assert settings.registry_timeout_seconds == 2.5

    def test_logging_env_overrides(self, monkeypatch, clean_env):
        """Test logging settings from env vars."""
        monkeypatch.setenv("ONIONNET_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("ONIONNET_LOG_FORMAT", "json")
        monkeypatch.setenv("ONIONNET_LOG_FILE", "/tmp/onionnet.log")

        settings = OnionSettings()

        assert settings.log_level == "DEBUG"
        assert settings.log_format == "json"
        assert settings.log_file == "/tmp/onionnet.log"


# ============================================================================
# OnionSettings - Validation
# ============================================================================


class TestOnionSettingsValidation:
    def test_zero_circuit_length_rejected(self, clean_env):
        with pytest.raises(ValidationError):
            OnionSettings(circuit_length=0)

    def test_single_hop_circuit_allowed(self, clean_env):
        assert OnionSettings(circuit_length=1).circuit_length == 1

    def test_small_key_size_rejected(self, clean_env):
        """1024-bit OAEP-SHA256 cannot carry the wrapped symmetric key."""
        with pytest.raises(ValidationError):
            OnionSettings(rsa_key_size=1024)

    def test_odd_key_size_rejected(self, clean_env):
        with pytest.raises(ValidationError):
            OnionSettings(rsa_key_size=2049)


# ============================================================================
# OnionSettings - Address Helpers
# ============================================================================


class TestOnionSettingsAddresses:
    def test_registry_url(self, clean_env):
        settings = OnionSettings()
        assert settings.registry_url == "http://localhost:8080"

    def test_router_port(self, clean_env):
        settings = OnionSettings()
        assert settings.router_port(0) == 4000
        assert settings.router_port(7) == 4007

    def test_user_port(self, clean_env):
        settings = OnionSettings()
        assert settings.user_port(1) == 3001

    def test_url_for_port_uses_host(self, clean_env):
        settings = OnionSettings(host="127.0.0.1")
        assert settings.url_for_port(4002) == "http://127.0.0.1:4002"


# ============================================================================
# Global Config Singleton
# ============================================================================


class TestGetConfig:
    """Tests for the lazily created global settings."""

    def test_returns_same_instance(self, clean_env):
        assert get_config() is get_config()

    def test_clear_cache_creates_new_instance(self, clean_env):
        first = get_config()
        clear_config_cache()
        assert get_config() is not first

    def test_env_read_on_first_use(self, monkeypatch, clean_env):
        monkeypatch.setenv("ONIONNET_REGISTRY_PORT", "9999")
        clear_config_cache()
        assert get_config().registry_port == 9999

    def test_invalid_env_raises_config_exception(self, monkeypatch, clean_env):
        monkeypatch.setenv("ONIONNET_RSA_KEY_SIZE", "1024")
        clear_config_cache()

        with pytest.raises(ConfigException) as exc_info:
            get_config()

        assert exc_info.value.reason == "config_error"
        assert "rsa_key_size" in exc_info.value.details
        assert "rsa_key_size" in exc_info.value.message
