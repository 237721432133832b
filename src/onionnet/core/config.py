# SPDX-License-Identifier: MIT
# Copyright (c) 2026 OnionNet Contributors

"""Core configuration - centralized config for the onionnet package.

All environment-based configuration should flow through this module.
This provides a single source of truth for ports, key sizes and logging.

Usage:
    from onionnet.core.config import get_config
    config = get_config()

    registry_url = config.registry_url
    port = config.router_port(3)
"""

from __future__ import annotations

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigException


class OnionSettings(BaseSettings):
    """Configuration settings for the onion routing simulation.

    Settings can be configured via environment variables with the
    ONIONNET_ prefix (e.g. ONIONNET_REGISTRY_PORT=9080).
    """

    model_config = SettingsConfigDict(
        env_prefix="ONIONNET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # ADDRESSING
    # ==========================================================================

    host: str = Field(
        default="localhost",
        description="Host every node binds to and is reached at",
    )
    registry_port: int = Field(
        default=8080,
        description="Well-known port of the registry",
    )
    base_router_port: int = Field(
        default=4000,
        description="Router N listens on base_router_port + N",
    )
    base_user_port: int = Field(
        default=3000,
        description="User N listens on base_user_port + N",
    )

    # ==========================================================================
    # ROUTING / CRYPTO
    # ==========================================================================

    circuit_length: int = Field(
        default=3,
        description="Number of relays in every circuit",
    )
    rsa_key_size: int = Field(
        default=2048,
        description="Modulus size of router RSA keypairs in bits",
    )
    registry_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for registry lookups and registrations",
    )

    # ==========================================================================
    # LOGGING
    # ==========================================================================

    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="auto",
        description="Log format: json, text, or auto",
    )
    log_file: str | None = Field(default=None, description="Optional log file path")

    @field_validator("circuit_length")
    @classmethod
    def _validate_circuit_length(cls, value: int) -> int:
        if value < 1:
            raise ValueError("circuit_length must be at least 1")
        return value

    @field_validator("rsa_key_size")
    @classmethod
    def _validate_key_size(cls, value: int) -> int:
        # OAEP-SHA256 must fit the 64-char exported symmetric key material
        if value < 2048 or value % 8:
            raise ValueError("rsa_key_size must be a multiple of 8 and >= 2048")
        return value

    @property
    def registry_url(self) -> str:
        """Base URL of the registry."""
        return self.url_for_port(self.registry_port)

    def router_port(self, node_id: int) -> int:
        """Port router ``node_id`` listens on."""
        return self.base_router_port + node_id

    def user_port(self, user_id: int) -> int:
        """Port user ``user_id`` listens on."""
        return self.base_user_port + user_id

    def url_for_port(self, port: int) -> str:
        return f"http://{self.host}:{port}"


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: OnionSettings | None = None


def get_config() -> OnionSettings:
    """Get the global configuration instance.

    Returns:
        The singleton OnionSettings instance.

    Raises:
        ConfigException: If an ONIONNET_ variable holds an invalid value.
    """
    global _config
    if _config is None:
        try:
            _config = OnionSettings()
        except ValidationError as e:
            errors = {".".join(str(part) for part in err["loc"]): err["msg"] for err in e.errors()}
            raise ConfigException(f"Invalid onionnet settings: {', '.join(errors)}", errors) from e
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
