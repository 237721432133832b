"""onionnet core - configuration, logging and the exception hierarchy."""

from .config import OnionSettings, clear_config_cache, get_config
from .exceptions import (
    ConfigException,
    DecryptionFailure,
    ForwardingFailure,
    InsufficientNodes,
    InvalidJSON,
    InvalidKeyError,
    KeyNotFound,
    OnionNetException,
    RegistrationConflict,
    ValidationException,
)
from .logging import (
    configure_logging,
    correlation_context,
    get_correlation_id,
    node_context,
)

__all__ = [
    # Config
    "OnionSettings",
    "get_config",
    "clear_config_cache",
    # Exceptions
    "OnionNetException",
    "ValidationException",
    "InvalidJSON",
    "ConfigException",
    "RegistrationConflict",
    "KeyNotFound",
    "DecryptionFailure",
    "InsufficientNodes",
    "ForwardingFailure",
    "InvalidKeyError",
    # Logging
    "configure_logging",
    "correlation_context",
    "get_correlation_id",
    "node_context",
]
