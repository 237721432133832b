# SPDX-License-Identifier: MIT
# Copyright (c) 2026 OnionNet Contributors

"""Custom exception hierarchy for onionnet.

Every exception carries a machine-readable ``reason`` and the HTTP status
the node handlers answer with, so failures surface to the immediate caller
as ``{"status": "error", "reason": ...}`` instead of crashing the process.
"""

from __future__ import annotations

from typing import Any


class OnionNetException(Exception):  # noqa: N818
    """Base exception for all onionnet errors."""

    reason: str = "internal_error"
    status: int = 500

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": "error",
            "reason": self.reason,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(OnionNetException):
    """Raised when a request body is missing fields or has bad values."""

    reason = "invalid_request"
    status = 400

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class InvalidJSON(ValidationException):
    """Raised when a request body is not parseable JSON."""

    reason = "invalid_json"


class ConfigException(OnionNetException):
    """Raised when settings are invalid or inconsistent."""

    reason = "config_error"
    status = 500


class RegistrationConflict(OnionNetException):
    """Raised when a node id is registered twice.

    Registrations are never updated in place; the first one wins.
    """

    reason = "registration_conflict"
    status = 409

    def __init__(self, node_id: int):
        super().__init__(f"Node {node_id} is already registered", {"node_id": node_id})
        self.node_id = node_id


class KeyNotFound(OnionNetException):
    """Raised when no key material is stored for a node id."""

    reason = "key_not_found"
    status = 404

    def __init__(self, node_id: int):
        super().__init__(f"No private key stored for node {node_id}", {"node_id": node_id})
        self.node_id = node_id


class DecryptionFailure(OnionNetException):
    """Raised when a frame cannot be peeled.

    Raised when:
    - The frame is too short to hold the asymmetric segment
    - The wrapped key does not decrypt under this router's private key
    - The symmetric segment is corrupt or badly padded
    - The next-hop field is not a zero-padded decimal
    """

    reason = "decryption_failure"
    status = 400


class InsufficientNodes(OnionNetException):
    """Raised when the registry holds fewer nodes than a circuit needs."""

    reason = "insufficient_nodes"
    status = 503

    def __init__(self, available: int, required: int):
        super().__init__(
            f"Cannot build a circuit of {required} nodes from {available} registered",
            {"available": available, "required": required},
        )
        self.available = available
        self.required = required


class ForwardingFailure(OnionNetException):
    """Raised when a downstream hop is unreachable or answers with an error."""

    reason = "forwarding_failure"
    status = 502

    def __init__(self, address: str, detail: str | None = None):
        details: dict[str, Any] = {"address": address}
        if detail:
            details["detail"] = detail
        super().__init__(f"Forwarding to {address} failed", details)
        self.address = address


class InvalidKeyError(OnionNetException):
    """Raised when exported key material cannot be imported."""

    reason = "invalid_key"
    status = 400
