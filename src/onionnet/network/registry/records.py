"""
Node registry data model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from onionnet.core.exceptions import ValidationException


@dataclass(frozen=True)
class NodeRecord:
    """Record of a registered router node.

    Immutable once created; a node id is never re-registered.
    """

    node_id: int
    public_key: str  # base64 DER SubjectPublicKeyInfo
    private_key: str | None = field(default=None, repr=False)  # debug only

    def to_dict(self) -> dict[str, Any]:
        """Public view for JSON serialization (never includes the private key)."""
        return {"nodeId": self.node_id, "pubKey": self.public_key}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NodeRecord:
        """Create from a registration body or a registry listing entry.

        Accepts both the short (``pubKey``/``prvKey``) and long
        (``publicKey``/``privateKey``) field names.
        """
        raw_id = data.get("nodeId")
        if raw_id is None or isinstance(raw_id, bool):
            raise ValidationException("nodeId is required", field="nodeId")
        try:
            node_id = int(raw_id)
        except (TypeError, ValueError) as e:
            raise ValidationException("nodeId must be an integer", field="nodeId", value=raw_id) from e
        if node_id < 0:
            raise ValidationException("nodeId must be non-negative", field="nodeId", value=raw_id)

        public_key = data.get("pubKey", data.get("publicKey"))
        if not public_key or not isinstance(public_key, str):
            raise ValidationException("pubKey is required", field="pubKey")

        private_key = data.get("prvKey", data.get("privateKey"))
        if private_key is not None and not isinstance(private_key, str):
            raise ValidationException("prvKey must be a string", field="prvKey")

        return cls(node_id=node_id, public_key=public_key, private_key=private_key)
