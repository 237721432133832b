"""
In-memory node directory.

The directory is the only shared mutable state in the overlay. It lives
for the lifetime of one registry process: created at startup, cleared at
shutdown, never persisted. Membership only grows while it is open.
"""

from __future__ import annotations

import logging
import threading

from onionnet.core.exceptions import KeyNotFound, RegistrationConflict
from onionnet.network.registry.records import NodeRecord

logger = logging.getLogger(__name__)


class NodeRegistry:
    """Repository of registered nodes keyed by node id.

    aiohttp handlers run on a single event loop, but every access still
    goes through a lock so the registry can be shared with worker threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._nodes: dict[int, NodeRecord] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        with self._lock:
            return node_id in self._nodes

    def register_node(
        self,
        node_id: int,
        public_key: str,
        private_key: str | None = None,
    ) -> NodeRecord:
        """Add a node.

        Raises:
            RegistrationConflict: If ``node_id`` is already registered.
        """
        return self.add(NodeRecord(node_id=node_id, public_key=public_key, private_key=private_key))

    def add(self, record: NodeRecord) -> NodeRecord:
        with self._lock:
            if record.node_id in self._nodes:
                raise RegistrationConflict(record.node_id)
            self._nodes[record.node_id] = record
        logger.info(f"Node {record.node_id} registered ({len(self)} total)")
        return record

    def get_node_registry(self) -> list[NodeRecord]:
        """Snapshot of all records in registration order."""
        with self._lock:
            return list(self._nodes.values())

    def get_private_key(self, node_id: int) -> str:
        """Debug-only lookup of a node's private key.

        Raises:
            KeyNotFound: If the node is unknown or registered without one.
        """
        with self._lock:
            record = self._nodes.get(node_id)
        if record is None or record.private_key is None:
            raise KeyNotFound(node_id)
        return record.private_key

    def clear(self) -> None:
        """Drop every record; called when the registry process shuts down."""
        with self._lock:
            self._nodes.clear()
