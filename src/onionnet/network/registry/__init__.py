"""
onionnet Registry - The directory of routers and their public keys.

Public API:
    - NodeRecord: Data model for a registered node
    - NodeRegistry: In-memory repository of records
    - RegistryNode: HTTP server exposing the repository
    - RegistryClient: HTTP client used by routers and users
    - launch_registry: Convenience function

Example:
    from onionnet.network.registry import launch_registry

    registry = await launch_registry()
"""

from onionnet.network.registry.client import RegistryClient
from onionnet.network.registry.records import NodeRecord
from onionnet.network.registry.registry_node import RegistryNode, launch_registry
from onionnet.network.registry.store import NodeRegistry

__all__ = [
    "NodeRecord",
    "NodeRegistry",
    "RegistryClient",
    "RegistryNode",
    "launch_registry",
]
