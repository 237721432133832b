"""
onionnet Network - Onion-routed relay overlay.

Messages are wrapped in one hybrid RSA/AES layer per relay so that each
router learns only its predecessor and successor.
"""

from onionnet.network.circuit import Circuit, build_circuit
from onionnet.network.frame import NEXT_HOP_WIDTH, OnionFrame
from onionnet.network.launch import Network, launch_network
from onionnet.network.onion import PeeledLayer, build_onion, encrypt_layer, peel_layer
from onionnet.network.registry import (
    NodeRecord,
    NodeRegistry,
    RegistryClient,
    RegistryNode,
    launch_registry,
)
from onionnet.network.router import RelayEvent, RelayState, RouterNode, launch_onion_routers
from onionnet.network.user import UserLog, UserNode, launch_users

__all__ = [
    # Registry
    "NodeRecord",
    "NodeRegistry",
    "RegistryClient",
    "RegistryNode",
    "launch_registry",
    # Onion encryption
    "NEXT_HOP_WIDTH",
    "OnionFrame",
    "PeeledLayer",
    "build_onion",
    "encrypt_layer",
    "peel_layer",
    # Circuits
    "Circuit",
    "build_circuit",
    # Nodes
    "RelayEvent",
    "RelayState",
    "RouterNode",
    "launch_onion_routers",
    "UserLog",
    "UserNode",
    "launch_users",
    # Bootstrap
    "Network",
    "launch_network",
]
