"""
Bring up a complete local overlay: one registry, N routers, M users.

Example:
    network = await launch_network(n_routers=5, n_users=2)
    await network.users[0].send_message("hello", 1)
    await network.stop()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from onionnet.core.config import OnionSettings, get_config
from onionnet.core.exceptions import OnionNetException
from onionnet.network.registry import RegistryNode, launch_registry
from onionnet.network.router import RouterNode, launch_onion_routers
from onionnet.network.user import UserNode, launch_users

logger = logging.getLogger(__name__)


@dataclass
class Network:
    """Handle on every node of a running local overlay."""

    registry: RegistryNode
    routers: list[RouterNode] = field(default_factory=list)
    users: list[UserNode] = field(default_factory=list)

    def router(self, node_id: int) -> RouterNode:
        for router in self.routers:
            if router.node_id == node_id:
                return router
        raise KeyError(node_id)

    def user(self, user_id: int) -> UserNode:
        for user in self.users:
            if user.user_id == user_id:
                return user
        raise KeyError(user_id)

    async def stop(self) -> None:
        """Stop users, then routers, then the registry."""
        for user in self.users:
            await user.stop()
        for router in self.routers:
            await router.stop()
        await self.registry.stop()
        logger.info("Network stopped")

    async def run_forever(self) -> None:
        """Keep the network up until cancelled."""
        try:
            while self.registry.is_running:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()


async def launch_network(
    n_routers: int,
    n_users: int,
    config: OnionSettings | None = None,
) -> Network:
    """Start a registry, ``n_routers`` routers and ``n_users`` users.

    Routers are registered before this returns, so the first send sees
    the full membership.
    """
    config = config or get_config()
    network = Network(registry=await launch_registry(config))
    try:
        network.routers = await launch_onion_routers(n_routers, config)
        network.users = await launch_users(n_users, config)
    except (OnionNetException, OSError):
        await network.stop()
        raise

    logger.info(f"Network up: {n_routers} routers, {n_users} users, registry on port {config.registry_port}")
    return network
