"""
Registry Node - The directory of onion routers.

The registry maps each router's integer node id to its RSA public key so
users can build circuits. It is the only shared mutable state in the
overlay and lives purely in memory.

Protocol:
- POST /registerNode - Register a router {nodeId, pubKey[, prvKey]}
- GET /getNodeRegistry - List {nodes: [{nodeId, pubKey}, ...]}
- GET /getPrivateKey/{nodeId} - Debug-only private key lookup
- GET /status - Liveness ("live")

Security:
- None. Private keys are accepted and served back for test
  instrumentation; never run this outside a local simulation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from aiohttp import web

from onionnet.core.config import OnionSettings, get_config
from onionnet.core.exceptions import InvalidKeyError, OnionNetException, ValidationException
from onionnet.crypto.keys import DEFAULT_RSA_KEY_SIZE, AsymmetricPublicKey
from onionnet.network.http import create_app, error_response, handle_status, read_json
from onionnet.network.registry.records import NodeRecord
from onionnet.network.registry.store import NodeRegistry

logger = logging.getLogger(__name__)


@dataclass
class RegistryNode:
    """HTTP front-end for a :class:`NodeRegistry`."""

    config: OnionSettings = field(default_factory=get_config)
    registry: NodeRegistry = field(default_factory=NodeRegistry)

    # Runtime state
    _app: web.Application | None = field(default=None, repr=False)
    _runner: web.AppRunner | None = field(default=None, repr=False)
    _site: web.TCPSite | None = field(default=None, repr=False)
    _running: bool = field(default=False, repr=False)

    @property
    def port(self) -> int:
        return self.config.registry_port

    @property
    def is_running(self) -> bool:
        return self._running

    # -------------------------------------------------------------------------
    # HTTP HANDLERS
    # -------------------------------------------------------------------------

    async def handle_register_node(self, request: web.Request) -> web.Response:
        """
        Register a router.

        POST /registerNode
        {
            "nodeId": 3,
            "pubKey": "<base64 DER SPKI>",
            "prvKey": "<base64 DER PKCS#8>"   (optional, debug only)
        }

        Response:
        {"nodeId": 3, "pubKey": "..."}

        Duplicate node ids are rejected with 409 registration_conflict; a
        pubKey that is not an RSA public key of at least 2048 bits is
        rejected with 400 invalid_key so it never reaches a circuit.
        """
        try:
            data = await read_json(request)
            record = NodeRecord.from_dict(data)
            public_key = AsymmetricPublicKey.from_exported(record.public_key)
            if public_key.key_size < DEFAULT_RSA_KEY_SIZE:
                raise InvalidKeyError(f"RSA public key must be at least {DEFAULT_RSA_KEY_SIZE} bits")
            record = self.registry.add(record)
        except OnionNetException as e:
            logger.warning(f"Registration rejected: {e.reason} ({e.message})")
            return error_response(e)

        return web.json_response(record.to_dict())

    async def handle_get_node_registry(self, request: web.Request) -> web.Response:
        """
        List registered nodes.

        GET /getNodeRegistry

        Response:
        {"nodes": [{"nodeId": 0, "pubKey": "..."}, ...]}
        """
        nodes = [record.to_dict() for record in self.registry.get_node_registry()]
        return web.json_response({"nodes": nodes})

    async def handle_get_private_key(self, request: web.Request) -> web.Response:
        """
        Debug-only private key lookup.

        GET /getPrivateKey/{nodeId}

        Response:
        {"nodeId": 3, "prvKey": "..."}
        """
        raw_id = request.match_info.get("nodeId", "")
        try:
            try:
                node_id = int(raw_id)
            except ValueError as e:
                raise ValidationException("nodeId must be an integer", field="nodeId", value=raw_id) from e
            private_key = self.registry.get_private_key(node_id)
        except OnionNetException as e:
            return error_response(e)

        return web.json_response({"nodeId": node_id, "prvKey": private_key})

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    def _create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = create_app("registry")

        app.router.add_post("/registerNode", self.handle_register_node)
        app.router.add_get("/getNodeRegistry", self.handle_get_node_registry)
        app.router.add_get("/getPrivateKey/{nodeId}", self.handle_get_private_key)

        app.router.add_get("/status", handle_status)

        return app

    async def start(self) -> None:
        """Start the registry server."""
        if self._running:
            logger.warning("Registry already running")
            return

        self._app = self._create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.config.host, self.port)
        try:
            await self._site.start()
        except OSError:
            await self._runner.cleanup()
            self._app = None
            self._runner = None
            self._site = None
            raise

        self._running = True
        logger.info(f"Registry is listening on port {self.port}")

    async def stop(self) -> None:
        """Stop the server and drop all registrations."""
        if not self._running:
            return

        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()

        self.registry.clear()

        self._running = False
        self._app = None
        self._runner = None
        self._site = None

        logger.info("Registry stopped")

    async def run_forever(self) -> None:
        """Start and run until interrupted."""
        await self.start()

        try:
            while self._running:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()


async def launch_registry(config: OnionSettings | None = None) -> RegistryNode:
    """Create and start a registry node."""
    node = RegistryNode(config=config or get_config())
    await node.start()
    return node
