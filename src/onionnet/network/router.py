"""
onionnet Router Node - Peels one onion layer and forwards the rest.

Each router owns an RSA keypair for its lifetime and registers the public
half with the registry at startup. For every inbound frame it:
- Splits off the fixed-width asymmetric segment
- Recovers the ephemeral symmetric key with its private key
- Decrypts the body into a next-hop port and an opaque payload
- Forwards the payload verbatim to the next hop

A router never learns more than its predecessor and successor.

Protocol:
- POST /message - Relay a frame {message: frame}
- GET /getLastReceivedEncryptedMessage - Introspection
- GET /getLastReceivedDecryptedMessage - Introspection
- GET /getLastMessageDestination - Introspection
- GET /getPrivateKey - Debug-only key export
- GET /status - Liveness ("live")
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum

import aiohttp
from aiohttp import web

from onionnet.core.config import OnionSettings, get_config
from onionnet.core.exceptions import DecryptionFailure, ForwardingFailure, OnionNetException
from onionnet.core.logging import correlation_headers
from onionnet.crypto.keys import KeyPair, generate_rsa_keypair
from onionnet.network.http import create_app, error_response, handle_status, read_json, require_field
from onionnet.network.onion import PeeledLayer, peel_layer
from onionnet.network.registry.client import RegistryClient

logger = logging.getLogger(__name__)


class RelayState(Enum):
    """Forwarding state of a router."""

    IDLE = "idle"
    DECRYPTING = "decrypting"
    FORWARDING = "forwarding"


@dataclass(frozen=True)
class RelayEvent:
    """What a router saw for the most recent frame it peeled."""

    received_frame: str
    decrypted_payload: str
    destination: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class RouterNode:
    """A relay in the onion overlay.

    Attributes:
        node_id: Registry identifier; also selects the listening port
        config: Network settings (ports, key size, registry location)
        keypair: RSA keypair (generated on init if not provided)
        register: Whether ``start()`` registers with the registry
    """

    node_id: int
    config: OnionSettings = field(default_factory=get_config)
    keypair: KeyPair | None = field(default=None, repr=False)
    register: bool = True

    # Introspection
    state: RelayState = RelayState.IDLE
    messages_relayed: int = 0
    _last_event: RelayEvent | None = field(default=None, repr=False)

    # Runtime state
    _app: web.Application | None = field(default=None, repr=False)
    _runner: web.AppRunner | None = field(default=None, repr=False)
    _site: web.TCPSite | None = field(default=None, repr=False)
    _running: bool = field(default=False, repr=False)

    def __post_init__(self):
        """Initialize the keypair if not provided."""
        if self.keypair is None:
            self.keypair = generate_rsa_keypair(self.config.rsa_key_size)

    @property
    def port(self) -> int:
        return self.config.router_port(self.node_id)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_event(self) -> RelayEvent | None:
        return self._last_event

    @property
    def last_received_encrypted_message(self) -> str | None:
        return self._last_event.received_frame if self._last_event else None

    @property
    def last_received_decrypted_message(self) -> str | None:
        return self._last_event.decrypted_payload if self._last_event else None

    @property
    def last_message_destination(self) -> int | None:
        return self._last_event.destination if self._last_event else None

    # -------------------------------------------------------------------------
    # RELAY
    # -------------------------------------------------------------------------

    def peel(self, frame: str) -> PeeledLayer:
        """Remove this router's layer and record what was seen.

        Raises:
            DecryptionFailure: If the frame was not built for this router.
        """
        self.state = RelayState.DECRYPTING
        try:
            layer = peel_layer(frame, self.keypair.private)
        except DecryptionFailure:
            self.state = RelayState.IDLE
            raise

        self._last_event = RelayEvent(
            received_frame=frame,
            decrypted_payload=layer.payload,
            destination=layer.next_hop,
        )
        return layer

    async def relay(self, frame: str) -> PeeledLayer:
        """Peel ``frame`` and forward the payload to its next hop.

        Forwarding failures are logged and not propagated; the upstream hop
        only learns whether this router could decrypt its layer.
        """
        layer = self.peel(frame)

        self.state = RelayState.FORWARDING
        try:
            await self._forward(layer.next_hop, layer.payload)
            self.messages_relayed += 1
        except ForwardingFailure as e:
            logger.warning(f"Router {self.node_id} could not forward to {e.address}: {e.details}")
        finally:
            self.state = RelayState.IDLE

        return layer

    async def _forward(self, port: int, payload: str) -> None:
        """POST ``payload`` to the ``/message`` route of ``port``.

        No timeout: a stalled next hop stalls this request.
        """
        url = f"{self.config.url_for_port(port)}/message"
        logger.debug(f"Router {self.node_id} forwarding {len(payload)} chars to port {port}")
        try:
            timeout = aiohttp.ClientTimeout(total=None)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    url, json={"message": payload}, headers=correlation_headers()
                ) as response:
                    if response.status != 200:
                        text = await response.text()
                        raise ForwardingFailure(url, f"{response.status}: {text}")
        except aiohttp.ClientError as e:
            raise ForwardingFailure(url, str(e)) from e

    # -------------------------------------------------------------------------
    # HTTP HANDLERS
    # -------------------------------------------------------------------------

    async def handle_message(self, request: web.Request) -> web.Response:
        """
        Relay a frame.

        POST /message
        {"message": "<asym><sym>"}

        Response:
        {"status": "accepted"}

        Frames this router cannot decrypt are answered with 400
        decryption_failure and are not forwarded.
        """
        try:
            data = await read_json(request)
            frame = require_field(data, "message", str)
            await self.relay(frame)
        except OnionNetException as e:
            logger.warning(f"Router {self.node_id} rejected frame: {e.reason} ({e.message})")
            return error_response(e)

        return web.json_response({"status": "accepted"})

    async def handle_last_encrypted(self, request: web.Request) -> web.Response:
        return web.json_response({"result": self.last_received_encrypted_message})

    async def handle_last_decrypted(self, request: web.Request) -> web.Response:
        return web.json_response({"result": self.last_received_decrypted_message})

    async def handle_last_destination(self, request: web.Request) -> web.Response:
        return web.json_response({"result": self.last_message_destination})

    async def handle_get_private_key(self, request: web.Request) -> web.Response:
        """Debug-only export of this router's private key."""
        return web.json_response({"result": self.keypair.private.export()})

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    async def register_with_registry(self) -> None:
        """Publish this router's public key (and debug private key).

        Raises:
            RegistrationConflict: If another router already holds ``node_id``.
            ForwardingFailure: If the registry is unreachable.
        """
        client = RegistryClient(self.config)
        await client.register_node(
            self.node_id,
            self.keypair.public.export(),
            self.keypair.private.export(),
        )

    def _create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = create_app(f"router {self.node_id}")

        app.router.add_post("/message", self.handle_message)
        app.router.add_get("/getLastReceivedEncryptedMessage", self.handle_last_encrypted)
        app.router.add_get("/getLastReceivedDecryptedMessage", self.handle_last_decrypted)
        app.router.add_get("/getLastMessageDestination", self.handle_last_destination)
        app.router.add_get("/getPrivateKey", self.handle_get_private_key)

        app.router.add_get("/status", handle_status)

        return app

    async def start(self) -> None:
        """Start listening and register with the registry."""
        if self._running:
            logger.warning(f"Router {self.node_id} already running")
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
        logger.info(f"Onion router {self.node_id} is listening on port {self.port}")

        if self.register:
            try:
                await self.register_with_registry()
            except OnionNetException:
                await self.stop()
                raise

    async def stop(self) -> None:
        """Stop the router node."""
        if not self._running:
            return

        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()

        self._running = False
        self._app = None
        self._runner = None
        self._site = None

        logger.info(f"Onion router {self.node_id} stopped")

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


async def launch_onion_routers(
    count: int,
    config: OnionSettings | None = None,
    first_id: int = 0,
) -> list[RouterNode]:
    """Start ``count`` routers with consecutive ids and register them.

    Routers start in id order so the registry lists them in that order.
    """
    config = config or get_config()
    routers: list[RouterNode] = []
    try:
        for node_id in range(first_id, first_id + count):
            router = RouterNode(node_id=node_id, config=config)
            await router.start()
            routers.append(router)
    except (OnionNetException, OSError):
        for router in routers:
            await router.stop()
        raise

    logger.info(f"Launched {len(routers)} onion routers")
    return routers
