"""
onionnet User Node - Originates and terminates messages.

A user builds a fresh three-hop circuit for every send from a registry
snapshot, wraps the message in one layer per hop, and hands the outermost
frame to the entry router. Success means the entry router accepted the
hand-off; there is no end-to-end acknowledgement.

The exit router delivers the innermost payload to the destination user in
clear, so receiving is a plain store.

Protocol:
- POST /sendMessage - Send {message, destinationUserId}
- POST /message - Receive {message}
- GET /getLastReceivedMessage - Introspection
- GET /getLastSentMessage - Introspection
- GET /getLastCircuit - Introspection (node ids only)
- GET /status - Liveness ("live")
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

import aiohttp
from aiohttp import web

from onionnet.core.config import OnionSettings, get_config
from onionnet.core.exceptions import ForwardingFailure, OnionNetException, ValidationException
from onionnet.core.logging import correlation_headers
from onionnet.network.circuit import Circuit, build_circuit
from onionnet.network.http import create_app, error_response, handle_status, read_json, require_field
from onionnet.network.onion import build_onion
from onionnet.network.registry.client import RegistryClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserLog:
    """Introspection snapshot for a user; replaced wholesale on each event."""

    last_sent_message: str | None = None
    last_circuit: tuple[int, ...] | None = None
    last_received_message: str | None = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class UserNode:
    """An endpoint that sends and receives onion-routed messages.

    Attributes:
        user_id: Identifier; also selects the listening port
        config: Network settings (ports, circuit length, registry location)
    """

    user_id: int
    config: OnionSettings = field(default_factory=get_config)

    _log: UserLog = field(default_factory=UserLog, repr=False)

    # Runtime state
    _app: web.Application | None = field(default=None, repr=False)
    _runner: web.AppRunner | None = field(default=None, repr=False)
    _site: web.TCPSite | None = field(default=None, repr=False)
    _running: bool = field(default=False, repr=False)

    @property
    def port(self) -> int:
        return self.config.user_port(self.user_id)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def log(self) -> UserLog:
        return self._log

    @property
    def last_sent_message(self) -> str | None:
        return self._log.last_sent_message

    @property
    def last_circuit(self) -> list[int] | None:
        return list(self._log.last_circuit) if self._log.last_circuit is not None else None

    @property
    def last_received_message(self) -> str | None:
        return self._log.last_received_message

    # -------------------------------------------------------------------------
    # SEND / RECEIVE
    # -------------------------------------------------------------------------

    async def send_message(self, message: str, destination_user_id: int) -> Circuit:
        """Route ``message`` to user ``destination_user_id``.

        Returns:
            The circuit the message was sent over.

        Raises:
            InsufficientNodes: If the registry holds too few routers.
            ForwardingFailure: If the registry or entry router is unreachable
                or the entry router rejects the frame.
        """
        snapshot = await RegistryClient(self.config).get_node_registry()
        circuit = build_circuit(snapshot, length=self.config.circuit_length)

        frame = build_onion(
            message,
            self.config.user_port(destination_user_id),
            circuit,
            router_address=self.config.router_port,
        )

        entry_port = self.config.router_port(circuit.entry.node_id)
        await self._hand_off(entry_port, frame)

        self._log = UserLog(
            last_sent_message=message,
            last_circuit=tuple(circuit.node_ids),
            last_received_message=self._log.last_received_message,
        )
        logger.info(f"User {self.user_id} sent message to user {destination_user_id} via {circuit.node_ids}")
        return circuit

    async def _hand_off(self, port: int, frame: str) -> None:
        url = f"{self.config.url_for_port(port)}/message"
        try:
            timeout = aiohttp.ClientTimeout(total=None)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, json={"message": frame}, headers=correlation_headers()) as response:
                    if response.status != 200:
                        text = await response.text()
                        raise ForwardingFailure(url, f"{response.status}: {text}")
        except aiohttp.ClientError as e:
            raise ForwardingFailure(url, str(e)) from e

    def receive_message(self, payload: str) -> None:
        """Store a delivered payload."""
        self._log = UserLog(
            last_sent_message=self._log.last_sent_message,
            last_circuit=self._log.last_circuit,
            last_received_message=payload,
        )
        logger.info(f"User {self.user_id} received a message ({len(payload)} chars)")
        logger.debug(f"User {self.user_id} message: {payload!r}")

    # -------------------------------------------------------------------------
    # HTTP HANDLERS
    # -------------------------------------------------------------------------

    async def handle_send_message(self, request: web.Request) -> web.Response:
        """
        Send a message through a fresh circuit.

        POST /sendMessage
        {"message": "hello", "destinationUserId": 1}

        Response:
        {"status": "accepted"}

        Errors: 503 insufficient_nodes, 502 forwarding_failure.
        """
        try:
            data = await read_json(request)
            message = require_field(data, "message", str)
            destination = require_field(data, "destinationUserId", int)
            if destination < 0:
                raise ValidationException(
                    "destinationUserId must be non-negative",
                    field="destinationUserId",
                    value=destination,
                )
            await self.send_message(message, destination)
        except OnionNetException as e:
            logger.warning(f"User {self.user_id} send failed: {e.reason} ({e.message})")
            return error_response(e)

        return web.json_response({"status": "accepted"})

    async def handle_message(self, request: web.Request) -> web.Response:
        """
        Final delivery from an exit router.

        POST /message
        {"message": "hello"}
        """
        try:
            data = await read_json(request)
            message = require_field(data, "message", str)
        except OnionNetException as e:
            return error_response(e)

        self.receive_message(message)
        return web.Response(text="success")

    async def handle_last_received(self, request: web.Request) -> web.Response:
        return web.json_response({"result": self.last_received_message})

    async def handle_last_sent(self, request: web.Request) -> web.Response:
        return web.json_response({"result": self.last_sent_message})

    async def handle_last_circuit(self, request: web.Request) -> web.Response:
        return web.json_response({"result": self.last_circuit})

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    def _create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = create_app(f"user {self.user_id}")

        app.router.add_post("/sendMessage", self.handle_send_message)
        app.router.add_post("/message", self.handle_message)
        app.router.add_get("/getLastReceivedMessage", self.handle_last_received)
        app.router.add_get("/getLastSentMessage", self.handle_last_sent)
        app.router.add_get("/getLastCircuit", self.handle_last_circuit)

        app.router.add_get("/status", handle_status)

        return app

    async def start(self) -> None:
        """Start the user node."""
        if self._running:
            logger.warning(f"User {self.user_id} already running")
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
        logger.info(f"User {self.user_id} is listening on port {self.port}")

    async def stop(self) -> None:
        """Stop the user node."""
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

        logger.info(f"User {self.user_id} stopped")

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


async def launch_users(
    count: int,
    config: OnionSettings | None = None,
    first_id: int = 0,
) -> list[UserNode]:
    """Start ``count`` user nodes with consecutive ids."""
    config = config or get_config()
    users: list[UserNode] = []
    try:
        for user_id in range(first_id, first_id + count):
            user = UserNode(user_id=user_id, config=config)
            await user.start()
            users.append(user)
    except (OnionNetException, OSError):
        for user in users:
            await user.stop()
        raise

    logger.info(f"Launched {len(users)} users")
    return users
