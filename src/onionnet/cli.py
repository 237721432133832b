# SPDX-License-Identifier: MIT
# Copyright (c) 2026 OnionNet Contributors

"""Command-line interface for running onionnet nodes."""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

import aiohttp

from .core.config import get_config
from .core.exceptions import ConfigException, OnionNetException
from .core.logging import configure_logging
from .network.launch import launch_network
from .network.registry import RegistryNode
from .network.router import RouterNode
from .network.user import UserNode


def cmd_registry(args: argparse.Namespace) -> int:
    """Run the registry until interrupted."""
    config = get_config()
    try:
        asyncio.run(RegistryNode(config=config).run_forever())
    except OSError as e:
        print(f"Registry failed to start on port {config.registry_port}: {e}", file=sys.stderr)
        return 1
    return 0


def cmd_router(args: argparse.Namespace) -> int:
    """Run one onion router until interrupted."""
    router = RouterNode(node_id=args.id, config=get_config())
    try:
        asyncio.run(router.run_forever())
    except (OnionNetException, OSError) as e:
        print(f"Router {args.id} failed to start: {e}", file=sys.stderr)
        return 1
    return 0


def cmd_user(args: argparse.Namespace) -> int:
    """Run one user node until interrupted."""
    try:
        asyncio.run(UserNode(user_id=args.id, config=get_config()).run_forever())
    except OSError as e:
        print(f"User {args.id} failed to start: {e}", file=sys.stderr)
        return 1
    return 0


def cmd_network(args: argparse.Namespace) -> int:
    """Run a registry, routers and users in one process."""

    async def run() -> None:
        network = await launch_network(args.routers, args.users, get_config())
        await network.run_forever()

    try:
        asyncio.run(run())
    except (OnionNetException, OSError) as e:
        print(f"Network failed to start: {e}", file=sys.stderr)
        return 1
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    """Ask a running user node to send a message."""
    config = get_config()
    url = f"{config.url_for_port(config.user_port(args.sender))}/sendMessage"
    body = {"message": args.message, "destinationUserId": args.recipient}

    async def post() -> tuple[int, Any]:
        async with aiohttp.ClientSession() as session:
            async with session.post(url, json=body) as response:
                return response.status, await response.json(content_type=None)

    try:
        status, data = asyncio.run(post())
    except (aiohttp.ClientError, OSError) as e:
        print(f"Could not reach user {args.sender} at {url}: {e}", file=sys.stderr)
        return 1
    except ValueError:
        print(f"{url} did not answer like a user node; is user {args.sender} running?", file=sys.stderr)
        return 1

    if status == 200:
        print(f"Message accepted by user {args.sender}")
        return 0
    if not isinstance(data, dict):
        print(f"Send failed ({status})", file=sys.stderr)
        return 1

    print(f"Send failed ({status}): {data.get('reason')} - {data.get('message')}", file=sys.stderr)
    return 1


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Local onion routing overlay",
        prog="onionnet",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: ONIONNET_LOG_LEVEL or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Registry command
    subparsers.add_parser("registry", help="Run the registry")

    # Router command
    router_parser = subparsers.add_parser("router", help="Run one onion router")
    router_parser.add_argument("--id", type=int, required=True, help="Router node id")

    # User command
    user_parser = subparsers.add_parser("user", help="Run one user node")
    user_parser.add_argument("--id", type=int, required=True, help="User id")

    # Network command
    network_parser = subparsers.add_parser("network", help="Run a whole network in one process")
    network_parser.add_argument("--routers", type=int, default=5, help="Number of routers (default: 5)")
    network_parser.add_argument("--users", type=int, default=2, help="Number of users (default: 2)")

    # Send command
    send_parser = subparsers.add_parser("send", help="Send a message through a running network")
    send_parser.add_argument("--from", dest="sender", type=int, required=True, help="Sending user id")
    send_parser.add_argument("--to", dest="recipient", type=int, required=True, help="Destination user id")
    send_parser.add_argument("message", help="Message text")

    args = parser.parse_args()

    try:
        config = get_config()
    except ConfigException as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 1

    configure_logging(level=args.log_level, config=config)

    commands = {
        "registry": cmd_registry,
        "router": cmd_router,
        "user": cmd_user,
        "network": cmd_network,
        "send": cmd_send,
    }
    try:
        return commands[args.command](args)
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
