"""
Shared aiohttp helpers for registry, router and user nodes.

All error responses use one shape:
{
    "status": "error",
    "reason": "machine_readable_reason",
    "message": "Human readable message",
    "details": {...}
}
"""

from __future__ import annotations

import json
from typing import Any

from aiohttp import web

from onionnet.core.exceptions import InvalidJSON, OnionNetException, ValidationException
from onionnet.core.logging import NODE_LABEL, correlation_middleware

LIVE = "live"


def error_response(exc: OnionNetException) -> web.Response:
    """Render an onionnet exception as a JSON error response."""
    return web.json_response(exc.to_dict(), status=exc.status)


async def read_json(request: web.Request) -> dict[str, Any]:
    """Parse a JSON object body.

    Raises:
        ValidationException: If the body is not a JSON object.
    """
    try:
        data = await request.json()
    except (ValueError, json.JSONDecodeError) as e:
        raise InvalidJSON(f"invalid JSON body: {e}") from e
    if not isinstance(data, dict):
        raise ValidationException("request body must be a JSON object")
    return data


def require_field(data: dict[str, Any], name: str, kind: type | tuple[type, ...]) -> Any:
    """Return ``data[name]`` if present and of ``kind``."""
    value = data.get(name)
    if value is None:
        raise ValidationException(f"{name} is required", field=name)
    if isinstance(value, bool) or not isinstance(value, kind):
        raise ValidationException(f"{name} has the wrong type", field=name, value=value)
    return value


async def handle_status(request: web.Request) -> web.Response:
    """Liveness check shared by every node."""
    return web.Response(text=LIVE)


def create_app(node_label: str) -> web.Application:
    """Create an aiohttp application whose requests log as ``node_label``."""
    app = web.Application(middlewares=[correlation_middleware])
    app[NODE_LABEL] = node_label
    return app
