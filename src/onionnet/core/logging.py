# SPDX-License-Identifier: MIT
# Copyright (c) 2026 OnionNet Contributors

"""Structured logging configuration for onionnet.

A whole overlay can run inside one process (``onionnet network``), so every
log line says which node wrote it and which message it belongs to:

- the *node label* ("registry", "router 3", "user 0") is bound per aiohttp
  application and scoped to each inbound request
- the *correlation ID* travels hop to hop in the ``X-Correlation-ID`` header,
  so one onion can be followed from sender through every relay

Provides:
- JSON formatter for machine-parseable output
- Standard formatter with colors for terminals
- aiohttp middleware that scopes each request to its node and correlation ID
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Awaitable, Callable, Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from aiohttp import web

if TYPE_CHECKING:
    from .config import OnionSettings

CORRELATION_HEADER = "X-Correlation-ID"

# Application key holding the label of the node that owns an aiohttp app
NODE_LABEL = web.AppKey("node_label", str)

# Async-safe; each request handler runs in its own task context
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_node_label: ContextVar[str | None] = ContextVar("node_label", default=None)


def get_correlation_id() -> str | None:
    """Get the correlation ID of the message being handled, if any."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current context, or None to clear."""
    _correlation_id.set(correlation_id)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_node_label() -> str | None:
    """Get the label of the node handling the current request, if any."""
    return _node_label.get()


@contextmanager
def correlation_context(
    correlation_id: str | None = None,
) -> Generator[str, None, None]:
    """Scope a block to one correlation ID.

    Args:
        correlation_id: ID received from the previous hop. If None, a fresh
            one is generated; this is where a new message's trace starts.

    Yields:
        The correlation ID in effect inside the block.
    """
    cid = correlation_id or generate_correlation_id()
    token = _correlation_id.set(cid)
    try:
        yield cid
    finally:
        _correlation_id.reset(token)


@contextmanager
def node_context(label: str | None) -> Generator[str | None, None, None]:
    """Scope a block to the node named ``label``."""
    token = _node_label.set(label)
    try:
        yield label
    finally:
        _node_label.reset(token)


def correlation_headers() -> dict[str, str]:
    """Headers that carry the current correlation ID to the next hop."""
    cid = get_correlation_id()
    return {CORRELATION_HEADER: cid} if cid else {}


@web.middleware
async def correlation_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Run each request as its node, inside the caller's correlation ID.

    A request without the header starts a new trace.
    """
    with node_context(request.app.get(NODE_LABEL)):
        with correlation_context(request.headers.get(CORRELATION_HEADER)):
            return await handler(request)


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Adds ``node`` and ``correlation_id`` when a request is in scope, and the
    source location for warnings and above.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        node = get_node_label()
        if node:
            log_data["node"] = node

        correlation_id = get_correlation_id()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        if record.levelno >= logging.WARNING:
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data

        return json.dumps(log_data)


class StandardFormatter(logging.Formatter):
    """Human-readable lines for a terminal.

    Messages are prefixed with ``[node]`` and the first eight characters of
    the correlation ID, e.g. ``[router 2] [3f2a9c1b] Forwarding to port 4004``.
    Colors are only used when stderr is a TTY.
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    CONTEXT_COLOR = "\033[90m"  # Gray

    def __init__(self, use_colors: bool = True):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def _prefix(self) -> str:
        parts = []
        node = get_node_label()
        if node:
            parts.append(f"[{node}]")
        correlation_id = get_correlation_id()
        if correlation_id:
            parts.append(f"[{correlation_id[:8]}]")
        if not parts:
            return ""
        prefix = " ".join(parts)
        if self.use_colors:
            prefix = f"{self.CONTEXT_COLOR}{prefix}{self.RESET}"
        return prefix + " "

    def format(self, record: logging.LogRecord) -> str:
        # Copy so other handlers see the unmodified record
        record = logging.makeLogRecord(record.__dict__)
        record.msg = self._prefix() + str(record.msg)

        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            record.levelname = f"{color}{record.levelname}{self.RESET}"

        return super().format(record)


def configure_logging(
    level: str | int | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
    config: OnionSettings | None = None,
) -> None:
    """Install onionnet's handlers on the root logger.

    Explicit arguments win over settings. Existing root handlers are
    replaced, so calling this twice does not duplicate output.

    Args:
        level: Log level name or number. Defaults to ``log_level``.
        json_format: Force JSON (True) or text (False). Defaults to
            ``log_format``; ``auto`` picks JSON when stderr is not a TTY.
        log_file: Also write JSON lines to this file. Defaults to ``log_file``.
        config: Settings to read defaults from. Defaults to ``get_config()``.

    Environment variables:
        ONIONNET_LOG_LEVEL, ONIONNET_LOG_FORMAT, ONIONNET_LOG_FILE
    """
    if config is None:
        from .config import get_config

        config = get_config()

    level = config.log_level if level is None else level
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_format is None:
        format_env = config.log_format.lower()
        if format_env in ("json", "text"):
            json_format = format_env == "json"
        else:
            json_format = not sys.stderr.isatty()

    log_file = config.log_file if log_file is None else log_file

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(JSONFormatter() if json_format else StandardFormatter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    # One access line per hop drowns out the relay log
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
