# SPDX-License-Identifier: MIT
# Copyright (c) 2026 OnionNet Contributors

"""onionnet - A local onion-routing overlay.

A registry publishes router public keys; users wrap each message in one
encryption layer per relay and routers peel one layer each, so no single
relay sees both the sender and the destination.

CLI entry point: ``onionnet``
"""

__version__ = "0.1.0"
