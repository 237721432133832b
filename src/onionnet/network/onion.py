# SPDX-License-Identifier: MIT
# Copyright (c) 2026 OnionNet Contributors

"""
Layered (onion) hybrid encryption.

The sender wraps a message once per circuit hop, working backward from the
destination so that the entry router's layer is outermost:

    layer_C = encrypt_layer(message, address(D), pub_C)
    layer_B = encrypt_layer(layer_C, address(C), pub_B)
    layer_A = encrypt_layer(layer_B, address(B), pub_A)   # sent to A

Each router peels exactly one layer with its private key and learns only
the next hop and an opaque payload.
"""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from onionnet.core.config import get_config
from onionnet.core.exceptions import DecryptionFailure, InvalidKeyError
from onionnet.crypto.keys import AsymmetricPrivateKey, AsymmetricPublicKey, SymmetricKey
from onionnet.network.frame import OnionFrame, join_body, split_body
from onionnet.network.registry.records import NodeRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeeledLayer:
    """Result of removing one onion layer."""

    next_hop: int
    payload: str


def encrypt_layer(payload: str, next_hop: int, recipient_public_key: AsymmetricPublicKey) -> str:
    """Wrap ``payload`` in one layer readable only by ``recipient_public_key``.

    A fresh symmetric key is generated for every call and never reused.

    Args:
        payload: Cleartext (or an inner frame) to carry
        next_hop: Address the recipient should forward ``payload`` to
        recipient_public_key: RSA key of the router that will peel this layer

    Returns:
        The encoded frame ``asym || sym``.
    """
    ephemeral = SymmetricKey.generate()
    body = join_body(next_hop, payload)
    sym_ciphertext = ephemeral.encrypt(body.encode("utf-8"))
    wrapped_key = recipient_public_key.encrypt(ephemeral.export().encode("ascii"))
    frame = OnionFrame(
        wrapped_key=base64.b64encode(wrapped_key).decode("ascii"),
        body=sym_ciphertext.hex(),
    )
    return frame.encode()


def peel_layer(frame: str, private_key: AsymmetricPrivateKey) -> PeeledLayer:
    """Remove one layer from ``frame``.

    Raises:
        DecryptionFailure: If the frame is malformed, truncated, or was not
            encrypted for ``private_key``.
    """
    parts = OnionFrame.decode(frame, key_size=private_key.key_size)

    try:
        wrapped_key = base64.b64decode(parts.wrapped_key.encode("ascii"), validate=True)
        sym_ciphertext = bytes.fromhex(parts.body)
    except (ValueError, binascii.Error, UnicodeEncodeError) as e:
        raise DecryptionFailure("frame segments are not valid base64/hex") from e

    key_material = private_key.decrypt(wrapped_key)
    try:
        ephemeral = SymmetricKey.from_exported(key_material.decode("ascii"))
    except (UnicodeDecodeError, InvalidKeyError) as e:
        raise DecryptionFailure("wrapped key material is malformed") from e

    try:
        body = ephemeral.decrypt(sym_ciphertext).decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionFailure("layer body is not valid UTF-8") from e

    next_hop, payload = split_body(body)
    return PeeledLayer(next_hop=next_hop, payload=payload)


def build_onion(
    message: str,
    destination_address: int,
    circuit: Iterable[NodeRecord],
    router_address: Callable[[int], int] | None = None,
) -> str:
    """Build the fully wrapped message for a circuit.

    Iterates the circuit from exit to entry. The innermost layer addresses
    ``destination_address`` and carries ``message``; the returned outermost
    frame is encrypted for, and must be sent to, the entry node.

    Args:
        message: Plaintext to deliver
        destination_address: Port of the destination user
        circuit: Relays in hop order (entry first)
        router_address: Maps a node id to its port (defaults to the
            configured base router port offset)

    Returns:
        The outermost frame.
    """
    if router_address is None:
        router_address = get_config().router_port

    hops = list(circuit)
    payload = message
    next_hop = destination_address
    for node in reversed(hops):
        public_key = AsymmetricPublicKey.from_exported(node.public_key)
        payload = encrypt_layer(payload, next_hop, public_key)
        next_hop = router_address(node.node_id)

    logger.debug(f"Built onion with {len(hops)} layers ({len(payload)} chars)")
    return payload
