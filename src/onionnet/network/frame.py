# SPDX-License-Identifier: MIT
# Copyright (c) 2026 OnionNet Contributors

"""
Wire framing for one onion layer.

A frame is a single ASCII string:

    base64(RSA-OAEP(symmetric key || iv))  ||  hex(AES-256-CBC(next_hop || payload))

The first segment is always exactly one RSA modulus long once base64
encoded (344 characters for 2048-bit keys), so a receiver splits at that
offset without a length prefix or delimiter.

Inside the symmetric segment the first NEXT_HOP_WIDTH characters are the
next hop's port as a zero-padded decimal; the rest is the payload to
forward verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass

from onionnet.core.exceptions import DecryptionFailure, ValidationException
from onionnet.crypto.keys import DEFAULT_RSA_KEY_SIZE, asymmetric_ciphertext_width

# Fixed digit width of the next-hop field (wide enough for any port)
NEXT_HOP_WIDTH = 10


def encode_next_hop(address: int, width: int = NEXT_HOP_WIDTH) -> str:
    """Encode a port-style address as a zero-padded decimal field.

    Raises:
        ValidationException: If the address is negative or too wide.
    """
    if address < 0:
        raise ValidationException("next hop address must be non-negative", field="next_hop", value=address)
    digits = str(address)
    if len(digits) > width:
        raise ValidationException(
            f"next hop address does not fit in {width} digits", field="next_hop", value=address
        )
    return digits.zfill(width)


def decode_next_hop(field: str, width: int = NEXT_HOP_WIDTH) -> int:
    """Parse a field produced by :func:`encode_next_hop`.

    Raises:
        DecryptionFailure: If the field is not exactly ``width`` ASCII digits.
    """
    if len(field) != width or not (field.isascii() and field.isdigit()):
        raise DecryptionFailure("malformed next hop field", {"field": field[:width]})
    return int(field)


def split_body(body: str, width: int = NEXT_HOP_WIDTH) -> tuple[int, str]:
    """Split a decrypted layer body into ``(next_hop, payload)``."""
    if len(body) < width:
        raise DecryptionFailure("layer body shorter than the next hop field")
    return decode_next_hop(body[:width], width), body[width:]


def join_body(next_hop: int, payload: str, width: int = NEXT_HOP_WIDTH) -> str:
    return encode_next_hop(next_hop, width) + payload


@dataclass(frozen=True)
class OnionFrame:
    """One encoded onion layer split into its two segments."""

    wrapped_key: str  # base64 RSA ciphertext, fixed width
    body: str  # hex AES ciphertext, variable length

    def encode(self) -> str:
        """Concatenate as ``wrapped_key || body``; the order is load-bearing."""
        return self.wrapped_key + self.body

    @classmethod
    def decode(cls, frame: str, key_size: int = DEFAULT_RSA_KEY_SIZE) -> OnionFrame:
        """Split a received frame at the fixed asymmetric width.

        Raises:
            DecryptionFailure: If the frame cannot hold both segments.
        """
        if not isinstance(frame, str):
            raise DecryptionFailure("frame must be a string")
        width = asymmetric_ciphertext_width(key_size)
        if len(frame) <= width:
            raise DecryptionFailure(
                "frame too short",
                {"length": len(frame), "asymmetric_width": width},
            )
        return cls(wrapped_key=frame[:width], body=frame[width:])
