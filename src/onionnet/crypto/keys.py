# SPDX-License-Identifier: MIT
# Copyright (c) 2026 OnionNet Contributors

"""Key types for hybrid (RSA + AES) onion encryption.

Keys are a small tagged union:

- AsymmetricPublicKey: RSA-OAEP encryption of wrapped symmetric keys
- AsymmetricPrivateKey: RSA-OAEP decryption, held only by its router
- SymmetricKey: AES-256-CBC key + IV, generated fresh for every layer

Each type can be exported to a base64 string and imported back, and exposes
only the encrypt or decrypt capability that belongs to it.

Example:
    >>> pair = generate_rsa_keypair()
    >>> sym = SymmetricKey.generate()
    >>> wrapped = pair.public.encrypt(sym.export().encode())
    >>> SymmetricKey.from_exported(pair.private.decrypt(wrapped).decode()) == sym
    True
"""

from __future__ import annotations

import base64
import binascii
import math
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Union

from cryptography.hazmat.primitives import hashes, padding, serialization
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from onionnet.core.exceptions import DecryptionFailure, InvalidKeyError

DEFAULT_RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537

SYMMETRIC_KEY_SIZE = 32  # AES-256
SYMMETRIC_IV_SIZE = 16  # AES block size


class KeyKind(Enum):
    """Tag identifying which member of the key union a value is."""

    RSA_PUBLIC = "rsa-public"
    RSA_PRIVATE = "rsa-private"
    SYMMETRIC = "aes-256-cbc"


def _oaep() -> asym_padding.OAEP:
    return asym_padding.OAEP(
        mgf=asym_padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


def _b64d(encoded: str) -> bytes:
    return base64.b64decode(encoded.encode("ascii"), validate=True)


def _b64e(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


@dataclass(frozen=True)
class AsymmetricPublicKey:
    """An RSA public key used to wrap per-layer symmetric keys."""

    kind: ClassVar[KeyKind] = KeyKind.RSA_PUBLIC

    key: rsa.RSAPublicKey

    @property
    def key_size(self) -> int:
        """Modulus size in bits."""
        return self.key.key_size

    def export(self) -> str:
        """Export as base64-encoded DER SubjectPublicKeyInfo."""
        der = self.key.public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        return _b64e(der)

    @classmethod
    def from_exported(cls, encoded: str) -> AsymmetricPublicKey:
        """Import a key produced by :meth:`export`."""
        try:
            key = serialization.load_der_public_key(_b64d(encoded))
        except (ValueError, TypeError, binascii.Error, UnicodeEncodeError) as e:
            raise InvalidKeyError("invalid RSA public key") from e
        if not isinstance(key, rsa.RSAPublicKey):
            raise InvalidKeyError("public key is not an RSA key")
        return cls(key=key)

    def encrypt(self, data: bytes) -> bytes:
        """RSA-OAEP (SHA-256) encrypt ``data``."""
        return self.key.encrypt(data, _oaep())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AsymmetricPublicKey):
            return NotImplemented
        return self.key.public_numbers() == other.key.public_numbers()

    def __hash__(self) -> int:
        numbers = self.key.public_numbers()
        return hash((numbers.n, numbers.e))


@dataclass(frozen=True)
class AsymmetricPrivateKey:
    """An RSA private key; never leaves its router except via debug endpoints."""

    kind: ClassVar[KeyKind] = KeyKind.RSA_PRIVATE

    key: rsa.RSAPrivateKey

    @property
    def key_size(self) -> int:
        return self.key.key_size

    @property
    def public_key(self) -> AsymmetricPublicKey:
        return AsymmetricPublicKey(key=self.key.public_key())

    def export(self) -> str:
        """Export as base64-encoded unencrypted DER PKCS#8."""
        der = self.key.private_bytes(
            serialization.Encoding.DER,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
        return _b64e(der)

    @classmethod
    def from_exported(cls, encoded: str) -> AsymmetricPrivateKey:
        """Import a key produced by :meth:`export`."""
        try:
            key = serialization.load_der_private_key(_b64d(encoded), password=None)
        except (ValueError, TypeError, binascii.Error, UnicodeEncodeError) as e:
            raise InvalidKeyError("invalid RSA private key") from e
        if not isinstance(key, rsa.RSAPrivateKey):
            raise InvalidKeyError("private key is not an RSA key")
        return cls(key=key)

    def decrypt(self, ciphertext: bytes) -> bytes:
        """RSA-OAEP (SHA-256) decrypt ``ciphertext``.

        Raises:
            DecryptionFailure: If the ciphertext was not produced for this key.
        """
        try:
            return self.key.decrypt(ciphertext, _oaep())
        except ValueError as e:
            raise DecryptionFailure("asymmetric decryption failed") from e

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AsymmetricPrivateKey):
            return NotImplemented
        return self.key.private_numbers() == other.key.private_numbers()

    def __hash__(self) -> int:
        numbers = self.key.public_key().public_numbers()
        return hash((numbers.n, numbers.e))


@dataclass(frozen=True)
class SymmetricKey:
    """An ephemeral AES-256-CBC key and IV.

    Generated once per onion layer and discarded after use.
    """

    kind: ClassVar[KeyKind] = KeyKind.SYMMETRIC

    key: bytes
    iv: bytes

    def __post_init__(self):
        if len(self.key) != SYMMETRIC_KEY_SIZE:
            raise InvalidKeyError(f"AES key must be {SYMMETRIC_KEY_SIZE} bytes")
        if len(self.iv) != SYMMETRIC_IV_SIZE:
            raise InvalidKeyError(f"AES IV must be {SYMMETRIC_IV_SIZE} bytes")

    @classmethod
    def generate(cls) -> SymmetricKey:
        return cls(
            key=secrets.token_bytes(SYMMETRIC_KEY_SIZE),
            iv=secrets.token_bytes(SYMMETRIC_IV_SIZE),
        )

    def export(self) -> str:
        """Export as base64 of ``key || iv``."""
        return _b64e(self.key + self.iv)

    @classmethod
    def from_exported(cls, encoded: str) -> SymmetricKey:
        """Import key material produced by :meth:`export`."""
        try:
            raw = _b64d(encoded)
        except (ValueError, binascii.Error, UnicodeEncodeError) as e:
            raise InvalidKeyError("invalid symmetric key encoding") from e
        if len(raw) != SYMMETRIC_KEY_SIZE + SYMMETRIC_IV_SIZE:
            raise InvalidKeyError("symmetric key material has the wrong length")
        return cls(key=raw[:SYMMETRIC_KEY_SIZE], iv=raw[SYMMETRIC_KEY_SIZE:])

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self.key), modes.CBC(self.iv))

    def encrypt(self, plaintext: bytes) -> bytes:
        """AES-256-CBC encrypt with PKCS#7 padding."""
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = self._cipher().encryptor()
        return encryptor.update(padded) + encryptor.finalize()

    def decrypt(self, ciphertext: bytes) -> bytes:
        """AES-256-CBC decrypt and strip PKCS#7 padding.

        Raises:
            DecryptionFailure: On a partial block or bad padding.
        """
        if not ciphertext or len(ciphertext) % SYMMETRIC_IV_SIZE:
            raise DecryptionFailure("symmetric ciphertext is not a whole number of blocks")
        decryptor = self._cipher().decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise DecryptionFailure("symmetric padding check failed") from e


Key = Union[AsymmetricPublicKey, AsymmetricPrivateKey, SymmetricKey]


@dataclass(frozen=True)
class KeyPair:
    """An RSA keypair bound to one router for its lifetime."""

    public: AsymmetricPublicKey
    private: AsymmetricPrivateKey


def generate_rsa_keypair(key_size: int = DEFAULT_RSA_KEY_SIZE) -> KeyPair:
    """Generate a fresh RSA keypair."""
    private = rsa.generate_private_key(public_exponent=RSA_PUBLIC_EXPONENT, key_size=key_size)
    return KeyPair(
        public=AsymmetricPublicKey(key=private.public_key()),
        private=AsymmetricPrivateKey(key=private),
    )


def asymmetric_ciphertext_width(key_size: int = DEFAULT_RSA_KEY_SIZE) -> int:
    """Encoded (base64) width of one RSA ciphertext for ``key_size`` bits.

    RSA ciphertexts are always exactly one modulus long, so this width is
    constant for a given key size.
    """
    return 4 * math.ceil((key_size // 8) / 3)
