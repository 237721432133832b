"""Hybrid RSA/AES key types used by the onion layers."""

from onionnet.crypto.keys import (
    DEFAULT_RSA_KEY_SIZE,
    AsymmetricPrivateKey,
    AsymmetricPublicKey,
    Key,
    KeyKind,
    KeyPair,
    SymmetricKey,
    asymmetric_ciphertext_width,
    generate_rsa_keypair,
)

__all__ = [
    "DEFAULT_RSA_KEY_SIZE",
    "AsymmetricPrivateKey",
    "AsymmetricPublicKey",
    "Key",
    "KeyKind",
    "KeyPair",
    "SymmetricKey",
    "asymmetric_ciphertext_width",
    "generate_rsa_keypair",
]
