"""Global test fixtures for the onionnet test suite."""

from __future__ import annotations

import os

import pytest

from onionnet.core.config import OnionSettings, clear_config_cache
from onionnet.crypto.keys import generate_rsa_keypair
from onionnet.network.registry.records import NodeRecord

# ============================================================================
# Environment
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all ONIONNET_ environment variables."""
    for key in list(os.environ.keys()):
        if key.startswith("ONIONNET_"):
            monkeypatch.delenv(key, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def test_config():
    """Settings on non-standard ports so tests never collide with a real network."""
    return OnionSettings(
        host="127.0.0.1",
        registry_port=18080,
        base_router_port=14000,
        base_user_port=13000,
    )


# ============================================================================
# Keys
# ============================================================================


# RSA generation is slow; share keypairs across the session
@pytest.fixture(scope="session")
def rsa_keypairs():
    """Five independent 2048-bit keypairs, indexed like router ids."""
    return [generate_rsa_keypair() for _ in range(5)]


@pytest.fixture(scope="session")
def keypair(rsa_keypairs):
    return rsa_keypairs[0]


@pytest.fixture(scope="session")
def other_keypair(rsa_keypairs):
    return rsa_keypairs[1]


@pytest.fixture(scope="session")
def node_records(rsa_keypairs):
    """Registry records for routers 0-4 (with debug private keys)."""
    return [
        NodeRecord(
            node_id=i,
            public_key=pair.public.export(),
            private_key=pair.private.export(),
        )
        for i, pair in enumerate(rsa_keypairs)
    ]
