"""End-to-end tests against real localhost servers.

A registry, five routers and two users are started on non-standard ports
for each test and torn down afterwards.
"""

from __future__ import annotations

import aiohttp
import pytest

from onionnet.core.config import OnionSettings
from onionnet.core.exceptions import InvalidKeyError, KeyNotFound, RegistrationConflict
from onionnet.network.launch import launch_network
from onionnet.network.registry.client import RegistryClient

pytestmark = pytest.mark.integration


@pytest.fixture
def e2e_config():
    return OnionSettings(
        host="127.0.0.1",
        registry_port=18180,
        base_router_port=14100,
        base_user_port=13100,
    )


@pytest.fixture
async def network(e2e_config):
    net = await launch_network(n_routers=5, n_users=2, config=e2e_config)
    yield net
    await net.stop()


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_hello_reaches_destination(self, network):
        sender, recipient = network.user(0), network.user(1)

        circuit = await sender.send_message("hello", 1)

        assert recipient.last_received_message == "hello"
        assert sender.last_sent_message == "hello"
        assert sender.last_circuit == circuit.node_ids

    @pytest.mark.asyncio
    async def test_each_relay_sees_only_its_layer(self, network, e2e_config):
        circuit = await network.user(0).send_message("hello", 1)
        entry, middle, exit_ = (network.router(i) for i in circuit.node_ids)

        # Entry forwards the frame that middle then receives, and so on
        assert entry.last_message_destination == e2e_config.router_port(middle.node_id)
        assert middle.last_received_encrypted_message == entry.last_received_decrypted_message
        assert middle.last_message_destination == e2e_config.router_port(exit_.node_id)
        assert exit_.last_received_encrypted_message == middle.last_received_decrypted_message

        # Only the exit sees the plaintext and the destination
        assert exit_.last_received_decrypted_message == "hello"
        assert exit_.last_message_destination == e2e_config.user_port(1)
        assert "hello" not in entry.last_received_decrypted_message
        assert "hello" not in middle.last_received_decrypted_message

    @pytest.mark.asyncio
    async def test_send_over_http(self, network, e2e_config):
        sender_url = e2e_config.url_for_port(e2e_config.user_port(0))
        recipient_url = e2e_config.url_for_port(e2e_config.user_port(1))

        async with aiohttp.ClientSession() as session:
            async with session.post(
                f"{sender_url}/sendMessage", json={"message": "over http", "destinationUserId": 1}
            ) as response:
                assert response.status == 200
                assert await response.json() == {"status": "accepted"}

            async with session.get(f"{recipient_url}/getLastReceivedMessage") as response:
                assert await response.json() == {"result": "over http"}

            async with session.get(f"{sender_url}/getLastCircuit") as response:
                assert len((await response.json())["result"]) == 3

            async with session.get(f"{sender_url}/status") as response:
                assert await response.text() == "live"

    @pytest.mark.asyncio
    async def test_garbage_frame_rejected_by_router(self, network, e2e_config):
        url = f"{e2e_config.url_for_port(e2e_config.router_port(0))}/message"

        async with aiohttp.ClientSession() as session:
            async with session.post(url, json={"message": "A" * 400}) as response:
                assert response.status == 400
                assert (await response.json())["reason"] == "decryption_failure"

        assert network.router(0).last_event is None


class TestRegistryOverHttp:
    @pytest.mark.asyncio
    async def test_lists_all_routers_in_order(self, network, e2e_config):
        nodes = await RegistryClient(e2e_config).get_node_registry()

        assert [n.node_id for n in nodes] == [0, 1, 2, 3, 4]
        assert nodes[2].public_key == network.router(2).keypair.public.export()
        assert all(n.private_key is None for n in nodes)

    @pytest.mark.asyncio
    async def test_duplicate_registration_conflicts(self, network, e2e_config):
        other_key = network.router(1).keypair.public.export()
        with pytest.raises(RegistrationConflict):
            await RegistryClient(e2e_config).register_node(0, other_key)

    @pytest.mark.asyncio
    async def test_junk_key_never_joins_a_circuit(self, network, e2e_config):
        with pytest.raises(InvalidKeyError):
            await RegistryClient(e2e_config).register_node(7, "not a key")

        nodes = await RegistryClient(e2e_config).get_node_registry()
        assert [n.node_id for n in nodes] == [0, 1, 2, 3, 4]

        for i in range(6):
            circuit = await network.user(0).send_message(f"after junk {i}", 1)
            assert 7 not in circuit.node_ids
            assert network.user(1).last_received_message == f"after junk {i}"

    @pytest.mark.asyncio
    async def test_private_key_lookup(self, network, e2e_config):
        client = RegistryClient(e2e_config)

        assert await client.get_private_key(3) == network.router(3).keypair.private.export()
        with pytest.raises(KeyNotFound):
            await client.get_private_key(42)


class TestInsufficientRouters:
    @pytest.mark.asyncio
    async def test_send_with_two_routers_is_503(self):
        config = OnionSettings(
            host="127.0.0.1",
            registry_port=18280,
            base_router_port=14200,
            base_user_port=13200,
        )
        net = await launch_network(n_routers=2, n_users=2, config=config)
        try:
            url = f"{config.url_for_port(config.user_port(0))}/sendMessage"
            async with aiohttp.ClientSession() as session:
                async with session.post(url, json={"message": "hi", "destinationUserId": 1}) as response:
                    assert response.status == 503
                    assert (await response.json())["reason"] == "insufficient_nodes"

            assert net.user(1).last_received_message is None
        finally:
            await net.stop()
