"""
Registry Client - HTTP calls from routers and users to the registry.
"""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from onionnet.core.config import OnionSettings, get_config
from onionnet.core.exceptions import ForwardingFailure, InvalidKeyError, KeyNotFound, RegistrationConflict
from onionnet.core.logging import correlation_headers
from onionnet.network.registry.records import NodeRecord

logger = logging.getLogger(__name__)


class RegistryClient:
    """Thin async client for the registry's HTTP API.

    Every call opens its own short-lived session; the registry is contacted
    once per registration and once per send.
    """

    def __init__(self, config: OnionSettings | None = None, base_url: str | None = None):
        self.config = config or get_config()
        self.base_url = (base_url or self.config.registry_url).rstrip("/")

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.config.registry_timeout_seconds)

    async def _request(self, method: str, path: str, **kwargs: Any) -> tuple[int, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.request(method, url, headers=correlation_headers(), **kwargs) as response:
                    return response.status, await response.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            raise ForwardingFailure(url, str(e)) from e

    async def register_node(
        self,
        node_id: int,
        public_key: str,
        private_key: str | None = None,
    ) -> NodeRecord:
        """Register a node.

        Raises:
            RegistrationConflict: If the registry already knows ``node_id``.
            InvalidKeyError: If the registry rejects ``public_key``.
            ForwardingFailure: If the registry is unreachable or errors.
        """
        body: dict[str, Any] = {"nodeId": node_id, "pubKey": public_key}
        if private_key is not None:
            body["prvKey"] = private_key

        status, data = await self._request("POST", "/registerNode", json=body)
        if status == RegistrationConflict.status:
            raise RegistrationConflict(node_id)
        if isinstance(data, dict) and data.get("reason") == InvalidKeyError.reason:
            raise InvalidKeyError(data.get("message", "registry rejected the public key"))
        if status != 200:
            raise ForwardingFailure(self.base_url, f"registration returned {status}: {data}")

        logger.info(f"Node {node_id} registered with {self.base_url}")
        return NodeRecord(node_id=node_id, public_key=public_key, private_key=private_key)

    async def get_node_registry(self) -> list[NodeRecord]:
        """Fetch the current membership snapshot."""
        status, data = await self._request("GET", "/getNodeRegistry")
        if status != 200 or not isinstance(data, dict):
            raise ForwardingFailure(self.base_url, f"registry listing returned {status}")
        return [NodeRecord.from_dict(entry) for entry in data.get("nodes", [])]

    async def get_private_key(self, node_id: int) -> str:
        """Debug-only private key lookup.

        Raises:
            KeyNotFound: If the registry holds no private key for ``node_id``.
        """
        status, data = await self._request("GET", f"/getPrivateKey/{node_id}")
        if status == KeyNotFound.status:
            raise KeyNotFound(node_id)
        if status != 200 or not isinstance(data, dict):
            raise ForwardingFailure(self.base_url, f"private key lookup returned {status}")
        return data["prvKey"]
