"""Async HTTP access to Sui fullnodes and the explorer search API."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from tttroom.backend.config import BackendSettings

logger = logging.getLogger(__name__)


class ChainError(RuntimeError):
    """Raised when a fullnode request fails or returns an unusable body."""


class ChainClient:
    def __init__(self, settings: BackendSettings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._settings.rpc_timeout_s, transport=self._transport)

    async def get_object(self, network: str, object_id: str) -> Any:
        url = f"{self._settings.fullnode_url(network)}/objects/{object_id}"
        try:
            async with self._client() as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise ChainError(f"object fetch failed for {object_id}: {exc}") from exc
        if response.is_error:
            raise ChainError(f"object fetch failed for {object_id}: HTTP {response.status_code}")
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise ChainError(f"object {object_id} returned invalid JSON") from exc

    async def owned_object_refs(self, network: str, address: str) -> list[Any]:
        body = {"jsonrpc": "2.0", "id": 1, "method": "sui_getObjectsOwnedByAddress", "params": [address]}
        try:
            async with self._client() as client:
                response = await client.post(self._settings.fullnode_url(network), json=body)
        except httpx.HTTPError as exc:
            raise ChainError(f"owner lookup failed for {address}: {exc}") from exc
        if response.is_error:
            raise ChainError(f"owner lookup failed for {address}: HTTP {response.status_code}")
        try:
            payload = response.json()
        except json.JSONDecodeError:
            payload = {}
        refs = payload.get("result") if isinstance(payload, dict) else None
        return refs if isinstance(refs, list) else []

    def explorer_search_urls(self, network: str, type_string: str) -> list[str]:
        base = self._settings.explorer_base
        encoded = quote(type_string, safe="")
        return [
            f"{base}/api/objects/by_type?type={encoded}&network={network}",
            f"{base}/api/v1/objects/by_type?type={encoded}&network={network}",
            f"{base}/api/search?query={encoded}&network={network}",
        ]

    async def search_by_type(self, network: str, type_string: str) -> list[Any]:
        """Best-effort explorer search; the first URL with results wins."""
        async with self._client() as client:
            for url in self.explorer_search_urls(network, type_string):
                try:
                    response = await client.get(url)
                    if response.is_error:
                        continue
                    payload = response.json()
                except (httpx.HTTPError, json.JSONDecodeError) as exc:
                    logger.debug("Explorer search %s failed: %s", url, exc)
                    continue
                found: list[Any] = []
                if isinstance(payload, list):
                    found = payload
                elif isinstance(payload, dict) and isinstance(payload.get("data"), list):
                    found = payload["data"]
                elif isinstance(payload, dict) and isinstance(payload.get("result"), list):
                    found = payload["result"]
                if found:
                    return found
        return []
