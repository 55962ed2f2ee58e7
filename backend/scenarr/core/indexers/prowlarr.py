"""Prowlarr indexer client."""

from __future__ import annotations

import base64
import re
from typing import Any

import httpx

from scenarr.core.errors import IndexerError
from scenarr.core.indexers.base import IndexerClient

_HEX_HASH = re.compile(r"magnet:\?xt=urn:btih:([a-fA-F0-9]{40})", re.IGNORECASE)
_BASE32_HASH = re.compile(r"magnet:\?xt=urn:btih:([A-Z2-7]{32})", re.IGNORECASE)


def extract_info_hash(magnet_url: str | None) -> str | None:
    """Info hash of a magnet link as 40 uppercase hex characters.

    32-character base32 hashes are decoded to hex so both forms match the
    hash the download client reports.
    """
    if not magnet_url or not magnet_url.startswith("magnet:"):
        return None
    match = _HEX_HASH.search(magnet_url)
    if match:
        return match.group(1).upper()
    match = _BASE32_HASH.search(magnet_url)
    if match:
        return base64.b32decode(match.group(1).upper()).hex().upper()
    return None


class ProwlarrClient(IndexerClient):
    """Client for the Prowlarr search API (aggregates many torrent indexers)."""

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: int = 30,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Prowlarr client.

        Args:
            url: Base URL of Prowlarr (e.g., http://localhost:9696)
            api_key: Prowlarr API key
            timeout: Request timeout in seconds
            client: Optional preconfigured HTTP client
        """
        super().__init__("prowlarr")
        self.base_url = url.rstrip("/")
        self.api_key = api_key
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout), follow_redirects=True
        )

    async def __aenter__(self) -> ProwlarrClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """Make a GET request to the Prowlarr API and decode the JSON body."""
        url = f"{self.base_url}{endpoint}"
        try:
            self.logger.debug("Making Prowlarr API request", url=url, params=params)
            response = await self.client.get(
                url, params=params, headers={"X-Api-Key": self.api_key}
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self.logger.error(
                "Prowlarr API HTTP error",
                status_code=e.response.status_code,
                response=e.response.text[:200],
            )
            raise IndexerError(f"Prowlarr API error: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            self.logger.error("Prowlarr API connection error", error=str(e))
            raise IndexerError(f"Failed to connect to Prowlarr: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise IndexerError(
                f"Prowlarr returned invalid JSON: {response.text[:200]}"
            ) from e

    def _normalize(self, raw: dict[str, Any]) -> dict[str, Any]:
        """Map a Prowlarr search hit onto the indexer result shape."""
        info_hash = None
        magnet_url = None
        for candidate in (raw.get("guid"), raw.get("magnetUrl")):
            extracted = extract_info_hash(candidate)
            if extracted:
                info_hash = extracted
                magnet_url = candidate
                break

        if info_hash is None:
            self.logger.debug(
                "No magnet link or info hash in Prowlarr result", title=raw.get("title")
            )

        return {
            "guid": raw.get("guid"),
            "title": raw.get("title", ""),
            "size": int(raw.get("size") or 0),
            "seeders": int(raw.get("seeders") or 0),
            "leechers": int(raw.get("leechers") or 0),
            "indexer_id": raw.get("indexerId"),
            "indexer": raw.get("indexer", ""),
            "download_url": raw.get("downloadUrl"),
            "magnet_url": magnet_url,
            "info_hash": info_hash,
            "publish_date": raw.get("publishDate"),
        }

    async def search(self, term: str, limit: int = 100) -> list[dict[str, Any]]:
        """Search all Prowlarr indexers for ``term``.

        Raises:
            IndexerError: If Prowlarr is unreachable or returns an error
        """
        payload = await self._get(
            "/api/v1/search", {"query": term, "limit": limit, "type": "search"}
        )
        if not isinstance(payload, list):
            raise IndexerError("Unexpected Prowlarr search response")

        results = [self._normalize(raw) for raw in payload]
        self.logger.debug("Prowlarr search completed", query=term, count=len(results))
        return results

    async def test_connection(self) -> bool:
        try:
            response = await self.client.get(
                f"{self.base_url}/api/v1/health", headers={"X-Api-Key": self.api_key}
            )
            return response.is_success
        except httpx.HTTPError as e:
            self.logger.error("Prowlarr connection test failed", error=str(e))
            return False
