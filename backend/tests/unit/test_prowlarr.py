"""Tests for the Prowlarr indexer client."""

from __future__ import annotations

import httpx
import pytest

from scenarr.core.errors import IndexerError
from scenarr.core.indexers.prowlarr import ProwlarrClient, extract_info_hash

HEX_HASH = "a" * 40
BASE32_HASH = "B" * 32
BASE32_AS_HEX = "0842108421" * 4


def make_client(handler) -> ProwlarrClient:
    transport = httpx.MockTransport(handler)
    return ProwlarrClient(
        "http://prowlarr:9696/", "secret", client=httpx.AsyncClient(transport=transport)
    )


class TestExtractInfoHash:
    """Tests for magnet hash extraction."""

    def test_hex_hash(self) -> None:
        assert extract_info_hash(f"magnet:?xt=urn:btih:{HEX_HASH}&dn=x") == HEX_HASH.upper()

    def test_base32_hash(self) -> None:
        assert extract_info_hash(f"magnet:?xt=urn:btih:{BASE32_HASH}&dn=x") == BASE32_AS_HEX

    def test_lowercase_base32_hash(self) -> None:
        magnet = f"magnet:?xt=urn:btih:{BASE32_HASH.lower()}"
        assert extract_info_hash(magnet) == BASE32_AS_HEX

    def test_not_a_magnet(self) -> None:
        assert extract_info_hash("http://example.com/file.torrent") is None
        assert extract_info_hash(None) is None


class TestProwlarrClient:
    """Tests for search requests and response mapping."""

    @pytest.mark.asyncio
    async def test_search_sends_query_and_api_key(self) -> None:
        seen: dict[str, object] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["api_key"] = request.headers.get("X-Api-Key")
            return httpx.Response(200, json=[])

        async with make_client(handler) as client:
            assert await client.search("Jade Harper", limit=50) == []

        assert seen["path"] == "/api/v1/search"
        assert seen["params"] == {"query": "Jade Harper", "limit": "50", "type": "search"}
        assert seen["api_key"] == "secret"

    @pytest.mark.asyncio
    async def test_search_normalizes_results(self) -> None:
        payload = [
            {
                "guid": f"magnet:?xt=urn:btih:{HEX_HASH}&dn=Scene",
                "title": "Jade Harper - Scene 1080p",
                "size": 1234,
                "seeders": 12,
                "leechers": 3,
                "indexerId": 7,
                "indexer": "TorrentSite",
                "downloadUrl": "http://prowlarr/download/1",
                "publishDate": "2024-01-01T00:00:00Z",
            },
            {
                "guid": "http://site/details/2",
                "magnetUrl": f"magnet:?xt=urn:btih:{BASE32_HASH}",
                "title": "Other",
                "indexerId": 8,
                "indexer": "OtherSite",
            },
            {"guid": "http://site/details/3", "title": "No Hash", "indexerId": 9},
        ]

        async with make_client(lambda request: httpx.Response(200, json=payload)) as client:
            results = await client.search("Jade Harper")

        assert results[0]["info_hash"] == HEX_HASH.upper()
        assert results[0]["magnet_url"] == payload[0]["guid"]
        assert results[0]["indexer_id"] == 7
        assert results[0]["indexer"] == "TorrentSite"
        assert results[0]["download_url"] == "http://prowlarr/download/1"
        assert results[0]["seeders"] == 12
        assert results[1]["info_hash"] == BASE32_AS_HEX
        assert results[1]["seeders"] == 0
        assert results[2]["info_hash"] is None
        assert results[2]["magnet_url"] is None

    @pytest.mark.asyncio
    async def test_http_error_raises_indexer_error(self) -> None:
        async with make_client(lambda request: httpx.Response(500, text="boom")) as client:
            with pytest.raises(IndexerError):
                await client.search("Jade Harper")

    @pytest.mark.asyncio
    async def test_connection_error_raises_indexer_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(IndexerError):
                await client.search("Jade Harper")

    @pytest.mark.asyncio
    async def test_invalid_json_raises_indexer_error(self) -> None:
        async with make_client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(IndexerError):
                await client.search("Jade Harper")

    @pytest.mark.asyncio
    async def test_unexpected_shape_raises_indexer_error(self) -> None:
        async with make_client(lambda request: httpx.Response(200, json={"error": "x"})) as client:
            with pytest.raises(IndexerError):
                await client.search("Jade Harper")

    @pytest.mark.asyncio
    async def test_test_connection(self) -> None:
        async with make_client(lambda request: httpx.Response(200, json={})) as client:
            assert await client.test_connection() is True

        async with make_client(lambda request: httpx.Response(401)) as client:
            assert await client.test_connection() is False
