"""qBittorrent Web API client."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from scenarr.core.clients.base import AddTorrentRequest, TorrentClient, TorrentInfo
from scenarr.core.errors import TorrentClientError

OK = "Ok."


class QBittorrentClient(TorrentClient):
    """Client for the qBittorrent Web API (v2).

    Authentication is cookie based. The session cookie is kept in the HTTP client's
    cookie jar; a 403 response means it expired and triggers one re-login.
    """

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        timeout: int = 30,
        poll_interval: float = 0.5,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the qBittorrent client.

        Args:
            url: Base URL of the Web UI (e.g., http://localhost:8080)
            username: Web UI username
            password: Web UI password
            timeout: Request timeout in seconds
            poll_interval: Seconds between checks while waiting for an added torrent
            client: Optional preconfigured HTTP client
        """
        super().__init__("qbittorrent")
        self.base_url = url.rstrip("/")
        self.username = username
        self.password = password
        self.poll_interval = poll_interval
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout), follow_redirects=True
        )
        self._logged_in = False

    async def __aenter__(self) -> QBittorrentClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def login(self) -> None:
        """Authenticate and store the session cookie.

        Raises:
            TorrentClientError: If the credentials are rejected or the client is unreachable
        """
        try:
            response = await self.client.post(
                f"{self.base_url}/api/v2/auth/login",
                data={"username": self.username, "password": self.password},
            )
        except httpx.HTTPError as e:
            raise TorrentClientError(f"Failed to connect to qBittorrent: {e}") from e

        if not response.is_success or response.text != OK:
            self._logged_in = False
            raise TorrentClientError("qBittorrent login failed")

        self._logged_in = True
        self.logger.debug("qBittorrent login successful")

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        retry_auth: bool = True,
    ) -> Any:
        if not self._logged_in:
            await self.login()

        try:
            response = await self.client.request(
                method, f"{self.base_url}{endpoint}", params=params, data=data
            )
        except httpx.HTTPError as e:
            self.logger.error("qBittorrent connection error", endpoint=endpoint, error=str(e))
            raise TorrentClientError(f"Failed to connect to qBittorrent: {e}") from e

        if response.status_code == 403 and retry_auth:
            self.logger.debug("qBittorrent session expired, logging in again")
            self._logged_in = False
            return await self._request(method, endpoint, params, data, retry_auth=False)

        if not response.is_success:
            self.logger.error(
                "qBittorrent API error", endpoint=endpoint, status_code=response.status_code
            )
            raise TorrentClientError(f"qBittorrent API error: HTTP {response.status_code}")

        if "application/json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text

    async def get_torrents(
        self, filter: str | None = None, category: str | None = None
    ) -> list[TorrentInfo]:
        params: dict[str, Any] = {}
        if filter:
            params["filter"] = filter
        if category:
            params["category"] = category

        torrents = await self._request("GET", "/api/v2/torrents/info", params=params)
        return [
            TorrentInfo(
                hash=t["hash"],
                name=t.get("name", ""),
                size=t.get("size", 0),
                progress=t.get("progress", 0.0),
                download_speed=t.get("dlspeed", 0),
                upload_speed=t.get("upspeed", 0),
                eta=t.get("eta", 0),
                ratio=t.get("ratio", 0.0),
                state=t.get("state", ""),
                category=t.get("category", ""),
                save_path=t.get("save_path", ""),
                added_on=t.get("added_on", 0),
                completion_on=t.get("completion_on", 0),
                num_seeds=t.get("num_seeds", 0),
                num_leechers=t.get("num_leechs", 0),
            )
            for t in torrents
        ]

    async def add_torrent(self, request: AddTorrentRequest) -> bool:
        data: dict[str, Any] = {"urls": "\n".join(request.urls)}
        if request.category:
            data["category"] = request.category
        if request.save_path:
            data["savepath"] = request.save_path
        if request.paused is not None:
            data["paused"] = str(request.paused).lower()

        result = await self._request("POST", "/api/v2/torrents/add", data=data)
        return result == OK

    async def add_torrent_and_get_hash(
        self, request: AddTorrentRequest, timeout_ms: int = 10000
    ) -> str | None:
        if not await self.add_torrent(request):
            return None

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        wanted_hash = request.match_info_hash.lower() if request.match_info_hash else None

        while loop.time() < deadline:
            await asyncio.sleep(self.poll_interval)
            torrents = await self.get_torrents()

            if wanted_hash:
                found = next((t for t in torrents if t.hash.lower() == wanted_hash), None)
                if found:
                    return found.hash

            if request.match_title:
                found = next((t for t in torrents if t.name == request.match_title), None)
                if found:
                    return found.hash

        self.logger.warning(
            "Torrent hash lookup timed out",
            match_title=request.match_title,
            match_info_hash=request.match_info_hash,
            timeout_ms=timeout_ms,
        )
        return None

    # pause, resume and delete answer 200 with an empty body
    async def pause_torrent(self, hash: str) -> bool:
        await self._request("POST", "/api/v2/torrents/pause", data={"hashes": hash})
        return True

    async def resume_torrent(self, hash: str) -> bool:
        await self._request("POST", "/api/v2/torrents/resume", data={"hashes": hash})
        return True

    async def remove_torrent(self, hash: str, delete_files: bool = False) -> bool:
        await self._request(
            "POST",
            "/api/v2/torrents/delete",
            data={"hashes": hash, "deleteFiles": str(delete_files).lower()},
        )
        return True

    async def test_connection(self) -> bool:
        try:
            await self.login()
            return True
        except TorrentClientError as e:
            self.logger.error("qBittorrent connection test failed", error=str(e))
            return False
