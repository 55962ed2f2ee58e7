"""Base abstract class for torrent clients."""

from __future__ import annotations

from abc import ABC, abstractmethod

import structlog
from pydantic import BaseModel, Field


class TorrentInfo(BaseModel):
    """Live snapshot of a torrent as reported by the client."""

    hash: str
    name: str
    size: int = 0
    progress: float = Field(default=0.0, description="0.0 to 1.0")
    download_speed: int = 0
    upload_speed: int = 0
    eta: int = 0
    ratio: float = 0.0
    state: str = ""
    category: str = ""
    save_path: str = ""
    added_on: int = 0
    completion_on: int = 0
    num_seeds: int = 0
    num_leechers: int = 0


class AddTorrentRequest(BaseModel):
    """Torrent to hand to the client, plus what to look for once it is added."""

    urls: list[str]
    category: str | None = None
    save_path: str | None = None
    paused: bool | None = None
    match_info_hash: str | None = None
    match_title: str | None = None


class TorrentClient(ABC):
    """Abstract base class for torrent clients."""

    def __init__(self, name: str) -> None:
        """Initialize torrent client.

        Args:
            name: Name of the client (for logging)
        """
        self.name = name
        self.logger = structlog.get_logger(f"scenarr.clients.{name.lower()}")

    @abstractmethod
    async def get_torrents(
        self, filter: str | None = None, category: str | None = None
    ) -> list[TorrentInfo]:
        """Get all torrents, optionally filtered by state filter or category."""

    @abstractmethod
    async def add_torrent(self, request: AddTorrentRequest) -> bool:
        """Add a torrent. Returns True if the client accepted it."""

    @abstractmethod
    async def add_torrent_and_get_hash(
        self, request: AddTorrentRequest, timeout_ms: int = 10000
    ) -> str | None:
        """Add a torrent and wait for it to show up in the client.

        Args:
            request: Torrent to add; ``match_info_hash``/``match_title`` identify it
            timeout_ms: How long to wait for the torrent to appear

        Returns:
            The client's hash for the torrent, or None if it did not appear in time
        """

    @abstractmethod
    async def pause_torrent(self, hash: str) -> bool:
        """Pause a torrent."""

    @abstractmethod
    async def resume_torrent(self, hash: str) -> bool:
        """Resume a paused torrent."""

    @abstractmethod
    async def remove_torrent(self, hash: str, delete_files: bool = False) -> bool:
        """Remove a torrent, optionally deleting its files."""

    @abstractmethod
    async def test_connection(self) -> bool:
        """Test connection to the client."""

    async def aclose(self) -> None:
        """Release network resources held by the client."""
