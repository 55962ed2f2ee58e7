"""Base abstract class for indexer clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import structlog


class IndexerClient(ABC):
    """Abstract base class for indexer clients."""

    def __init__(self, name: str) -> None:
        """Initialize indexer client.

        Args:
            name: Name of the indexer (for logging)
        """
        self.name = name
        self.logger = structlog.get_logger(f"scenarr.indexers.{name.lower()}")

    @abstractmethod
    async def search(self, term: str, limit: int = 100) -> list[dict[str, Any]]:
        """Search for releases.

        Args:
            term: Free-text search term (performer, studio or scene title)
            limit: Maximum number of results to return

        Returns:
            List of raw results. Each result is a dict with at least: title, size,
            seeders, leechers, indexer_id, indexer, download_url, magnet_url and
            info_hash (None when unknown).
        """

    @abstractmethod
    async def test_connection(self) -> bool:
        """Test connection to the indexer.

        Returns:
            True if connection is successful, False otherwise
        """

    async def aclose(self) -> None:
        """Release network resources held by the client."""
