"""Shared fixtures for unit tests."""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import Any

import pytest
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from scenarr.core.clients.base import AddTorrentRequest, TorrentClient, TorrentInfo
from scenarr.core.config import Settings
from scenarr.core.database import (
    SessionFactory,
    create_database_engine,
    create_session_factory,
    create_tables,
)
from scenarr.core.errors import IndexerError
from scenarr.core.indexers.base import IndexerClient
from scenarr.core.matching.config import MatchingConfig
from scenarr.core.search.models import TorrentResult


@pytest.fixture
async def session_factory() -> AsyncIterator[SessionFactory]:
    """Session factory over a throwaway SQLite database."""
    temp_dir = Path(tempfile.mkdtemp())
    db_path = temp_dir / "test.db"

    try:
        engine = create_database_engine(db_path, echo=False)
        await create_tables(engine)

        yield create_session_factory(engine)

        await engine.dispose()
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
async def session(session_factory: SessionFactory) -> AsyncIterator[SQLModelAsyncSession]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temporary data directory."""
    return Settings(
        data_dir=tmp_path,
        env="testing",
        add_timeout_ms=1000,
        retry_max_attempts=5,
        retry_interval_minutes=5,
        retry_subscription_interval_minutes=30,
    )


@pytest.fixture
def matching_config() -> MatchingConfig:
    return MatchingConfig()


def _make_torrent(title: str, **overrides: object) -> TorrentResult:
    fields: dict[str, object] = {
        "title": title,
        "size": 1_000_000_000,
        "seeders": 10,
        "leechers": 1,
        "indexer_id": "prowlarr-1",
        "indexer_name": "IndexerOne",
        "download_url": "",
    }
    fields.update(overrides)
    return TorrentResult(**fields)  # type: ignore[arg-type]


@pytest.fixture
def make_torrent() -> Callable[..., TorrentResult]:
    """Factory for TorrentResult objects with sensible defaults."""
    return _make_torrent


class FakeTorrentClient(TorrentClient):
    """Records calls and answers adds with a fixed hash, None, or an error."""

    def __init__(self, result: str | None = "clienthash", error: Exception | None = None) -> None:
        super().__init__("fake")
        self.result = result
        self.error = error
        self.torrents: list[TorrentInfo] = []
        self.added: list[AddTorrentRequest] = []
        self.timeouts: list[int] = []
        self.paused: list[str] = []
        self.resumed: list[str] = []
        self.removed: list[tuple[str, bool]] = []

    async def get_torrents(
        self, filter: str | None = None, category: str | None = None
    ) -> list[TorrentInfo]:
        return self.torrents

    async def add_torrent(self, request: AddTorrentRequest) -> bool:
        self.added.append(request)
        return True

    async def add_torrent_and_get_hash(
        self, request: AddTorrentRequest, timeout_ms: int = 10000
    ) -> str | None:
        self.added.append(request)
        self.timeouts.append(timeout_ms)
        if self.error is not None:
            raise self.error
        return self.result

    async def pause_torrent(self, hash: str) -> bool:
        self.paused.append(hash)
        return True

    async def resume_torrent(self, hash: str) -> bool:
        self.resumed.append(hash)
        return True

    async def remove_torrent(self, hash: str, delete_files: bool = False) -> bool:
        self.removed.append((hash, delete_files))
        return True

    async def test_connection(self) -> bool:
        return True


@pytest.fixture
def torrent_client() -> FakeTorrentClient:
    return FakeTorrentClient()


def raw_hit(
    title: str,
    indexer_id: int = 1,
    indexer: str = "IndexerOne",
    seeders: int = 10,
    size: int = 1_000_000_000,
    info_hash: str | None = None,
    download_url: str | None = None,
) -> dict[str, Any]:
    """A raw indexer result in the shape returned by ``IndexerClient.search``."""
    return {
        "guid": None,
        "title": title,
        "size": size,
        "seeders": seeders,
        "leechers": 0,
        "indexer_id": indexer_id,
        "indexer": indexer,
        "download_url": download_url,
        "magnet_url": None,
        "info_hash": info_hash,
        "publish_date": None,
    }


class FakeIndexer(IndexerClient):
    """Serves canned results per search term and can fail selected terms."""

    def __init__(
        self,
        results: dict[str, list[dict[str, Any]]] | None = None,
        failing_terms: set[str] | None = None,
    ) -> None:
        super().__init__("fake")
        self.results = results or {}
        self.failing_terms = failing_terms or set()
        self.terms: list[str] = []

    async def search(self, term: str, limit: int = 100) -> list[dict[str, Any]]:
        self.terms.append(term)
        if term in self.failing_terms:
            raise IndexerError(f"Search failed for {term}")
        return list(self.results.get(term, []))

    async def test_connection(self) -> bool:
        return True


@pytest.fixture
def hit() -> Callable[..., dict[str, Any]]:
    """Factory for raw indexer hits."""
    return raw_hit


@pytest.fixture
def indexer_factory() -> Callable[..., FakeIndexer]:
    return FakeIndexer
