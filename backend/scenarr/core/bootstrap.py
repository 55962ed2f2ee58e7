"""Construction of the database and external service clients from settings."""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from scenarr.core.clients.base import TorrentClient
from scenarr.core.clients.qbittorrent import QBittorrentClient
from scenarr.core.config import Settings
from scenarr.core.database import (
    SessionFactory,
    create_database_engine,
    create_session_factory,
    create_tables,
    set_global_session_factory,
)
from scenarr.core.indexers.base import IndexerClient
from scenarr.core.indexers.prowlarr import ProwlarrClient
from scenarr.core.matching.config import MatchingConfig
from scenarr.core.matching.neural import CrossEncoderRanker, ModelHandle

logger = structlog.get_logger("scenarr.bootstrap")


def ensure_directories(settings: Settings) -> None:
    """Create the data, config, database and logs directories."""
    for directory in (settings.config_dir, settings.database_dir, settings.logs_dir):
        directory.mkdir(parents=True, exist_ok=True)


async def init_database(settings: Settings) -> tuple[AsyncEngine, SessionFactory]:
    """Create the engine, tables and the global session factory.

    Args:
        settings: Application settings

    Returns:
        The engine and its session factory
    """
    ensure_directories(settings)
    engine = create_database_engine(settings.database_file, echo=False)
    await create_tables(engine)
    session_factory = create_session_factory(engine)
    set_global_session_factory(session_factory)
    logger.info("Database initialized", database_file=str(settings.database_file))
    return engine, session_factory


def create_indexer(settings: Settings) -> IndexerClient | None:
    """Prowlarr client, or None when Prowlarr is not configured."""
    if not settings.prowlarr_configured:
        logger.info("Prowlarr not configured")
        return None
    return ProwlarrClient(settings.prowlarr_url, settings.prowlarr_api_key)


def create_torrent_client(settings: Settings) -> TorrentClient | None:
    """qBittorrent client, or None when qBittorrent is not configured."""
    if not settings.qbittorrent_configured:
        logger.info("qBittorrent not configured")
        return None
    return QBittorrentClient(
        settings.qbittorrent_url,
        settings.qbittorrent_username,
        settings.qbittorrent_password,
    )


def create_model_handle(
    settings: Settings, config: MatchingConfig | None = None
) -> ModelHandle | None:
    """Shared cross-encoder handle, or None when cross-encoder matching is disabled.

    The model itself is only loaded when a search first acquires the handle.
    """
    if not settings.ai_use_cross_encoder:
        return None
    return ModelHandle(CrossEncoderRanker(settings.ai_cross_encoder_model, config=config))
