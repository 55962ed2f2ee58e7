"""Database models for Scenarr.

All SQLModel models should be defined here and imported in db/__init__.py.

Models follow these patterns:
- Use singular nouns: Scene, DownloadQueueItem
- Table names use plural, snake_case: scenes, download_queue
- Use uuid.uuid4().hex for IDs (32 character hex strings)
- Timestamps are integer epoch seconds
"""

from __future__ import annotations

import time
import uuid
from typing import Any

from sqlalchemy import JSON, Column, Index
from sqlmodel import Field, SQLModel

metadata = SQLModel.metadata

# Download queue statuses
STATUS_QUEUED = "queued"
STATUS_DOWNLOADING = "downloading"
STATUS_PAUSED = "paused"
STATUS_SEEDING = "seeding"
STATUS_COMPLETED = "completed"
STATUS_ADD_FAILED = "add_failed"

DOWNLOAD_STATUSES = (
    STATUS_QUEUED,
    STATUS_DOWNLOADING,
    STATUS_PAUSED,
    STATUS_SEEDING,
    STATUS_COMPLETED,
    STATUS_ADD_FAILED,
)


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> int:
    return int(time.time())


class Performer(SQLModel, table=True):
    """A performer that can be subscribed to."""

    __tablename__ = "performers"  # type: ignore[assignment]

    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str = Field(index=True)
    aliases: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    is_subscribed: bool = False
    created_at: int = Field(default_factory=_now)
    updated_at: int = Field(default_factory=_now)


class Studio(SQLModel, table=True):
    """A studio (site) that can be subscribed to."""

    __tablename__ = "studios"  # type: ignore[assignment]

    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str = Field(index=True)
    aliases: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    is_subscribed: bool = False
    created_at: int = Field(default_factory=_now)
    updated_at: int = Field(default_factory=_now)


class Scene(SQLModel, table=True):
    """A scene known locally, from a metadata provider or inferred from indexers."""

    __tablename__ = "scenes"  # type: ignore[assignment]

    id: str = Field(default_factory=_new_id, primary_key=True)
    title: str
    date: str | None = Field(default=None)  # ISO date (YYYY-MM-DD)
    studio_id: str | None = Field(default=None, index=True)
    has_metadata: bool = True
    inferred_from_indexers: bool = False  # Placeholder created from an unmatched release group
    is_subscribed: bool = True
    created_at: int = Field(default_factory=_now)
    updated_at: int = Field(default_factory=_now)

    __table_args__ = (Index("idx_scenes_title_metadata", "title", "has_metadata"),)


class PerformerScene(SQLModel, table=True):
    """Link between performers and the scenes they appear in."""

    __tablename__ = "performers_scenes"  # type: ignore[assignment]

    performer_id: str = Field(primary_key=True)
    scene_id: str = Field(primary_key=True, index=True)


class QualityProfile(SQLModel, table=True):
    """Ordered list of release preferences."""

    __tablename__ = "quality_profiles"  # type: ignore[assignment]

    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str
    # [{"quality": "1080p", "source": "WEB-DL", "min_seeders": 5, "max_size": 0}, ...]
    items: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: int = Field(default_factory=_now)
    updated_at: int = Field(default_factory=_now)


class Subscription(SQLModel, table=True):
    """Subscription to a performer, studio or single scene."""

    __tablename__ = "subscriptions"  # type: ignore[assignment]

    id: str = Field(default_factory=_new_id, primary_key=True)
    entity_type: str = Field(index=True)  # performer, studio, scene
    entity_id: str = Field(index=True)
    quality_profile_id: str
    auto_download: bool = True
    include_metadata_missing: bool = False
    include_aliases: bool = False
    is_subscribed: bool = True
    created_at: int = Field(default_factory=_now)
    updated_at: int = Field(default_factory=_now)

    __table_args__ = (Index("idx_subscriptions_entity", "entity_type", "entity_id"),)


class DownloadQueueItem(SQLModel, table=True):
    """A release handed (or waiting to be handed) to the torrent client."""

    __tablename__ = "download_queue"  # type: ignore[assignment]

    id: str = Field(default_factory=_new_id, primary_key=True)
    scene_id: str = Field(index=True)
    torrent_hash: str | None = Field(default=None, index=True)  # Info hash from the indexer
    client_hash: str | None = Field(default=None)  # Hash reported by the torrent client
    download_url: str | None = Field(default=None)  # Magnet or .torrent URL, if retained
    title: str
    size: int = 0
    seeders: int = 0
    quality: str = "Unknown"
    status: str = Field(default=STATUS_QUEUED, index=True)
    added_at: int = Field(default_factory=_now)
    completed_at: int | None = Field(default=None)

    # Retry tracking
    add_attempts: int = 0
    last_attempt_at: int | None = Field(default=None)
    last_error: str | None = Field(default=None)

    __table_args__ = (Index("idx_download_queue_status_attempt", "status", "last_attempt_at"),)
