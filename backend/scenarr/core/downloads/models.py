"""Pydantic models returned by the download queue service."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RetrySummary(BaseModel):
    """Aggregate result of a retry pass."""

    total: int = 0
    succeeded: int = 0
    permanent_failures: int = 0
    reason: str | None = Field(default=None, description="Why the retry pass did not run")


class RetryOutcome(BaseModel):
    """Result of retrying one queue item."""

    id: str
    success: bool
    status: str
    reason: str | None = None


class UnifiedDownload(BaseModel):
    """A queue item merged with the torrent client's live view of it."""

    id: str
    scene_id: str
    scene_title: str
    client_hash: str | None = None
    status: str
    progress: float | None = None
    download_speed: int | None = None
    upload_speed: int | None = None
    eta: int | None = None
    ratio: float | None = None
    size: int
    seeders: int
    leechers: int = 0
    quality: str
    added_at: int
    completed_at: int | None = None
    add_attempts: int = 0
    last_attempt_at: int | None = None
    last_error: str | None = None


class QueueItemCreate(BaseModel):
    """Request to put a release in the download queue."""

    scene_id: str
    title: str
    torrent_hash: str | None = None
    download_url: str | None = None
    size: int = 0
    seeders: int = 0
    quality: str = "Unknown"


class QueueItemUpdate(BaseModel):
    """Fields of a queue item that may be changed directly."""

    status: str | None = None
    client_hash: str | None = None
    completed_at: int | None = None
