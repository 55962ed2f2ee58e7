"""Pydantic models for the torrent search pipeline."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field

ANY = "any"
GIGABYTE = 1024 * 1024 * 1024


class TorrentResult(BaseModel):
    """A single release returned by an indexer."""

    title: str = Field(..., description="Release title as published by the indexer")
    size: int = Field(default=0, description="Size in bytes")
    seeders: int = Field(default=0, description="Seeder count")
    leechers: int = Field(default=0, description="Leecher count")
    quality: str = Field(default="Unknown", description="Resolution tag (2160p, 1080p, ...)")
    source: str = Field(default="Unknown", description="Source tag (WEB-DL, BluRay, ...)")
    indexer_id: str = Field(..., description="ID of the indexer that returned this result")
    indexer_name: str = Field(..., description="Name of the indexer")
    download_url: str = Field(default="", description="Magnet link or .torrent URL")
    info_hash: str | None = Field(default=None, description="BitTorrent info hash, if known")

    # Derived by deduplication
    indexers: list[str] = Field(
        default_factory=list, description="Names of every indexer carrying this release"
    )
    indexer_count: int = Field(default=1, description="len(indexers) after deduplication")

    # Set on selected releases
    scene_id: str | None = Field(default=None, description="Matched local scene ID")


class SceneGroup(BaseModel):
    """Releases believed to be the same scene."""

    scene_title: str = Field(..., description="Normalized group key")
    torrents: list[TorrentResult] = Field(default_factory=list)


class SceneCandidate(BaseModel):
    """A local scene that a group may be matched to."""

    id: str
    title: str
    date: str | None = None
    performer_ids: list[str] = Field(default_factory=list)
    studio_id: str | None = None
    performer_names: list[str] = Field(default_factory=list)
    studio_name: str | None = None


class MatchedGroup(BaseModel):
    """A release group assigned to a local scene."""

    scene: SceneCandidate
    torrents: list[TorrentResult]
    score: float | None = Field(default=None, description="Score of the winning candidate")


class MatchResult(BaseModel):
    """Partition of groups into matched and unmatched."""

    matched: list[MatchedGroup] = Field(default_factory=list)
    unmatched: list[SceneGroup] = Field(default_factory=list)


class QualityProfileItem(BaseModel):
    """One entry of a quality profile, in preference order."""

    quality: str = Field(default=ANY, description="Resolution tag or 'any'")
    source: str = Field(default=ANY, description="Source tag or 'any'")
    min_seeders: int | Literal["any"] = Field(default=ANY, description="Minimum seeders or 'any'")
    max_size: float = Field(default=0, ge=0, description="Maximum size in GB (0 = unlimited)")


class DiscoveredScene(BaseModel):
    """An unmatched group corroborated by several indexers."""

    scene_title: str
    indexer_count: int
    torrent_count: int
    best_seeders: int


class PerformerTarget(BaseModel):
    """Subscription target: a performer."""

    kind: Literal["performer"] = "performer"
    id: str
    name: str
    aliases: list[str] = Field(default_factory=list)


class StudioTarget(BaseModel):
    """Subscription target: a studio."""

    kind: Literal["studio"] = "studio"
    id: str
    name: str
    aliases: list[str] = Field(default_factory=list)


class SceneTarget(BaseModel):
    """Subscription target: a single scene, searched by its title."""

    kind: Literal["scene"] = "scene"
    id: str
    name: str = Field(..., description="Scene title")
    aliases: list[str] = Field(default_factory=list)


SubscriptionTarget = Annotated[
    PerformerTarget | StudioTarget | SceneTarget,
    Field(discriminator="kind"),
]


class SearchOutcome(BaseModel):
    """Result of a subscription search, with a reason when nothing could run."""

    torrents: list[TorrentResult] = Field(default_factory=list)
    reason: str | None = Field(default=None, description="Why the search did not run")
