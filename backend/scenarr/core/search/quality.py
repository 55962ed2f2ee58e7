"""Quality/source detection and quality-profile release selection."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog

from scenarr.core.search.models import ANY, GIGABYTE, QualityProfileItem, TorrentResult

logger = structlog.get_logger("scenarr.search.quality")

UNKNOWN = "Unknown"


def detect_quality(title: str) -> str:
    """Resolution tag found in ``title``, or ``Unknown``."""
    lowered = title.lower()
    if "2160p" in lowered or "4k" in lowered:
        return "2160p"
    if "1080p" in lowered:
        return "1080p"
    if "720p" in lowered:
        return "720p"
    if "480p" in lowered:
        return "480p"
    return UNKNOWN


def detect_source(title: str) -> str:
    """Source tag found in ``title``, or ``Unknown``."""
    lowered = title.lower()
    if "web-dl" in lowered or "webdl" in lowered:
        return "WEB-DL"
    if "webrip" in lowered:
        return "WEBRip"
    if "bluray" in lowered or "blu-ray" in lowered:
        return "BluRay"
    if "hdtv" in lowered:
        return "HDTV"
    return UNKNOWN


def parse_profile_items(items: Iterable[dict[str, Any] | QualityProfileItem]) -> list[QualityProfileItem]:
    """Validate stored profile items, keeping their preference order."""
    return [
        item if isinstance(item, QualityProfileItem) else QualityProfileItem.model_validate(item)
        for item in items
    ]


def _tag_matches(wanted: str, actual: str) -> bool:
    return wanted.lower() == ANY or wanted.lower() == actual.lower()


def item_accepts(item: QualityProfileItem, torrent: TorrentResult) -> bool:
    """Whether ``torrent`` satisfies every constraint of ``item``."""
    if not _tag_matches(item.quality, torrent.quality):
        return False
    if not _tag_matches(item.source, torrent.source):
        return False
    if item.min_seeders != ANY and torrent.seeders < item.min_seeders:
        return False
    if item.max_size > 0 and torrent.size > item.max_size * GIGABYTE:
        return False
    return True


class QualitySelector:
    """Pick one release per group according to an ordered quality profile.

    Items are tried in preference order. The first item that accepts at least one
    torrent decides, and its highest-seeded torrent wins. Later items are never
    consulted once an earlier one produced a match, even if they would accept a
    better-seeded release.
    """

    def __init__(self, items: Iterable[dict[str, Any] | QualityProfileItem]) -> None:
        self.items = parse_profile_items(items)

    def select(self, torrents: list[TorrentResult]) -> TorrentResult | None:
        """Best release for a matched group, or None if nothing qualifies."""
        for index, item in enumerate(self.items):
            eligible = [t for t in torrents if item_accepts(item, t)]
            if not eligible:
                continue
            best = max(eligible, key=lambda t: t.seeders)
            logger.debug(
                "Selected release",
                title=best.title,
                profile_item=index,
                quality=best.quality,
                source=best.source,
                seeders=best.seeders,
            )
            return best
        return None

    def select_unmatched(
        self, torrents: list[TorrentResult], min_group_members: int
    ) -> TorrentResult | None:
        """Like ``select`` but only for groups with at least ``min_group_members`` releases."""
        if len(torrents) < min_group_members:
            return None
        return self.select(torrents)
