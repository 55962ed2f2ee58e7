"""Reporting of unmatched release groups seen on many indexers."""

from __future__ import annotations

import structlog

from scenarr.core.metrics import discovered_groups_total
from scenarr.core.search.models import DiscoveredScene, SceneGroup

logger = structlog.get_logger("scenarr.search.discovery")


class DiscoveryReporter:
    """Flags unmatched groups carried by at least ``min_indexers`` distinct indexers.

    Nothing is persisted. Every run reports again from scratch.
    """

    def __init__(self, min_indexers: int = 3) -> None:
        self.min_indexers = min_indexers

    def report(self, groups: list[SceneGroup]) -> list[DiscoveredScene]:
        discovered: list[DiscoveredScene] = []
        for group in groups:
            indexer_ids = {t.indexer_id for t in group.torrents}
            if len(indexer_ids) < self.min_indexers:
                continue

            scene = DiscoveredScene(
                scene_title=group.scene_title,
                indexer_count=len(indexer_ids),
                torrent_count=len(group.torrents),
                best_seeders=max((t.seeders for t in group.torrents), default=0),
            )
            discovered.append(scene)
            discovered_groups_total.inc()
            logger.info(
                "Discovered scene",
                scene_title=scene.scene_title,
                indexer_count=scene.indexer_count,
                torrent_count=scene.torrent_count,
            )
        return discovered
