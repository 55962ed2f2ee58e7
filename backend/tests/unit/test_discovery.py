"""Tests for discovery reporting of unmatched groups."""

from __future__ import annotations

from scenarr.core.search.discovery import DiscoveryReporter
from scenarr.core.search.models import SceneGroup


class TestDiscoveryReporter:
    """Tests for distinct-indexer counting."""

    def test_reports_group_on_enough_indexers(self, make_torrent) -> None:
        group = SceneGroup(
            scene_title="Unknown Scene",
            torrents=[
                make_torrent("a", indexer_id="prowlarr-1", seeders=4),
                make_torrent("b", indexer_id="prowlarr-2", seeders=9),
                make_torrent("c", indexer_id="prowlarr-3", seeders=1),
            ],
        )

        discovered = DiscoveryReporter(min_indexers=3).report([group])

        assert len(discovered) == 1
        assert discovered[0].scene_title == "Unknown Scene"
        assert discovered[0].indexer_count == 3
        assert discovered[0].torrent_count == 3
        assert discovered[0].best_seeders == 9

    def test_counts_distinct_indexers_only(self, make_torrent) -> None:
        group = SceneGroup(
            scene_title="Unknown Scene",
            torrents=[
                make_torrent("a", indexer_id="prowlarr-1"),
                make_torrent("b", indexer_id="prowlarr-1"),
                make_torrent("c", indexer_id="prowlarr-2"),
            ],
        )

        assert DiscoveryReporter(min_indexers=3).report([group]) == []

    def test_reports_again_every_run(self, make_torrent) -> None:
        group = SceneGroup(
            scene_title="Unknown Scene",
            torrents=[make_torrent("a", indexer_id=f"prowlarr-{i}") for i in range(3)],
        )
        reporter = DiscoveryReporter(min_indexers=3)

        assert len(reporter.report([group])) == 1
        assert len(reporter.report([group])) == 1
