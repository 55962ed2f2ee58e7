"""Tests for scene grouping."""

from __future__ import annotations

from scenarr.core.matching.config import MatchingConfig
from scenarr.core.search.grouper import SceneGrouper

LONG = "A Very Long Scene Title About Something"  # 39 chars
LONGER = "A Very Long Scene Title About Something Extra"  # 45 chars


class TestSceneGrouper:
    """Tests for the two-phase grouping rules."""

    def _grouper(self) -> SceneGrouper:
        return SceneGrouper(config=MatchingConfig())

    def test_identical_titles_share_a_group(self, make_torrent) -> None:
        groups = self._grouper().group(
            [make_torrent(f"{LONG} 1080p"), make_torrent(f"{LONG} 720p")]
        )

        assert len(groups) == 1
        assert groups[0].scene_title == LONG
        assert len(groups[0].torrents) == 2

    def test_prefix_merge_uses_longer_key(self, make_torrent) -> None:
        groups = self._grouper().group([make_torrent(LONG), make_torrent(LONGER)])

        assert len(groups) == 1
        assert groups[0].scene_title == LONGER
        assert [t.title for t in groups[0].torrents] == [LONG, LONGER]

    def test_prefix_merge_when_longer_seen_first(self, make_torrent) -> None:
        groups = self._grouper().group([make_torrent(LONGER), make_torrent(LONG)])

        assert len(groups) == 1
        assert groups[0].scene_title == LONGER
        assert [t.title for t in groups[0].torrents] == [LONGER, LONG]

    def test_short_title_never_merges(self, make_torrent) -> None:
        groups = self._grouper().group(
            [make_torrent("Short Ttl"), make_torrent("Short Ttl And Then A Much Longer Tail")]
        )

        assert len(groups) == 2

    def test_prefix_shorter_than_minimum_does_not_merge(self, make_torrent) -> None:
        groups = self._grouper().group(
            [make_torrent("Scene Title Number One"), make_torrent("Scene Title Number One Two")]
        )

        assert len(groups) == 2

    def test_low_length_ratio_does_not_merge(self, make_torrent) -> None:
        shorter = "Thirty Characters Long Title Ok"
        longer = shorter + " With A Much Much Longer Ending Here"
        groups = self._grouper().group([make_torrent(shorter), make_torrent(longer)])

        assert len(groups) == 2

    def test_non_prefix_similar_titles_do_not_merge(self, make_torrent) -> None:
        groups = self._grouper().group(
            [make_torrent(LONG), make_torrent("A Very Long Scene Title About Somethink")]
        )

        assert len(groups) == 2

    def test_grouping_is_deterministic(self, make_torrent) -> None:
        results = [make_torrent(LONG), make_torrent("Other Scene Entirely Here"), make_torrent(LONGER)]

        first = self._grouper().group(results)
        second = self._grouper().group(results)

        assert [g.scene_title for g in first] == [g.scene_title for g in second]
        assert [len(g.torrents) for g in first] == [len(g.torrents) for g in second]

    def test_empty_input(self) -> None:
        assert self._grouper().group([]) == []
