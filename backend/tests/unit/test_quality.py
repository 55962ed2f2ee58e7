"""Tests for quality detection and release selection."""

from __future__ import annotations

from scenarr.core.search.models import GIGABYTE, QualityProfileItem
from scenarr.core.search.quality import (
    QualitySelector,
    detect_quality,
    detect_source,
    item_accepts,
)


class TestDetection:
    """Tests for tag detection from titles."""

    def test_detect_quality(self) -> None:
        assert detect_quality("Scene 2160p") == "2160p"
        assert detect_quality("Scene 4K") == "2160p"
        assert detect_quality("Scene 1080P") == "1080p"
        assert detect_quality("Scene 720p") == "720p"
        assert detect_quality("Scene 480p") == "480p"
        assert detect_quality("Scene") == "Unknown"

    def test_detect_source(self) -> None:
        assert detect_source("Scene WEB-DL") == "WEB-DL"
        assert detect_source("Scene WEBDL") == "WEB-DL"
        assert detect_source("Scene WEBRip") == "WEBRip"
        assert detect_source("Scene Blu-Ray") == "BluRay"
        assert detect_source("Scene HDTV") == "HDTV"
        assert detect_source("Scene") == "Unknown"


class TestItemAccepts:
    """Tests for single profile item constraints."""

    def test_any_wildcards(self, make_torrent) -> None:
        item = QualityProfileItem(quality="ANY", source="any", min_seeders="any", max_size=0)
        assert item_accepts(item, make_torrent("Scene", seeders=0, size=500 * GIGABYTE))

    def test_tags_compared_case_insensitively(self, make_torrent) -> None:
        item = QualityProfileItem(quality="1080P", source="web-dl")
        assert item_accepts(item, make_torrent("Scene", quality="1080p", source="WEB-DL"))

    def test_min_seeders(self, make_torrent) -> None:
        item = QualityProfileItem(min_seeders=5)
        assert not item_accepts(item, make_torrent("Scene", seeders=4))
        assert item_accepts(item, make_torrent("Scene", seeders=5))

    def test_max_size_in_gigabytes(self, make_torrent) -> None:
        item = QualityProfileItem(max_size=2)
        assert item_accepts(item, make_torrent("Scene", size=2 * GIGABYTE))
        assert not item_accepts(item, make_torrent("Scene", size=2 * GIGABYTE + 1))


class TestQualitySelector:
    """Tests for ordered profile selection."""

    def test_first_matching_item_wins(self, make_torrent) -> None:
        selector = QualitySelector(
            [
                {"quality": "1080p", "source": "WEB-DL", "min_seeders": 5, "max_size": 0},
                {"quality": "720p", "source": "any", "min_seeders": 1, "max_size": 0},
            ]
        )
        torrents = [
            make_torrent("Scene 1080p WEB-DL", quality="1080p", source="WEB-DL", seeders=3),
            make_torrent("Scene 720p", quality="720p", seeders=10),
        ]

        best = selector.select(torrents)

        assert best is not None
        assert best.title == "Scene 720p"

    def test_highest_seeded_within_item(self, make_torrent) -> None:
        selector = QualitySelector([QualityProfileItem()])
        torrents = [
            make_torrent("A", seeders=3),
            make_torrent("B", seeders=30),
            make_torrent("C", seeders=7),
        ]

        assert selector.select(torrents).title == "B"  # type: ignore[union-attr]

    def test_earlier_item_wins_over_better_seeded_later_item(self, make_torrent) -> None:
        selector = QualitySelector(
            [QualityProfileItem(quality="1080p"), QualityProfileItem(quality="720p")]
        )
        torrents = [
            make_torrent("Low", quality="1080p", seeders=2),
            make_torrent("High", quality="720p", seeders=200),
        ]

        assert selector.select(torrents).title == "Low"  # type: ignore[union-attr]

    def test_no_suitable_release(self, make_torrent) -> None:
        selector = QualitySelector([QualityProfileItem(quality="2160p")])
        assert selector.select([make_torrent("Scene", quality="720p")]) is None

    def test_empty_profile_selects_nothing(self, make_torrent) -> None:
        assert QualitySelector([]).select([make_torrent("Scene")]) is None

    def test_unmatched_group_needs_minimum_members(self, make_torrent) -> None:
        selector = QualitySelector([QualityProfileItem()])

        assert selector.select_unmatched([make_torrent("A")], min_group_members=2) is None

        best = selector.select_unmatched(
            [make_torrent("A", seeders=1), make_torrent("B", seeders=2)], min_group_members=2
        )
        assert best is not None
        assert best.title == "B"
