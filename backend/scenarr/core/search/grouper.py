"""Cluster filtered results into scene groups by normalized title."""

from __future__ import annotations

import structlog

from scenarr.core.matching.config import MatchingConfig, get_matching_config
from scenarr.core.search.models import SceneGroup, TorrentResult
from scenarr.core.search.normalizer import DEFAULT_NORMALIZER, TitleNormalizer, length_ratio

logger = structlog.get_logger("scenarr.search.grouper")


class SceneGrouper:
    """Conservative two-phase grouping.

    Titles under ``min_title_length`` characters only share a group with an
    identical key. Longer titles merge on exact equality, or when the shorter one
    is long enough, is a literal prefix of the longer one and the length ratio is
    high enough. The longer title always becomes the group key.
    """

    def __init__(
        self,
        normalizer: TitleNormalizer | None = None,
        config: MatchingConfig | None = None,
    ) -> None:
        self.normalizer = normalizer or DEFAULT_NORMALIZER
        self.config = config or get_matching_config()

    def _find_prefix_key(self, title: str, groups: dict[str, list[TorrentResult]]) -> str | None:
        for key in groups:
            if len(key) < self.config.grouping_min_title_length:
                continue
            shorter, longer = (key, title) if len(key) <= len(title) else (title, key)
            if (
                len(shorter) >= self.config.grouping_min_prefix_length
                and longer.startswith(shorter)
                and length_ratio(shorter, longer) >= self.config.grouping_threshold
            ):
                return key
        return None

    def group(self, results: list[TorrentResult]) -> list[SceneGroup]:
        """Group ``results`` preserving first-seen order of groups and torrents."""
        groups: dict[str, list[TorrentResult]] = {}

        for result in results:
            title = self.normalizer.extract_scene_title(result.title)

            if len(title) < self.config.grouping_min_title_length or title in groups:
                groups.setdefault(title, []).append(result)
                continue

            key = self._find_prefix_key(title, groups)
            if key is None:
                groups[title] = [result]
            elif len(key) >= len(title):
                groups[key].append(result)
            else:
                # Absorb the shorter-keyed group under the longer title
                absorbed = groups.pop(key)
                groups[title] = [*absorbed, result]

        scene_groups = [
            SceneGroup(scene_title=title, torrents=torrents) for title, torrents in groups.items()
        ]
        logger.info(
            "Grouped torrents into scenes",
            torrents=len(results),
            groups=len(scene_groups),
        )
        return scene_groups
