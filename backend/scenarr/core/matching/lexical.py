"""Lexical scene matching on normalized titles."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from rapidfuzz.distance import Levenshtein

from scenarr.core.matching.base import MatchEngine
from scenarr.core.matching.config import MatchingConfig, get_matching_config
from scenarr.core.matching.dates import date_bonus, extract_date
from scenarr.core.metrics import scene_matches_total
from scenarr.core.search.models import (
    MatchedGroup,
    MatchResult,
    SceneCandidate,
    SceneGroup,
    SubscriptionTarget,
)
from scenarr.core.search.normalizer import (
    DEFAULT_NORMALIZER,
    TitleNormalizer,
    length_ratio,
    normalize_for_comparison,
)


@dataclass
class ScoredMatch:
    """A candidate with its lexical score."""

    candidate: SceneCandidate
    score: float
    method: str


class SceneScorer(Protocol):
    """Scores a normalized release title against a normalized scene title."""

    def score(self, release_title: str, scene_title: str) -> tuple[float, str] | None:
        """Return ``(score, method)`` or None when the titles do not match."""
        ...


def levenshtein_similarity(first: str, second: str) -> float:
    """``(len(longer) - distance) / len(longer)``."""
    return Levenshtein.normalized_similarity(first, second)


class TieredTitleScorer:
    """Exact, truncated, partial and edit-distance scoring, tried in that order.

    Scores are on a 0-100 scale:
    - exact: 100
    - truncated (one is a prefix of the other, length ratio above threshold): 90-95
    - partial (shorter side long enough and a prefix): 80-85
    - edit distance similarity above threshold: similarity * 100
    """

    def __init__(self, config: MatchingConfig | None = None) -> None:
        self.config = config or get_matching_config()

    def score(self, release_title: str, scene_title: str) -> tuple[float, str] | None:
        config = self.config
        if not release_title or not scene_title:
            return None

        if release_title == scene_title:
            return config.exact_match_score, "exact"

        ratio = length_ratio(release_title, scene_title)
        shorter, longer = sorted((release_title, scene_title), key=len)
        is_prefix = longer.startswith(shorter)

        if is_prefix and ratio >= config.truncated_match_ratio:
            return config.truncated_match_base + ratio * config.ratio_weight, "truncated"

        if is_prefix and len(shorter) >= config.partial_match_min_length:
            return config.partial_match_base + ratio * config.ratio_weight, "partial"

        similarity = levenshtein_similarity(release_title, scene_title)
        if similarity >= config.levenshtein_threshold:
            return similarity * 100, "levenshtein"

        return None


class LexicalMatchEngine(MatchEngine):
    """Greedy first-group-wins matching with a pluggable title scorer."""

    strategy = "lexical"

    def __init__(
        self,
        scorer: SceneScorer | None = None,
        normalizer: TitleNormalizer | None = None,
        config: MatchingConfig | None = None,
    ) -> None:
        super().__init__()
        self.config = config or get_matching_config()
        self.scorer = scorer or TieredTitleScorer(self.config)
        self.normalizer = normalizer or DEFAULT_NORMALIZER

    def find_best_match(
        self, group: SceneGroup, candidates: list[SceneCandidate]
    ) -> ScoredMatch | None:
        """Best-scoring candidate for ``group``, or None below the minimum score."""
        release_title = self.normalizer.remove_metadata(group.scene_title)
        # The group key has dates stripped, so read the date from the raw titles
        release_date = next(
            (d for d in (extract_date(t.title) for t in group.torrents) if d is not None),
            None,
        )

        best: ScoredMatch | None = None
        for candidate in candidates:
            scored = self.scorer.score(release_title, normalize_for_comparison(candidate.title))
            if scored is None:
                continue

            score, method = scored
            score += date_bonus(release_date, candidate.date, self.config)

            if best is None or score > best.score:
                best = ScoredMatch(candidate=candidate, score=score, method=method)
            if method == "exact":
                break

        if best is None or best.score < self.config.lexical_min_score:
            return None
        return best

    async def match(
        self,
        groups: list[SceneGroup],
        candidates: list[SceneCandidate],
        target: SubscriptionTarget,
    ) -> MatchResult:
        result = MatchResult()
        matched_scene_ids: set[str] = set()

        for group in groups:
            available = [c for c in candidates if c.id not in matched_scene_ids]
            best = self.find_best_match(group, available) if available else None

            if best is None:
                result.unmatched.append(group)
                scene_matches_total.labels(strategy=self.strategy, outcome="unmatched").inc()
                continue

            matched_scene_ids.add(best.candidate.id)
            result.matched.append(
                MatchedGroup(scene=best.candidate, torrents=group.torrents, score=best.score)
            )
            scene_matches_total.labels(strategy=self.strategy, outcome="matched").inc()
            self.logger.info(
                "Matched scene group",
                group_title=group.scene_title,
                scene_title=best.candidate.title,
                method=best.method,
                score=round(best.score, 2),
            )

        self.logger.info(
            "Lexical matching complete",
            target=target.name,
            matched=len(result.matched),
            unmatched=len(result.unmatched),
        )
        return result
