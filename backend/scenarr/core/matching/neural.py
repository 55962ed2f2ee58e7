"""Cross-encoder scene matching.

The cross-encoder scores (query, candidate) pairs jointly. Loading the model is
expensive, so it is held behind a reference-counted ``ModelHandle``: the first
user loads it, the last user unloads it, and concurrent searches for different
entities never unload it from under each other.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, Field

from scenarr.core.matching.base import MatchEngine
from scenarr.core.matching.config import MatchingConfig, get_matching_config
from scenarr.core.matching.penalties import performer_penalty, title_penalty
from scenarr.core.metrics import scene_matches_total
from scenarr.core.search.models import (
    MatchedGroup,
    MatchResult,
    SceneCandidate,
    SceneGroup,
    SubscriptionTarget,
)
from scenarr.core.search.normalizer import length_ratio

logger = structlog.get_logger("scenarr.matching.neural")

_EDGE_SEPARATORS = re.compile(r"^[-–—:,\s]+|[-–—:,\s]+$")


class MatchQuery(BaseModel):
    """What we know about a release group."""

    performer: str | None = None
    studio: str | None = None
    date: str | None = None
    title: str


class RankCandidate(BaseModel):
    """A local scene as presented to the ranker."""

    id: str
    title: str
    date: str | None = None
    studio: str | None = None
    performers: list[str] = Field(default_factory=list)


class RankedMatch(BaseModel):
    """Best candidate and its normalized score."""

    candidate: RankCandidate
    score: float


class NeuralRanker(Protocol):
    """Model-backed ranker with an explicit load/unload lifecycle."""

    async def initialize(self) -> None: ...

    async def unload(self) -> None: ...

    async def find_best_match(
        self,
        query: MatchQuery,
        candidates: list[RankCandidate],
        threshold: float,
    ) -> RankedMatch | None: ...


def build_query_text(query: MatchQuery) -> str:
    """``Performer: X | Studio: Y | Date: D | Title: T`` (absent parts omitted)."""
    parts: list[str] = []
    if query.performer:
        parts.append(f"Performer: {query.performer}")
    if query.studio:
        parts.append(f"Studio: {query.studio}")
    if query.date:
        parts.append(f"Date: {query.date}")
    parts.append(f"Title: {query.title}")
    return " | ".join(parts)


def build_candidate_text(candidate: RankCandidate) -> str:
    """Candidate document in the same layout as the query."""
    parts: list[str] = []
    if candidate.performers:
        parts.append(f"Performer: {', '.join(candidate.performers)}")
    if candidate.studio:
        parts.append(f"Studio: {candidate.studio}")
    if candidate.date:
        parts.append(f"Date: {candidate.date}")
    parts.append(f"Title: {candidate.title}")
    return " | ".join(parts)


def strip_leading_names(title: str, names: list[str], min_length: int = 5) -> str:
    """Remove the first of ``names`` found at the very start of ``title``.

    Names are never removed from the middle or end. If too little is left, the
    original title is returned.
    """
    cleaned = title
    for name in sorted((n for n in names if n), key=len, reverse=True):
        pattern = re.compile(rf"^{re.escape(name)}\s*[-–—:,]?\s*", re.IGNORECASE)
        if pattern.match(cleaned):
            cleaned = pattern.sub("", cleaned, count=1)
            break

    cleaned = _EDGE_SEPARATORS.sub("", cleaned).strip()
    return cleaned if len(cleaned) >= min_length else title


def strip_names_anywhere(title: str, names: list[str], min_length: int = 5) -> str:
    """Remove whole-word occurrences of ``names`` from a candidate title."""
    cleaned = title
    for name in sorted((n for n in names if n), key=len, reverse=True):
        cleaned = re.sub(rf"\b{re.escape(name)}\b", " ", cleaned, flags=re.IGNORECASE)

    cleaned = re.sub(r"\s+", " ", _EDGE_SEPARATORS.sub("", cleaned)).strip()
    cleaned = _EDGE_SEPARATORS.sub("", cleaned)
    return cleaned if len(cleaned) >= min_length else title


class ModelHandle:
    """Reference-counted owner of a ``NeuralRanker``'s loaded state."""

    def __init__(self, ranker: NeuralRanker) -> None:
        self.ranker = ranker
        self._users = 0
        self._lock = asyncio.Lock()

    @property
    def users(self) -> int:
        return self._users

    async def acquire(self) -> NeuralRanker:
        async with self._lock:
            if self._users == 0:
                logger.info("Loading cross-encoder model")
                await self.ranker.initialize()
            self._users += 1
        return self.ranker

    async def release(self) -> None:
        async with self._lock:
            if self._users == 0:
                return
            self._users -= 1
            if self._users == 0:
                logger.info("Unloading cross-encoder model")
                await self.ranker.unload()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[NeuralRanker]:
        """Hold the model loaded for the duration of a batch."""
        ranker = await self.acquire()
        try:
            yield ranker
        finally:
            await self.release()


class CrossEncoderMatchEngine(MatchEngine):
    """Greedy matching with a cross-encoder ranker."""

    strategy = "cross_encoder"

    def __init__(
        self,
        handle: ModelHandle,
        threshold: float = 0.7,
        config: MatchingConfig | None = None,
    ) -> None:
        super().__init__()
        self.handle = handle
        self.threshold = threshold
        self.config = config or get_matching_config()

    def _rank_candidates(
        self,
        query_title: str,
        candidates: list[SceneCandidate],
        target: SubscriptionTarget,
    ) -> list[RankCandidate]:
        ranked: list[RankCandidate] = []
        for candidate in candidates:
            title = candidate.title
            if target.kind == "performer":
                title = strip_names_anywhere(
                    title, candidate.performer_names, self.config.neural_min_cleaned_length
                )
            if length_ratio(query_title, title) < self.config.neural_min_length_ratio:
                continue
            ranked.append(
                RankCandidate(
                    id=candidate.id,
                    title=title,
                    date=candidate.date,
                    studio=candidate.studio_name,
                    performers=candidate.performer_names,
                )
            )
        return ranked

    def _build_query(self, title: str, target: SubscriptionTarget) -> MatchQuery:
        match target.kind:
            case "performer":
                return MatchQuery(performer=target.name, title=title)
            case "studio":
                return MatchQuery(studio=target.name, title=title)
            case "scene":
                return MatchQuery(title=title)

    async def match(
        self,
        groups: list[SceneGroup],
        candidates: list[SceneCandidate],
        target: SubscriptionTarget,
    ) -> MatchResult:
        result = MatchResult()
        if not groups:
            return result

        by_id = {c.id: c for c in candidates}
        matched_scene_ids: set[str] = set()
        names = [target.name, *target.aliases]

        try:
            ranker = await self.handle.acquire()
        except Exception as e:
            self.logger.error("Cross-encoder unavailable, leaving groups unmatched", error=str(e))
            result.unmatched.extend(groups)
            return result

        try:
            for group in groups:
                available = [c for c in candidates if c.id not in matched_scene_ids]
                if not available:
                    result.unmatched.append(group)
                    continue

                try:
                    title = strip_leading_names(
                        group.scene_title, names, self.config.neural_min_cleaned_length
                    )
                    rank_candidates = self._rank_candidates(title, available, target)
                    best = (
                        await ranker.find_best_match(
                            self._build_query(title, target), rank_candidates, self.threshold
                        )
                        if rank_candidates
                        else None
                    )
                except Exception as e:
                    self.logger.error(
                        "Cross-encoder scoring failed for group",
                        group_title=group.scene_title,
                        error=str(e),
                    )
                    scene_matches_total.labels(strategy=self.strategy, outcome="error").inc()
                    result.unmatched.append(group)
                    continue

                if best is None or best.score < self.threshold or best.candidate.id not in by_id:
                    scene_matches_total.labels(strategy=self.strategy, outcome="unmatched").inc()
                    result.unmatched.append(group)
                    continue

                scene = by_id[best.candidate.id]
                matched_scene_ids.add(scene.id)
                result.matched.append(
                    MatchedGroup(scene=scene, torrents=group.torrents, score=best.score)
                )
                scene_matches_total.labels(strategy=self.strategy, outcome="matched").inc()
                self.logger.info(
                    "Matched scene group",
                    group_title=group.scene_title,
                    query_title=title,
                    scene_title=scene.title,
                    score=round(best.score, 4),
                )
        finally:
            await self.handle.release()

        self.logger.info(
            "Cross-encoder matching complete",
            target=target.name,
            matched=len(result.matched),
            unmatched=len(result.unmatched),
        )
        return result


class CrossEncoderRanker:
    """``NeuralRanker`` backed by a sentence-transformers ``CrossEncoder``.

    Single-label cross-encoders return sigmoid-activated scores in [0, 1]. For
    performer queries the score is reduced by the larger of the performer and
    title penalties.
    """

    def __init__(self, model_name: str, config: MatchingConfig | None = None) -> None:
        self.model_name = model_name
        self.config = config or get_matching_config()
        self._model: Any | None = None

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    async def initialize(self) -> None:
        if self._model is not None:
            return
        from sentence_transformers import CrossEncoder

        self._model = await asyncio.to_thread(CrossEncoder, self.model_name)
        logger.info("Cross-encoder model loaded", model=self.model_name)

    async def unload(self) -> None:
        self._model = None
        logger.info("Cross-encoder model unloaded", model=self.model_name)

    def _apply_penalties(self, query: MatchQuery, candidate: RankCandidate, score: float) -> float:
        if not query.performer or not candidate.performers:
            return score
        penalty = max(
            performer_penalty(query.performer, candidate.performers),
            title_penalty(
                query.title, candidate.title, self.config.neural_title_penalty_similarity
            ),
        )
        return score * (1 - penalty)

    async def find_best_match(
        self,
        query: MatchQuery,
        candidates: list[RankCandidate],
        threshold: float,
    ) -> RankedMatch | None:
        if self._model is None:
            raise RuntimeError("Cross-encoder model is not loaded")
        if not candidates:
            return None

        query_text = build_query_text(query)
        pairs = [(query_text, build_candidate_text(c)) for c in candidates]
        raw_scores = await asyncio.to_thread(self._model.predict, pairs)

        best: RankedMatch | None = None
        for candidate, raw in zip(candidates, raw_scores, strict=True):
            score = self._apply_penalties(query, candidate, float(raw))
            if best is None or score > best.score:
                best = RankedMatch(candidate=candidate, score=score)

        if best is None or best.score < threshold:
            logger.debug(
                "No cross-encoder match above threshold",
                query=query_text,
                best_score=best.score if best else None,
                threshold=threshold,
            )
            return None
        return best
