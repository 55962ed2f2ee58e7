"""Tests for cross-encoder matching and the shared model handle."""

from __future__ import annotations

import asyncio

import pytest

from scenarr.core.matching.config import MatchingConfig
from scenarr.core.matching.neural import (
    CrossEncoderMatchEngine,
    CrossEncoderRanker,
    MatchQuery,
    ModelHandle,
    RankCandidate,
    RankedMatch,
    build_candidate_text,
    build_query_text,
    strip_leading_names,
    strip_names_anywhere,
)
from scenarr.core.search.models import (
    PerformerTarget,
    SceneCandidate,
    SceneGroup,
    StudioTarget,
)

PERFORMER = PerformerTarget(id="p1", name="Jade Harper", aliases=["JH"])


class FakeRanker:
    """Returns the candidate whose title equals the query title."""

    def __init__(self, score: float = 0.9, fail_on: str | None = None) -> None:
        self.score = score
        self.fail_on = fail_on
        self.initialized = 0
        self.unloaded = 0
        self.queries: list[MatchQuery] = []
        self.candidate_batches: list[list[RankCandidate]] = []

    async def initialize(self) -> None:
        self.initialized += 1

    async def unload(self) -> None:
        self.unloaded += 1

    async def find_best_match(
        self, query: MatchQuery, candidates: list[RankCandidate], threshold: float
    ) -> RankedMatch | None:
        self.queries.append(query)
        self.candidate_batches.append(candidates)
        if self.fail_on and query.title == self.fail_on:
            raise RuntimeError("scoring failed")
        for candidate in candidates:
            if candidate.title.lower() == query.title.lower():
                return RankedMatch(candidate=candidate, score=self.score)
        return None


class FailingInitRanker(FakeRanker):
    async def initialize(self) -> None:
        raise RuntimeError("model download failed")


def scene(scene_id: str, title: str, performers: list[str] | None = None) -> SceneCandidate:
    return SceneCandidate(
        id=scene_id,
        title=title,
        performer_ids=["p1"],
        performer_names=performers if performers is not None else ["Jade Harper"],
    )


def group(title: str, make_torrent) -> SceneGroup:
    return SceneGroup(scene_title=title, torrents=[make_torrent(title)])


class TestTextHelpers:
    """Tests for query/candidate documents and name stripping."""

    def test_build_query_text(self) -> None:
        query = MatchQuery(performer="Jade Harper", date="2023-05-12", title="Morning Scene")
        assert build_query_text(query) == (
            "Performer: Jade Harper | Date: 2023-05-12 | Title: Morning Scene"
        )

    def test_build_candidate_text(self) -> None:
        candidate = RankCandidate(
            id="s1", title="Morning Scene", studio="Studio", performers=["A", "B"]
        )
        assert build_candidate_text(candidate) == (
            "Performer: A, B | Studio: Studio | Title: Morning Scene"
        )

    def test_strip_leading_names(self) -> None:
        assert strip_leading_names("Jade Harper - Morning Scene", ["Jade Harper"]) == "Morning Scene"
        assert strip_leading_names("jade harper: Morning Scene", ["Jade Harper"]) == "Morning Scene"

    def test_strip_leading_names_never_strips_mid_or_end(self) -> None:
        title = "Morning Scene With Jade Harper"
        assert strip_leading_names(title, ["Jade Harper"]) == title

    def test_strip_leading_names_keeps_original_when_too_short(self) -> None:
        assert strip_leading_names("Jade Harper - Hi", ["Jade Harper"]) == "Jade Harper - Hi"

    def test_strip_names_anywhere(self) -> None:
        assert strip_names_anywhere("Morning Scene With Jade Harper", ["Jade Harper"]) == (
            "Morning Scene With"
        )


class TestModelHandle:
    """Tests for reference-counted model lifetime."""

    @pytest.mark.asyncio
    async def test_loads_once_and_unloads_once(self) -> None:
        ranker = FakeRanker()
        handle = ModelHandle(ranker)

        await handle.acquire()
        await handle.acquire()
        assert ranker.initialized == 1
        assert handle.users == 2

        await handle.release()
        assert ranker.unloaded == 0
        await handle.release()
        assert ranker.unloaded == 1
        assert handle.users == 0

    @pytest.mark.asyncio
    async def test_release_without_acquire_is_noop(self) -> None:
        ranker = FakeRanker()
        await ModelHandle(ranker).release()
        assert ranker.unloaded == 0

    @pytest.mark.asyncio
    async def test_concurrent_sessions_do_not_unload_each_other(self) -> None:
        ranker = FakeRanker()
        handle = ModelHandle(ranker)
        first_inside = asyncio.Event()
        second_done = asyncio.Event()

        async def long_user() -> int:
            async with handle.session():
                first_inside.set()
                await second_done.wait()
                return ranker.unloaded

        async def short_user() -> None:
            await first_inside.wait()
            async with handle.session():
                pass
            second_done.set()

        unloaded_while_in_use, _ = await asyncio.gather(long_user(), short_user())

        assert unloaded_while_in_use == 0
        assert ranker.initialized == 1
        assert ranker.unloaded == 1

    @pytest.mark.asyncio
    async def test_session_releases_on_error(self) -> None:
        ranker = FakeRanker()
        handle = ModelHandle(ranker)

        with pytest.raises(ValueError):
            async with handle.session():
                raise ValueError("boom")

        assert handle.users == 0
        assert ranker.unloaded == 1


class TestCrossEncoderMatchEngine:
    """Tests for greedy cross-encoder matching."""

    def _engine(self, ranker: FakeRanker, threshold: float = 0.7) -> CrossEncoderMatchEngine:
        return CrossEncoderMatchEngine(ModelHandle(ranker), threshold, MatchingConfig())

    @pytest.mark.asyncio
    async def test_strips_leading_name_before_scoring(self, make_torrent) -> None:
        ranker = FakeRanker()
        groups = [group("Jade Harper - Morning Scene", make_torrent)]

        result = await self._engine(ranker).match(
            groups, [scene("s1", "Morning Scene")], PERFORMER
        )

        assert ranker.queries[0].title == "Morning Scene"
        assert ranker.queries[0].performer == "Jade Harper"
        assert [m.scene.id for m in result.matched] == ["s1"]

    @pytest.mark.asyncio
    async def test_strips_performer_names_from_candidates(self, make_torrent) -> None:
        ranker = FakeRanker()
        groups = [group("Morning Scene", make_torrent)]

        result = await self._engine(ranker).match(
            groups, [scene("s1", "Jade Harper Morning Scene")], PERFORMER
        )

        assert ranker.candidate_batches[0][0].title == "Morning Scene"
        assert len(result.matched) == 1

    @pytest.mark.asyncio
    async def test_studio_query(self, make_torrent) -> None:
        ranker = FakeRanker()
        target = StudioTarget(id="st1", name="Big Studio")
        candidates = [SceneCandidate(id="s1", title="Morning Scene", studio_name="Big Studio")]

        await self._engine(ranker).match([group("Morning Scene", make_torrent)], candidates, target)

        assert ranker.queries[0].studio == "Big Studio"
        assert ranker.queries[0].performer is None

    @pytest.mark.asyncio
    async def test_length_ratio_prefilter(self, make_torrent) -> None:
        ranker = FakeRanker()
        candidates = [
            scene("s1", "Promo"),
            scene("s2", "A Very Long Canonical Scene Title That Goes On And On"),
        ]

        result = await self._engine(ranker).match(
            [group("Morning Scene At Home Today", make_torrent)], candidates, PERFORMER
        )

        assert [c.id for c in ranker.candidate_batches[0]] == ["s2"]
        assert result.matched == []

    @pytest.mark.asyncio
    async def test_below_threshold_is_unmatched(self, make_torrent) -> None:
        ranker = FakeRanker(score=0.5)

        result = await self._engine(ranker, threshold=0.7).match(
            [group("Morning Scene", make_torrent)], [scene("s1", "Morning Scene")], PERFORMER
        )

        assert result.matched == []
        assert len(result.unmatched) == 1

    @pytest.mark.asyncio
    async def test_scene_claimed_once(self, make_torrent) -> None:
        ranker = FakeRanker()
        groups = [group("Morning Scene", make_torrent), group("morning scene", make_torrent)]

        result = await self._engine(ranker).match(
            groups, [scene("s1", "Morning Scene")], PERFORMER
        )

        assert len(result.matched) == 1
        assert len(result.unmatched) == 1

    @pytest.mark.asyncio
    async def test_model_loaded_once_per_batch_despite_errors(self, make_torrent) -> None:
        ranker = FakeRanker(fail_on="Broken Scene")
        groups = [
            group("Broken Scene", make_torrent),
            group("Morning Scene", make_torrent),
            group("Evening Scene", make_torrent),
        ]
        candidates = [
            scene("s1", "Broken Scene"),
            scene("s2", "Morning Scene"),
            scene("s3", "Evening Scene"),
        ]

        result = await self._engine(ranker).match(groups, candidates, PERFORMER)

        assert ranker.initialized == 1
        assert ranker.unloaded == 1
        assert [m.scene.id for m in result.matched] == ["s2", "s3"]
        assert [g.scene_title for g in result.unmatched] == ["Broken Scene"]

    @pytest.mark.asyncio
    async def test_model_failure_leaves_groups_unmatched(self, make_torrent) -> None:
        ranker = FailingInitRanker()
        groups = [group("Morning Scene", make_torrent)]

        result = await self._engine(ranker).match(
            groups, [scene("s1", "Morning Scene")], PERFORMER
        )

        assert result.matched == []
        assert result.unmatched == groups

    @pytest.mark.asyncio
    async def test_held_model_not_reloaded(self, make_torrent) -> None:
        ranker = FakeRanker()
        handle = ModelHandle(ranker)
        engine = CrossEncoderMatchEngine(handle, 0.7, MatchingConfig())

        await handle.acquire()
        await engine.match([group("Morning Scene", make_torrent)], [scene("s1", "Morning Scene")], PERFORMER)
        await engine.match([group("Morning Scene", make_torrent)], [scene("s1", "Morning Scene")], PERFORMER)

        assert ranker.initialized == 1
        assert ranker.unloaded == 0
        await handle.release()
        assert ranker.unloaded == 1


class FakeCrossEncoder:
    def __init__(self, scores: list[float]) -> None:
        self.scores = scores

    def predict(self, pairs: list[tuple[str, str]]) -> list[float]:
        return self.scores[: len(pairs)]


class TestCrossEncoderRanker:
    """Tests for scoring and penalties with a stand-in model."""

    @pytest.mark.asyncio
    async def test_requires_loaded_model(self) -> None:
        ranker = CrossEncoderRanker("model", MatchingConfig())
        with pytest.raises(RuntimeError):
            await ranker.find_best_match(
                MatchQuery(title="x"), [RankCandidate(id="s1", title="x")], 0.5
            )

    @pytest.mark.asyncio
    async def test_performer_penalty_demotes_other_performer(self) -> None:
        ranker = CrossEncoderRanker("model", MatchingConfig())
        ranker._model = FakeCrossEncoder([0.8, 0.9])
        candidates = [
            RankCandidate(id="right", title="Morning Scene", performers=["Jade Harper"]),
            RankCandidate(id="wrong", title="Morning Scene", performers=["Dillion Harper"]),
        ]

        best = await ranker.find_best_match(
            MatchQuery(performer="Jade Harper", title="Morning Scene"), candidates, 0.7
        )

        assert best is not None
        assert best.candidate.id == "right"
        assert best.score == pytest.approx(0.8)

    @pytest.mark.asyncio
    async def test_below_threshold_returns_none(self) -> None:
        ranker = CrossEncoderRanker("model", MatchingConfig())
        ranker._model = FakeCrossEncoder([0.4])

        best = await ranker.find_best_match(
            MatchQuery(title="Morning Scene"), [RankCandidate(id="s1", title="Morning Scene")], 0.7
        )

        assert best is None

    @pytest.mark.asyncio
    async def test_unload_drops_model(self) -> None:
        ranker = CrossEncoderRanker("model", MatchingConfig())
        ranker._model = FakeCrossEncoder([])

        await ranker.unload()

        assert ranker.is_loaded is False
