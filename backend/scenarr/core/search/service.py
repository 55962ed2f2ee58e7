"""Subscription search pipeline orchestration."""

from __future__ import annotations

import time

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from scenarr.core.config import Settings, get_settings
from scenarr.core.indexers.base import IndexerClient
from scenarr.core.matching.base import MatchEngine
from scenarr.core.matching.config import MatchingConfig, get_matching_config
from scenarr.core.matching.lexical import LexicalMatchEngine
from scenarr.core.matching.neural import CrossEncoderMatchEngine, ModelHandle
from scenarr.core.metrics import pipeline_duration_seconds, search_results_total
from scenarr.core.search.deduplicator import deduplicate
from scenarr.core.search.discovery import DiscoveryReporter
from scenarr.core.search.grouper import SceneGrouper
from scenarr.core.search.indexer_stage import IndexerSearchStage
from scenarr.core.search.models import SearchOutcome, SubscriptionTarget, TorrentResult
from scenarr.core.search.name_filter import NameIntegrityFilter
from scenarr.core.search.quality import QualitySelector
from scenarr.core.store import SceneMetadataStore

logger = structlog.get_logger("scenarr.search.service")

REASON_INDEXER_NOT_CONFIGURED = "Prowlarr not configured"
REASON_ENTITY_NOT_FOUND = "Entity not found"
REASON_PROFILE_NOT_FOUND = "Quality profile not found"


class TorrentSearchService:
    """Runs the search pipeline for one subscribed entity.

    search -> deduplicate -> name filter -> group -> match -> discovery report
    -> quality selection (matched groups, then metadata-less groups if enabled).

    Stages run sequentially. A failing search term or match group is logged and
    skipped; missing configuration is reported as a reason rather than raised.
    """

    def __init__(
        self,
        session: SQLModelAsyncSession,
        indexer: IndexerClient | None,
        settings: Settings | None = None,
        model_handle: ModelHandle | None = None,
        matching_config: MatchingConfig | None = None,
        engine: MatchEngine | None = None,
    ) -> None:
        """Initialize search service.

        Args:
            session: Database session
            indexer: Indexer client, or None when no indexer is configured
            settings: Application settings (uses get_settings() if None)
            model_handle: Shared cross-encoder handle, required for neural matching
            matching_config: Matching heuristics (uses get_matching_config() if None)
            engine: Explicit match engine, overriding the settings-based choice
        """
        self.store = SceneMetadataStore(session)
        self.indexer = indexer
        self.settings = settings or get_settings()
        self.model_handle = model_handle
        self.matching_config = matching_config or get_matching_config()
        self.engine = engine
        self.grouper = SceneGrouper(config=self.matching_config)
        self.discovery = DiscoveryReporter(self.settings.discovery_min_indexers)

    def _match_engine(self) -> MatchEngine:
        if self.engine is not None:
            return self.engine
        if self.settings.ai_use_cross_encoder:
            if self.model_handle is not None:
                return CrossEncoderMatchEngine(
                    self.model_handle,
                    threshold=self.settings.ai_cross_encoder_threshold,
                    config=self.matching_config,
                )
            logger.warning("Cross-encoder enabled but no model handle available, using lexical")
        return LexicalMatchEngine(config=self.matching_config)

    def _filter_by_name(
        self, target: SubscriptionTarget, results: list[TorrentResult]
    ) -> list[TorrentResult]:
        match target.kind:
            case "performer" | "studio":
                return NameIntegrityFilter(target.name, target.aliases).apply(results)
            case "scene":
                # Scene titles are matched downstream; their words need not appear verbatim
                return results

    async def search_subscription(self, subscription_id: str) -> SearchOutcome:
        """Run the pipeline for a stored subscription.

        Raises:
            NotFoundError: If the subscription does not exist
        """
        subscription = await self.store.get_subscription(subscription_id)
        return await self.search(
            subscription.entity_type,
            subscription.entity_id,
            subscription.quality_profile_id,
            include_metadata_missing=subscription.include_metadata_missing,
            include_aliases=subscription.include_aliases,
        )

    async def search_for_subscription(
        self,
        entity_type: str,
        entity_id: str,
        quality_profile_id: str,
        include_metadata_missing: bool = False,
        include_aliases: bool = False,
    ) -> list[TorrentResult]:
        """Selected, scene-tagged releases for an entity (empty when nothing could run)."""
        outcome = await self.search(
            entity_type,
            entity_id,
            quality_profile_id,
            include_metadata_missing=include_metadata_missing,
            include_aliases=include_aliases,
        )
        return outcome.torrents

    async def search(
        self,
        entity_type: str,
        entity_id: str,
        quality_profile_id: str,
        include_metadata_missing: bool = False,
        include_aliases: bool = False,
    ) -> SearchOutcome:
        """Run the full pipeline for an entity.

        Args:
            entity_type: performer, studio or scene
            entity_id: ID of the entity
            quality_profile_id: Profile used to pick one release per group
            include_metadata_missing: Also select releases for unmatched groups
            include_aliases: Search aliases as additional terms

        Returns:
            SearchOutcome with the selected releases, or a reason when the search
            could not run
        """
        log = logger.bind(entity_type=entity_type, entity_id=entity_id)

        if self.indexer is None:
            log.warning("No indexer configured, skipping search")
            return SearchOutcome(reason=REASON_INDEXER_NOT_CONFIGURED)

        target = await self.store.resolve_target(entity_type, entity_id)
        if target is None:
            log.warning("Entity not found for search")
            return SearchOutcome(reason=REASON_ENTITY_NOT_FOUND)

        profile = await self.store.find_quality_profile(quality_profile_id)
        if profile is None:
            log.warning("Quality profile not found", quality_profile_id=quality_profile_id)
            return SearchOutcome(reason=REASON_PROFILE_NOT_FOUND)

        started = time.perf_counter()
        log.info("Starting torrent search", name=target.name, include_aliases=include_aliases)

        raw = await IndexerSearchStage(self.indexer, self.settings.search_limit).search_entity(
            target, include_aliases
        )
        search_results_total.labels(stage="raw").inc(len(raw))

        deduplicated = deduplicate(raw)
        search_results_total.labels(stage="deduplicated").inc(len(deduplicated))

        filtered = self._filter_by_name(target, deduplicated)
        search_results_total.labels(stage="filtered").inc(len(filtered))

        groups = self.grouper.group(filtered)
        candidates = await self.store.find_candidate_scenes(
            target, limit=self.settings.candidate_scene_limit
        )
        log.info(
            "Grouped results",
            results=len(filtered),
            groups=len(groups),
            candidates=len(candidates),
        )

        match_result = await self._match_engine().match(groups, candidates, target)
        self.discovery.report(match_result.unmatched)

        selector = QualitySelector(profile)
        selected: list[TorrentResult] = []
        for matched in match_result.matched:
            best = selector.select(matched.torrents)
            if best is None:
                log.debug("No suitable release for scene", scene_id=matched.scene.id)
                continue
            selected.append(best.model_copy(update={"scene_id": matched.scene.id}))

        if include_metadata_missing:
            for group in match_result.unmatched:
                best = selector.select_unmatched(group.torrents, self.settings.ai_grouping_count)
                if best is not None:
                    selected.append(best)

        search_results_total.labels(stage="selected").inc(len(selected))
        pipeline_duration_seconds.labels(entity_type=entity_type).observe(
            time.perf_counter() - started
        )
        log.info(
            "Completed torrent search",
            raw=len(raw),
            filtered=len(filtered),
            groups=len(groups),
            matched=len(match_result.matched),
            unmatched=len(match_result.unmatched),
            selected=len(selected),
        )
        return SearchOutcome(torrents=selected)
