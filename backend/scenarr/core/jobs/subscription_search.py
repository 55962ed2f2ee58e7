"""Scheduled search for every active subscription."""

from __future__ import annotations

import re

import structlog
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from scenarr.core.clients.base import TorrentClient
from scenarr.core.config import Settings, get_settings
from scenarr.core.database import SessionFactory, get_global_session_factory, retry_db_operation
from scenarr.core.downloads.service import DownloadQueueService
from scenarr.core.indexers.base import IndexerClient
from scenarr.core.matching.config import MatchingConfig
from scenarr.core.matching.neural import ModelHandle
from scenarr.core.search.models import TorrentResult
from scenarr.core.search.normalizer import extract_scene_title
from scenarr.core.search.service import TorrentSearchService
from scenarr.core.store import SceneMetadataStore
from scenarr.db.models import PerformerScene, Scene, Subscription

logger = structlog.get_logger("scenarr.jobs.subscription_search")

MIN_PLACEHOLDER_TITLE_LENGTH = 3


def placeholder_title(torrent_title: str, entity_name: str | None) -> str:
    """Scene title for a metadata-less release: cleaned, with a leading entity name removed."""
    cleaned = extract_scene_title(torrent_title)
    if not entity_name:
        return cleaned
    pattern = re.compile(rf"^{re.escape(entity_name)}\s*[-–—:,]?\s*", re.IGNORECASE)
    stripped = pattern.sub("", cleaned, count=1).strip()
    return stripped if len(stripped) >= MIN_PLACEHOLDER_TITLE_LENGTH else cleaned


class SubscriptionSearchJob:
    """Searches performer, studio and scene subscriptions and queues what was found.

    Order of work:
    1. performer subscriptions
    2. studio subscriptions
    3. scene subscriptions not covered by a subscribed performer or studio
    4. a retry pass over failed adds, with a longer interval than the monitor job

    Each subscription is processed independently; one failing does not stop the run.
    """

    name = "subscription-search"

    def __init__(
        self,
        indexer: IndexerClient | None,
        client: TorrentClient | None,
        settings: Settings | None = None,
        session_factory: SessionFactory | None = None,
        model_handle: ModelHandle | None = None,
        matching_config: MatchingConfig | None = None,
    ) -> None:
        self.indexer = indexer
        self.client = client
        self.settings = settings or get_settings()
        self._session_factory = session_factory
        self.model_handle = model_handle
        self.matching_config = matching_config

    @property
    def session_factory(self) -> SessionFactory:
        factory = self._session_factory or get_global_session_factory()
        if factory is None:
            raise RuntimeError("Database session factory is not initialized")
        return factory

    def _search_service(self, session: SQLModelAsyncSession) -> TorrentSearchService:
        return TorrentSearchService(
            session,
            self.indexer,
            settings=self.settings,
            model_handle=self.model_handle,
            matching_config=self.matching_config,
        )

    def _queue_service(self, session: SQLModelAsyncSession) -> DownloadQueueService:
        return DownloadQueueService(session, self.client, settings=self.settings)

    async def execute(self) -> None:
        logger.info("Starting subscription search job")

        held_model = False
        if self.settings.ai_use_cross_encoder and self.model_handle is not None:
            try:
                await self.model_handle.acquire()
                held_model = True
            except Exception as e:
                logger.error("Failed to load cross-encoder model for this run", error=str(e))

        try:
            async with self.session_factory() as session:
                store = SceneMetadataStore(session)
                performer_subs = await store.list_active_subscriptions("performer")
                studio_subs = await store.list_active_subscriptions("studio")
                scene_subs = await store.list_active_subscriptions("scene")

            logger.info(
                "Processing subscriptions",
                performers=len(performer_subs),
                studios=len(studio_subs),
                scenes=len(scene_subs),
            )

            for subscription in [*performer_subs, *studio_subs]:
                try:
                    await self.process_entity_subscription(subscription)
                except Exception as e:
                    logger.error(
                        "Failed to process subscription",
                        subscription_id=subscription.id,
                        entity_type=subscription.entity_type,
                        entity_id=subscription.entity_id,
                        error=str(e),
                        exc_info=True,
                    )

            await self.process_scene_subscriptions(scene_subs, performer_subs, studio_subs)
        finally:
            if held_model and self.model_handle is not None:
                await self.model_handle.release()

        async with self.session_factory() as session:
            await self._queue_service(session).retry_failed_torrents(
                self.settings.retry_max_attempts,
                retry_after_minutes=self.settings.retry_subscription_interval_minutes,
            )

        logger.info("Subscription search job completed")

    async def process_entity_subscription(self, subscription: Subscription) -> list[str]:
        """Search one performer or studio subscription and queue its releases.

        Returns:
            IDs of matched scenes among the queued releases
        """
        async with self.session_factory() as session:
            store = SceneMetadataStore(session)
            target = await store.resolve_target(subscription.entity_type, subscription.entity_id)
            if target is None:
                logger.warning(
                    "Subscribed entity not found",
                    subscription_id=subscription.id,
                    entity_type=subscription.entity_type,
                    entity_id=subscription.entity_id,
                )
                return []

            logger.info("Processing subscription", entity_type=target.kind, name=target.name)
            torrents = await self._search_service(session).search_for_subscription(
                subscription.entity_type,
                subscription.entity_id,
                subscription.quality_profile_id,
                include_metadata_missing=subscription.include_metadata_missing,
                include_aliases=subscription.include_aliases,
            )
            logger.info("Search finished", name=target.name, torrents=len(torrents))

            found: list[str] = []
            if subscription.auto_download:
                for torrent in torrents[: self.settings.max_torrents_per_run]:
                    if torrent.scene_id:
                        found.append(torrent.scene_id)
                    await self.add_to_download_queue(session, torrent, subscription, target.name)
            return found

    async def _covered_scene_ids(
        self,
        session: SQLModelAsyncSession,
        performer_subs: list[Subscription],
        studio_subs: list[Subscription],
    ) -> set[str]:
        covered: set[str] = set()
        performer_ids = [s.entity_id for s in performer_subs]
        studio_ids = [s.entity_id for s in studio_subs]
        if performer_ids:
            result = await session.exec(
                select(PerformerScene.scene_id).where(
                    col(PerformerScene.performer_id).in_(performer_ids)
                )
            )
            covered.update(result.all())
        if studio_ids:
            result = await session.exec(
                select(Scene.id).where(col(Scene.studio_id).in_(studio_ids))
            )
            covered.update(result.all())
        return covered

    async def process_scene_subscriptions(
        self,
        scene_subs: list[Subscription],
        performer_subs: list[Subscription],
        studio_subs: list[Subscription],
    ) -> None:
        """Search scenes that no performer or studio subscription already covers."""
        if not scene_subs:
            return
        if self.indexer is None:
            logger.warning("No indexer configured, skipping scene search")
            return

        async with self.session_factory() as session:
            covered = await self._covered_scene_ids(session, performer_subs, studio_subs)

        remaining = [s for s in scene_subs if s.entity_id not in covered]
        logger.info("Searching individual scenes", covered=len(covered), remaining=len(remaining))

        for subscription in remaining:
            try:
                async with self.session_factory() as session:
                    scene = await session.get(Scene, subscription.entity_id)
                    if scene is None:
                        continue
                    torrents = await self._search_service(session).search_for_subscription(
                        "scene", scene.id, subscription.quality_profile_id
                    )
                    if torrents and subscription.auto_download:
                        await self.add_to_download_queue(
                            session, torrents[0], subscription, scene.title
                        )
            except Exception as e:
                logger.error(
                    "Failed to search for scene",
                    scene_id=subscription.entity_id,
                    error=str(e),
                    exc_info=True,
                )

    async def add_to_download_queue(
        self,
        session: SQLModelAsyncSession,
        torrent: TorrentResult,
        subscription: Subscription,
        entity_name: str,
    ) -> None:
        """Queue a selected release, creating a placeholder scene when it is unmatched."""
        current = await session.get(Subscription, subscription.id)
        if current is None or not current.is_subscribed:
            logger.info("Subscription is unsubscribed, skipping queue", subscription_id=subscription.id)
            return

        scene_id = torrent.scene_id
        if scene_id is None:
            scene_id = await self.create_placeholder_scene(
                session, torrent, entity_name, subscription
            )

        item = await self._queue_service(session).enqueue_release(scene_id, torrent)
        if item is not None:
            logger.info("Queued release", title=torrent.title, status=item.status)

    async def create_placeholder_scene(
        self,
        session: SQLModelAsyncSession,
        torrent: TorrentResult,
        entity_name: str,
        subscription: Subscription,
    ) -> str:
        """Scene ID for a metadata-less release, reusing an existing placeholder by title.

        A scene-level subscription is ensured so later runs can match the placeholder.
        """
        title = placeholder_title(torrent.title, entity_name)

        result = await session.exec(
            select(Scene).where(Scene.title == title).where(Scene.has_metadata == False)  # noqa: E712
        )
        scene = result.first()
        if scene is None:
            scene = Scene(title=title, has_metadata=False, inferred_from_indexers=True)
            session.add(scene)
            logger.info("Created placeholder scene", title=title)

        existing = await session.exec(
            select(Subscription)
            .where(Subscription.entity_type == "scene")
            .where(Subscription.entity_id == scene.id)
        )
        if existing.first() is None:
            session.add(
                Subscription(
                    entity_type="scene",
                    entity_id=scene.id,
                    quality_profile_id=subscription.quality_profile_id,
                    auto_download=subscription.auto_download,
                )
            )

        await retry_db_operation(
            lambda: session.commit(),
            session=session,
            operation_type="commit_placeholder_scene",
        )
        return scene.id
