"""Read access to subscriptions, entities, scenes and quality profiles."""

from __future__ import annotations

import structlog
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession
from sqlmodel.sql.expression import SelectOfScalar

from scenarr.core.errors import NotFoundError
from scenarr.core.search.models import (
    PerformerTarget,
    QualityProfileItem,
    SceneCandidate,
    SceneTarget,
    StudioTarget,
    SubscriptionTarget,
)
from scenarr.core.search.quality import parse_profile_items
from scenarr.db.models import (
    Performer,
    PerformerScene,
    QualityProfile,
    Scene,
    Studio,
    Subscription,
)

logger = structlog.get_logger("scenarr.store")


class SceneMetadataStore:
    """Queries the local metadata the search pipeline matches against."""

    def __init__(self, session: SQLModelAsyncSession) -> None:
        self.session = session

    async def get_subscription(self, subscription_id: str) -> Subscription:
        """Load a subscription.

        Raises:
            NotFoundError: If the subscription does not exist
        """
        subscription = await self.session.get(Subscription, subscription_id)
        if subscription is None:
            raise NotFoundError(f"Subscription {subscription_id} not found")
        return subscription

    async def list_active_subscriptions(self, entity_type: str) -> list[Subscription]:
        result = await self.session.exec(
            select(Subscription)
            .where(Subscription.entity_type == entity_type)
            .where(Subscription.is_subscribed == True)  # noqa: E712
            .order_by(col(Subscription.created_at))
        )
        return list(result.all())

    async def resolve_target(self, entity_type: str, entity_id: str) -> SubscriptionTarget | None:
        """Load the subscribed entity as a tagged target, or None if it does not exist."""
        match entity_type:
            case "performer":
                performer = await self.session.get(Performer, entity_id)
                if performer is None:
                    return None
                return PerformerTarget(
                    id=performer.id, name=performer.name, aliases=list(performer.aliases or [])
                )
            case "studio":
                studio = await self.session.get(Studio, entity_id)
                if studio is None:
                    return None
                return StudioTarget(
                    id=studio.id, name=studio.name, aliases=list(studio.aliases or [])
                )
            case "scene":
                scene = await self.session.get(Scene, entity_id)
                if scene is None:
                    return None
                return SceneTarget(id=scene.id, name=scene.title)
            case _:
                raise ValueError(f"Unknown entity type: {entity_type}")

    def _subscribed_scene_ids(self, scene_id: str | None = None) -> SelectOfScalar[str]:
        """Subquery of scene IDs with an active scene-level subscription."""
        query = (
            select(Subscription.entity_id)
            .where(Subscription.entity_type == "scene")
            .where(Subscription.is_subscribed == True)  # noqa: E712
        )
        if scene_id is not None:
            query = query.where(Subscription.entity_id == scene_id)
        return query

    async def find_candidate_scenes(
        self, target: SubscriptionTarget, limit: int = 500
    ) -> list[SceneCandidate]:
        """Scenes a release group for ``target`` may be matched to.

        Only scenes with an active scene-level subscription are candidates.
        """
        match target.kind:
            case "performer":
                result = await self.session.exec(
                    select(Scene)
                    .join(PerformerScene, col(PerformerScene.scene_id) == col(Scene.id))
                    .where(PerformerScene.performer_id == target.id)
                    .where(col(Scene.id).in_(self._subscribed_scene_ids()))
                    .order_by(col(Scene.created_at))
                    .limit(limit)
                )
                return [
                    SceneCandidate(
                        id=scene.id,
                        title=scene.title,
                        date=scene.date,
                        performer_ids=[target.id],
                        studio_id=scene.studio_id,
                        performer_names=[target.name],
                    )
                    for scene in result.all()
                ]
            case "studio":
                result = await self.session.exec(
                    select(Scene)
                    .where(Scene.studio_id == target.id)
                    .where(col(Scene.id).in_(self._subscribed_scene_ids()))
                    .order_by(col(Scene.created_at))
                    .limit(limit)
                )
                return [
                    SceneCandidate(
                        id=scene.id,
                        title=scene.title,
                        date=scene.date,
                        studio_id=scene.studio_id,
                        studio_name=target.name,
                    )
                    for scene in result.all()
                ]
            case "scene":
                scene = await self.session.get(Scene, target.id)
                if scene is None:
                    return []
                subscribed = await self.session.exec(self._subscribed_scene_ids(scene.id))
                if subscribed.first() is None:
                    return []
                performer_ids = await self.find_scene_performer_ids(scene.id)
                return [
                    SceneCandidate(
                        id=scene.id,
                        title=scene.title,
                        date=scene.date,
                        performer_ids=performer_ids,
                        studio_id=scene.studio_id,
                    )
                ]

    async def find_scene_performer_ids(self, scene_id: str) -> list[str]:
        result = await self.session.exec(
            select(PerformerScene.performer_id).where(PerformerScene.scene_id == scene_id)
        )
        return list(result.all())

    async def find_quality_profile(self, profile_id: str) -> list[QualityProfileItem] | None:
        """Ordered profile items, or None if the profile does not exist."""
        profile = await self.session.get(QualityProfile, profile_id)
        if profile is None:
            return None
        return parse_profile_items(profile.items or [])
