"""Tests for SceneMetadataStore."""

from __future__ import annotations

import pytest

from scenarr.core.errors import NotFoundError
from scenarr.core.store import SceneMetadataStore
from scenarr.db.models import (
    Performer,
    PerformerScene,
    QualityProfile,
    Scene,
    Studio,
    Subscription,
)


async def subscribe_scene(session, scene: Scene, is_subscribed: bool = True) -> Subscription:
    subscription = Subscription(
        entity_type="scene",
        entity_id=scene.id,
        quality_profile_id="q1",
        is_subscribed=is_subscribed,
    )
    session.add(subscription)
    await session.commit()
    return subscription


class TestSubscriptions:
    @pytest.mark.asyncio
    async def test_get_subscription(self, session) -> None:
        subscription = Subscription(
            entity_type="performer", entity_id="p1", quality_profile_id="q1"
        )
        session.add(subscription)
        await session.commit()

        loaded = await SceneMetadataStore(session).get_subscription(subscription.id)

        assert loaded.entity_id == "p1"

    @pytest.mark.asyncio
    async def test_get_missing_subscription_raises(self, session) -> None:
        with pytest.raises(NotFoundError):
            await SceneMetadataStore(session).get_subscription("missing")

    @pytest.mark.asyncio
    async def test_list_active_excludes_unsubscribed_and_other_types(self, session) -> None:
        for entity_id, created_at in (("p1", 2), ("p2", 1)):
            session.add(
                Subscription(
                    entity_type="performer",
                    entity_id=entity_id,
                    quality_profile_id="q1",
                    created_at=created_at,
                )
            )
        session.add(
            Subscription(
                entity_type="performer",
                entity_id="p3",
                quality_profile_id="q1",
                is_subscribed=False,
            )
        )
        session.add(Subscription(entity_type="studio", entity_id="s1", quality_profile_id="q1"))
        await session.commit()

        active = await SceneMetadataStore(session).list_active_subscriptions("performer")

        assert [s.entity_id for s in active] == ["p2", "p1"]


class TestResolveTarget:
    """Tests for loading subscribed entities as targets."""

    @pytest.mark.asyncio
    async def test_performer_with_aliases(self, session) -> None:
        performer = Performer(name="Jade Harper", aliases=["Jadey"])
        session.add(performer)
        await session.commit()

        target = await SceneMetadataStore(session).resolve_target("performer", performer.id)

        assert target is not None
        assert target.kind == "performer"
        assert target.name == "Jade Harper"
        assert target.aliases == ["Jadey"]

    @pytest.mark.asyncio
    async def test_studio(self, session) -> None:
        studio = Studio(name="Lakeside Films")
        session.add(studio)
        await session.commit()

        target = await SceneMetadataStore(session).resolve_target("studio", studio.id)

        assert target is not None
        assert target.kind == "studio"

    @pytest.mark.asyncio
    async def test_scene_uses_title(self, session) -> None:
        scene = Scene(title="Morning Scene")
        session.add(scene)
        await session.commit()

        target = await SceneMetadataStore(session).resolve_target("scene", scene.id)

        assert target is not None
        assert target.kind == "scene"
        assert target.name == "Morning Scene"

    @pytest.mark.asyncio
    async def test_missing_entity(self, session) -> None:
        assert await SceneMetadataStore(session).resolve_target("performer", "missing") is None

    @pytest.mark.asyncio
    async def test_unknown_entity_type(self, session) -> None:
        with pytest.raises(ValueError, match="Unknown entity type"):
            await SceneMetadataStore(session).resolve_target("movie", "m1")


class TestCandidateScenes:
    """Tests for candidate scene loading."""

    @pytest.mark.asyncio
    async def test_performer_candidates_need_scene_subscription(self, session) -> None:
        performer = Performer(name="Jade Harper")
        subscribed = Scene(title="Morning Scene")
        unsubscribed = Scene(title="Evening Party")
        paused = Scene(title="Night Walk")
        session.add_all([performer, subscribed, unsubscribed, paused])
        for scene in (subscribed, unsubscribed, paused):
            session.add(PerformerScene(performer_id=performer.id, scene_id=scene.id))
        await session.commit()
        await subscribe_scene(session, subscribed)
        await subscribe_scene(session, paused, is_subscribed=False)

        store = SceneMetadataStore(session)
        target = await store.resolve_target("performer", performer.id)
        candidates = await store.find_candidate_scenes(target)

        assert [c.id for c in candidates] == [subscribed.id]
        assert candidates[0].performer_names == ["Jade Harper"]

    @pytest.mark.asyncio
    async def test_limit_applies_after_subscription_filter(self, session) -> None:
        performer = Performer(name="Jade Harper")
        older = Scene(title="Evening Party", created_at=1)
        newer = Scene(title="Morning Scene", created_at=2)
        session.add_all([performer, older, newer])
        for scene in (older, newer):
            session.add(PerformerScene(performer_id=performer.id, scene_id=scene.id))
        await session.commit()
        await subscribe_scene(session, newer)

        store = SceneMetadataStore(session)
        target = await store.resolve_target("performer", performer.id)
        candidates = await store.find_candidate_scenes(target, limit=1)

        assert [c.id for c in candidates] == [newer.id]

    @pytest.mark.asyncio
    async def test_unsubscribed_scene_target_has_no_candidates(self, session) -> None:
        scene = Scene(title="Morning Scene")
        session.add(scene)
        await session.commit()
        await subscribe_scene(session, scene, is_subscribed=False)

        store = SceneMetadataStore(session)
        target = await store.resolve_target("scene", scene.id)

        assert await store.find_candidate_scenes(target) == []

    @pytest.mark.asyncio
    async def test_studio_candidates_carry_studio_name(self, session) -> None:
        studio = Studio(name="Lakeside Films")
        scene = Scene(title="Morning Scene", studio_id=studio.id)
        other = Scene(title="Elsewhere", studio_id="other")
        session.add_all([studio, scene, other])
        await session.commit()
        await subscribe_scene(session, scene)
        await subscribe_scene(session, other)

        store = SceneMetadataStore(session)
        target = await store.resolve_target("studio", studio.id)
        candidates = await store.find_candidate_scenes(target)

        assert [c.id for c in candidates] == [scene.id]
        assert candidates[0].studio_name == "Lakeside Films"

    @pytest.mark.asyncio
    async def test_scene_candidate_is_the_scene_itself(self, session) -> None:
        scene = Scene(title="Morning Scene")
        session.add(scene)
        session.add(PerformerScene(performer_id="p1", scene_id=scene.id))
        await session.commit()
        await subscribe_scene(session, scene)

        store = SceneMetadataStore(session)
        target = await store.resolve_target("scene", scene.id)
        candidates = await store.find_candidate_scenes(target)

        assert len(candidates) == 1
        assert candidates[0].performer_ids == ["p1"]


class TestQualityProfiles:
    @pytest.mark.asyncio
    async def test_profile_items_keep_order(self, session) -> None:
        profile = QualityProfile(
            name="HD",
            items=[
                {"quality": "1080p", "source": "WEB-DL", "min_seeders": 5, "max_size": 4},
                {"quality": "720p"},
            ],
        )
        session.add(profile)
        await session.commit()

        items = await SceneMetadataStore(session).find_quality_profile(profile.id)

        assert items is not None
        assert [i.quality for i in items] == ["1080p", "720p"]
        assert items[1].source == "any"
        assert items[1].min_seeders == "any"

    @pytest.mark.asyncio
    async def test_missing_profile(self, session) -> None:
        assert await SceneMetadataStore(session).find_quality_profile("missing") is None
