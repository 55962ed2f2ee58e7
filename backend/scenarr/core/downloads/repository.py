"""Persistence for download queue items."""

from __future__ import annotations

import time
from typing import Any

from sqlalchemy import func, or_, update
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from scenarr.core.database import retry_db_operation
from scenarr.core.errors import NotFoundError
from scenarr.db.models import STATUS_ADD_FAILED, DownloadQueueItem


class DownloadQueueRepository:
    """Queries and updates on the ``download_queue`` table."""

    def __init__(self, session: SQLModelAsyncSession) -> None:
        self.session = session

    async def commit(self, operation_type: str = "commit_download_queue") -> None:
        await retry_db_operation(
            lambda: self.session.commit(),
            session=self.session,
            operation_type=operation_type,
        )

    async def get(self, item_id: str) -> DownloadQueueItem | None:
        return await self.session.get(DownloadQueueItem, item_id)

    async def get_or_raise(self, item_id: str) -> DownloadQueueItem:
        item = await self.get(item_id)
        if item is None:
            raise NotFoundError(f"Download queue item {item_id} not found")
        return item

    async def list_all(self) -> list[DownloadQueueItem]:
        result = await self.session.exec(
            select(DownloadQueueItem).order_by(col(DownloadQueueItem.added_at).desc())
        )
        return list(result.all())

    async def list_by_status(self, statuses: tuple[str, ...]) -> list[DownloadQueueItem]:
        result = await self.session.exec(
            select(DownloadQueueItem).where(col(DownloadQueueItem.status).in_(statuses))
        )
        return list(result.all())

    async def find_for_scene(
        self, scene_id: str, statuses: tuple[str, ...] | None = None
    ) -> DownloadQueueItem | None:
        query = select(DownloadQueueItem).where(DownloadQueueItem.scene_id == scene_id)
        if statuses:
            query = query.where(col(DownloadQueueItem.status).in_(statuses))
        result = await self.session.exec(query)
        return result.first()

    async def find_by_torrent_hash(self, torrent_hash: str) -> DownloadQueueItem | None:
        result = await self.session.exec(
            select(DownloadQueueItem).where(
                func.lower(DownloadQueueItem.torrent_hash) == torrent_hash.lower()
            )
        )
        return result.first()

    async def add(self, item: DownloadQueueItem) -> DownloadQueueItem:
        self.session.add(item)
        await self.commit("insert_download_queue_item")
        await self.session.refresh(item)
        return item

    async def update(self, item: DownloadQueueItem, **fields: Any) -> DownloadQueueItem:
        for key, value in fields.items():
            setattr(item, key, value)
        self.session.add(item)
        await self.commit("update_download_queue_item")
        return item

    async def delete(self, item: DownloadQueueItem) -> None:
        await self.session.delete(item)
        await self.commit("delete_download_queue_item")

    async def record_attempt(self, item_id: str, now: int | None = None) -> None:
        """Increment ``add_attempts`` and stamp ``last_attempt_at`` in one UPDATE.

        The counter is never read-modified-written in Python, so the retry job and a
        manual retry can both record attempts without extra locking.
        """
        now = now if now is not None else int(time.time())
        await retry_db_operation(
            lambda: self.session.execute(
                update(DownloadQueueItem)
                .where(col(DownloadQueueItem.id) == item_id)
                .values(
                    add_attempts=DownloadQueueItem.add_attempts + 1,
                    last_attempt_at=now,
                )
            ),
            session=self.session,
            operation_type="record_add_attempt",
        )
        await self.commit("commit_add_attempt")

    async def find_retryable(
        self, max_attempts: int, cutoff: int, limit: int | None = None
    ) -> list[DownloadQueueItem]:
        """``add_failed`` items under the attempt cap, last tried before ``cutoff``."""
        query = (
            select(DownloadQueueItem)
            .where(DownloadQueueItem.status == STATUS_ADD_FAILED)
            .where(DownloadQueueItem.add_attempts < max_attempts)
            .where(
                or_(
                    col(DownloadQueueItem.last_attempt_at).is_(None),
                    col(DownloadQueueItem.last_attempt_at) < cutoff,
                )
            )
            .order_by(col(DownloadQueueItem.added_at))
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.exec(query)
        return list(result.all())

    async def count_permanent_failures(self, max_attempts: int) -> int:
        result = await self.session.exec(
            select(func.count())
            .select_from(DownloadQueueItem)
            .where(DownloadQueueItem.status == STATUS_ADD_FAILED)
            .where(DownloadQueueItem.add_attempts >= max_attempts)
        )
        return int(result.one())
