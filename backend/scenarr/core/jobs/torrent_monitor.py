"""Scheduled reconciliation of queue statuses with the torrent client."""

from __future__ import annotations

import time

import structlog

from scenarr.core.clients.base import TorrentClient, TorrentInfo
from scenarr.core.config import Settings, get_settings
from scenarr.core.database import SessionFactory, get_global_session_factory
from scenarr.core.downloads.models import RetrySummary
from scenarr.core.downloads.service import DownloadQueueService
from scenarr.core.downloads.status import can_transition, reconcile_status
from scenarr.db.models import (
    STATUS_COMPLETED,
    STATUS_DOWNLOADING,
    STATUS_PAUSED,
    STATUS_QUEUED,
    STATUS_SEEDING,
)

logger = structlog.get_logger("scenarr.jobs.torrent_monitor")

MONITORED_STATUSES = (
    STATUS_QUEUED,
    STATUS_DOWNLOADING,
    STATUS_PAUSED,
    STATUS_SEEDING,
    STATUS_COMPLETED,
)


class TorrentMonitorJob:
    """Copies live client state onto queue items, then retries failed adds."""

    name = "torrent-monitor"

    def __init__(
        self,
        client: TorrentClient | None,
        settings: Settings | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.client = client
        self.settings = settings or get_settings()
        self._session_factory = session_factory

    @property
    def session_factory(self) -> SessionFactory:
        factory = self._session_factory or get_global_session_factory()
        if factory is None:
            raise RuntimeError("Database session factory is not initialized")
        return factory

    async def execute(self) -> RetrySummary | None:
        """Run one monitoring pass.

        Returns:
            The retry summary, or None when no torrent client is configured
        """
        if self.client is None:
            logger.warning("Torrent client not configured, skipping torrent monitor")
            return None

        async with self.session_factory() as session:
            queue = DownloadQueueService(session, self.client, settings=self.settings)
            live = await queue.live_torrents()
            items = await queue.repository.list_by_status(MONITORED_STATUSES)

            by_hash = {
                (item.client_hash or item.torrent_hash or "").lower(): item.id
                for item in items
                if item.client_hash or item.torrent_hash
            }
            logger.info("Monitoring torrents", live=len(live), tracked=len(by_hash))

            updated = 0
            for hash_, torrent in live.items():
                item_id = by_hash.get(hash_)
                if item_id is None:
                    continue

                try:
                    if await self.apply_live_state(queue, item_id, torrent):
                        updated += 1
                except Exception as e:
                    logger.error(
                        "Failed to update queue item from torrent",
                        item_id=item_id,
                        hash=torrent.hash,
                        error=str(e),
                        exc_info=True,
                    )
                    await session.rollback()

            logger.info("Torrent monitor pass complete", updated=updated)

            return await queue.retry_failed_torrents(
                self.settings.retry_max_attempts,
                retry_after_minutes=self.settings.retry_interval_minutes,
            )

    async def apply_live_state(
        self, queue: DownloadQueueService, item_id: str, torrent: TorrentInfo
    ) -> bool:
        """Copy one torrent's live state onto its queue item.

        A reconciled status the queue state machine does not allow from the
        current status is ignored.

        Returns:
            Whether the item was changed
        """
        item = await queue.repository.get_or_raise(item_id)
        changes: dict[str, object] = {}
        status = reconcile_status(item.status, torrent)
        if status != item.status:
            if can_transition(item.status, status):
                changes["status"] = status
            else:
                logger.debug(
                    "Ignoring disallowed status change",
                    item_id=item.id,
                    current=item.status,
                    reconciled=status,
                )
        if torrent.progress >= 1.0 and item.completed_at is None:
            changes["completed_at"] = int(time.time())
            logger.info("Torrent completed", title=item.title, hash=torrent.hash)
        if not item.client_hash:
            changes["client_hash"] = torrent.hash

        if not changes:
            return False
        await queue.repository.update(item, **changes)
        return True
