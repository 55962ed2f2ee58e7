"""Download queue management and the add/retry state machine.

Statuses::

    queued -> downloading -> seeding | completed
    queued | downloading <-> paused
    any add attempt that fails or yields no client hash -> add_failed
    add_failed -> downloading on a successful retry

An ``add_failed`` item with ``add_attempts >= max_attempts`` is a permanent
failure. It stays in the queue and is only counted.
"""

from __future__ import annotations

import time
from urllib.parse import quote

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from scenarr.core.clients.base import AddTorrentRequest, TorrentClient, TorrentInfo
from scenarr.core.config import Settings, get_settings
from scenarr.core.downloads.models import (
    QueueItemCreate,
    QueueItemUpdate,
    RetryOutcome,
    RetrySummary,
    UnifiedDownload,
)
from scenarr.core.downloads.repository import DownloadQueueRepository
from scenarr.core.downloads.status import reconcile_status
from scenarr.core.errors import (
    DuplicateQueueItemError,
    InvalidStateError,
    NotFoundError,
    TorrentClientError,
)
from scenarr.core.metrics import enqueue_attempts_total, retry_permanent_failures
from scenarr.core.search.models import TorrentResult
from scenarr.db.models import (
    STATUS_ADD_FAILED,
    STATUS_COMPLETED,
    STATUS_DOWNLOADING,
    STATUS_PAUSED,
    STATUS_QUEUED,
    DownloadQueueItem,
    Scene,
)

logger = structlog.get_logger("scenarr.downloads.service")

REASON_CLIENT_NOT_CONFIGURED = "Torrent client not configured"


def build_magnet_link(info_hash: str, title: str) -> str:
    """Best-effort magnet URI from an info hash and a display name."""
    return f"magnet:?xt=urn:btih:{info_hash}&dn={quote(title)}"


def resolve_download_link(
    info_hash: str | None, title: str, download_url: str | None
) -> str | None:
    """Link to hand to the client: a magnet built from the hash, else the stored URL."""
    if info_hash:
        return build_magnet_link(info_hash, title)
    return download_url or None


class DownloadQueueService:
    """Persists enqueue requests and drives them through the torrent client."""

    def __init__(
        self,
        session: SQLModelAsyncSession,
        client: TorrentClient | None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize download queue service.

        Args:
            session: Database session
            client: Torrent client, or None when no client is configured
            settings: Application settings (uses get_settings() if None)
        """
        self.session = session
        self.repository = DownloadQueueRepository(session)
        self.client = client
        self.settings = settings or get_settings()

    # Queue CRUD

    async def list_items(self, status: str | None = None) -> list[DownloadQueueItem]:
        if status:
            return await self.repository.list_by_status((status,))
        return await self.repository.list_all()

    async def get_item(self, item_id: str) -> DownloadQueueItem:
        return await self.repository.get_or_raise(item_id)

    async def add_to_queue(
        self, request: QueueItemCreate, magnet_link: str | None = None
    ) -> DownloadQueueItem:
        """Queue a release for a known scene.

        When a link is available and a client is configured, the release is handed
        to the client straight away.

        Raises:
            NotFoundError: If the scene does not exist
            DuplicateQueueItemError: If the scene already has a queued item
        """
        log = logger.bind(scene_id=request.scene_id, title=request.title)

        if await self.session.get(Scene, request.scene_id) is None:
            raise NotFoundError(f"Scene {request.scene_id} not found")

        if await self.repository.find_for_scene(request.scene_id, (STATUS_QUEUED,)):
            raise DuplicateQueueItemError(f"Scene {request.scene_id} already in download queue")

        item = await self.repository.add(
            DownloadQueueItem(
                scene_id=request.scene_id,
                title=request.title,
                torrent_hash=request.torrent_hash,
                download_url=request.download_url,
                size=request.size,
                seeders=request.seeders,
                quality=request.quality,
                status=STATUS_QUEUED,
            )
        )
        log.info("Added to queue", item_id=item.id)

        link = magnet_link or resolve_download_link(
            request.torrent_hash, request.title, request.download_url
        )
        if link and self.client is not None:
            await self._try_add_to_client(item, link)
        return item

    async def enqueue_release(
        self, scene_id: str, torrent: TorrentResult
    ) -> DownloadQueueItem | None:
        """Queue a selected release unless the scene or the hash is already queued.

        Returns:
            The new queue item, or None when it was skipped as a duplicate
        """
        log = logger.bind(scene_id=scene_id, title=torrent.title)

        if await self.repository.find_for_scene(scene_id):
            log.debug("Scene already in download queue, skipping")
            return None
        if torrent.info_hash and await self.repository.find_by_torrent_hash(torrent.info_hash):
            log.debug("Info hash already in download queue, skipping", info_hash=torrent.info_hash)
            return None

        item = await self.repository.add(
            DownloadQueueItem(
                scene_id=scene_id,
                title=torrent.title,
                torrent_hash=torrent.info_hash,
                download_url=torrent.download_url or None,
                size=torrent.size,
                seeders=torrent.seeders,
                quality=torrent.quality,
                status=STATUS_QUEUED,
            )
        )

        link = resolve_download_link(torrent.info_hash, torrent.title, torrent.download_url)
        if self.client is None:
            log.info("Queued without torrent client", item_id=item.id)
        elif link is None:
            await self.repository.update(
                item, status=STATUS_ADD_FAILED, last_error="No magnet link or download URL"
            )
            log.warning("Release has no usable link", item_id=item.id)
        else:
            await self._try_add_to_client(item, link)
        return item

    async def update_item(self, item_id: str, changes: QueueItemUpdate) -> DownloadQueueItem:
        """Apply direct field changes to a queue item.

        Raises:
            NotFoundError: If the item does not exist
        """
        item = await self.repository.get_or_raise(item_id)
        updated = await self.repository.update(item, **changes.model_dump(exclude_unset=True))
        logger.info("Queue item updated", item_id=item_id)
        return updated

    async def remove_from_queue(self, item_id: str, delete_torrent: bool = False) -> None:
        """Delete a queue item, optionally removing the torrent and its files from the client.

        Raises:
            NotFoundError: If the item does not exist
        """
        item = await self.repository.get_or_raise(item_id)
        hash_ = item.client_hash or item.torrent_hash

        if hash_ and delete_torrent and self.client is not None:
            try:
                await self.client.remove_torrent(hash_, delete_files=True)
                logger.info("Removed torrent from client", item_id=item_id, hash=hash_)
            except TorrentClientError as e:
                logger.error("Failed to remove torrent from client", item_id=item_id, error=str(e))

        await self.repository.delete(item)
        logger.info("Removed from queue", item_id=item_id)

    async def pause(self, item_id: str) -> DownloadQueueItem:
        """Pause a queued or downloading item.

        Raises:
            NotFoundError: If the item does not exist
            InvalidStateError: If the item is neither queued nor downloading
        """
        item = await self.repository.get_or_raise(item_id)
        if item.status not in (STATUS_QUEUED, STATUS_DOWNLOADING):
            raise InvalidStateError(f"Cannot pause item in status {item.status}")

        hash_ = item.client_hash or item.torrent_hash
        if hash_ and self.client is not None:
            try:
                await self.client.pause_torrent(hash_)
            except TorrentClientError as e:
                logger.error("Failed to pause torrent", item_id=item_id, error=str(e))

        return await self.repository.update(item, status=STATUS_PAUSED)

    async def resume(self, item_id: str) -> DownloadQueueItem:
        """Resume a paused item.

        Raises:
            NotFoundError: If the item does not exist
            InvalidStateError: If the item is not paused
        """
        item = await self.repository.get_or_raise(item_id)
        if item.status != STATUS_PAUSED:
            raise InvalidStateError(f"Cannot resume item in status {item.status}")

        hash_ = item.client_hash or item.torrent_hash
        if hash_ and self.client is not None:
            try:
                await self.client.resume_torrent(hash_)
            except TorrentClientError as e:
                logger.error("Failed to resume torrent", item_id=item_id, error=str(e))

        return await self.repository.update(item, status=STATUS_DOWNLOADING)

    async def live_torrents(self) -> dict[str, TorrentInfo]:
        """Client torrents keyed by lowercased hash (empty without a client or on error)."""
        if self.client is None:
            return {}
        try:
            torrents = await self.client.get_torrents()
        except TorrentClientError as e:
            logger.error("Failed to fetch torrents from client", error=str(e))
            return {}
        return {t.hash.lower(): t for t in torrents}

    async def get_unified_downloads(self) -> list[UnifiedDownload]:
        """Queue items merged with the torrent client's live state."""
        items = await self.repository.list_all()
        live = await self.live_torrents()
        if self.client is None:
            logger.warning("Torrent client not available, statuses come from the database only")

        downloads: list[UnifiedDownload] = []
        for item in items:
            torrent = live.get(item.client_hash.lower()) if item.client_hash else None
            scene = await self.session.get(Scene, item.scene_id)

            if torrent is not None:
                progress: float | None = torrent.progress
            else:
                progress = 1.0 if item.status == STATUS_COMPLETED else None

            downloads.append(
                UnifiedDownload(
                    id=item.id,
                    scene_id=item.scene_id,
                    scene_title=scene.title if scene else item.title,
                    client_hash=item.client_hash,
                    status=reconcile_status(item.status, torrent),
                    progress=progress,
                    download_speed=torrent.download_speed if torrent else None,
                    upload_speed=torrent.upload_speed if torrent else None,
                    eta=torrent.eta if torrent else None,
                    ratio=torrent.ratio if torrent else None,
                    size=item.size,
                    seeders=(torrent.num_seeds if torrent else 0) or item.seeders,
                    leechers=torrent.num_leechers if torrent else 0,
                    quality=item.quality,
                    added_at=item.added_at,
                    completed_at=item.completed_at,
                    add_attempts=item.add_attempts,
                    last_attempt_at=item.last_attempt_at,
                    last_error=item.last_error,
                )
            )

        logger.debug("Generated unified downloads", count=len(downloads))
        return downloads

    # Add / retry

    async def _try_add_to_client(self, item: DownloadQueueItem, link: str) -> bool:
        """One add attempt. Never raises; the outcome is recorded on the item.

        The attempt is counted before the client is called, so a crash mid-attempt
        still counts against ``max_attempts``.
        """
        log = logger.bind(item_id=item.id, title=item.title)
        await self.repository.record_attempt(item.id)
        await self.session.refresh(item)

        try:
            if self.client is None:
                raise TorrentClientError(REASON_CLIENT_NOT_CONFIGURED)

            log.info("Attempting to add torrent to client", attempt=item.add_attempts)
            client_hash = await self.client.add_torrent_and_get_hash(
                AddTorrentRequest(
                    urls=[link],
                    category=self.settings.download_category,
                    save_path=self.settings.incomplete_path,
                    paused=False,
                    match_info_hash=item.torrent_hash,
                    match_title=item.title,
                ),
                timeout_ms=self.settings.add_timeout_ms,
            )
            if not client_hash:
                raise TorrentClientError("Torrent client addTorrent failed or hash not found")
        except Exception as e:
            log.error("Failed to add torrent to client", attempt=item.add_attempts, error=str(e))
            enqueue_attempts_total.labels(outcome="failure").inc()
            await self.repository.update(item, status=STATUS_ADD_FAILED, last_error=str(e))
            return False

        enqueue_attempts_total.labels(outcome="success").inc()
        await self.repository.update(
            item, status=STATUS_DOWNLOADING, client_hash=client_hash, last_error=None
        )
        log.info("Added torrent to client", client_hash=client_hash)
        return True

    def _retry_link(self, item: DownloadQueueItem) -> str | None:
        return resolve_download_link(item.torrent_hash, item.title, item.download_url)

    async def retry_failed_torrents(
        self, max_attempts: int = 5, retry_after_minutes: int | None = None
    ) -> RetrySummary:
        """Retry ``add_failed`` items that are under the attempt cap and not tried recently.

        Args:
            max_attempts: Attempts after which an item is a permanent failure
            retry_after_minutes: Minimum minutes since the last attempt (defaults to
                the ``retry_interval_minutes`` setting)

        Returns:
            RetrySummary with counts, or a reason when no client is configured
        """
        permanent = await self.repository.count_permanent_failures(max_attempts)
        retry_permanent_failures.set(permanent)

        if self.client is None:
            logger.warning("Torrent client not configured, skipping retry")
            return RetrySummary(permanent_failures=permanent, reason=REASON_CLIENT_NOT_CONFIGURED)

        interval = (
            retry_after_minutes
            if retry_after_minutes is not None
            else self.settings.retry_interval_minutes
        )
        cutoff = int(time.time()) - interval * 60
        items = await self.repository.find_retryable(max_attempts, cutoff)
        logger.info(
            "Retrying failed torrents",
            candidates=len(items),
            max_attempts=max_attempts,
            retry_after_minutes=interval,
        )

        attempted = 0
        succeeded = 0
        for item in items:
            scene = await self.session.get(Scene, item.scene_id)
            if scene is not None and not scene.is_subscribed:
                logger.debug("Scene no longer subscribed, not retrying", item_id=item.id)
                continue

            link = self._retry_link(item)
            if link is None:
                logger.warning("No link to retry with", item_id=item.id)
                continue

            attempted += 1
            if await self._try_add_to_client(item, link):
                succeeded += 1

        # Items that just used their last attempt are now permanent failures too
        permanent = await self.repository.count_permanent_failures(max_attempts)
        retry_permanent_failures.set(permanent)

        summary = RetrySummary(total=attempted, succeeded=succeeded, permanent_failures=permanent)
        logger.info(
            "Retry operation completed",
            total=summary.total,
            succeeded=summary.succeeded,
            permanent_failures=summary.permanent_failures,
        )
        return summary

    async def retry_single_torrent(self, item_id: str) -> RetryOutcome:
        """Manually retry one ``add_failed`` item.

        Raises:
            NotFoundError: If the item does not exist
            InvalidStateError: If the item is not in ``add_failed``
        """
        item = await self.repository.get_or_raise(item_id)
        if item.status != STATUS_ADD_FAILED:
            raise InvalidStateError(f"Item {item_id} is not in add_failed status")

        if self.client is None:
            return RetryOutcome(
                id=item_id,
                success=False,
                status=item.status,
                reason=REASON_CLIENT_NOT_CONFIGURED,
            )

        link = self._retry_link(item)
        if link is None:
            return RetryOutcome(
                id=item_id, success=False, status=item.status, reason="No link to retry with"
            )

        logger.info("Manually retrying failed torrent", item_id=item_id)
        success = await self._try_add_to_client(item, link)
        return RetryOutcome(
            id=item_id,
            success=success,
            status=STATUS_DOWNLOADING if success else STATUS_ADD_FAILED,
        )
