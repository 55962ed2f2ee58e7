"""Mapping of live torrent client state onto queue statuses."""

from __future__ import annotations

from scenarr.core.clients.base import TorrentInfo
from scenarr.db.models import (
    DOWNLOAD_STATUSES,
    STATUS_ADD_FAILED,
    STATUS_COMPLETED,
    STATUS_DOWNLOADING,
    STATUS_PAUSED,
    STATUS_QUEUED,
    STATUS_SEEDING,
)

PAUSED_STATES = frozenset({"pausedDL", "pausedUP", "stoppedDL", "stoppedUP"})
DOWNLOADING_STATES = frozenset(
    {"downloading", "queuedDL", "stalledDL", "checkingDL", "metaDL", "forcedDL", "allocating"}
)
SEEDING_STATES = frozenset({"uploading", "queuedUP", "stalledUP", "checkingUP", "forcedUP"})

# Queue status changes allowed without user action. completed is terminal.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    status: frozenset() for status in DOWNLOAD_STATUSES
} | {
    STATUS_QUEUED: frozenset({STATUS_DOWNLOADING, STATUS_PAUSED, STATUS_ADD_FAILED}),
    STATUS_DOWNLOADING: frozenset({STATUS_SEEDING, STATUS_COMPLETED, STATUS_PAUSED}),
    STATUS_PAUSED: frozenset({STATUS_QUEUED, STATUS_DOWNLOADING}),
    STATUS_SEEDING: frozenset({STATUS_COMPLETED}),
    STATUS_ADD_FAILED: frozenset({STATUS_DOWNLOADING}),
}


def can_transition(current: str, target: str) -> bool:
    """Whether a queue item may move from ``current`` to ``target``."""
    return target == current or target in ALLOWED_TRANSITIONS.get(current, frozenset())


def reconcile_status(persisted: str, live: TorrentInfo | None) -> str:
    """Merge a persisted queue status with the client's live snapshot.

    Paused states win, then downloading and seeding sub-states (queued, stalled,
    checking) coalesce to downloading or seeding. A finished torrent with no
    stronger signal is completed. Without a snapshot the persisted status stands.
    """
    if live is None:
        return persisted

    state = live.state
    if state in PAUSED_STATES:
        return STATUS_PAUSED
    if state in DOWNLOADING_STATES or "DL" in state:
        return STATUS_DOWNLOADING
    if state in SEEDING_STATES or "UP" in state:
        return STATUS_SEEDING
    if live.progress >= 1.0:
        return STATUS_COMPLETED
    return persisted
