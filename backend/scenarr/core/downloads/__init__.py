"""Download queue, add/retry state machine and status reconciliation."""

from scenarr.core.downloads.models import RetryOutcome, RetrySummary, UnifiedDownload
from scenarr.core.downloads.service import DownloadQueueService, build_magnet_link
from scenarr.core.downloads.status import reconcile_status

__all__ = [
    "DownloadQueueService",
    "RetryOutcome",
    "RetrySummary",
    "UnifiedDownload",
    "build_magnet_link",
    "reconcile_status",
]
