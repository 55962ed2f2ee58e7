"""Scheduled jobs: subscription search and torrent monitoring."""

from scenarr.core.jobs.subscription_search import SubscriptionSearchJob
from scenarr.core.jobs.torrent_monitor import TorrentMonitorJob

__all__ = ["SubscriptionSearchJob", "TorrentMonitorJob"]
