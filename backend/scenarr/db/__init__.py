"""Database models and utilities.

This module exports all database models.
"""

from __future__ import annotations

from scenarr.db.models import (
    DownloadQueueItem,
    Performer,
    PerformerScene,
    QualityProfile,
    Scene,
    Studio,
    Subscription,
    metadata,
)

__all__ = [
    "metadata",
    "Performer",
    "Studio",
    "Scene",
    "PerformerScene",
    "QualityProfile",
    "Subscription",
    "DownloadQueueItem",
]
