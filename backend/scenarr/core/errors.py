"""Domain exceptions."""

from __future__ import annotations


class ScenarrError(Exception):
    """Base class for all Scenarr errors."""


class NotFoundError(ScenarrError):
    """A subscription, entity, scene or queue item does not exist."""


class InvalidStateError(ScenarrError):
    """An operation was requested on an item in the wrong state."""


class DuplicateQueueItemError(ScenarrError):
    """A scene is already waiting in the download queue."""


class IndexerError(ScenarrError):
    """An indexer request failed or returned an unusable response."""


class TorrentClientError(ScenarrError):
    """The torrent client rejected a request or could not be reached."""
