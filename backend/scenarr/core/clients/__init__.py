"""Torrent clients for handing off selected releases."""

from scenarr.core.clients.base import AddTorrentRequest, TorrentClient, TorrentInfo
from scenarr.core.clients.qbittorrent import QBittorrentClient

__all__ = [
    "AddTorrentRequest",
    "QBittorrentClient",
    "TorrentClient",
    "TorrentInfo",
]
