"""Indexer clients for searching releases."""

from scenarr.core.indexers.base import IndexerClient
from scenarr.core.indexers.prowlarr import ProwlarrClient, extract_info_hash

__all__ = [
    "IndexerClient",
    "ProwlarrClient",
    "extract_info_hash",
]
