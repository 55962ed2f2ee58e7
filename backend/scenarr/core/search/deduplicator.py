"""Merge raw indexer hits that describe the same release."""

from __future__ import annotations

import structlog

from scenarr.core.search.models import TorrentResult

logger = structlog.get_logger("scenarr.search.deduplicator")


def dedup_key(result: TorrentResult) -> str:
    """Identity key for a result: its info hash, else ``title-size``."""
    if result.info_hash:
        return result.info_hash.upper()
    return f"{result.title}-{result.size}"


def deduplicate(results: list[TorrentResult]) -> list[TorrentResult]:
    """Collapse results sharing an info hash (or title+size) into one entry.

    The first occurrence keeps its position. Each merge records the contributing
    indexer in ``indexers`` and, when the incoming hit has strictly more seeders,
    takes its seeders, leechers and download URL.

    Args:
        results: Raw results in indexer order. Not mutated.

    Returns:
        Deduplicated results.
    """
    merged: dict[str, TorrentResult] = {}

    for result in results:
        key = dedup_key(result)
        existing = merged.get(key)

        if existing is None:
            entry = result.model_copy(deep=True)
            entry.indexers = [result.indexer_name]
            entry.indexer_count = 1
            merged[key] = entry
            continue

        if result.indexer_name not in existing.indexers:
            existing.indexers.append(result.indexer_name)
        existing.indexer_count = len(existing.indexers)

        if result.seeders > existing.seeders:
            existing.seeders = result.seeders
            existing.leechers = result.leechers
            existing.download_url = result.download_url

    deduplicated = list(merged.values())
    logger.info(
        "Deduplicated results",
        before=len(results),
        after=len(deduplicated),
        removed=len(results) - len(deduplicated),
    )
    return deduplicated
