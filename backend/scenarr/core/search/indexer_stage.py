"""Raw search across the configured indexer, one term at a time."""

from __future__ import annotations

from typing import Any

import structlog

from scenarr.core.indexers.base import IndexerClient
from scenarr.core.metrics import search_term_failures_total
from scenarr.core.search.models import SubscriptionTarget, TorrentResult
from scenarr.core.search.quality import detect_quality, detect_source

logger = structlog.get_logger("scenarr.search.indexer_stage")


def search_terms(target: SubscriptionTarget, include_aliases: bool) -> list[str]:
    """The entity name, followed by its aliases when requested (no duplicates)."""
    terms = [target.name]
    if include_aliases:
        terms.extend(a for a in target.aliases if a and a not in terms)
    return terms


def to_torrent_result(raw: dict[str, Any]) -> TorrentResult:
    """Convert a raw indexer hit into a ``TorrentResult``."""
    title = raw.get("title") or ""
    return TorrentResult(
        title=title,
        size=int(raw.get("size") or 0),
        seeders=int(raw.get("seeders") or 0),
        leechers=int(raw.get("leechers") or 0),
        quality=detect_quality(title),
        source=detect_source(title),
        indexer_id=f"prowlarr-{raw.get('indexer_id')}",
        indexer_name=raw.get("indexer") or "",
        download_url=raw.get("download_url") or raw.get("magnet_url") or "",
        info_hash=raw.get("info_hash"),
    )


class IndexerSearchStage:
    """Runs every search term for a target and collects the raw results.

    A failing term is logged and skipped; the remaining terms still run.
    """

    def __init__(self, indexer: IndexerClient, limit: int = 1000) -> None:
        self.indexer = indexer
        self.limit = limit

    async def search_entity(
        self, target: SubscriptionTarget, include_aliases: bool = False
    ) -> list[TorrentResult]:
        results: list[TorrentResult] = []
        terms = search_terms(target, include_aliases)

        for term in terms:
            try:
                raw_results = await self.indexer.search(term, limit=self.limit)
            except Exception as e:
                search_term_failures_total.inc()
                logger.error(
                    "Indexer search failed for term",
                    term=term,
                    indexer=self.indexer.name,
                    error=str(e),
                )
                continue

            results.extend(to_torrent_result(raw) for raw in raw_results)
            logger.info("Indexer returned results", term=term, count=len(raw_results))

        logger.info("Indexer search complete", terms=len(terms), total=len(results))
        return results
