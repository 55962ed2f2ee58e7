"""Hard filter that drops results not actually naming the subscribed entity."""

from __future__ import annotations

import re

import structlog

from scenarr.core.search.models import TorrentResult

logger = structlog.get_logger("scenarr.search.name_filter")

# Filler words allowed between consecutive name words ("Jane Nicole Harper")
MAX_FILLER_WORDS = 2


def build_name_pattern(name: str) -> re.Pattern[str] | None:
    """Compile the word-order pattern for a name.

    Single words must appear as a whole word. Multi-word names must appear in
    order, with at most two other words between each pair.

    Returns:
        Compiled pattern, or None for a blank name.
    """
    words = name.lower().split()
    if not words:
        return None

    if len(words) == 1:
        return re.compile(rf"\b{re.escape(words[0])}\b", re.IGNORECASE)

    gap = rf"(\s+\w+){{0,{MAX_FILLER_WORDS}}}\s+"
    body = gap.join(re.escape(word) for word in words)
    return re.compile(rf"\b{body}\b", re.IGNORECASE)


class NameIntegrityFilter:
    """Keeps results whose title contains the entity name or one of its aliases."""

    def __init__(self, name: str, aliases: list[str] | None = None) -> None:
        allowed = [name, *(aliases or [])]
        self.names = [n.lower() for n in allowed if n and n.strip()]
        self.patterns = [p for p in (build_name_pattern(n) for n in self.names) if p is not None]

    def matches(self, title: str) -> bool:
        """Whether ``title`` names the entity."""
        return any(pattern.search(title) for pattern in self.patterns)

    def apply(self, results: list[TorrentResult]) -> list[TorrentResult]:
        """Filter ``results``, logging how many were eliminated."""
        kept = [result for result in results if self.matches(result.title)]
        eliminated = len(results) - len(kept)
        if eliminated:
            logger.info(
                "Eliminated results not matching entity name",
                names=self.names,
                eliminated=eliminated,
                kept=len(kept),
            )
        return kept
