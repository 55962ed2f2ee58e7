"""Score penalties applied on top of cross-encoder relevance scores."""

from __future__ import annotations

import re

from scenarr.core.matching.lexical import levenshtein_similarity

_AKA_SUFFIX = re.compile(r"\s+(aka|aka\.|also known as)\s.*$", re.IGNORECASE)
_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_performer_name(name: str) -> str:
    """Lowercase, drop "aka ..." suffixes and punctuation, collapse spaces."""
    name = _AKA_SUFFIX.sub("", name.lower().strip())
    name = _NON_WORD.sub("", name)
    return _WHITESPACE.sub(" ", name).strip()


def performer_similarity(first: str, second: str) -> float:
    """Name similarity in [0, 1] that requires first names to agree.

    "Jade Harper" vs "Jada Harper" scores low even though the strings are close.
    """
    if first == second:
        return 1.0

    words1 = first.split()
    words2 = second.split()
    if not words1 or not words2:
        return levenshtein_similarity(first, second)

    if words1[0] != words2[0]:
        overall = levenshtein_similarity(first, second)
        if len(words1[0]) > 3 and levenshtein_similarity(words1[0], words2[0]) > 0.9:
            return overall * 0.5
        return overall * 0.2

    if first in second or second in first:
        if max(len(first), len(second)) <= 15:
            return 0.9

    matching_words = 1 + sum(1 for word in words1[1:] if word in words2[1:])
    overlap = matching_words / max(len(words1), len(words2))
    return overlap * 0.6 + levenshtein_similarity(first, second) * 0.4


def performer_penalty(query_performer: str, candidate_performers: list[str]) -> float:
    """Penalty in [0, 1] when none of the candidate's performers is the queried one.

    - best similarity >= 0.7: no penalty
    - 0.3 to 0.7: 0.6 * (1 - similarity)
    - below 0.3: 0.95
    """
    query_words = [w for w in normalize_performer_name(query_performer).split() if len(w) > 2]
    main_name = " ".join(query_words[:2])
    if len(main_name) < 3:
        main_name = query_words[0] if query_words else normalize_performer_name(query_performer)

    best = max(
        (performer_similarity(main_name, normalize_performer_name(p)) for p in candidate_performers),
        default=0.0,
    )
    if best >= 0.7:
        return 0.0
    if best >= 0.3:
        return 0.6 * (1 - best)
    return 0.95


def title_penalty(query_title: str, candidate_title: str, min_similarity: float = 0.3) -> float:
    """``0.5 * (1 - similarity)`` when the titles are very different, else 0."""
    if not query_title or not candidate_title:
        return 0.0
    similarity = levenshtein_similarity(query_title, candidate_title)
    if similarity < min_similarity:
        return 0.5 * (1 - similarity)
    return 0.0
