"""Release-date extraction and date proximity scoring."""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import date

from scenarr.core.matching.config import MatchingConfig

MIN_DATE = date(1980, 1, 1)

# Most specific first
_DATE_PATTERNS: tuple[tuple[re.Pattern[str], Callable[[re.Match[str]], tuple[int, int, int]]], ...] = (
    # YYYY-MM-DD
    (
        re.compile(r"\b(20\d{2})[-._](0[1-9]|1[0-2])[-._](0[1-9]|[12]\d|3[01])\b"),
        lambda m: (int(m[1]), int(m[2]), int(m[3])),
    ),
    # DD-MM-YYYY
    (
        re.compile(r"\b(0[1-9]|[12]\d|3[01])[-._](0[1-9]|1[0-2])[-._](20\d{2})\b"),
        lambda m: (int(m[3]), int(m[2]), int(m[1])),
    ),
    # YYYYMMDD
    (
        re.compile(r"\b(20\d{2})(0[1-9]|1[0-2])(0[1-9]|[12]\d|3[01])\b"),
        lambda m: (int(m[1]), int(m[2]), int(m[3])),
    ),
    # YY-MM-DD
    (
        re.compile(r"\b(\d{2})[-._](0[1-9]|1[0-2])[-._](0[1-9]|[12]\d|3[01])\b"),
        lambda m: ((1900 if int(m[1]) >= 50 else 2000) + int(m[1]), int(m[2]), int(m[3])),
    ),
)


def extract_date(title: str, today: date | None = None) -> date | None:
    """Find a plausible release date in ``title``.

    Dates before 1980 or in the future are ignored.
    """
    today = today or date.today()
    for pattern, to_parts in _DATE_PATTERNS:
        match = pattern.search(title)
        if not match:
            continue
        try:
            found = date(*to_parts(match))
        except ValueError:
            continue
        if MIN_DATE <= found <= today:
            return found
    return None


def parse_iso_date(value: str | None) -> date | None:
    """Parse ``YYYY-MM-DD`` (optionally followed by a time part)."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def date_bonus(torrent_date: date | None, scene_date: str | None, config: MatchingConfig) -> float:
    """Bonus points for a torrent date close to the scene's release date."""
    scene = parse_iso_date(scene_date)
    if torrent_date is None or scene is None:
        return 0.0

    days = abs((torrent_date - scene).days)
    if days <= 7:
        return config.date_bonus_week
    if days <= 30:
        return config.date_bonus_month
    if days <= 90:
        return config.date_bonus_quarter
    if days <= 180:
        return config.date_bonus_half_year
    return 0.0
