"""Title normalization: reduce noisy release titles to a canonical scene key.

The cleaning pipeline is an ordered rule table. Order matters: later rules assume
the earlier ones already ran (e.g. URLs are gone before bare domain words, and
bracketed tags are removed after the tokens inside them were stripped).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_I = re.IGNORECASE


@dataclass(frozen=True)
class NormalizationRule:
    """A single regex substitution in the cleaning pipeline."""

    name: str
    pattern: re.Pattern[str]
    replacement: str = ""

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


def _rule(name: str, pattern: str, replacement: str = "", flags: int = _I) -> NormalizationRule:
    return NormalizationRule(name, re.compile(pattern, flags), replacement)


DEFAULT_RULES: tuple[NormalizationRule, ...] = (
    _rule(
        "spam_tail",
        r"\s+(want more|watch and download|get of accounts|backup\/latest|to watch video|#hd|#in).*",
    ),
    _rule("telegram_link", r"t\.me\/[^\s]+"),
    _rule("http_url", r"https?://[^\s]+"),
    _rule("ftp_url", r"ftp://[^\s]+"),
    _rule("www_url", r"www\.[^\s]+"),
    _rule("bare_domain", r"[a-z0-9-]+\.(com|net|org|io|to|cc|tv|xxx|html)[^\s]*"),
    _rule("stream_site", r"\b(savefiles|lulustream|doodstream|streamtape|bigwarp)\.[\w\/]+"),
    _rule("arrow_right", r"[-=]>", " ", 0),
    _rule("arrow_left", r"<[-=]", " ", 0),
    _rule("escaped_newline", r"\\r\\n|\\n", " ", 0),
    _rule(
        "platform",
        r"\b(onlyfans|manyvids|fansly|patreon|fancentro|pornhub|xvideos|chaturbate|cam4"
        r"|myfreecams|mfc|streamate|mrluckyraw|tagteampov|baddiesonlypov)[-.\s]*",
    ),
    _rule(
        "marketing",
        r"\b(new|full|xxx|nsfw|leaked|exclusive|premium|vip|hot|sexy|latest|hd|rq)\b",
    ),
    _rule("date_yy_mm_dd", r"\b\d{2}\s+\d{2}\s+\d{2}\b", "", 0),
    _rule("date_yyyy_mm_dd_spaced", r"\b\d{4}\s+\d{2}\s+\d{2}\b", "", 0),
    _rule("date_yyyy_mm_dd", r"\b(19|20)\d{2}[-_.]\d{2}[-_.]\d{2}\b", "", 0),
    _rule("year", r"\b(19|20)\d{2}\b", "", 0),
    _rule("quality", r"\b(2160p|1080p|720p|480p|4k|uhd|hd|sd)\b"),
    _rule("source", r"\b(web-?dl|webrip|bluray|blu-ray|hdtv|dvdrip|bdrip|brrip)\b"),
    _rule("codec", r"\b(h\.?264|h\.?265|x264|x265|hevc|avc|mpeg|divx|xvid)\b"),
    _rule("audio", r"\b(aac|ac3|dts|flac|mp3|dd5\.1|dd2\.0|atmos)\b"),
    _rule("container", r"\b(mp4|mkv|avi|wmv|mov|flv|m4v|ts|mpg|mpeg)\b"),
    _rule("square_brackets", r"\[.*?\]", "", 0),
    _rule("parentheses", r"\(.*?\)", "", 0),
    _rule("size", r"\b\d+(\.\d+)?\s?(gb|mb|gib|mib)\b"),
    _rule("episode", r"\b(s\d{2}e\d{2}|e\d{2,3})\b"),
    _rule(
        "release_tag",
        r"\b(repack|proper|real|retail|extended|unrated|directors?\.cut|remastered|xleech|p2p|xc)\b",
    ),
    _rule("escaped_quote", r'\\"', '"', 0),
    _rule("punctuation_run", r"[-_.]{2,}", " ", 0),
)

_WHITESPACE = re.compile(r"\s+")
_EDGE_PUNCTUATION = re.compile(r'^[-_.",]+|[-_.",]+$')
_NON_WORD = re.compile(r"[^\w\s]")


@dataclass
class TitleNormalizer:
    """Applies an ordered rule table to produce a scene key."""

    rules: tuple[NormalizationRule, ...] = field(default=DEFAULT_RULES)

    def extract_scene_title(self, title: str) -> str:
        """Strip release noise from ``title``.

        Never returns an empty string: if everything was stripped, the original
        title is returned unchanged.
        """
        cleaned = title
        for rule in self.rules:
            cleaned = rule.apply(cleaned)

        cleaned = _WHITESPACE.sub(" ", cleaned).strip()
        cleaned = _EDGE_PUNCTUATION.sub("", cleaned).strip()

        return cleaned or title

    def remove_metadata(self, title: str) -> str:
        """Scene key in comparison form (cleaned, then lowercased and de-punctuated)."""
        return normalize_for_comparison(self.extract_scene_title(title))


def normalize_for_comparison(title: str) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""
    lowered = _NON_WORD.sub(" ", title.lower())
    return _WHITESPACE.sub(" ", lowered).strip()


def length_ratio(first: str, second: str) -> float:
    """``min(len)/max(len)``, 0 when either string is empty."""
    if not first or not second:
        return 0.0
    return min(len(first), len(second)) / max(len(first), len(second))


DEFAULT_NORMALIZER = TitleNormalizer()


def extract_scene_title(title: str) -> str:
    """Module-level shortcut using the default rule table."""
    return DEFAULT_NORMALIZER.extract_scene_title(title)
