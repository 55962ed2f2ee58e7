"""Matching configuration - scoring weights and thresholds."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields

import structlog

logger = structlog.get_logger("scenarr.matching.config")


@dataclass
class MatchingConfig:
    """Configuration for grouping and scene matching.

    This class centralizes all scoring weights and thresholds,
    making it easy to adjust matching behavior.
    """

    # Grouping
    grouping_min_title_length: int = 15  # Shorter titles never merge with others
    grouping_min_prefix_length: int = 30  # Shorter side of a prefix merge
    grouping_threshold: float = 0.7  # Length ratio required for a prefix merge

    # Lexical scoring (0-100 scale, plus date bonus)
    exact_match_score: float = 100.0
    truncated_match_base: float = 90.0
    partial_match_base: float = 80.0
    ratio_weight: float = 5.0
    truncated_match_ratio: float = 0.7
    partial_match_min_length: int = 20
    levenshtein_threshold: float = 0.7
    lexical_min_score: float = 70.0  # Minimum score for a lexical match to be accepted

    # Date bonus (points by maximum day difference)
    date_bonus_week: float = 5.0
    date_bonus_month: float = 3.0
    date_bonus_quarter: float = 2.0
    date_bonus_half_year: float = 1.0

    # Cross-encoder
    neural_min_length_ratio: float = 0.3
    neural_min_cleaned_length: int = 5
    neural_title_penalty_similarity: float = 0.3


# Default config instance
DEFAULT_CONFIG = MatchingConfig()

_cached_config: MatchingConfig | None = None


def get_matching_config() -> MatchingConfig:
    """Get the current matching configuration.

    Loads the ``matching`` section of settings.json if present, otherwise returns
    defaults. Caches the result.

    Returns:
        MatchingConfig instance with current settings
    """
    global _cached_config

    if _cached_config is not None:
        return _cached_config

    from scenarr.core.config import get_settings

    settings_file = get_settings().config_dir / "settings.json"
    config = DEFAULT_CONFIG
    if settings_file.exists():
        try:
            with settings_file.open("r") as f:
                matching_settings = json.load(f).get("matching")
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read matching settings", error=str(e))
            matching_settings = None

        if matching_settings:
            known = {f.name for f in fields(MatchingConfig)}
            config = MatchingConfig(
                **{k: v for k, v in matching_settings.items() if k in known}
            )

    _cached_config = config
    return _cached_config


def reload_matching_config() -> MatchingConfig:
    """Reload matching configuration from settings file.

    Call this after updating settings to ensure new values are used.
    """
    global _cached_config
    _cached_config = None
    return get_matching_config()
