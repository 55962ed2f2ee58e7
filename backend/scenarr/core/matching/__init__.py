"""Scene matching: lexical scoring and cross-encoder ranking."""

from scenarr.core.matching.base import MatchEngine
from scenarr.core.matching.config import MatchingConfig, get_matching_config
from scenarr.core.matching.lexical import LexicalMatchEngine, levenshtein_similarity
from scenarr.core.matching.neural import CrossEncoderMatchEngine, CrossEncoderRanker, ModelHandle

__all__ = [
    "CrossEncoderMatchEngine",
    "CrossEncoderRanker",
    "LexicalMatchEngine",
    "MatchEngine",
    "MatchingConfig",
    "ModelHandle",
    "get_matching_config",
    "levenshtein_similarity",
]
