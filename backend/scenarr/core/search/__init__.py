"""Release search pipeline stages."""

from scenarr.core.search.deduplicator import deduplicate
from scenarr.core.search.discovery import DiscoveryReporter
from scenarr.core.search.models import SceneGroup, SearchOutcome, TorrentResult
from scenarr.core.search.name_filter import NameIntegrityFilter
from scenarr.core.search.normalizer import TitleNormalizer, extract_scene_title
from scenarr.core.search.quality import QualitySelector

__all__ = [
    "DiscoveryReporter",
    "NameIntegrityFilter",
    "QualitySelector",
    "SceneGroup",
    "SearchOutcome",
    "TitleNormalizer",
    "TorrentResult",
    "deduplicate",
    "extract_scene_title",
]
