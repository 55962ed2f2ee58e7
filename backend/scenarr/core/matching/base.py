"""Base abstract class for scene match engines."""

from __future__ import annotations

from abc import ABC, abstractmethod

import structlog

from scenarr.core.search.models import MatchResult, SceneCandidate, SceneGroup, SubscriptionTarget


class MatchEngine(ABC):
    """Assigns release groups to local scenes.

    Implementations are greedy: groups are visited in order and each takes the best
    still-unclaimed candidate, so a scene is claimed at most once per call.
    """

    strategy: str = "unknown"

    def __init__(self) -> None:
        self.logger = structlog.get_logger(f"scenarr.matching.{self.strategy}")

    @abstractmethod
    async def match(
        self,
        groups: list[SceneGroup],
        candidates: list[SceneCandidate],
        target: SubscriptionTarget,
    ) -> MatchResult:
        """Partition ``groups`` into matched and unmatched.

        Args:
            groups: Release groups in grouping order
            candidates: Local scenes for the subscribed entity
            target: The subscribed entity (used to strip self-name bias)

        Returns:
            MatchResult with matched groups (scene + torrents) and unmatched groups
        """
