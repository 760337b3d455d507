"""Distance-to-similarity scoring policies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class ScoringPolicy(Protocol):
    """Maps raw distances to similarity and similarity thresholds to distance cutoffs.

    Implementations must be monotonic: a smaller distance never scores lower.
    """

    def similarity(self, distance: float) -> float: ...

    def distance_cutoff(self, threshold: float | None) -> float | None: ...


@dataclass(frozen=True, slots=True)
class LinearDistanceScore:
    """``similarity = 1 - distance / max_distance``.

    ``max_distance`` is the largest distance expected in the embedding space.
    The cutoff is one-sided: a threshold of -1 accepts distances up to
    ``2 * max_distance`` and nothing beyond.
    """

    max_distance: float = 2.0

    def __post_init__(self) -> None:
        if not self.max_distance > 0:
            raise ValueError("max_distance must be positive")

    def similarity(self, distance: float) -> float:
        return 1.0 - distance / self.max_distance

    def distance_cutoff(self, threshold: float | None) -> float | None:
        if threshold is None:
            return None
        return self.max_distance * (1.0 - threshold)


__all__ = ["ScoringPolicy", "LinearDistanceScore"]
