"""Similarity search components."""

from .scoring import LinearDistanceScore, ScoringPolicy
from .search import QueryEngine, matches_filter

__all__ = [
    "LinearDistanceScore",
    "QueryEngine",
    "ScoringPolicy",
    "matches_filter",
]
