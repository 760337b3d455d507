"""Thresholded similarity search over the active index handle."""

from __future__ import annotations

import math
import time
from numbers import Integral, Real
from typing import Any, Mapping, Sequence

import numpy as np

from docvec.core.errors import DimensionMismatch, InvalidArgument, InvalidThreshold
from docvec.core.logging import context, get_logger
from docvec.core.metrics import SEARCH_LATENCY
from docvec.index.handle import IndexHandle
from docvec.index.manager import IndexManager
from docvec.models.entities import MatchResult
from docvec.retrieval.scoring import LinearDistanceScore, ScoringPolicy
from docvec.store.records import VectorRecordStore, as_embedding

logger = get_logger(__name__)

EXACT_BATCH_SIZE = 500


class QueryEngine:
    """Runs ``match`` queries: search, hydrate, filter, rank, score."""

    def __init__(
        self,
        store: VectorRecordStore,
        index_manager: IndexManager,
        scoring: ScoringPolicy | None = None,
        max_match_count: int | None = None,
    ) -> None:
        self.store = store
        self.index_manager = index_manager
        self.scoring = scoring or LinearDistanceScore()
        self.max_match_count = max_match_count

    def search(
        self,
        query_embedding: Sequence[float] | np.ndarray,
        similarity_threshold: float | None = None,
        match_count: int = 10,
        metadata_filter: Mapping[str, Any] | None = None,
    ) -> list[MatchResult]:
        start_time = time.perf_counter()
        self._validate_match_count(match_count)
        _validate_threshold(similarity_threshold)
        query = as_embedding(query_embedding)

        # One read of the active handle; a concurrent swap does not affect this query.
        handle = self.index_manager.snapshot()
        expected = handle.dimension if handle is not None else self.index_manager.dimension
        if expected is not None and query.shape[0] != expected:
            raise DimensionMismatch(expected, int(query.shape[0]))
        if handle is None or handle.size == 0:
            return []

        cutoff = self.scoring.distance_cutoff(similarity_threshold)
        accepted = self._collect(handle, query, match_count, cutoff, metadata_filter)
        ranked = sorted(accepted.values(), key=lambda item: (item[1], item[0].id))[:match_count]
        results = [
            MatchResult(
                id=record.id,
                content=record.content,
                metadata=record.metadata,
                distance=distance,
                similarity=self.scoring.similarity(distance),
            )
            for record, distance in ranked
        ]

        SEARCH_LATENCY.labels(backend=handle.kind).observe(time.perf_counter() - start_time)
        logger.debug(
            "search.completed",
            extra=context(backend=handle.kind, match_count=match_count, returned=len(results)),
        )
        return results

    # ------------------------------------------------------------------

    def _collect(
        self,
        handle: IndexHandle,
        query: np.ndarray,
        match_count: int,
        cutoff: float | None,
        metadata_filter: Mapping[str, Any] | None,
    ) -> dict[int, tuple[Any, float]]:
        """Widen ``k`` until the ranking is settled, the cutoff is crossed, or the index is exhausted.

        The ranking is settled once ``match_count`` candidates are accepted and a
        hit lies strictly beyond the last of them, so equal distances at the
        boundary are all considered. ANN backends may leave vectors unreachable
        even at ``k == size``; those are scored exactly before giving up.
        """
        accepted: dict[int, tuple[Any, float]] = {}
        seen: set[int] = set()
        k = min(match_count + 1, handle.size)
        while True:
            hits = handle.search(query, k)
            fresh = [(record_id, distance) for record_id, distance in hits if record_id not in seen]
            seen.update(record_id for record_id, _ in fresh)
            self._accept(fresh, cutoff, metadata_filter, accepted)

            if k >= handle.size:
                break
            last = hits[-1][1] if hits else None
            if len(accepted) >= match_count and last is not None:
                boundary = sorted(distance for _, distance in accepted.values())[match_count - 1]
                if last > boundary:
                    return accepted
            if cutoff is not None and last is not None and last > cutoff:
                return accepted
            k = min(k * 2, handle.size)

        unreached = [int(record_id) for record_id in handle.ids if int(record_id) not in seen]
        if unreached:
            logger.debug(
                "search.exact_completion",
                extra=context(backend=handle.kind, unreached=len(unreached), accepted=len(accepted)),
            )
            for start in range(0, len(unreached), EXACT_BATCH_SIZE):
                batch = unreached[start : start + EXACT_BATCH_SIZE]
                records = self.store.get_many(batch)
                scored = [
                    (record_id, _l2(records[record_id].embedding, query))
                    for record_id in batch
                    if record_id in records
                ]
                self._accept(scored, cutoff, metadata_filter, accepted, records)
        return accepted

    def _accept(
        self,
        candidates: list[tuple[int, float]],
        cutoff: float | None,
        metadata_filter: Mapping[str, Any] | None,
        accepted: dict[int, tuple[Any, float]],
        records: Mapping[int, Any] | None = None,
    ) -> None:
        within = [(record_id, distance) for record_id, distance in candidates if cutoff is None or distance <= cutoff]
        if records is None:
            records = self.store.get_many([record_id for record_id, _ in within])
        for record_id, distance in within:
            record = records.get(record_id)
            if record is None:
                logger.debug("search.stale_reference", extra=context(record_id=record_id))
                continue
            if not matches_filter(record.metadata, metadata_filter):
                continue
            accepted[record_id] = (record, distance)

    def _validate_match_count(self, match_count: Any) -> None:
        if isinstance(match_count, bool) or not isinstance(match_count, Integral):
            raise InvalidArgument(f"match_count must be an integer, got {match_count!r}")
        if match_count < 1:
            raise InvalidArgument(f"match_count must be >= 1, got {match_count}")
        if self.max_match_count is not None and match_count > self.max_match_count:
            raise InvalidArgument(f"match_count must be <= {self.max_match_count}, got {match_count}")


def _l2(embedding: np.ndarray, query: np.ndarray) -> float:
    diff = embedding.astype(np.float64) - query.astype(np.float64)
    return float(np.sqrt(np.dot(diff, diff)))


def _validate_threshold(threshold: Any) -> None:
    if threshold is None:
        return
    if isinstance(threshold, bool) or not isinstance(threshold, Real):
        raise InvalidThreshold(threshold)
    if math.isnan(threshold) or threshold < -1 or threshold > 1:
        raise InvalidThreshold(threshold)


def matches_filter(metadata: Mapping[str, Any], metadata_filter: Mapping[str, Any] | None) -> bool:
    """Top-level containment: every filter key present with an equal value."""
    if not metadata_filter:
        return True
    return all(key in metadata and metadata[key] == value for key, value in metadata_filter.items())


__all__ = ["QueryEngine", "matches_filter"]
