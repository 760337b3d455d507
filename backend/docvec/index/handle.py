"""Immutable snapshot of a searchable index."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import numpy as np

from docvec.core.config import IndexParams
from docvec.index.backends import IndexBackend
from docvec.utils.time import utc_now


def content_digest(ids: np.ndarray, matrix: np.ndarray, base: Any | None = None) -> Any:
    """Feed ``(id, vector)`` pairs into a blake2b state.

    Pairs must arrive in ascending id order so an incremental refresh over
    monotonically increasing ids ends in the same state as a full build.
    """
    state = base.copy() if base is not None else hashlib.blake2b(digest_size=16)
    for record_id, vector in zip(ids, matrix):
        state.update(int(record_id).to_bytes(8, "big", signed=True))
        state.update(np.ascontiguousarray(vector, dtype=np.float32).tobytes())
    return state


def fingerprint(params: IndexParams, state: Any) -> str:
    digest = hashlib.blake2b(digest_size=16)
    digest.update(params.model_dump_json().encode("utf-8"))
    digest.update(state.digest())
    return digest.hexdigest()


@dataclass(frozen=True, slots=True)
class IndexHandle:
    """The active searchable structure; replaced wholesale, never mutated.

    ``ids`` maps backend positions to vector record ids.
    """

    backend: IndexBackend
    ids: np.ndarray
    params: IndexParams
    dimension: int
    digest_state: Any = field(repr=False, compare=False)
    trained_count: int = 0
    added_since_train: int = 0
    built_at: datetime = field(default_factory=utc_now)
    transient: bool = False

    def __post_init__(self) -> None:
        self.ids.flags.writeable = False

    @property
    def kind(self) -> str:
        return self.backend.kind

    @property
    def size(self) -> int:
        return self.backend.size

    @property
    def degraded(self) -> bool:
        return self.backend.kind == "linear"

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.params, self.digest_state)

    def contains(self, record_ids: np.ndarray) -> np.ndarray:
        return np.isin(record_ids, self.ids)

    def search(self, query: np.ndarray, k: int) -> list[tuple[int, float]]:
        distances, positions = self.backend.search(query, k)
        return [(int(self.ids[pos]), float(dist)) for dist, pos in zip(distances, positions)]

    def status(self) -> dict[str, Any]:
        return {
            "backend": self.kind,
            "dimension": self.dimension,
            "size": self.size,
            "degraded": self.degraded,
            "built_at": self.built_at,
        }


__all__ = ["IndexHandle", "content_digest", "fingerprint"]
