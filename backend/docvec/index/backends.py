"""ANN backend constructors used by the index manager's strategy chain.

Each factory takes the full ``(n, dim)`` float32 matrix, the build parameters
and a cancellation token, and returns a searchable backend. Factories raise on
any construction problem; the manager decides whether to fall back.
"""

from __future__ import annotations

import threading
from typing import Callable, Protocol, Sequence

import faiss
import numpy as np

from docvec.core.config import IndexParams
from docvec.core.errors import BuildCancelled, InvalidArgument

ADD_BATCH_SIZE = 4096


class CancellationToken:
    """Cooperative cancellation flag checked between construction phases."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise BuildCancelled("Index construction cancelled")


class IndexBackend(Protocol):
    kind: str

    @property
    def size(self) -> int: ...

    def search(self, query: np.ndarray, k: int) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(l2_distances, positions)`` for up to ``k`` nearest vectors, closest first."""
        ...

    def extend(self, matrix: np.ndarray, token: CancellationToken) -> "IndexBackend":
        """Return a new backend holding the current vectors plus ``matrix``."""
        ...


BackendFactory = Callable[[np.ndarray, IndexParams, CancellationToken], IndexBackend]


class FaissBackend:
    """Wraps a faiss index using the L2 metric."""

    def __init__(self, kind: str, index: faiss.Index) -> None:
        self.kind = kind
        self._index = index

    @property
    def size(self) -> int:
        return int(self._index.ntotal)

    def search(self, query: np.ndarray, k: int) -> tuple[np.ndarray, np.ndarray]:
        k = min(k, self.size)
        if k <= 0:
            return np.empty(0, dtype=np.float64), np.empty(0, dtype=np.int64)
        squared, positions = self._index.search(_as_matrix(query.reshape(1, -1)), k)
        keep = positions[0] >= 0
        # faiss reports squared L2
        distances = np.sqrt(np.maximum(squared[0][keep].astype(np.float64), 0.0))
        return distances, positions[0][keep].astype(np.int64)

    def extend(self, matrix: np.ndarray, token: CancellationToken) -> "FaissBackend":
        token.raise_if_cancelled()
        clone = faiss.clone_index(self._index)
        _add_in_batches(clone, matrix, token)
        return FaissBackend(self.kind, clone)


class LinearScanBackend:
    """Exact exhaustive L2 scan; the degraded mode when no ANN backend builds."""

    kind = "linear"

    def __init__(self, matrix: np.ndarray) -> None:
        self._matrix = np.array(matrix, dtype=np.float32, copy=True)
        self._matrix.flags.writeable = False

    @property
    def size(self) -> int:
        return int(self._matrix.shape[0])

    def search(self, query: np.ndarray, k: int) -> tuple[np.ndarray, np.ndarray]:
        k = min(k, self.size)
        if k <= 0:
            return np.empty(0, dtype=np.float64), np.empty(0, dtype=np.int64)
        diff = self._matrix.astype(np.float64) - query.astype(np.float64)
        distances = np.sqrt(np.einsum("ij,ij->i", diff, diff))
        order = np.argsort(distances, kind="stable")[:k]
        return distances[order], order.astype(np.int64)

    def extend(self, matrix: np.ndarray, token: CancellationToken) -> "LinearScanBackend":
        token.raise_if_cancelled()
        return LinearScanBackend(np.vstack([self._matrix, _as_matrix(matrix)]))


def build_hnsw(matrix: np.ndarray, params: IndexParams, token: CancellationToken) -> FaissBackend:
    """Graph index bounded by ``hnsw_m`` links per node."""
    token.raise_if_cancelled()
    dim = matrix.shape[1]
    index = faiss.IndexHNSWFlat(dim, params.hnsw_m, faiss.METRIC_L2)
    index.hnsw.efConstruction = params.hnsw_ef_construction
    index.hnsw.efSearch = params.hnsw_ef_search
    _add_in_batches(index, matrix, token)
    return FaissBackend("hnsw", index)


def build_ivfflat(matrix: np.ndarray, params: IndexParams, token: CancellationToken) -> FaissBackend:
    """Partitioned index with ``ivf_lists`` k-means cells."""
    token.raise_if_cancelled()
    count, dim = matrix.shape
    if count < params.ivf_lists:
        raise ValueError(
            f"ivfflat needs at least {params.ivf_lists} training vectors, got {count}"
        )
    quantizer = faiss.IndexFlatL2(dim)
    index = faiss.IndexIVFFlat(quantizer, dim, params.ivf_lists, faiss.METRIC_L2)
    index.cp.seed = params.seed
    index.train(_as_matrix(matrix))
    token.raise_if_cancelled()
    index.nprobe = min(params.ivf_probes, params.ivf_lists)
    _add_in_batches(index, matrix, token)
    return FaissBackend("ivfflat", index)


def build_linear(matrix: np.ndarray, params: IndexParams, token: CancellationToken) -> LinearScanBackend:
    token.raise_if_cancelled()
    return LinearScanBackend(matrix)


BACKEND_FACTORIES: dict[str, BackendFactory] = {
    "hnsw": build_hnsw,
    "ivfflat": build_ivfflat,
}


def default_chain(kinds: Sequence[str]) -> list[tuple[str, BackendFactory]]:
    """Resolve configured backend names to an ordered list of factories."""
    chain: list[tuple[str, BackendFactory]] = []
    for kind in kinds:
        try:
            chain.append((kind, BACKEND_FACTORIES[kind]))
        except KeyError as exc:
            raise InvalidArgument(f"Unknown index backend '{kind}'") from exc
    return chain


def _as_matrix(matrix: np.ndarray) -> np.ndarray:
    return np.ascontiguousarray(matrix, dtype=np.float32)


def _add_in_batches(index: faiss.Index, matrix: np.ndarray, token: CancellationToken) -> None:
    data = _as_matrix(matrix)
    for start in range(0, data.shape[0], ADD_BATCH_SIZE):
        token.raise_if_cancelled()
        index.add(data[start : start + ADD_BATCH_SIZE])


__all__ = [
    "ADD_BATCH_SIZE",
    "BACKEND_FACTORIES",
    "BackendFactory",
    "CancellationToken",
    "FaissBackend",
    "IndexBackend",
    "LinearScanBackend",
    "build_hnsw",
    "build_ivfflat",
    "build_linear",
    "default_chain",
]
