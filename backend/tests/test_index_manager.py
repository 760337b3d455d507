"""Tests for index construction, fallback and refresh."""

from __future__ import annotations

import numpy as np
import pytest

from docvec.core.config import IndexParams
from docvec.core.errors import BuildCancelled, DimensionMismatch, IndexUnavailable, InvalidArgument
from docvec.index.backends import CancellationToken, build_hnsw, build_ivfflat
from docvec.index.manager import IndexManager


class CountingFactory:
    def __init__(self, factory=None, error: Exception | None = None) -> None:
        self.factory = factory
        self.error = error
        self.calls = 0

    def __call__(self, matrix, params, token):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.factory(matrix, params, token)


def _random_records(record_store, count: int, dim: int = 8, seed: int = 0):
    rng = np.random.default_rng(seed)
    vectors = rng.normal(size=(count, dim)).astype(np.float32)
    return record_store.insert_many((None, {}, vector) for vector in vectors)


def test_build_uses_primary_backend(record_store, triangle_corpus) -> None:
    manager = IndexManager(record_store, IndexParams())
    handle = manager.build()
    assert handle.kind == "hnsw"
    assert handle.dimension == 2
    assert handle.size == 3
    assert manager.active is handle
    assert not handle.degraded


def test_failing_primary_falls_back_once(record_store, triangle_corpus) -> None:
    primary = CountingFactory(error=RuntimeError("hnsw not supported"))
    fallback = CountingFactory(factory=build_ivfflat)
    manager = IndexManager(
        record_store,
        IndexParams(ivf_lists=1, ivf_probes=1),
        factories=[("hnsw", primary), ("ivfflat", fallback)],
    )
    handle = manager.build()
    assert primary.calls == 1
    assert fallback.calls == 1
    assert handle.kind == "ivfflat"
    assert "hnsw" in manager.last_failures


def test_both_backends_failing_raises_and_degrades(record_store, triangle_corpus) -> None:
    primary = CountingFactory(error=MemoryError())
    fallback = CountingFactory(error=ValueError("too few training vectors"))
    manager = IndexManager(record_store, IndexParams(), factories=[("hnsw", primary), ("ivfflat", fallback)])
    with pytest.raises(IndexUnavailable) as excinfo:
        manager.build()
    assert primary.calls == 1
    assert fallback.calls == 1
    assert set(excinfo.value.failures) == {"hnsw", "ivfflat"}
    assert excinfo.value.degraded_handle is manager.active
    assert manager.active.kind == "linear"
    assert manager.status()["degraded"] is True


def test_ivfflat_with_too_few_vectors_degrades(record_store, triangle_corpus) -> None:
    manager = IndexManager(record_store, IndexParams(backends=("ivfflat",), ivf_lists=100))
    with pytest.raises(IndexUnavailable):
        manager.build()
    assert manager.active.kind == "linear"
    assert manager.active.size == 3


def test_dimension_mismatch_rejected_before_build(record_store) -> None:
    primary = CountingFactory(factory=build_hnsw)
    manager = IndexManager(record_store, IndexParams(), factories=[("hnsw", primary)])
    with pytest.raises(DimensionMismatch):
        manager.build([(1, [0.0, 1.0]), (2, [0.0, 1.0, 2.0])])
    assert primary.calls == 0
    assert manager.active is None


def test_configured_dimension_is_enforced(record_store, triangle_corpus) -> None:
    manager = IndexManager(record_store, IndexParams(dimension=3))
    with pytest.raises(DimensionMismatch):
        manager.build()


def test_empty_collection_needs_configured_dimension(record_store) -> None:
    with pytest.raises(InvalidArgument):
        IndexManager(record_store, IndexParams()).build()
    handle = IndexManager(record_store, IndexParams(dimension=4)).build()
    assert handle.size == 0
    assert handle.dimension == 4


def test_rebuild_without_changes_is_noop(record_store, triangle_corpus) -> None:
    primary = CountingFactory(factory=build_hnsw)
    manager = IndexManager(record_store, IndexParams(), factories=[("hnsw", primary)])
    first = manager.build()
    second = manager.build()
    assert second is first
    assert primary.calls == 1

    record_store.delete(triangle_corpus[0])
    third = manager.build()
    assert third is not first
    assert third.size == 2
    assert primary.calls == 2


def test_cancelled_build_keeps_active_handle(record_store, triangle_corpus) -> None:
    manager = IndexManager(record_store, IndexParams())
    original = manager.build()
    record_store.insert("new", {}, [2.0, 2.0])

    token = CancellationToken()
    token.cancel()
    with pytest.raises(BuildCancelled):
        manager.build(cancel_token=token)
    assert manager.active is original


def test_cancellation_does_not_advance_chain(record_store, triangle_corpus) -> None:
    token = CancellationToken()

    def cancelling(matrix, params, build_token):
        token.cancel()
        build_token.raise_if_cancelled()

    fallback = CountingFactory(factory=build_hnsw)
    manager = IndexManager(record_store, IndexParams(), factories=[("hnsw", cancelling), ("ivfflat", fallback)])
    with pytest.raises(BuildCancelled):
        manager.build(cancel_token=token)
    assert fallback.calls == 0
    assert manager.active is None


def test_refresh_extends_graph_incrementally(record_store, triangle_corpus) -> None:
    primary = CountingFactory(factory=build_hnsw)
    manager = IndexManager(record_store, IndexParams(), factories=[("hnsw", primary)])
    original = manager.build()
    added = record_store.insert_many([(None, {}, [3.0, 3.0]), (None, {}, [4.0, 4.0])])

    refreshed = manager.refresh([(record.id, record.embedding) for record in added])
    assert primary.calls == 1
    assert refreshed is manager.active
    assert refreshed.size == 5
    assert original.size == 3
    assert refreshed.added_since_train == 2
    assert refreshed.search(np.array([4.0, 4.0], dtype=np.float32), 1)[0][0] == added[1].id


def test_refresh_matches_full_build_fingerprint(record_store, triangle_corpus) -> None:
    manager = IndexManager(record_store, IndexParams())
    manager.build()
    added = record_store.insert_many([(None, {}, [5.0, 5.0])])
    refreshed = manager.refresh([(record.id, record.embedding) for record in added])
    assert manager.build() is refreshed


def test_refresh_rejects_wrong_dimension(record_store, triangle_corpus) -> None:
    manager = IndexManager(record_store, IndexParams())
    original = manager.build()
    with pytest.raises(DimensionMismatch):
        manager.refresh([(99, [1.0, 2.0, 3.0])])
    assert manager.active is original


def test_refresh_without_new_vectors_returns_handle(record_store, triangle_corpus) -> None:
    manager = IndexManager(record_store, IndexParams())
    original = manager.build()
    assert manager.refresh([]) is original
    assert manager.refresh(record_store.scan()) is original


def test_ivfflat_refresh_rebuilds_when_stale(record_store) -> None:
    _random_records(record_store, 40, seed=1)
    params = IndexParams(backends=("ivfflat",), ivf_lists=4, ivf_probes=4, ivf_staleness_ratio=0.25)
    manager = IndexManager(record_store, params)
    original = manager.build()
    assert original.kind == "ivfflat"
    assert original.trained_count == 40

    small = _random_records(record_store, 5, seed=2)
    incremental = manager.refresh([(record.id, record.embedding) for record in small])
    assert incremental.trained_count == 40
    assert incremental.added_since_train == 5

    large = _random_records(record_store, 10, seed=3)
    rebuilt = manager.refresh([(record.id, record.embedding) for record in large])
    assert rebuilt.trained_count == 55
    assert rebuilt.added_since_train == 0
    assert rebuilt.size == 55


def test_refresh_without_active_handle_builds(record_store, triangle_corpus) -> None:
    manager = IndexManager(record_store, IndexParams())
    handle = manager.refresh(record_store.scan())
    assert handle.kind == "hnsw"
    assert handle.size == 3


def test_unknown_backend_rejected(record_store, triangle_corpus) -> None:
    manager = IndexManager(record_store, IndexParams().model_copy(update={"backends": ("annoy",)}))
    with pytest.raises(InvalidArgument):
        manager.build()


def test_refresh_with_replaced_handle_keeps_intermediate_vectors(record_store, triangle_corpus) -> None:
    manager = IndexManager(record_store, IndexParams())
    original = manager.build()
    fourth = record_store.insert("fourth", {}, [2.0, 2.0])
    manager.refresh([(fourth.id, fourth.embedding)])
    fifth = record_store.insert("fifth", {}, [3.0, 3.0])

    refreshed = manager.refresh([(fifth.id, fifth.embedding)], handle=original)
    assert refreshed is manager.active
    assert refreshed.ids.tolist() == [*triangle_corpus, fourth.id, fifth.id]
    assert original.size == 3
