"""Index lifecycle: strategy-chain builds, incremental refresh, handle swap."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Iterable, Sequence

import numpy as np

from docvec.core.config import IndexParams
from docvec.core.errors import BuildCancelled, DimensionMismatch, IndexUnavailable, InvalidArgument
from docvec.core.logging import context, get_logger
from docvec.core.metrics import BACKEND_FAILURES, INDEX_BUILDS, INDEX_DEGRADED, INDEX_SIZE
from docvec.index.backends import (
    BackendFactory,
    CancellationToken,
    LinearScanBackend,
    build_linear,
    default_chain,
)
from docvec.index.handle import IndexHandle, content_digest, fingerprint
from docvec.store.records import VectorRecordStore
from docvec.utils.time import utc_now

logger = get_logger(__name__)

VectorInput = Iterable[tuple[int, Sequence[float] | np.ndarray]]


class IndexManager:
    """Owns the active :class:`IndexHandle` for one vector collection.

    Writers (``build``/``refresh``) are serialized; readers take ``active`` once
    and search it without locking. A new handle is always fully constructed
    before it replaces the active one.
    """

    def __init__(
        self,
        store: VectorRecordStore,
        params: IndexParams | None = None,
        factories: Sequence[tuple[str, BackendFactory]] | None = None,
    ) -> None:
        self.store = store
        self.params = params or IndexParams()
        self._factories = list(factories) if factories is not None else None
        self._write_lock = threading.Lock()
        self._active: IndexHandle | None = None
        self.last_failures: dict[str, str] = {}

    @property
    def active(self) -> IndexHandle | None:
        return self._active

    @property
    def dimension(self) -> int | None:
        handle = self._active
        if handle is not None:
            return handle.dimension
        return self.params.dimension

    def status(self) -> dict[str, Any]:
        handle = self._active
        if handle is None:
            return {
                "backend": "none",
                "dimension": self.params.dimension,
                "size": 0,
                "degraded": False,
                "built_at": None,
                "failures": dict(self.last_failures),
            }
        return {**handle.status(), "failures": dict(self.last_failures)}

    def check_dimension(self, embeddings: Iterable[Sequence[float] | np.ndarray]) -> None:
        """Reject embeddings that could not join the current index."""
        expected = self.dimension
        for embedding in embeddings:
            size = len(embedding)
            if expected is None:
                expected = size
            elif size != expected:
                raise DimensionMismatch(expected, size)

    def snapshot(self) -> IndexHandle | None:
        """Return the active handle, or a transient exact-scan handle over the store."""
        handle = self._active
        if handle is not None:
            return handle
        vectors = self.store.scan()
        if not vectors:
            return None
        ids, matrix, dimension = _prepare(vectors, self.params.dimension)
        return IndexHandle(
            backend=LinearScanBackend(matrix),
            ids=ids,
            params=self.params.with_dimension(dimension),
            dimension=dimension,
            digest_state=content_digest(ids, matrix),
            transient=True,
        )

    def build(
        self,
        vectors: VectorInput | None = None,
        params: IndexParams | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> IndexHandle:
        """Build a handle through the strategy chain and make it active.

        Raises ``IndexUnavailable`` after installing a linear-scan handle when
        every backend fails.
        """
        with self._write_lock:
            return self._build_locked(vectors, params or self.params, cancel_token or CancellationToken())

    def refresh(
        self,
        new_vectors: VectorInput,
        handle: IndexHandle | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> IndexHandle:
        """Add newly inserted vectors to the active handle.

        Graph and linear handles are extended incrementally. Partitioned handles
        are extended until the vectors added since training exceed
        ``ivf_staleness_ratio`` of the trained count, then rebuilt from the store.
        A ``handle`` that has since been replaced is not extended; the active
        handle is, so vectors added in between are kept.
        """
        token = cancel_token or CancellationToken()
        with self._write_lock:
            base = self._active
            if handle is not None and handle is not base:
                logger.info(
                    "index.refresh_stale_handle",
                    extra=context(stale_size=handle.size, active_size=base.size if base is not None else 0),
                )
            if base is None or base.transient:
                return self._build_locked(None, self.params, token)

            pending = list(new_vectors)
            if not pending:
                return base
            ids, matrix, _ = _prepare(pending, base.dimension)
            fresh = ~base.contains(ids)
            ids, matrix = ids[fresh], matrix[fresh]
            if ids.size == 0:
                return base
            order = np.argsort(ids, kind="stable")
            ids, matrix = ids[order], matrix[order]

            if base.kind == "ivfflat":
                added = base.added_since_train + int(ids.size)
                if added > base.params.ivf_staleness_ratio * max(base.trained_count, 1):
                    logger.info(
                        "index.refresh_rebuild",
                        extra=context(backend=base.kind, trained=base.trained_count, added=added),
                    )
                    return self._build_locked(None, base.params, token, force=True)

            backend = base.backend.extend(matrix, token)
            refreshed = replace(
                base,
                backend=backend,
                ids=np.concatenate([base.ids, ids]),
                digest_state=content_digest(ids, matrix, base=base.digest_state),
                added_since_train=base.added_since_train + int(ids.size),
                built_at=utc_now(),
            )
            self._swap(refreshed, "refresh")
            logger.info(
                "index.refreshed",
                extra=context(backend=refreshed.kind, added=int(ids.size), size=refreshed.size),
            )
            return refreshed

    # Internal helpers -------------------------------------------------

    def _chain(self, params: IndexParams) -> list[tuple[str, BackendFactory]]:
        if self._factories is not None:
            return list(self._factories)
        return default_chain(params.backends)

    def _build_locked(
        self,
        vectors: VectorInput | None,
        params: IndexParams,
        token: CancellationToken,
        force: bool = False,
    ) -> IndexHandle:
        source = self.store.scan() if vectors is None else list(vectors)
        ids, matrix, dimension = _prepare(source, params.dimension)
        order = np.argsort(ids, kind="stable")
        ids, matrix = ids[order], matrix[order]
        params = params.with_dimension(dimension)
        state = content_digest(ids, matrix)

        current = self._active
        if (
            not force
            and current is not None
            and not current.degraded
            and current.fingerprint == fingerprint(params, state)
        ):
            logger.info("index.build_skipped", extra=context(backend=current.kind, size=current.size))
            return current

        failures: dict[str, str] = {}
        for position, (kind, factory) in enumerate(self._chain(params)):
            token.raise_if_cancelled()
            try:
                backend = factory(matrix, params, token)
            except BuildCancelled:
                logger.info("index.build_cancelled", extra=context(backend=kind))
                raise
            except Exception as exc:
                failures[kind] = str(exc) or exc.__class__.__name__
                BACKEND_FAILURES.labels(backend=kind).inc()
                logger.warning(
                    "index.backend_failed",
                    exc_info=True,
                    extra=context(backend=kind, vectors=int(ids.size), dimension=dimension),
                )
                continue
            if position > 0:
                logger.warning(
                    "index.fallback_selected",
                    extra=context(backend=kind, failed=list(failures)),
                )
            new_handle = IndexHandle(
                backend=backend,
                ids=ids,
                params=params,
                dimension=dimension,
                digest_state=state,
                trained_count=int(ids.size),
            )
            self.last_failures = failures
            self._swap(new_handle, "build")
            logger.info(
                "index.built",
                extra=context(backend=kind, size=new_handle.size, dimension=dimension),
            )
            return new_handle

        degraded = IndexHandle(
            backend=build_linear(matrix, params, token),
            ids=ids,
            params=params,
            dimension=dimension,
            digest_state=state,
            trained_count=int(ids.size),
        )
        self.last_failures = failures
        self._swap(degraded, "degraded")
        logger.error("index.degraded", extra=context(failures=failures, size=degraded.size))
        raise IndexUnavailable(failures, degraded)

    def _swap(self, handle: IndexHandle, operation: str) -> None:
        self._active = handle
        INDEX_BUILDS.labels(backend=handle.kind, operation=operation).inc()
        INDEX_SIZE.set(handle.size)
        INDEX_DEGRADED.set(1 if handle.degraded else 0)


def _prepare(vectors: Sequence[tuple[int, Any]], dimension: int | None) -> tuple[np.ndarray, np.ndarray, int]:
    """Stack ``(id, embedding)`` pairs, enforcing one shared dimension."""
    expected = dimension
    rows: list[np.ndarray] = []
    ids: list[int] = []
    for record_id, embedding in vectors:
        vector = np.asarray(embedding, dtype=np.float32)
        if vector.ndim != 1:
            raise InvalidArgument(f"Embedding for record {record_id} must be one-dimensional")
        if expected is None:
            expected = int(vector.shape[0])
        if vector.shape[0] != expected:
            raise DimensionMismatch(expected, int(vector.shape[0]), record_id=int(record_id))
        ids.append(int(record_id))
        rows.append(vector)
    if expected is None:
        raise InvalidArgument("Cannot infer the index dimension from an empty collection; configure one")
    matrix = np.vstack(rows) if rows else np.empty((0, expected), dtype=np.float32)
    return np.asarray(ids, dtype=np.int64), matrix, expected


__all__ = ["IndexManager", "VectorInput"]
