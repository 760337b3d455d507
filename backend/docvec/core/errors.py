"""Error taxonomy shared by the index, query and storage layers."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from docvec.index.handle import IndexHandle


class DocvecError(Exception):
    """Base class for all docvec errors."""


class DimensionMismatch(DocvecError, ValueError):
    """Embedding length differs from the index dimension."""

    def __init__(self, expected: int, actual: int, record_id: int | None = None) -> None:
        self.expected = expected
        self.actual = actual
        self.record_id = record_id
        where = f" (record {record_id})" if record_id is not None else ""
        super().__init__(f"Expected embedding dimension {expected}, got {actual}{where}")


class InvalidThreshold(DocvecError, ValueError):
    """Similarity threshold outside [-1, 1]."""

    def __init__(self, value: float) -> None:
        self.value = value
        super().__init__(f"similarity_threshold must be between -1 and 1 (or null), got {value}")


class InvalidArgument(DocvecError, ValueError):
    """Malformed argument such as a non-positive match_count."""


class IndexUnavailable(DocvecError):
    """Every ANN backend in the strategy chain failed.

    The manager has already installed a linear-scan handle when this is raised;
    it is available as ``degraded_handle``.
    """

    def __init__(self, failures: dict[str, str], degraded_handle: "IndexHandle | None" = None) -> None:
        self.failures = failures
        self.degraded_handle = degraded_handle
        summary = "; ".join(f"{kind}: {reason}" for kind, reason in failures.items())
        super().__init__(f"No ANN backend could be built ({summary})")


class BuildCancelled(DocvecError):
    """A build or refresh was cancelled between construction phases."""


class NotFound(DocvecError, LookupError):
    """A referenced record, document or chunk does not exist."""


class Conflict(DocvecError):
    """A record with the same identifier already exists."""


__all__ = [
    "DocvecError",
    "DimensionMismatch",
    "InvalidThreshold",
    "InvalidArgument",
    "IndexUnavailable",
    "BuildCancelled",
    "NotFound",
    "Conflict",
]
