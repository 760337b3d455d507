"""Internal dataclasses representing persisted entities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import numpy as np


@dataclass(slots=True)
class Document:
    id: str
    title: str | None
    source_url: str | None
    created_at: datetime
    schema_tag: str | None


@dataclass(slots=True)
class Chunk:
    id: int
    dataset_id: str
    row_data: dict[str, Any]


@dataclass(slots=True)
class VectorRecord:
    id: int
    content: str | None
    metadata: dict[str, Any]
    embedding: np.ndarray


@dataclass(slots=True)
class MatchResult:
    """A ranked search hit joined with its stored content."""

    id: int
    content: str | None
    metadata: dict[str, Any]
    distance: float
    similarity: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "metadata": self.metadata,
            "distance": self.distance,
            "similarity": self.similarity,
        }


__all__ = ["Document", "Chunk", "VectorRecord", "MatchResult"]
