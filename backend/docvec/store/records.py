"""SQLite-backed vector record store."""

from __future__ import annotations

from typing import Any, Iterable, Sequence

import numpy as np
import orjson

from docvec.core.errors import InvalidArgument, NotFound
from docvec.db.sqlite import SQLiteDatabase
from docvec.models.entities import VectorRecord

EMBEDDING_DTYPE = np.float32


def as_embedding(values: Sequence[float] | np.ndarray) -> np.ndarray:
    """Coerce a sequence of numbers into a 1-D float32 vector."""
    vector = np.asarray(values, dtype=EMBEDDING_DTYPE)
    if vector.ndim != 1 or vector.shape[0] == 0:
        raise InvalidArgument("embedding must be a non-empty one-dimensional sequence of numbers")
    if not np.all(np.isfinite(vector)):
        raise InvalidArgument("embedding must contain only finite values")
    return vector


class VectorRecordStore:
    """Holds ``(id, content, metadata, embedding)`` rows.

    The index manager reads ``scan()`` and the query engine reads ``get_many()``;
    neither writes here.
    """

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def insert(self, content: str | None, metadata: dict[str, Any] | None, embedding: Sequence[float]) -> VectorRecord:
        return self.insert_many([(content, metadata, embedding)])[0]

    def insert_many(
        self,
        items: Iterable[tuple[str | None, dict[str, Any] | None, Sequence[float]]],
    ) -> list[VectorRecord]:
        records: list[VectorRecord] = []
        with self.db.transaction() as cursor:
            for content, metadata, embedding in items:
                vector = as_embedding(embedding)
                meta = dict(metadata or {})
                cursor.execute(
                    "INSERT INTO documents (content, metadata, dim, embedding) VALUES (?, ?, ?, ?)",
                    [content, orjson.dumps(meta).decode("utf-8"), int(vector.shape[0]), vector.tobytes()],
                )
                records.append(VectorRecord(id=int(cursor.lastrowid), content=content, metadata=meta, embedding=vector))
        return records

    def get(self, record_id: int) -> VectorRecord:
        row = self.db.execute(
            "SELECT id, content, metadata, embedding FROM documents WHERE id = ?",
            [record_id],
        ).fetchone()
        if row is None:
            raise NotFound(f"Vector record {record_id} not found")
        return _row_to_record(row)

    def get_many(self, record_ids: Sequence[int]) -> dict[int, VectorRecord]:
        if not record_ids:
            return {}
        placeholders = ",".join("?" for _ in record_ids)
        rows = self.db.query(
            f"SELECT id, content, metadata, embedding FROM documents WHERE id IN ({placeholders})",
            [int(record_id) for record_id in record_ids],
        )
        return {row["id"]: _row_to_record(row) for row in rows}

    def scan(self) -> list[tuple[int, np.ndarray]]:
        rows = self.db.query("SELECT id, embedding FROM documents ORDER BY id ASC")
        return [(row["id"], np.frombuffer(row["embedding"], dtype=EMBEDDING_DTYPE)) for row in rows]

    def delete(self, record_id: int) -> bool:
        cursor = self.db.execute("DELETE FROM documents WHERE id = ?", [record_id])
        self.db.commit()
        return cursor.rowcount > 0

    def count(self) -> int:
        row = self.db.execute("SELECT COUNT(*) AS total FROM documents").fetchone()
        return int(row["total"])


def _row_to_record(row: Any) -> VectorRecord:
    metadata = orjson.loads(row["metadata"]) if row["metadata"] else {}
    return VectorRecord(
        id=row["id"],
        content=row["content"],
        metadata=metadata,
        embedding=np.frombuffer(row["embedding"], dtype=EMBEDDING_DTYPE),
    )


__all__ = ["VectorRecordStore", "as_embedding", "EMBEDDING_DTYPE"]
