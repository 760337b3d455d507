"""Document metadata and row-level chunk stores."""

from __future__ import annotations

import sqlite3
from typing import Any, Iterable

import orjson

from docvec.core.errors import Conflict, InvalidArgument, NotFound
from docvec.db.sqlite import SQLiteDatabase
from docvec.models.entities import Chunk, Document
from docvec.utils.time import from_ms, now_ms

_UPDATABLE_FIELDS = ("title", "source_url", "schema_tag")


class DocumentStore:
    """Document metadata rows; ``created_at`` is set on insert and never changed."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def create(
        self,
        document_id: str,
        title: str | None = None,
        source_url: str | None = None,
        schema_tag: str | None = None,
    ) -> Document:
        if not document_id:
            raise InvalidArgument("document id must be a non-empty string")
        try:
            self.db.execute(
                "INSERT INTO document_metadata (id, title, source_url, created_at, schema_tag) VALUES (?, ?, ?, ?, ?)",
                [document_id, title, source_url, now_ms(), schema_tag],
            )
        except sqlite3.IntegrityError as exc:
            self.db.rollback()
            raise Conflict(f"Document {document_id} already exists") from exc
        self.db.commit()
        return self.get(document_id)

    def get(self, document_id: str) -> Document:
        row = self.db.execute(
            "SELECT id, title, source_url, created_at, schema_tag FROM document_metadata WHERE id = ?",
            [document_id],
        ).fetchone()
        if row is None:
            raise NotFound(f"Document {document_id} not found")
        return _row_to_document(row)

    def list(self) -> list[Document]:
        rows = self.db.query(
            "SELECT id, title, source_url, created_at, schema_tag FROM document_metadata ORDER BY created_at, id"
        )
        return [_row_to_document(row) for row in rows]

    def update(self, document_id: str, **fields: Any) -> Document:
        unknown = set(fields) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise InvalidArgument(f"Cannot update document fields: {', '.join(sorted(unknown))}")
        self.get(document_id)
        updates = [(name, value) for name, value in fields.items() if value is not None]
        if updates:
            assignments = ", ".join(f"{name} = ?" for name, _ in updates)
            self.db.execute(
                f"UPDATE document_metadata SET {assignments} WHERE id = ?",
                [*(value for _, value in updates), document_id],
            )
            self.db.commit()
        return self.get(document_id)

    def delete(self, document_id: str) -> bool:
        cursor = self.db.execute("DELETE FROM document_metadata WHERE id = ?", [document_id])
        self.db.commit()
        return cursor.rowcount > 0


class ChunkStore:
    """Row-level chunks owned by exactly one document."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def insert_many(self, dataset_id: str, rows: Iterable[dict[str, Any]]) -> list[Chunk]:
        chunks: list[Chunk] = []
        try:
            with self.db.transaction() as cursor:
                for row_data in rows:
                    cursor.execute(
                        "INSERT INTO document_rows (dataset_id, row_data) VALUES (?, ?)",
                        [dataset_id, orjson.dumps(row_data).decode("utf-8")],
                    )
                    chunks.append(Chunk(id=int(cursor.lastrowid), dataset_id=dataset_id, row_data=dict(row_data)))
        except sqlite3.IntegrityError as exc:
            raise NotFound(f"Document {dataset_id} not found") from exc
        return chunks

    def list_by_dataset(self, dataset_id: str) -> list[Chunk]:
        rows = self.db.query(
            "SELECT id, dataset_id, row_data FROM document_rows WHERE dataset_id = ? ORDER BY id",
            [dataset_id],
        )
        return [_row_to_chunk(row) for row in rows]

    def get(self, chunk_id: int) -> Chunk:
        row = self.db.execute(
            "SELECT id, dataset_id, row_data FROM document_rows WHERE id = ?",
            [chunk_id],
        ).fetchone()
        if row is None:
            raise NotFound(f"Chunk {chunk_id} not found")
        return _row_to_chunk(row)


def _row_to_document(row: Any) -> Document:
    return Document(
        id=row["id"],
        title=row["title"],
        source_url=row["source_url"],
        created_at=from_ms(row["created_at"]),
        schema_tag=row["schema_tag"],
    )


def _row_to_chunk(row: Any) -> Chunk:
    return Chunk(id=row["id"], dataset_id=row["dataset_id"], row_data=orjson.loads(row["row_data"]))


__all__ = ["DocumentStore", "ChunkStore"]
