"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class MatchRequest(BaseModel):
    query_embedding: list[float]
    similarity_threshold: float | None = None
    match_count: int | None = Field(default=None, description="Defaults to the configured match count")
    filter: dict[str, Any] | None = Field(default=None, description="Top-level metadata containment filter")


class MatchItem(BaseModel):
    id: int
    content: str | None
    metadata: dict[str, Any]
    distance: float
    similarity: float


class MatchResponse(BaseModel):
    results: list[MatchItem]


class RecordCreate(BaseModel):
    content: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    embedding: list[float]


class RecordsCreateRequest(BaseModel):
    records: list[RecordCreate] = Field(min_length=1)


class RecordsCreateResponse(BaseModel):
    ids: list[int]
    index: "IndexStatus"


class RecordResponse(BaseModel):
    id: int
    content: str | None
    metadata: dict[str, Any]
    embedding: list[float]


class DocumentCreateRequest(BaseModel):
    id: str
    title: str | None = None
    source_url: str | None = None
    schema_tag: str | None = None


class DocumentUpdateRequest(BaseModel):
    title: str | None = None
    source_url: str | None = None
    schema_tag: str | None = None


class DocumentResponse(DocumentCreateRequest):
    created_at: datetime


class RowsCreateRequest(BaseModel):
    rows: list[dict[str, Any]] = Field(min_length=1)


class ChunkResponse(BaseModel):
    id: int
    dataset_id: str
    row_data: dict[str, Any]


class DeleteResponse(BaseModel):
    status: Literal["ok", "noop"]
    deleted: int


class IndexStatus(BaseModel):
    backend: Literal["hnsw", "ivfflat", "linear", "none"]
    dimension: int | None
    size: int
    degraded: bool
    built_at: datetime | None = None
    failures: dict[str, str] = Field(default_factory=dict)


RecordsCreateResponse.model_rebuild()


__all__ = [
    "MatchRequest",
    "MatchItem",
    "MatchResponse",
    "RecordCreate",
    "RecordsCreateRequest",
    "RecordsCreateResponse",
    "RecordResponse",
    "DocumentCreateRequest",
    "DocumentUpdateRequest",
    "DocumentResponse",
    "RowsCreateRequest",
    "ChunkResponse",
    "DeleteResponse",
    "IndexStatus",
]
