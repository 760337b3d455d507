"""Vector record routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from docvec.api.dependencies import get_index_manager, get_record_store
from docvec.core.errors import IndexUnavailable
from docvec.index.manager import IndexManager
from docvec.models.dto import (
    DeleteResponse,
    IndexStatus,
    RecordResponse,
    RecordsCreateRequest,
    RecordsCreateResponse,
)
from docvec.store.records import VectorRecordStore

router = APIRouter()


@router.post("", response_model=RecordsCreateResponse, summary="Insert vector records and refresh the index")
def create_records(
    request: RecordsCreateRequest,
    store: VectorRecordStore = Depends(get_record_store),
    manager: IndexManager = Depends(get_index_manager),
) -> RecordsCreateResponse:
    manager.check_dimension(item.embedding for item in request.records)
    records = store.insert_many((item.content, item.metadata, item.embedding) for item in request.records)
    try:
        manager.refresh([(record.id, record.embedding) for record in records])
    except IndexUnavailable:
        pass
    return RecordsCreateResponse(ids=[record.id for record in records], index=IndexStatus(**manager.status()))


@router.get("/{record_id}", response_model=RecordResponse, summary="Fetch a vector record")
def get_record(record_id: int, store: VectorRecordStore = Depends(get_record_store)) -> RecordResponse:
    record = store.get(record_id)
    return RecordResponse(
        id=record.id,
        content=record.content,
        metadata=record.metadata,
        embedding=record.embedding.tolist(),
    )


@router.delete("/{record_id}", response_model=DeleteResponse, summary="Delete a vector record")
def delete_record(record_id: int, store: VectorRecordStore = Depends(get_record_store)) -> DeleteResponse:
    deleted = store.delete(record_id)
    return DeleteResponse(status="ok" if deleted else "noop", deleted=int(deleted))
