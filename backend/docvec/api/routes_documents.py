"""Document metadata and row routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from docvec.api.dependencies import get_chunk_store, get_document_store
from docvec.models.dto import (
    ChunkResponse,
    DeleteResponse,
    DocumentCreateRequest,
    DocumentResponse,
    DocumentUpdateRequest,
    RowsCreateRequest,
)
from docvec.models.entities import Chunk, Document
from docvec.store.documents import ChunkStore, DocumentStore

router = APIRouter()


@router.get("", response_model=list[DocumentResponse], summary="List documents")
def list_documents(documents: DocumentStore = Depends(get_document_store)) -> list[DocumentResponse]:
    return [_to_document(document) for document in documents.list()]


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED, summary="Register a document")
def create_document(
    request: DocumentCreateRequest,
    documents: DocumentStore = Depends(get_document_store),
) -> DocumentResponse:
    document = documents.create(
        request.id,
        title=request.title,
        source_url=request.source_url,
        schema_tag=request.schema_tag,
    )
    return _to_document(document)


@router.get("/{document_id}", response_model=DocumentResponse, summary="Fetch a document")
def get_document(document_id: str, documents: DocumentStore = Depends(get_document_store)) -> DocumentResponse:
    return _to_document(documents.get(document_id))


@router.patch("/{document_id}", response_model=DocumentResponse, summary="Correct document metadata")
def update_document(
    document_id: str,
    request: DocumentUpdateRequest,
    documents: DocumentStore = Depends(get_document_store),
) -> DocumentResponse:
    document = documents.update(document_id, **request.model_dump(exclude_none=True))
    return _to_document(document)


@router.delete("/{document_id}", response_model=DeleteResponse, summary="Delete a document and its rows")
def delete_document(document_id: str, documents: DocumentStore = Depends(get_document_store)) -> DeleteResponse:
    deleted = documents.delete(document_id)
    return DeleteResponse(status="ok" if deleted else "noop", deleted=int(deleted))


@router.post(
    "/{document_id}/rows",
    response_model=list[ChunkResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Append rows to a document",
)
def create_rows(
    document_id: str,
    request: RowsCreateRequest,
    chunks: ChunkStore = Depends(get_chunk_store),
) -> list[ChunkResponse]:
    return [_to_chunk(chunk) for chunk in chunks.insert_many(document_id, request.rows)]


@router.get("/{document_id}/rows", response_model=list[ChunkResponse], summary="List a document's rows")
def list_rows(
    document_id: str,
    documents: DocumentStore = Depends(get_document_store),
    chunks: ChunkStore = Depends(get_chunk_store),
) -> list[ChunkResponse]:
    documents.get(document_id)
    return [_to_chunk(chunk) for chunk in chunks.list_by_dataset(document_id)]


def _to_document(document: Document) -> DocumentResponse:
    return DocumentResponse(
        id=document.id,
        title=document.title,
        source_url=document.source_url,
        schema_tag=document.schema_tag,
        created_at=document.created_at,
    )


def _to_chunk(chunk: Chunk) -> ChunkResponse:
    return ChunkResponse(id=chunk.id, dataset_id=chunk.dataset_id, row_data=chunk.row_data)


__all__ = ["router"]
