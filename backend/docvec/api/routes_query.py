"""Similarity match routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from docvec.api.dependencies import get_app_settings, get_query_engine
from docvec.core.config import Settings
from docvec.core.metrics import REQUEST_COUNT
from docvec.models.dto import MatchItem, MatchRequest, MatchResponse
from docvec.retrieval.search import QueryEngine

router = APIRouter()


@router.post("/match", response_model=MatchResponse, summary="Nearest-neighbor match over stored embeddings")
def match_documents(
    request: MatchRequest,
    engine: QueryEngine = Depends(get_query_engine),
    settings: Settings = Depends(get_app_settings),
) -> MatchResponse:
    results = engine.search(
        request.query_embedding,
        similarity_threshold=request.similarity_threshold,
        match_count=request.match_count if request.match_count is not None else settings.default_match_count,
        metadata_filter=request.filter,
    )
    REQUEST_COUNT.labels(endpoint="/match", method="POST", status="200").inc()
    return MatchResponse(results=[MatchItem(**result.to_dict()) for result in results])
