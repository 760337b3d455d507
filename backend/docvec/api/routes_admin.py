"""Index administration and metrics routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from docvec.api.dependencies import get_index_manager
from docvec.core.errors import IndexUnavailable
from docvec.core.metrics import metrics_response
from docvec.index.manager import IndexManager
from docvec.models.dto import IndexStatus

router = APIRouter()


@router.get("/index", response_model=IndexStatus, summary="Describe the active index handle")
def index_status(manager: IndexManager = Depends(get_index_manager)) -> IndexStatus:
    return IndexStatus(**manager.status())


@router.post("/index/rebuild", response_model=IndexStatus, summary="Rebuild the index from stored vectors")
def rebuild_index(manager: IndexManager = Depends(get_index_manager)) -> IndexStatus:
    try:
        manager.build()
    except IndexUnavailable:
        # Served by the degraded linear-scan handle; status reports it.
        pass
    return IndexStatus(**manager.status())


@router.get("/metrics", summary="Prometheus metrics")
def get_metrics():
    return metrics_response()


__all__ = ["router"]
