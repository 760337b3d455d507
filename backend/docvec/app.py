"""FastAPI application setup for docvec."""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from docvec.api.dependencies import get_app_settings, get_database, get_index_manager, get_query_engine
from docvec.api.routes_admin import router as admin_router
from docvec.api.routes_documents import router as documents_router
from docvec.api.routes_query import router as query_router
from docvec.api.routes_records import router as records_router
from docvec.core.errors import (
    BuildCancelled,
    Conflict,
    DimensionMismatch,
    DocvecError,
    IndexUnavailable,
    InvalidArgument,
    InvalidThreshold,
    NotFound,
)
from docvec.core.logging import configure_logging
from docvec.core.metrics import REQUEST_COUNT

configure_logging()

app = FastAPI(
    title="docvec",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.include_router(query_router, prefix="", tags=["match"])
app.include_router(records_router, prefix="/records", tags=["records"])
app.include_router(documents_router, prefix="/documents", tags=["documents"])
app.include_router(admin_router, prefix="", tags=["admin"])

_ERROR_STATUS: dict[type[DocvecError], int] = {
    InvalidThreshold: 422,
    InvalidArgument: 422,
    DimensionMismatch: 422,
    NotFound: status.HTTP_404_NOT_FOUND,
    Conflict: status.HTTP_409_CONFLICT,
    BuildCancelled: status.HTTP_409_CONFLICT,
    IndexUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@app.exception_handler(DocvecError)
async def docvec_error_handler(request: Request, exc: DocvecError) -> JSONResponse:
    code = next(
        (value for error_type, value in _ERROR_STATUS.items() if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    route_path = getattr(request.scope.get("route"), "path", request.url.path)
    REQUEST_COUNT.labels(endpoint=route_path, method=request.method, status=str(code)).inc()
    return JSONResponse(status_code=code, content={"detail": str(exc), "error": exc.__class__.__name__})


@app.on_event("startup")
async def startup() -> None:
    """Open the database and build the index before serving."""
    get_app_settings()
    get_database()
    get_index_manager()
    get_query_engine()


@app.get("/health", tags=["admin"])
def health() -> dict[str, bool]:
    """Simple liveness check."""
    return {"ok": True}
