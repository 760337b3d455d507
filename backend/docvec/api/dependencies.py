"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from docvec.core.config import Settings, get_settings
from docvec.core.errors import IndexUnavailable, InvalidArgument
from docvec.core.logging import context, get_logger
from docvec.db.sqlite import SQLiteDatabase
from docvec.index.manager import IndexManager
from docvec.retrieval import LinearDistanceScore, QueryEngine
from docvec.store.documents import ChunkStore, DocumentStore
from docvec.store.records import VectorRecordStore

logger = get_logger(__name__)

_DB: SQLiteDatabase | None = None
_RECORD_STORE: VectorRecordStore | None = None
_INDEX_MANAGER: IndexManager | None = None
_QUERY_ENGINE: QueryEngine | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        settings = get_app_settings()
        db = SQLiteDatabase(settings.db_path)
        db.ensure_schema()
        _DB = db
    return _DB


def get_record_store() -> VectorRecordStore:
    global _RECORD_STORE
    if _RECORD_STORE is None:
        _RECORD_STORE = VectorRecordStore(get_database())
    return _RECORD_STORE


def get_document_store() -> DocumentStore:
    return DocumentStore(get_database())


def get_chunk_store() -> ChunkStore:
    return ChunkStore(get_database())


def get_index_manager() -> IndexManager:
    global _INDEX_MANAGER
    if _INDEX_MANAGER is None:
        manager = IndexManager(get_record_store(), get_app_settings().index_params)
        try:
            manager.build()
        except IndexUnavailable:
            # Degraded handle already installed; queries fall back to exact scan.
            pass
        except InvalidArgument as exc:
            logger.info("index.startup_skipped", extra=context(reason=str(exc)))
        _INDEX_MANAGER = manager
    return _INDEX_MANAGER


def get_query_engine() -> QueryEngine:
    global _QUERY_ENGINE
    if _QUERY_ENGINE is None:
        settings = get_app_settings()
        _QUERY_ENGINE = QueryEngine(
            store=get_record_store(),
            index_manager=get_index_manager(),
            scoring=LinearDistanceScore(settings.max_distance),
            max_match_count=settings.max_match_count,
        )
    return _QUERY_ENGINE


def reset_state() -> None:
    """Drop cached singletons (used by tests and config reloads)."""
    global _DB, _RECORD_STORE, _INDEX_MANAGER, _QUERY_ENGINE
    if _DB is not None:
        _DB.close()
    get_app_settings.cache_clear()
    get_settings.cache_clear()
    _DB = None
    _RECORD_STORE = None
    _INDEX_MANAGER = None
    _QUERY_ENGINE = None


__all__ = [
    "get_app_settings",
    "get_database",
    "get_record_store",
    "get_document_store",
    "get_chunk_store",
    "get_index_manager",
    "get_query_engine",
    "reset_state",
]
