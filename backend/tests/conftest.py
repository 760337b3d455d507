"""Test fixtures for docvec."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("DOCVEC_DB_PATH", str(tmp_path / "docvec.db"))
    monkeypatch.delenv("DOCVEC_CONFIG", raising=False)
    monkeypatch.delenv("DOCVEC_DIMENSION", raising=False)

    from docvec.api import dependencies as deps

    deps.reset_state()
    yield
    deps.reset_state()


@pytest.fixture
def database(tmp_path: Path):
    from docvec.db.sqlite import SQLiteDatabase

    db = SQLiteDatabase(tmp_path / "store.db")
    db.ensure_schema()
    yield db
    db.close()


@pytest.fixture
def record_store(database):
    from docvec.store.records import VectorRecordStore

    return VectorRecordStore(database)


@pytest.fixture
def triangle_corpus(record_store) -> list[int]:
    """Three 2-d vectors: the origin and the two unit axes."""
    records = record_store.insert_many(
        [
            ("origin", {"kind": "origin"}, [0.0, 0.0]),
            ("x axis", {"kind": "axis", "axis": "x"}, [1.0, 0.0]),
            ("y axis", {"kind": "axis", "axis": "y"}, [0.0, 1.0]),
        ]
    )
    return [record.id for record in records]
