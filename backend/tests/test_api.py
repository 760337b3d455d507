"""API integration tests."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from docvec.app import app


@pytest.fixture
def client() -> TestClient:
    with TestClient(app) as test_client:
        yield test_client


def _seed(client: TestClient) -> list[int]:
    resp = client.post(
        "/records",
        json={
            "records": [
                {"content": "origin", "metadata": {"kind": "origin"}, "embedding": [0.0, 0.0]},
                {"content": "x axis", "metadata": {"kind": "axis"}, "embedding": [1.0, 0.0]},
                {"content": "y axis", "metadata": {"kind": "axis"}, "embedding": [0.0, 1.0]},
            ]
        },
    )
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["index"]["size"] == 3
    return payload["ids"]


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_match_flow(client: TestClient) -> None:
    origin, x_axis, y_axis = _seed(client)

    resp = client.post("/match", json={"query_embedding": [0.0, 0.0], "match_count": 2})
    assert resp.status_code == 200
    results = resp.json()["results"]
    assert [item["id"] for item in results][0] == origin
    assert results[0]["similarity"] == pytest.approx(1.0)
    assert results[1]["id"] in {x_axis, y_axis}
    assert results[1]["similarity"] == pytest.approx(0.5)

    resp = client.post(
        "/match",
        json={"query_embedding": [0.0, 0.0], "match_count": 3, "similarity_threshold": 0.6},
    )
    assert [item["id"] for item in resp.json()["results"]] == [origin]

    resp = client.post(
        "/match",
        json={"query_embedding": [0.0, 0.0], "match_count": 3, "filter": {"kind": "axis"}},
    )
    assert sorted(item["id"] for item in resp.json()["results"]) == [x_axis, y_axis]


def test_match_validation_errors(client: TestClient) -> None:
    _seed(client)
    bad_threshold = client.post(
        "/match",
        json={"query_embedding": [0.0, 0.0], "match_count": 1, "similarity_threshold": 1.5},
    )
    assert bad_threshold.status_code == 422
    assert bad_threshold.json()["error"] == "InvalidThreshold"

    bad_count = client.post("/match", json={"query_embedding": [0.0, 0.0], "match_count": 0})
    assert bad_count.status_code == 422
    assert bad_count.json()["error"] == "InvalidArgument"

    bad_dimension = client.post("/match", json={"query_embedding": [0.0, 0.0, 1.0], "match_count": 1})
    assert bad_dimension.status_code == 422
    assert bad_dimension.json()["error"] == "DimensionMismatch"


def test_insert_wrong_dimension_rejected(client: TestClient) -> None:
    _seed(client)
    resp = client.post("/records", json={"records": [{"embedding": [1.0, 2.0, 3.0]}]})
    assert resp.status_code == 422
    assert client.get("/index").json()["size"] == 3


def test_deleted_record_disappears_from_matches(client: TestClient) -> None:
    origin, _, _ = _seed(client)
    assert client.delete(f"/records/{origin}").json() == {"status": "ok", "deleted": 1}
    assert client.get(f"/records/{origin}").status_code == 404

    resp = client.post("/match", json={"query_embedding": [0.0, 0.0], "match_count": 3})
    ids = [item["id"] for item in resp.json()["results"]]
    assert origin not in ids
    assert len(ids) == 2


def test_index_rebuild_and_status(client: TestClient) -> None:
    assert client.get("/index").json()["backend"] == "none"
    _seed(client)
    status = client.post("/index/rebuild").json()
    assert status["backend"] == "hnsw"
    assert status["dimension"] == 2
    assert status["degraded"] is False


def test_documents_and_rows(client: TestClient) -> None:
    created = client.post("/documents", json={"id": "doc-1", "title": "Report", "schema_tag": "csv"})
    assert created.status_code == 201
    assert client.post("/documents", json={"id": "doc-1"}).status_code == 409

    rows = client.post("/documents/doc-1/rows", json={"rows": [{"a": 1}, {"a": 2}]})
    assert rows.status_code == 201
    assert [row["row_data"] for row in client.get("/documents/doc-1/rows").json()] == [{"a": 1}, {"a": 2}]

    patched = client.patch("/documents/doc-1", json={"title": "Report v2"})
    assert patched.json()["title"] == "Report v2"
    assert patched.json()["created_at"] == created.json()["created_at"]

    assert client.delete("/documents/doc-1").json()["deleted"] == 1
    assert client.get("/documents/doc-1").status_code == 404
    assert client.get("/documents/doc-1/rows").status_code == 404
    assert client.post("/documents/doc-1/rows", json={"rows": [{"a": 3}]}).status_code == 404


def test_metrics_endpoint(client: TestClient) -> None:
    _seed(client)
    client.post("/match", json={"query_embedding": [0.0, 0.0], "match_count": 1})
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "docvec_search_latency_seconds" in resp.text
