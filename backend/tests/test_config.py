"""Tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from docvec.core.config import IndexParams, Settings


def test_yaml_sections_are_flattened(tmp_path: Path) -> None:
    config = tmp_path / "config.yaml"
    config.write_text(
        "\n".join(
            [
                "index:",
                "  backends: [ivfflat, hnsw]",
                "  dimension: 1024",
                "  hnsw:",
                "    m: 32",
                "    ef_construction: 100",
                "  ivfflat:",
                "    lists: 50",
                "query:",
                "  max_distance: 4.0",
            ]
        ),
        encoding="utf-8",
    )
    settings = Settings.from_yaml(config)
    params = settings.index_params
    assert params.backends == ("ivfflat", "hnsw")
    assert params.dimension == 1024
    assert params.hnsw_m == 32
    assert params.hnsw_ef_construction == 100
    assert params.ivf_lists == 50
    assert settings.max_distance == 4.0


def test_env_overrides_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "config.yaml"
    config.write_text("query:\n  max_distance: 4.0\n", encoding="utf-8")
    monkeypatch.setenv("DOCVEC_MAX_DISTANCE", "1.5")
    monkeypatch.setenv("DOCVEC_INDEX_BACKENDS", "hnsw")
    settings = Settings.from_yaml(config)
    assert settings.max_distance == 1.5
    assert settings.index_backends == ["hnsw"]


def test_invalid_parameters_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(max_distance=0)
    with pytest.raises(ValidationError):
        Settings(index_backends=["hnsw", "hnsw"])
    with pytest.raises(ValidationError):
        Settings(index_backends=["faiss-gpu"])
    with pytest.raises(ValidationError):
        IndexParams(hnsw_m=1)


def test_index_params_are_frozen() -> None:
    params = IndexParams()
    with pytest.raises(ValidationError):
        params.hnsw_m = 8
    assert params.with_dimension(3).dimension == 3
