"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "DOCVEC_"
DEFAULT_CONFIG_PATH = Path("~/.config/docvec/config.yaml")

BackendKind = Literal["hnsw", "ivfflat"]

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("index", "backends"): "index_backends",
    ("index", "dimension"): "dimension",
    ("index", "hnsw", "m"): "hnsw_m",
    ("index", "hnsw", "ef_construction"): "hnsw_ef_construction",
    ("index", "hnsw", "ef_search"): "hnsw_ef_search",
    ("index", "ivfflat", "lists"): "ivf_lists",
    ("index", "ivfflat", "probes"): "ivf_probes",
    ("index", "ivfflat", "staleness_ratio"): "ivf_staleness_ratio",
    ("index", "seed"): "seed",
    ("query", "max_distance"): "max_distance",
    ("query", "default_match_count"): "default_match_count",
    ("query", "max_match_count"): "max_match_count",
}


class IndexParams(BaseModel):
    """Per-collection ANN build parameters."""

    backends: tuple[BackendKind, ...] = ("hnsw", "ivfflat")
    dimension: int | None = Field(default=None, ge=1)
    hnsw_m: int = Field(default=16, ge=2)
    hnsw_ef_construction: int = Field(default=200, ge=1)
    hnsw_ef_search: int = Field(default=64, ge=1)
    ivf_lists: int = Field(default=100, ge=1)
    ivf_probes: int = Field(default=10, ge=1)
    ivf_staleness_ratio: float = Field(default=0.25, ge=0.0)
    seed: int = 1234

    model_config = {"frozen": True}

    def with_dimension(self, dimension: int) -> "IndexParams":
        return self.model_copy(update={"dimension": dimension})


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".docvec" / "docvec.db")
    index_backends: list[BackendKind] = Field(default_factory=lambda: ["hnsw", "ivfflat"], min_length=1)
    dimension: int | None = Field(default=None, ge=1)
    hnsw_m: int = Field(default=16, ge=2)
    hnsw_ef_construction: int = Field(default=200, ge=1)
    hnsw_ef_search: int = Field(default=64, ge=1)
    ivf_lists: int = Field(default=100, ge=1)
    ivf_probes: int = Field(default=10, ge=1)
    ivf_staleness_ratio: float = Field(default=0.25, ge=0.0)
    seed: int = 1234
    max_distance: float = Field(default=2.0, gt=0.0)
    default_match_count: int = Field(default=10, ge=1)
    max_match_count: int = Field(default=200, ge=1)

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_db_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("db_path must be a path or string")

    @field_validator("index_backends", mode="before")
    @classmethod
    def _split_backends(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("index_backends")
    @classmethod
    def _unique_backends(cls, value: list[str]) -> list[str]:
        if len(set(value)) != len(value):
            raise ValueError("index_backends must not repeat a backend")
        return value

    @property
    def index_params(self) -> IndexParams:
        return IndexParams(
            backends=tuple(self.index_backends),
            dimension=self.dimension,
            hnsw_m=self.hnsw_m,
            hnsw_ef_construction=self.hnsw_ef_construction,
            hnsw_ef_search=self.hnsw_ef_search,
            ivf_lists=self.ivf_lists,
            ivf_probes=self.ivf_probes,
            ivf_staleness_ratio=self.ivf_staleness_ratio,
            seed=self.seed,
        )

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with DOCVEC_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["BackendKind", "IndexParams", "Settings", "get_settings"]
