"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "PSEARCH_"
DEFAULT_CONFIG_PATH = Path("~/.config/passage-search/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("embeddings", "backend"): "embedding_backend",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "dim"): "embedding_dim",
    ("retrieval", "top_k"): "top_k",
    ("retrieval", "max_workers"): "max_workers",
    ("retrieval", "stopwords_path"): "stopwords_path",
    ("retrieval", "mmr", "lambda"): "mmr_lambda",
    ("retrieval", "mmr", "fetch_multiplier"): "mmr_fetch_multiplier",
    ("retrieval", "rrf", "k"): "rrf_k",
    ("retrieval", "rerank", "enabled"): "rerank_enabled",
    ("retrieval", "rerank", "backend"): "rerank_backend",
    ("retrieval", "rerank", "initial_top_k"): "rerank_initial_top_k",
    ("retrieval", "rerank", "base_url"): "rerank_base_url",
    ("retrieval", "rerank", "api_key"): "rerank_api_key",
    ("retrieval", "rerank", "model_name"): "rerank_model",
    ("retrieval", "rerank", "timeout_seconds"): "rerank_timeout_seconds",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".passage-search" / "chunks.db")
    embedding_backend: str = "hashed"
    embedding_model: str = "intfloat/e5-small-v2"
    embedding_dim: int = Field(default=384, ge=1)
    top_k: int = Field(default=8, ge=1, le=50)
    max_workers: int = Field(default=8, ge=2)
    stopwords_path: Path | None = None
    mmr_lambda: float = Field(default=0.5, ge=0.0, le=1.0)
    mmr_fetch_multiplier: int = Field(default=3, ge=1)
    rrf_k: int = Field(default=60, ge=0)
    rerank_enabled: bool = False
    rerank_backend: str = "http"
    rerank_initial_top_k: int = Field(default=20, ge=1)
    rerank_base_url: str | None = None
    rerank_api_key: str | None = None
    rerank_model: str | None = None
    rerank_timeout_seconds: float = Field(default=30.0, gt=0)

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

    @field_validator("stopwords_path", mode="before")
    @classmethod
    def _expand_stopwords_path(cls, value: Any) -> Path | None:
        if value in (None, ""):
            return None
        return Path(value).expanduser()

    @field_validator("embedding_backend", "rerank_backend")
    @classmethod
    def _lower_backend(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def rerank_configured(self) -> bool:
        if self.rerank_backend == "cross-encoder":
            return bool(self.rerank_model)
        return bool(self.rerank_base_url)

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
    """Map environment variables with PSEARCH_ prefix into Settings fields."""
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


__all__ = ["Settings", "get_settings"]
