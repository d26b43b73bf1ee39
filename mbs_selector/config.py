"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``MBS_SELECTOR_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

The CLI, the API client and the selection engine factories all receive an
``AppConfig`` instance rather than reading env vars themselves.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

# Minimum client-side timeout for the analysis endpoint; the backend pipeline
# (embeddings + LLM reasoning) routinely takes 20-30 s.
MIN_ANALYSIS_TIMEOUT_SECONDS = 35.0

# ── Sub-config models ─────────────────────────────────────────────────────────


class ApiConfig(BaseModel):
    """Recommendation service connection settings."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "http://localhost:8000"
    timeout_seconds: float = MIN_ANALYSIS_TIMEOUT_SECONDS

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v < MIN_ANALYSIS_TIMEOUT_SECONDS:
            raise ValueError(
                f"timeout_seconds must be >= {MIN_ANALYSIS_TIMEOUT_SECONDS}, got {v}."
            )
        return v

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class SelectionConfig(BaseModel):
    """Selection engine limits and confidence tier thresholds."""

    model_config = ConfigDict(frozen=True)

    max_codes: Optional[int] = 10
    high_confidence_threshold: float = 0.8
    medium_confidence_threshold: float = 0.6
    history_max_entries: Optional[int] = 100
    undo_limit: int = 50

    @model_validator(mode="after")
    def validate_thresholds(self) -> "SelectionConfig":
        if not 0.0 <= self.medium_confidence_threshold <= self.high_confidence_threshold <= 1.0:
            raise ValueError(
                "Confidence thresholds must satisfy 0 <= medium <= high <= 1, got "
                f"medium={self.medium_confidence_threshold}, "
                f"high={self.high_confidence_threshold}."
            )
        if self.max_codes is not None and self.max_codes < 1:
            raise ValueError(f"max_codes must be >= 1, got {self.max_codes}.")
        if self.undo_limit < 1:
            raise ValueError(f"undo_limit must be >= 1, got {self.undo_limit}.")
        return self


class StorageConfig(BaseModel):
    """Local key-value persistence settings (SQLite-backed)."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/mbs_selector.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    presets_key: str = "mbs-selection-presets"
    history_key: str = "mbs-selection-history"


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/mbs_selector.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration.

    Constructed by ``load_config()``, which merges TOML + .env + env vars.
    """

    model_config = ConfigDict(frozen=True)

    api: ApiConfig = ApiConfig()
    selection: SelectionConfig = SelectionConfig()
    storage: StorageConfig = StorageConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config explicitly."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    raw = _apply_env_overrides(raw)

    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply MBS_SELECTOR_* env vars to the raw config dict.

    Supported overrides:
      MBS_SELECTOR_API_URL    → raw["api"]["base_url"]
      MBS_SELECTOR_DB_PATH    → raw["storage"]["db_path"]
      MBS_SELECTOR_LOG_LEVEL  → raw["logging"]["level"]
      MBS_SELECTOR_DEBUG      → raw["debug"]
    """
    if api_url := os.environ.get("MBS_SELECTOR_API_URL"):
        raw.setdefault("api", {})["base_url"] = api_url

    if db_path := os.environ.get("MBS_SELECTOR_DB_PATH"):
        raw.setdefault("storage", {})["db_path"] = db_path

    if log_level := os.environ.get("MBS_SELECTOR_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := os.environ.get("MBS_SELECTOR_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        api=ApiConfig(**raw.get("api", {})),
        selection=SelectionConfig(**raw.get("selection", {})),
        storage=StorageConfig(**raw.get("storage", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
