"""Tests for mbs_selector.config and logging setup."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from mbs_selector.config import (
    ApiConfig,
    AppConfig,
    LoggingConfig,
    SelectionConfig,
    load_config,
)
from mbs_selector.utils.logging import build_formatter


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "MBS_SELECTOR_API_URL",
        "MBS_SELECTOR_DB_PATH",
        "MBS_SELECTOR_LOG_LEVEL",
        "MBS_SELECTOR_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)


def test_default_config_loads() -> None:
    config = load_config()
    assert isinstance(config, AppConfig)
    assert config.api.timeout_seconds >= 35.0
    assert config.selection.max_codes == 10
    assert config.storage.presets_key == "mbs-selection-presets"
    assert config.storage.history_key == "mbs-selection-history"


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.toml")


def test_local_toml_overrides(tmp_path: Path) -> None:
    (tmp_path / "default.toml").write_text(
        '[api]\nbase_url = "http://default:8000"\n[selection]\nmax_codes = 10\n',
        encoding="utf-8",
    )
    (tmp_path / "local.toml").write_text("[selection]\nmax_codes = 4\n", encoding="utf-8")

    config = load_config(tmp_path / "default.toml")

    assert config.selection.max_codes == 4
    assert config.api.base_url == "http://default:8000"


def test_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "default.toml").write_text("[project]\ndebug = false\n", encoding="utf-8")
    monkeypatch.setenv("MBS_SELECTOR_API_URL", "http://env:9000/")
    monkeypatch.setenv("MBS_SELECTOR_DB_PATH", "/tmp/mbs.db")
    monkeypatch.setenv("MBS_SELECTOR_LOG_LEVEL", "debug")
    monkeypatch.setenv("MBS_SELECTOR_DEBUG", "true")

    config = load_config(tmp_path / "default.toml")

    assert config.api.base_url == "http://env:9000"
    assert config.storage.db_path == "/tmp/mbs.db"
    assert config.logging.level == "DEBUG"
    assert config.debug is True


def test_api_timeout_minimum() -> None:
    with pytest.raises(ValidationError):
        ApiConfig(timeout_seconds=30.0)


def test_selection_thresholds_ordered() -> None:
    with pytest.raises(ValidationError):
        SelectionConfig(high_confidence_threshold=0.5, medium_confidence_threshold=0.7)
    with pytest.raises(ValidationError):
        SelectionConfig(max_codes=0)


def test_unknown_log_level() -> None:
    with pytest.raises(ValidationError):
        LoggingConfig(level="LOUD")


def test_json_formatter_lifts_extra_keys() -> None:
    record = logging.LogRecord("mbs_selector.selection.engine", logging.INFO, __file__, 1,
                               "Selected %s.", ("36",), None)
    record.code = "36"
    record.action = "select"

    payload = json.loads(build_formatter(json_format=True).format(record))

    assert payload["msg"] == "Selected 36."
    assert payload["level"] == "INFO"
    assert payload["code"] == "36"
    assert payload["action"] == "select"
