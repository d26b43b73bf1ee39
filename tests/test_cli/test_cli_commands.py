"""Smoke tests for the mbs-selector Typer CLI."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from mbs_selector.cli import app
from mbs_selector.db.kv_store import SqliteKeyValueStore
from mbs_selector.models.preset import PresetDraft
from mbs_selector.selection.engine import SelectionEngine
from mbs_selector.stores.history import HistoryStore
from mbs_selector.stores.presets import PresetStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """The CLI reconfigures the root logger; put the test handlers back."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.toml"
    db_path = (tmp_path / "db" / "cli.db").as_posix()
    path.write_text(
        f'[storage]\ndb_path = "{db_path}"\n\n[logging]\nlevel = "WARNING"\nlog_file = ""\n',
        encoding="utf-8",
    )
    return path


def test_validate_config(config_file: Path) -> None:
    result = runner.invoke(app, ["validate-config", "--config", str(config_file)])
    assert result.exit_code == 0
    assert "[OK] Config valid." in result.output


def test_validate_config_missing_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ["validate-config", "--config", str(tmp_path / "missing.toml")])
    assert result.exit_code == 1


def test_init_db(config_file: Path, tmp_path: Path) -> None:
    result = runner.invoke(app, ["init-db", "--config", str(config_file)])
    assert result.exit_code == 0
    assert (tmp_path / "db" / "cli.db").exists()


def test_presets_list_and_delete(config_file: Path, tmp_path: Path) -> None:
    store = PresetStore(SqliteKeyValueStore(str(tmp_path / "db" / "cli.db")))
    preset = store.save(PresetDraft(name="GP standard", selected_codes=["36", "177"]))

    listed = runner.invoke(app, ["presets", "--config", str(config_file)])
    assert listed.exit_code == 0
    assert "GP standard" in listed.output

    deleted = runner.invoke(app, ["presets", "--config", str(config_file), "--delete", preset.id])
    assert deleted.exit_code == 0
    assert "(no presets saved)" in deleted.output

    missing = runner.invoke(app, ["presets", "--config", str(config_file), "--delete", "preset-x"])
    assert missing.exit_code == 1


def test_history_filter(
    config_file: Path, tmp_path: Path, recommendations
) -> None:
    history = HistoryStore(SqliteKeyValueStore(str(tmp_path / "db" / "cli.db")))
    engine = SelectionEngine(recommendations, history_store=history)
    engine.select_code("36")
    engine.clear_selection()

    result = runner.invoke(app, ["history", "--config", str(config_file), "--action", "clear"])
    assert result.exit_code == 0
    assert "clear" in result.output
    assert "select " not in result.output

    bad = runner.invoke(app, ["history", "--config", str(config_file), "--action", "explode"])
    assert bad.exit_code == 1


def test_unusable_db_path_falls_back_to_memory(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    path = tmp_path / "broken.toml"
    path.write_text(
        f'[storage]\ndb_path = "{(blocker / "sub" / "db.sqlite").as_posix()}"\n\n'
        '[logging]\nlevel = "WARNING"\nlog_file = ""\n',
        encoding="utf-8",
    )

    listed = runner.invoke(app, ["presets", "--config", str(path)])
    assert listed.exit_code == 0
    assert "[WARN] Storage at" in listed.output
    assert "(no presets saved)" in listed.output

    cleared = runner.invoke(app, ["history", "--config", str(path), "--clear"])
    assert cleared.exit_code == 0
    assert "[OK] History cleared." in cleared.output
