"""Tests for mbs_selector.db.kv_store and the SQLite key-value repository."""

from __future__ import annotations

from pathlib import Path

import pytest

from mbs_selector.db.connection import open_kv_connection
from mbs_selector.db.kv_store import InMemoryKeyValueStore, KeyValueStore, SqliteKeyValueStore
from mbs_selector.db.repositories.kv_repo import KeyValueRepository
from mbs_selector.db.schema import ALL_TABLE_NAMES, apply_schema, get_existing_tables
from mbs_selector.models.preset import PresetDraft
from mbs_selector.stores.presets import PresetStore


@pytest.fixture
def sqlite_kv(tmp_path: Path) -> SqliteKeyValueStore:
    return SqliteKeyValueStore(str(tmp_path / "kv.db"))


def test_adapters_satisfy_protocol(sqlite_kv: SqliteKeyValueStore) -> None:
    assert isinstance(sqlite_kv, KeyValueStore)
    assert isinstance(InMemoryKeyValueStore(), KeyValueStore)


def test_sqlite_get_set_remove(sqlite_kv: SqliteKeyValueStore) -> None:
    assert sqlite_kv.get("missing") is None

    sqlite_kv.set("k", "v1")
    sqlite_kv.set("k", "v2")
    assert sqlite_kv.get("k") == "v2"

    sqlite_kv.remove("k")
    assert sqlite_kv.get("k") is None
    sqlite_kv.remove("k")


def test_sqlite_rejects_memory_path() -> None:
    with pytest.raises(ValueError):
        SqliteKeyValueStore(":memory:")


def test_schema_is_idempotent(tmp_path: Path) -> None:
    db_path = str(tmp_path / "schema.db")
    with open_kv_connection(db_path) as conn:
        apply_schema(conn)
        apply_schema(conn)
        assert set(ALL_TABLE_NAMES) <= set(get_existing_tables(conn))


def test_presets_survive_new_store_instance(tmp_path: Path) -> None:
    db_path = str(tmp_path / "presets.db")
    saved = PresetStore(SqliteKeyValueStore(db_path)).save(
        PresetDraft(name="GP", selected_codes=["36", "177"])
    )

    reloaded = PresetStore(SqliteKeyValueStore(db_path))

    assert reloaded.get(saved.id).selected_codes == ["36", "177"]
    assert reloaded.get(saved.id).created_at == saved.created_at


def test_repository_upsert_and_remove() -> None:
    with open_kv_connection(":memory:") as conn:
        apply_schema(conn)
        repo = KeyValueRepository(conn)
        repo.set("b", "1")
        repo.set("a", "2")
        repo.set("b", "3")

        assert repo.get("a") == "2"
        assert repo.get("b") == "3"
        assert repo.remove("a") is True
        assert repo.remove("a") is False
