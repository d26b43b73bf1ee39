"""
Key-value persistence port and its adapters.

Preset and history stores only need "a named string value survives reload",
so they depend on the small ``KeyValueStore`` protocol rather than on SQLite:

  - ``SqliteKeyValueStore``   — durable, one ``kv_entries`` row per key.
  - ``InMemoryKeyValueStore`` — a dict; used by tests and as the default
    history backend of a throwaway ``SelectionEngine``.

Adapters raise on failure (``sqlite3.Error``, ``OSError``); the stores catch
those and degrade to warnings.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, runtime_checkable

from mbs_selector.db.connection import open_kv_connection
from mbs_selector.db.repositories.kv_repo import KeyValueRepository
from mbs_selector.db.schema import apply_schema

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal string key-value port."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store; contents vanish with the instance."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class SqliteKeyValueStore:
    """SQLite-backed store; each call opens a short-lived connection.

    The schema is applied once at construction, so the first use of a fresh
    database file creates the ``kv_entries`` table.

    Args:
        db_path: Path to the SQLite database file.
        wal_mode: Enable WAL journal mode.
        busy_timeout_ms: Lock wait before ``OperationalError``.
    """

    def __init__(
        self,
        db_path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        if db_path == ":memory:":
            raise ValueError(
                "SqliteKeyValueStore needs a file path; use InMemoryKeyValueStore instead."
            )
        self.db_path = db_path
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        with self._connect() as conn:
            apply_schema(conn)

    def _connect(self):
        return open_kv_connection(self.db_path, self.wal_mode, self.busy_timeout_ms)

    def get(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            return KeyValueRepository(conn).get(key)

    def set(self, key: str, value: str) -> None:
        with self._connect() as conn:
            KeyValueRepository(conn).set(key, value)
        logger.debug("Persisted %d bytes under key '%s'.", len(value), key)

    def remove(self, key: str) -> None:
        with self._connect() as conn:
            KeyValueRepository(conn).remove(key)
