"""
Per-call SQLite connections for the key-value store.

``SqliteKeyValueStore`` never holds a connection open: every ``get``,
``set`` and ``remove`` opens one through ``open_kv_connection()``, runs a
single ``KeyValueRepository`` statement and closes it again.  Preset and
history writes are whole-list rewrites, so one statement per connection is
all any caller needs, and a CLI run never keeps the database locked between
commands.

The context manager:
  - Creates the database's parent directory on first use.
  - Waits ``busy_timeout_ms`` on a locked database instead of failing.
  - Optionally switches the file to WAL journal mode.
  - Returns ``sqlite3.Row`` rows and commits on clean exit, rolling back
    on exception.

``":memory:"`` is accepted for repository tests; that database vanishes
when the block exits.

Usage::

    with open_kv_connection("data/db/mbs_selector.db") as conn:
        value = KeyValueRepository(conn).get("mbs-selection-presets")
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

MEMORY_DB = ":memory:"


def _prepare(conn: sqlite3.Connection, wal_mode: bool, busy_timeout_ms: int, on_disk: bool) -> None:
    conn.row_factory = sqlite3.Row
    conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")
    if wal_mode and on_disk:
        conn.execute("PRAGMA journal_mode = WAL;")


@contextmanager
def open_kv_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Iterator[sqlite3.Connection]:
    """Open, configure and close one connection around a single operation.

    Args:
        db_path: SQLite file, or ``":memory:"``.
        wal_mode: Enable WAL journal mode (ignored for ``":memory:"``).
        busy_timeout_ms: Lock wait before ``sqlite3.OperationalError``.

    Raises:
        sqlite3.Error: If the file cannot be opened or stays locked.
        OSError: If the parent directory cannot be created.
    """
    on_disk = db_path != MEMORY_DB
    if on_disk:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    try:
        _prepare(conn, wal_mode, busy_timeout_ms, on_disk)
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
