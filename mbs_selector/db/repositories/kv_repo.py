"""
Repository for the ``kv_entries`` table — string values under string keys.
"""

from __future__ import annotations

import logging
from typing import Optional

from mbs_selector.db.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class KeyValueRepository(BaseRepository):
    """Read/write access to the ``kv_entries`` table."""

    def get(self, key: str) -> Optional[str]:
        """Return the stored value for ``key``, or ``None`` if absent."""
        row = self.fetchone("SELECT value FROM kv_entries WHERE key = ?;", (key,))
        return None if row is None else row["value"]

    def set(self, key: str, value: str) -> None:
        """Insert or overwrite the value stored under ``key``."""
        self.execute(
            """
            INSERT INTO kv_entries (key, value, updated_at)
            VALUES (?, ?, strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
            ON CONFLICT(key) DO UPDATE SET
                value      = excluded.value,
                updated_at = excluded.updated_at;
            """,
            (key, value),
        )

    def remove(self, key: str) -> bool:
        """Delete ``key``; return ``True`` if a row was removed."""
        cursor = self.execute("DELETE FROM kv_entries WHERE key = ?;", (key,))
        return cursor.rowcount > 0
