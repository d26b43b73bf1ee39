"""
Shared persistence behaviour for the preset and history stores.

Each store keeps its list of pydantic records in memory and mirrors it to a
``KeyValueStore`` as one JSON array under a fixed key:

  - Load happens once, at construction.  Missing keys, unreadable storage
    and corrupt JSON all start the store empty (logged, and recorded in
    ``warnings``).
  - Every mutation rewrites the whole array.  A failed write is logged and
    recorded in ``warnings`` but does not undo the in-memory change; the
    in-memory list stays authoritative.
"""

from __future__ import annotations

import json
import logging
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from mbs_selector.db.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class PersistedListStore(Generic[RecordT]):
    """In-memory record list mirrored to one key of a ``KeyValueStore``.

    Attributes:
        kv: Backing key-value store.
        key: Storage key for the JSON array.
        warnings: Non-fatal persistence problems, oldest first.
    """

    record_type: type[BaseModel]

    def __init__(self, kv: KeyValueStore, key: str) -> None:
        self.kv = kv
        self.key = key
        self.warnings: list[str] = []
        self._records: list[RecordT] = self._read()

    # ── Persistence ───────────────────────────────────────────────────────────

    def _read(self) -> list[RecordT]:
        try:
            raw = self.kv.get(self.key)
        except Exception as exc:
            # Any adapter failure starts the store empty.
            self._warn(f"Could not read '{self.key}' from storage: {exc}", exc_info=True)
            return []

        if raw is None:
            return []

        try:
            adapter = TypeAdapter(list[self.record_type])  # type: ignore[name-defined]
            return list(adapter.validate_python(json.loads(raw)))
        except (json.JSONDecodeError, ValidationError) as exc:
            self._warn(f"Discarding corrupt data under '{self.key}': {exc}")
            return []

    def _persist(self) -> Optional[str]:
        """Rewrite the whole list; return a warning string on failure."""
        payload = json.dumps([r.model_dump(mode="json") for r in self._records])
        try:
            self.kv.set(self.key, payload)
        except Exception as exc:
            return self._warn(f"Could not persist '{self.key}': {exc}", exc_info=True)
        return None

    def _warn(self, message: str, exc_info: bool = False) -> str:
        logger.warning(message, exc_info=exc_info)
        self.warnings.append(message)
        return message

    @property
    def last_warning(self) -> Optional[str]:
        return self.warnings[-1] if self.warnings else None

    def __len__(self) -> int:
        return len(self._records)
