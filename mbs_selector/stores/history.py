"""
History store — append-only log of selection-changing actions.

Entries are kept newest-first.  With ``max_entries`` set, adding past the
bound evicts the *oldest* entries (FIFO).  ``max_entries=None`` keeps every
entry.  The whole list is rewritten under ``mbs-selection-history`` after
every ``add_entry`` and ``clear_history``.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Optional, Union
from uuid import uuid4

from mbs_selector.db.kv_store import KeyValueStore
from mbs_selector.models.history import HistoryEntry, HistoryEntryDraft
from mbs_selector.stores.base import PersistedListStore
from mbs_selector.taxonomy.selection_taxonomy import HistoryAction
from mbs_selector.utils.time_utils import ensure_utc, range_bounds, utcnow

logger = logging.getLogger(__name__)

HISTORY_KEY = "mbs-selection-history"


class HistoryStore(PersistedListStore[HistoryEntry]):
    """Bounded, newest-first history of selection actions.

    Args:
        kv: Backing key-value store.
        max_entries: Capacity bound, or ``None`` for unbounded.
        key: Storage key (default ``mbs-selection-history``).
        clock: Returns the current UTC time; injectable for tests.

    Raises:
        ValueError: If ``max_entries`` is given and below 1.
    """

    record_type = HistoryEntry

    def __init__(
        self,
        kv: KeyValueStore,
        max_entries: Optional[int] = None,
        key: str = HISTORY_KEY,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError(f"max_entries must be >= 1 or None, got {max_entries}.")
        self.max_entries = max_entries
        self.clock = clock
        super().__init__(kv, key)
        self._evict()

    @property
    def entries(self) -> list[HistoryEntry]:
        """All entries, newest first."""
        return list(self._records)

    def add_entry(self, draft: HistoryEntryDraft) -> HistoryEntry:
        """Record ``draft`` as the newest entry and persist."""
        entry = HistoryEntry(
            id=f"history-{uuid4().hex}",
            timestamp=self.clock(),
            action=draft.action,
            code=draft.code,
            selection_state=draft.selection_state,
            detail=draft.detail,
        )
        self._records.insert(0, entry)
        evicted = self._evict()
        if evicted:
            logger.debug("History over capacity; evicted %d oldest entries.", evicted)
        self._persist()
        return entry

    def clear_history(self) -> None:
        self._records.clear()
        self._persist()

    def get_history_by_date(
        self,
        start: Union[date, datetime],
        end: Union[date, datetime],
    ) -> list[HistoryEntry]:
        """Entries with ``start <= timestamp <= end``, newest first.

        Plain dates cover whole days: ``(d, d)`` returns everything from ``d``.
        """
        lo, hi = range_bounds(start, end)
        return [e for e in self._records if lo <= ensure_utc(e.timestamp) <= hi]

    def get_history_by_action(self, action: Union[HistoryAction, str]) -> list[HistoryEntry]:
        """Entries whose action matches exactly, newest first."""
        action = HistoryAction(action)
        return [e for e in self._records if e.action == action]

    def _evict(self) -> int:
        if self.max_entries is None or len(self._records) <= self.max_entries:
            return 0
        overflow = len(self._records) - self.max_entries
        del self._records[self.max_entries:]
        return overflow
