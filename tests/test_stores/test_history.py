"""Tests for mbs_selector.stores.history."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from mbs_selector.db.kv_store import InMemoryKeyValueStore
from mbs_selector.models.history import HistoryEntryDraft
from mbs_selector.models.recommendation import Recommendation
from mbs_selector.models.selection import SelectionSnapshot, SelectionSummary
from mbs_selector.selection.engine import SelectionEngine
from mbs_selector.stores.history import HISTORY_KEY, HistoryStore
from mbs_selector.taxonomy.selection_taxonomy import HistoryAction


def _draft(action: HistoryAction = HistoryAction.SELECT, code: str | None = "36") -> HistoryEntryDraft:
    return HistoryEntryDraft(
        action=action,
        code=code,
        selection_state=SelectionSnapshot(selected_codes=[code] if code else [], total_fee=75.05),
    )


def test_entries_newest_first(kv: InMemoryKeyValueStore, fixed_clock) -> None:
    store = HistoryStore(kv, clock=fixed_clock)
    first = store.add_entry(_draft(code="36"))
    fixed_clock.advance(seconds=1)
    second = store.add_entry(_draft(code="177"))

    assert store.entries == [second, first]
    assert first.id != second.id
    assert second.timestamp > first.timestamp


def test_fifo_eviction(kv: InMemoryKeyValueStore) -> None:
    store = HistoryStore(kv, max_entries=3)
    for code in ("1", "2", "3", "4", "5"):
        store.add_entry(_draft(code=code))

    assert [e.code for e in store.entries] == ["5", "4", "3"]


def test_unbounded_keeps_everything(kv: InMemoryKeyValueStore) -> None:
    store = HistoryStore(kv)
    for _ in range(150):
        store.add_entry(_draft())
    assert len(store) == 150


def test_invalid_capacity_rejected(kv: InMemoryKeyValueStore) -> None:
    with pytest.raises(ValueError):
        HistoryStore(kv, max_entries=0)


def test_reload_applies_smaller_capacity(kv: InMemoryKeyValueStore) -> None:
    store = HistoryStore(kv)
    for code in ("1", "2", "3"):
        store.add_entry(_draft(code=code))

    reloaded = HistoryStore(kv, max_entries=2)

    assert [e.code for e in reloaded.entries] == ["3", "2"]


def test_filter_by_action(kv: InMemoryKeyValueStore) -> None:
    store = HistoryStore(kv)
    store.add_entry(_draft(HistoryAction.SELECT))
    store.add_entry(_draft(HistoryAction.CLEAR, code=None))
    store.add_entry(_draft(HistoryAction.SELECT, code="177"))

    selects = store.get_history_by_action("select")

    assert [e.code for e in selects] == ["177", "36"]
    assert store.get_history_by_action(HistoryAction.UNDO) == []


def test_filter_by_date_inclusive(kv: InMemoryKeyValueStore, fixed_clock) -> None:
    store = HistoryStore(kv, clock=fixed_clock)
    day_one = store.add_entry(_draft(code="36"))
    fixed_clock.advance(days=1)
    day_two = store.add_entry(_draft(code="177"))

    today = fixed_clock.now.date()
    assert store.get_history_by_date(today, today) == [day_two]
    assert store.get_history_by_date(today - timedelta(days=1), today) == [day_two, day_one]
    assert store.get_history_by_date(day_one.timestamp, day_one.timestamp) == [day_one]
    assert store.get_history_by_date(date(2020, 1, 1), date(2020, 1, 2)) == []


def test_clear_history_persists(kv: InMemoryKeyValueStore) -> None:
    store = HistoryStore(kv)
    store.add_entry(_draft())
    store.clear_history()
    assert HistoryStore(kv).entries == []
    assert kv.get(HISTORY_KEY) == "[]"


def test_round_trip_preserves_entries(kv: InMemoryKeyValueStore) -> None:
    store = HistoryStore(kv)
    entry = store.add_entry(_draft(HistoryAction.SELECT_ALL, code=None))
    assert HistoryStore(kv).entries == [entry]


class FlakyKeyValueStore(InMemoryKeyValueStore):
    """Accepts reads, raises a non-OS error on every write."""

    def set(self, key: str, value: str) -> None:
        raise ValueError("backend rejected payload")


def test_write_failure_does_not_interrupt_engine_select(
    recommendations: list[Recommendation],
) -> None:
    history = HistoryStore(FlakyKeyValueStore())
    received: list[SelectionSummary] = []
    engine = SelectionEngine(
        recommendations, history_store=history, on_selection_change=received.append
    )

    validation = engine.select_code("36")

    assert validation.can_select
    assert engine.selected_codes == ["36"]
    assert len(received) == 1
    assert received[0].total_fee == 75.05
    assert history.entries[0].code == "36"
    assert "backend rejected payload" in history.last_warning
