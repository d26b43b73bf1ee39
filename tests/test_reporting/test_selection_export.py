"""Tests for mbs_selector.reporting.export."""

from __future__ import annotations

import csv
import json
from pathlib import Path

from mbs_selector.reporting.export import (
    SELECTION_EXPORT_FIELDS,
    export_to_csv,
    export_to_json,
    flatten_selection_for_export,
    selection_export_document,
)
from mbs_selector.selection.engine import SelectionEngine


# ── Generic writers ───────────────────────────────────────────────────────────


def test_export_to_csv_custom_fieldnames(tmp_path: Path) -> None:
    out = tmp_path / "nested" / "cols.csv"
    result = export_to_csv([{"a": 1, "b": 2, "c": 3}], out, fieldnames=["c", "a"])

    assert result == out
    with out.open(encoding="utf-8") as f:
        assert f.readline().strip() == "c,a"


def test_export_to_csv_empty_records(tmp_path: Path) -> None:
    out = tmp_path / "empty.csv"
    export_to_csv([], out)
    assert out.read_text(encoding="utf-8") == ""


def test_export_to_json(tmp_path: Path) -> None:
    out = tmp_path / "data.json"
    export_to_json({"codes": ["36"]}, out)
    assert json.loads(out.read_text(encoding="utf-8")) == {"codes": ["36"]}


# ── Selection snapshot ────────────────────────────────────────────────────────


def test_flatten_selection_one_row_per_code(engine: SelectionEngine) -> None:
    for code in ("36", "721", "723"):
        engine.select_code(code)

    rows = flatten_selection_for_export(engine.snapshot(), engine.recommendations)

    assert [r["code"] for r in rows] == ["36", "721", "723"]
    assert rows[0]["fee_amount"] == "75.05"
    assert rows[0]["conflict_count"] == 0
    assert rows[1]["conflicts"] == "Consider frequency limits for mental health"
    assert set(rows[0]) == set(SELECTION_EXPORT_FIELDS)


def test_flatten_unknown_code(engine: SelectionEngine) -> None:
    snapshot = SelectionEngine(engine.recommendations, initial_selection=["999"]).snapshot()
    [row] = flatten_selection_for_export(snapshot, engine.recommendations)
    assert row["code"] == "999"
    assert row["fee_amount"] == "0.00"


def test_selection_csv_and_json_files(tmp_path: Path, engine: SelectionEngine) -> None:
    engine.select_code("36")
    engine.select_code("177")
    snapshot = engine.snapshot()

    csv_path = export_to_csv(
        flatten_selection_for_export(snapshot, engine.recommendations),
        tmp_path / "claim.csv",
        fieldnames=SELECTION_EXPORT_FIELDS,
    )
    json_path = export_to_json(
        selection_export_document(snapshot, engine.recommendations), tmp_path / "claim.json"
    )

    with csv_path.open(encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [r["code"] for r in rows] == ["36", "177"]

    document = json.loads(json_path.read_text(encoding="utf-8"))
    assert document["selected_codes"] == ["36", "177"]
    assert document["total_fee"] == 120.1
    assert len(document["items"]) == 2
