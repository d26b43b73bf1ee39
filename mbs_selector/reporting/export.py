"""
Export helpers for billing review and audit.

All writers return the written ``Path`` and accept generic ``list[dict]`` /
``dict`` data so they stay decoupled from the engine's models.

``flatten_selection_for_export()`` is the adapter from an engine snapshot
(``SelectionState``) plus the recommendation list to one flat row per
selected code, loadable directly in Excel or a practice-management import.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Iterable

from mbs_selector.models.recommendation import Recommendation, index_by_code
from mbs_selector.models.selection import SelectionState

SELECTION_EXPORT_FIELDS: list[str] = [
    "code",
    "description",
    "category",
    "mbs_category",
    "fee_amount",
    "confidence",
    "conflict_count",
    "conflicts",
]


def export_to_csv(
    records: list[dict],
    path: Path,
    fieldnames: list[str] | None = None,
) -> Path:
    """Write ``records`` to a UTF-8 CSV file.

    Args:
        records:    List of row dicts.
        path:       Destination file path (parent dirs created if missing).
        fieldnames: Column order.  If None, uses the keys of the first record.

    Returns:
        ``path`` as written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if not records:
        path.write_text("", encoding="utf-8")
        return path
    cols = fieldnames or list(records[0].keys())
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=cols, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(records)
    return path


def export_to_json(
    data: dict | list,
    path: Path,
) -> Path:
    """Write ``data`` to a pretty-printed JSON file (parent dirs created)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
    return path


def flatten_selection_for_export(
    snapshot: SelectionState,
    recommendations: Iterable[Recommendation],
) -> list[dict]:
    """One flat row per selected code, in selection order.

    Each row contains the ``SELECTION_EXPORT_FIELDS`` columns.  ``conflicts``
    is the ``" | "``-joined messages of the active rules touching the code.
    Codes missing from ``recommendations`` keep their code and zero fee.
    """
    index = index_by_code(list(recommendations))
    rows: list[dict] = []
    for code in snapshot.selected_codes:
        rec = index.get(code)
        rules = snapshot.conflicts.get(code, [])
        rows.append({
            "code":           code,
            "description":    rec.description if rec else "",
            "category":       (rec.category or "") if rec else "",
            "mbs_category":   (rec.mbs_category or "") if rec else "",
            "fee_amount":     f"{rec.fee_amount:.2f}" if rec else "0.00",
            "confidence":     f"{rec.confidence:.2f}" if rec else "",
            "conflict_count": len(rules),
            "conflicts":      " | ".join(rule.message for rule in rules),
        })
    return rows


def selection_export_document(
    snapshot: SelectionState,
    recommendations: Iterable[Recommendation],
) -> dict:
    """JSON export document: totals, warnings and the flat per-code rows."""
    return {
        "selected_codes": list(snapshot.selected_codes),
        "total_fee": snapshot.total_fee,
        "warnings": list(snapshot.warnings),
        "items": flatten_selection_for_export(snapshot, recommendations),
    }
