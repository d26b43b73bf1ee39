"""
ASCII terminal formatters for CLI commands.

All formatters accept models or record lists and return plain multi-line
strings suitable for ``typer.echo()``.  Fees are shown as ``$1,234.50``.
"""

from __future__ import annotations

from typing import Iterable, Optional

from mbs_selector.models.history import HistoryEntry
from mbs_selector.models.optimisation import OptimisationSuggestion
from mbs_selector.models.preset import Preset
from mbs_selector.models.recommendation import Recommendation
from mbs_selector.models.selection import SelectionSummary
from mbs_selector.selection.comparison import ComparisonResult


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _codes(codes: Iterable[str]) -> str:
    joined = ", ".join(codes)
    return joined if joined else "-"


# ── Recommendations ───────────────────────────────────────────────────────────


def format_recommendations_table(
    recommendations: list[Recommendation],
    selected_codes: Optional[Iterable[str]] = None,
) -> str:
    """Ranked recommendations; selected rows are marked with ``*``.

    ::

          Code  Description                      Fee    Conf  Rules
        -------------------------------------------------------------
        *   36  Level C consultation          $75.05    85%      1
    """
    selected = set(selected_codes or ())
    lines: list[str] = ["", "=== Recommendations ==="]
    if not recommendations:
        lines.append("  (no recommendations returned)")
        return "\n".join(lines)

    header = f"  {'':1} {'Code':>6}  {'Description':<32}  {'Fee':>10}  {'Conf':>5}  {'Rules':>5}"
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))
    for rec in recommendations:
        mark = "*" if rec.code in selected else " "
        lines.append(
            f"  {mark:1} {rec.code:>6}  {rec.description[:32]:<32}  "
            f"{_money(rec.fee_amount):>10}  {rec.confidence:>5.0%}  {len(rec.conflict_rules):>5}"
        )
    return "\n".join(lines)


def format_selection_summary(summary: SelectionSummary) -> str:
    lines = [
        "",
        "=== Selection ===",
        f"  Codes:     {_codes(summary.selected_codes)}",
        f"  Count:     {summary.selected_count}",
        f"  Total fee: {_money(summary.total_fee)}",
        f"  Conflicts: {summary.conflict_count}"
        + ("  [BLOCKING]" if summary.has_blocking_conflicts else ""),
    ]
    for warning in summary.warnings:
        lines.append(f"  [WARN] {warning}")
    return "\n".join(lines)


# ── Presets / history ─────────────────────────────────────────────────────────


def format_presets_table(presets: list[Preset]) -> str:
    lines: list[str] = ["", "=== Presets ==="]
    if not presets:
        lines.append("  (no presets saved)")
        return "\n".join(lines)

    header = f"  {'Name':<24}  {'Codes':<28}  {'Modified':<20}  {'Id'}"
    lines.append(header)
    lines.append("  " + "-" * (len(header) + 36))
    for preset in presets:
        lines.append(
            f"  {preset.name[:24]:<24}  {_codes(preset.selected_codes)[:28]:<28}  "
            f"{preset.modified_at.strftime('%Y-%m-%dT%H:%M:%SZ'):<20}  {preset.id}"
        )
    return "\n".join(lines)


def format_history_table(entries: list[HistoryEntry], limit: Optional[int] = None) -> str:
    """History newest-first, optionally truncated to ``limit`` rows."""
    lines: list[str] = ["", "=== Selection History ==="]
    if not entries:
        lines.append("  (no history recorded)")
        return "\n".join(lines)

    shown = entries if limit is None else entries[:limit]
    header = f"  {'Timestamp':<20}  {'Action':<20}  {'Code':>6}  {'Total':>10}  {'Detail'}"
    lines.append(header)
    lines.append("  " + "-" * (len(header) + 20))
    for entry in shown:
        lines.append(
            f"  {entry.timestamp.strftime('%Y-%m-%dT%H:%M:%SZ'):<20}  "
            f"{entry.action.value:<20}  {entry.code or '-':>6}  "
            f"{_money(entry.selection_state.total_fee):>10}  {entry.detail or ''}"
        )
    if len(shown) < len(entries):
        lines.append(f"  ... {len(entries) - len(shown)} older entries not shown")
    return "\n".join(lines)


# ── Optimisation / comparison ─────────────────────────────────────────────────


def format_suggestions(suggestions: list[OptimisationSuggestion]) -> str:
    lines: list[str] = ["", "=== Optimisation Suggestions ==="]
    if not suggestions:
        lines.append("  (selection is already optimal for every strategy)")
        return "\n".join(lines)

    for suggestion in suggestions:
        lines.append("")
        lines.append(
            f"  [{suggestion.type.value}]  {_money(suggestion.current_fee)} -> "
            f"{_money(suggestion.suggested_fee)}  ({suggestion.improvement:+,.2f})  "
            f"confidence {suggestion.confidence:.0%}"
        )
        for change in suggestion.changes:
            target = f"{change.replaces} -> {change.code}" if change.replaces else change.code
            lines.append(f"    {change.action.value:<8} {target:<14} {change.reason}")
    return "\n".join(lines)


def format_comparison(result: ComparisonResult) -> str:
    return "\n".join([
        "",
        f"=== Comparison{': ' + result.label if result.label else ''} ===",
        f"  {'':<16}  {'Selection 1':>14}  {'Selection 2':>14}",
        f"  {'Total fee':<16}  {_money(result.selection1.total_fee):>14}  "
        f"{_money(result.selection2.total_fee):>14}",
        f"  {'Codes':<16}  {result.selection1.selected_count:>14}  "
        f"{result.selection2.selected_count:>14}",
        f"  {'Conflicts':<16}  {result.selection1.conflict_count:>14}  "
        f"{result.selection2.conflict_count:>14}",
        f"  Fee difference:   {result.fee_difference:+,.2f}",
        f"  Only in 1:        {_codes(result.unique_to_selection1)}",
        f"  Only in 2:        {_codes(result.unique_to_selection2)}",
        f"  Common:           {_codes(result.common_codes)}",
    ])
