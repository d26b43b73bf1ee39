"""
Quick filters over a recommendation list.

Filters narrow what is *shown*; they never change the selection.  All
criteria are ANDed together:

  - ``mbs_category``    — exact match on ``mbs_category`` or ``category``.
  - ``min_fee`` / ``max_fee`` — inclusive fee bounds.
  - ``min_confidence``  — inclusive lower confidence bound.
  - ``compatibility``   — relative to the current selection:
      ``compatible``  keeps unselected codes listed in the ``compatible_with``
                      of *every* selected code;
      ``conflicting`` keeps codes that would activate a conflict rule
                      (blocking or warning) with the selection.
    With nothing selected, the compatibility criterion is ignored.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mbs_selector.models.recommendation import Recommendation, index_by_code
from mbs_selector.selection.conflicts import detect_conflicts
from mbs_selector.taxonomy.selection_taxonomy import CompatibilityFilter


class QuickFilter(BaseModel):
    """Display filter criteria; unset fields do not filter."""

    model_config = ConfigDict(frozen=True)

    mbs_category: Optional[str] = None
    min_fee: Optional[float] = Field(default=None, ge=0.0)
    max_fee: Optional[float] = Field(default=None, ge=0.0)
    min_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    compatibility: CompatibilityFilter = CompatibilityFilter.ALL

    @model_validator(mode="after")
    def validate_fee_range(self) -> "QuickFilter":
        if self.min_fee is not None and self.max_fee is not None and self.min_fee > self.max_fee:
            raise ValueError(f"min_fee ({self.min_fee}) must be <= max_fee ({self.max_fee}).")
        return self

    @property
    def is_active(self) -> bool:
        return self != QuickFilter()


def apply_quick_filter(
    recommendations: Iterable[Recommendation],
    quick_filter: QuickFilter,
    selected_codes: Iterable[str] = (),
) -> list[Recommendation]:
    """Return the recommendations matching ``quick_filter``, in list order."""
    recs = list(recommendations)
    selected = list(dict.fromkeys(selected_codes))
    result = recs

    if quick_filter.mbs_category is not None:
        result = [r for r in result if quick_filter.mbs_category in (r.mbs_category, r.category)]
    if quick_filter.min_fee is not None:
        result = [r for r in result if r.fee_amount >= quick_filter.min_fee]
    if quick_filter.max_fee is not None:
        result = [r for r in result if r.fee_amount <= quick_filter.max_fee]
    if quick_filter.min_confidence is not None:
        result = [r for r in result if r.confidence >= quick_filter.min_confidence]

    if selected and quick_filter.compatibility != CompatibilityFilter.ALL:
        index = index_by_code(recs)
        if quick_filter.compatibility == CompatibilityFilter.COMPATIBLE:
            result = [r for r in result if _compatible_with_all(r.code, selected, index)]
        else:
            result = [
                r for r in result
                if r.code not in selected and not detect_conflicts(r.code, selected, index).is_empty
            ]

    return result


def _compatible_with_all(
    code: str,
    selected: list[str],
    index: dict[str, Recommendation],
) -> bool:
    if code in selected:
        return False
    for other in selected:
        rec = index.get(other)
        if rec is None or code not in rec.compatible_with:
            return False
    return True
