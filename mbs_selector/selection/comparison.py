"""
Side-by-side comparison of two selections.

``compare_selections`` is a pure function.  Each side is evaluated on its
own: its conflict count is the number of distinct rules active among *its*
codes only, as if the other side did not exist.

Code lists follow recommendation-list order; codes absent from the
recommendation list are appended in the order they were given.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from mbs_selector.models.recommendation import Recommendation, index_by_code
from mbs_selector.selection.conflicts import active_rules, sum_fees


@dataclass
class SelectionSide:
    """One side of a comparison."""

    codes: list[str] = field(default_factory=list)
    total_fee: float = 0.0
    conflict_count: int = 0

    @property
    def selected_count(self) -> int:
        return len(self.codes)


@dataclass
class ComparisonResult:
    """Delta between ``selection1`` and ``selection2``.

    Attributes:
        label: Caller-supplied label, e.g. ``"current vs. preset"``.
        selection1: First side.
        selection2: Second side.
        fee_difference: ``selection2.total_fee - selection1.total_fee``.
        unique_to_selection1: Codes only in the first side.
        unique_to_selection2: Codes only in the second side.
        common_codes: Codes in both sides.
    """

    label: str
    selection1: SelectionSide
    selection2: SelectionSide
    fee_difference: float
    unique_to_selection1: list[str] = field(default_factory=list)
    unique_to_selection2: list[str] = field(default_factory=list)
    common_codes: list[str] = field(default_factory=list)

    @property
    def conflict_difference(self) -> int:
        return self.selection2.conflict_count - self.selection1.conflict_count

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "selection1": {
                "codes": list(self.selection1.codes),
                "total_fee": self.selection1.total_fee,
                "conflict_count": self.selection1.conflict_count,
            },
            "selection2": {
                "codes": list(self.selection2.codes),
                "total_fee": self.selection2.total_fee,
                "conflict_count": self.selection2.conflict_count,
            },
            "fee_difference": self.fee_difference,
            "unique_to_selection1": list(self.unique_to_selection1),
            "unique_to_selection2": list(self.unique_to_selection2),
            "common_codes": list(self.common_codes),
            "conflict_difference": self.conflict_difference,
        }


def _ordered(codes: set[str], recommendations: list[Recommendation], given: list[str]) -> list[str]:
    known = [rec.code for rec in recommendations if rec.code in codes]
    seen = set(known)
    for code in given:
        if code in codes and code not in seen:
            known.append(code)
            seen.add(code)
    return known


def compare_selections(
    selection_a: Iterable[str],
    selection_b: Iterable[str],
    recommendations: Iterable[Recommendation],
    label: str = "",
) -> ComparisonResult:
    """Compare two selections over the same recommendation list.

    Args:
        selection_a: Codes of the first selection.
        selection_b: Codes of the second selection.
        recommendations: Recommendation list used for fees, rules and order.
        label: Free-text label carried on the result.

    Returns:
        ``ComparisonResult`` with per-side totals and conflict counts, the
        fee difference (B minus A, rounded to cents) and the set splits.
    """
    recs = list(recommendations)
    index = index_by_code(recs)
    given_a = list(dict.fromkeys(selection_a))
    given_b = list(dict.fromkeys(selection_b))
    set_a, set_b = set(given_a), set(given_b)

    codes_a = _ordered(set_a, recs, given_a)
    codes_b = _ordered(set_b, recs, given_b)

    side1 = SelectionSide(
        codes=codes_a,
        total_fee=sum_fees(codes_a, index),
        conflict_count=len(active_rules(codes_a, index)),
    )
    side2 = SelectionSide(
        codes=codes_b,
        total_fee=sum_fees(codes_b, index),
        conflict_count=len(active_rules(codes_b, index)),
    )

    return ComparisonResult(
        label=label,
        selection1=side1,
        selection2=side2,
        fee_difference=round(side2.total_fee - side1.total_fee, 2),
        unique_to_selection1=_ordered(set_a - set_b, recs, given_a),
        unique_to_selection2=_ordered(set_b - set_a, recs, given_b),
        common_codes=_ordered(set_a & set_b, recs, given_a),
    )
