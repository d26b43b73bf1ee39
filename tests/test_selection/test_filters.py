"""Tests for mbs_selector.selection.filters."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mbs_selector.models.recommendation import Recommendation
from mbs_selector.selection.filters import QuickFilter, apply_quick_filter
from mbs_selector.taxonomy.selection_taxonomy import CompatibilityFilter


def _codes(recs: list[Recommendation]) -> list[str]:
    return [r.code for r in recs]


def test_default_filter_is_inactive(recommendations: list[Recommendation]) -> None:
    qf = QuickFilter()
    assert qf.is_active is False
    assert _codes(apply_quick_filter(recommendations, qf)) == ["36", "44", "177", "721", "723"]


def test_filter_by_category(recommendations: list[Recommendation]) -> None:
    qf = QuickFilter(mbs_category="mental_health")
    assert qf.is_active
    assert _codes(apply_quick_filter(recommendations, qf)) == ["721", "723"]


def test_filter_by_fee_and_confidence(recommendations: list[Recommendation]) -> None:
    assert _codes(
        apply_quick_filter(recommendations, QuickFilter(min_fee=50.0, max_fee=90.0))
    ) == ["36", "721"]
    assert _codes(
        apply_quick_filter(recommendations, QuickFilter(min_confidence=0.7))
    ) == ["36", "44", "721"]


def test_inverted_fee_range_rejected() -> None:
    with pytest.raises(ValidationError):
        QuickFilter(min_fee=100.0, max_fee=10.0)


def test_compatible_requires_every_selected_code(recommendations: list[Recommendation]) -> None:
    qf = QuickFilter(compatibility=CompatibilityFilter.COMPATIBLE)
    assert _codes(apply_quick_filter(recommendations, qf, ["36"])) == ["177", "721"]
    assert _codes(apply_quick_filter(recommendations, qf, ["36", "177"])) == ["721"]


def test_conflicting_includes_warnings(recommendations: list[Recommendation]) -> None:
    qf = QuickFilter(compatibility="conflicting")
    assert _codes(apply_quick_filter(recommendations, qf, ["36"])) == ["44"]
    assert _codes(apply_quick_filter(recommendations, qf, ["721"])) == ["723"]


def test_compatibility_ignored_without_selection(recommendations: list[Recommendation]) -> None:
    qf = QuickFilter(compatibility=CompatibilityFilter.COMPATIBLE)
    assert len(apply_quick_filter(recommendations, qf, [])) == 5
