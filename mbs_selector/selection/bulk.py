"""
Bulk selection operations over a ``SelectionEngine``.

Every operation here is **greedy and order-dependent**: candidates are
tried through ``SelectionEngine.select_code`` in recommendation-list order,
and a candidate that fails validation (blocked by an earlier pick, or past
``max_codes``) is skipped and never retried.  The result is the maximal
non-conflicting prefix for that input order, not an optimal subset.  Two
runs over the same list and rules from the same starting selection always
give the same result.

Each operation runs inside ``engine.batch()``, so it produces exactly one
history entry and exactly one change notification regardless of how many
codes it touches.  That holds even when the selection ends up unchanged;
only an unchanged run pushes no undo step.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional

from mbs_selector.models.recommendation import Recommendation
from mbs_selector.selection.engine import SelectionEngine
from mbs_selector.taxonomy.selection_taxonomy import ConfidenceTier, HistoryAction

logger = logging.getLogger(__name__)

DEFAULT_HIGH_THRESHOLD = 0.8
DEFAULT_MEDIUM_THRESHOLD = 0.6


def confidence_tier(
    confidence: float,
    high_threshold: float = DEFAULT_HIGH_THRESHOLD,
    medium_threshold: float = DEFAULT_MEDIUM_THRESHOLD,
) -> ConfidenceTier:
    """Band a confidence score: high ``>= high``, medium ``>= medium``, else low."""
    if confidence >= high_threshold:
        return ConfidenceTier.HIGH
    if confidence >= medium_threshold:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


@dataclass
class BulkResult:
    """Outcome of one bulk operation.

    Attributes:
        action: History action recorded for the batch.
        selected: Codes newly selected, in the order they were added.
        deselected: Codes removed.
        skipped: Candidates that failed validation.
    """

    action: HistoryAction
    selected: list[str] = field(default_factory=list)
    deselected: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.selected or self.deselected)

    def describe(self) -> str:
        parts = [f"added={len(self.selected)}"]
        if self.deselected:
            parts.append(f"removed={len(self.deselected)}")
        if self.skipped:
            parts.append(f"skipped={len(self.skipped)}")
        return ", ".join(parts)


class BulkOperations:
    """Batch mutations over one engine.

    Args:
        engine: The engine to mutate.
        high_threshold: Lower bound of the high confidence tier.
        medium_threshold: Lower bound of the medium confidence tier.
    """

    def __init__(
        self,
        engine: SelectionEngine,
        high_threshold: float = DEFAULT_HIGH_THRESHOLD,
        medium_threshold: float = DEFAULT_MEDIUM_THRESHOLD,
    ) -> None:
        if not 0.0 <= medium_threshold <= high_threshold <= 1.0:
            raise ValueError(
                f"Thresholds must satisfy 0 <= medium <= high <= 1, got "
                f"medium={medium_threshold}, high={high_threshold}."
            )
        self.engine = engine
        self.high_threshold = high_threshold
        self.medium_threshold = medium_threshold

    def _candidates(self, recommendations: Optional[Iterable[Recommendation]]) -> list[Recommendation]:
        return self.engine.recommendations if recommendations is None else list(recommendations)

    def _greedy_select(
        self,
        candidates: Iterable[Recommendation],
        action: HistoryAction,
        label: Optional[str] = None,
    ) -> BulkResult:
        result = BulkResult(action=action)
        with self.engine.batch(action, record_unchanged=True) as batch:
            for rec in candidates:
                if self.engine.is_selected(rec.code):
                    continue
                if self.engine.select_code(rec.code).can_select:
                    result.selected.append(rec.code)
                else:
                    result.skipped.append(rec.code)
            batch.detail = f"{label}, {result.describe()}" if label else result.describe()

        logger.info("%s: %s", action.value, result.describe(), extra={"action": action.value})
        return result

    # ── Operations ────────────────────────────────────────────────────────────

    def select_all(self, recommendations: Optional[Iterable[Recommendation]] = None) -> BulkResult:
        """Greedily add every recommendation in list order."""
        return self._greedy_select(self._candidates(recommendations), HistoryAction.SELECT_ALL)

    def clear_all(self) -> BulkResult:
        """Equivalent to ``engine.clear_selection()``."""
        result = BulkResult(action=HistoryAction.CLEAR, deselected=self.engine.selected_codes)
        self.engine.clear_selection()
        return result

    def select_by_confidence_tier(
        self,
        tier: ConfidenceTier | str,
        recommendations: Optional[Iterable[Recommendation]] = None,
    ) -> BulkResult:
        """Greedily add the recommendations whose confidence falls in ``tier``."""
        tier = ConfidenceTier(tier)
        candidates = [
            rec for rec in self._candidates(recommendations)
            if confidence_tier(rec.confidence, self.high_threshold, self.medium_threshold) == tier
        ]
        return self._greedy_select(candidates, HistoryAction.SELECT_BY_TIER, f"tier={tier.value}")

    def select_by_category(
        self,
        category: str,
        recommendations: Optional[Iterable[Recommendation]] = None,
    ) -> BulkResult:
        """Greedily add recommendations whose ``mbs_category`` or ``category`` matches."""
        candidates = [
            rec for rec in self._candidates(recommendations)
            if category in (rec.mbs_category, rec.category)
        ]
        return self._greedy_select(
            candidates, HistoryAction.SELECT_BY_CATEGORY, f"category={category}"
        )

    def select_by_fee_range(
        self,
        min_fee: Optional[float] = None,
        max_fee: Optional[float] = None,
        recommendations: Optional[Iterable[Recommendation]] = None,
    ) -> BulkResult:
        """Greedily add recommendations with ``min_fee <= fee <= max_fee``.

        Either bound may be ``None`` for an open range.
        """
        if min_fee is not None and max_fee is not None and min_fee > max_fee:
            raise ValueError(f"min_fee ({min_fee}) must be <= max_fee ({max_fee}).")
        candidates = [
            rec for rec in self._candidates(recommendations)
            if (min_fee is None or rec.fee_amount >= min_fee)
            and (max_fee is None or rec.fee_amount <= max_fee)
        ]
        return self._greedy_select(
            candidates, HistoryAction.SELECT_BY_FEE_RANGE, f"fee={min_fee}..{max_fee}"
        )

    def select_compatible_subset(
        self,
        recommendations: Optional[Iterable[Recommendation]] = None,
    ) -> BulkResult:
        """Greedily add codes named in a selected code's ``compatible_with``.

        The compatible set is taken from the selection as it stood before
        the call; candidates are still validated one by one, so two
        compatible codes that conflict with each other are not both added.
        """
        compatible: set[str] = set()
        for code in self.engine.selected_codes:
            rec = self.engine.get_recommendation(code)
            if rec is not None:
                compatible.update(rec.compatible_with)

        candidates = [rec for rec in self._candidates(recommendations) if rec.code in compatible]
        return self._greedy_select(candidates, HistoryAction.SELECT_COMPATIBLE)

    def invert_selection(
        self,
        recommendations: Optional[Iterable[Recommendation]] = None,
    ) -> BulkResult:
        """Deselect every selected recommendation, then greedily select the rest.

        All removals happen first, so a previously selected code never
        blocks one that was previously unselected.
        """
        candidates = self._candidates(recommendations)
        previously = {rec.code for rec in candidates if self.engine.is_selected(rec.code)}
        result = BulkResult(action=HistoryAction.INVERT)

        with self.engine.batch(HistoryAction.INVERT, record_unchanged=True) as batch:
            for rec in candidates:
                if rec.code in previously and self.engine.deselect_code(rec.code):
                    result.deselected.append(rec.code)
            for rec in candidates:
                if rec.code in previously or self.engine.is_selected(rec.code):
                    continue
                if self.engine.select_code(rec.code).can_select:
                    result.selected.append(rec.code)
                else:
                    result.skipped.append(rec.code)
            batch.detail = result.describe()

        logger.info("invert: %s", result.describe(), extra={"action": "invert"})
        return result
