"""
Optimisation advisor — read-only suggestions for improving a selection.

``OptimisationAdvisor.suggest(selection, type)`` never touches an engine; it
works on a plain list of codes and returns ``OptimisationSuggestion``s.
Strategies:

  maximize_fee
      Try unselected codes from highest fee down (list order breaks fee
      ties) and add each one that introduces no blocking conflict with the
      growing set.  Warning rules do not stop an addition.
  upgrade_codes
      For each selected code, find the highest-fee unselected code in the
      same group that would not block against the *other* selected codes,
      and propose a ``replace``.  One suggestion per upgradable code.
  add_compatible
      Propose ``add`` for each code named in a selected code's
      ``compatible_with`` that passes validation against the growing set.
  minimize_conflicts
      Repeatedly remove the code in the most active rules until none
      remain.  Ties go against the lower fee, then the lower confidence,
      then the later list position.

Grouping for ``upgrade_codes`` is pluggable; the default compares
``mbs_category`` when both codes carry one and falls back to ``category``.

``apply_optimisation(suggestion, engine)`` is the only mutating entry point.
It replays the changes through ``select_code`` / ``deselect_code`` inside a
single batch, so every change is re-validated against the engine's *current*
state; changes that no longer apply are rejected rather than forced.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Optional, Union

from mbs_selector.models.optimisation import OptimisationChange, OptimisationSuggestion
from mbs_selector.models.recommendation import Recommendation, index_by_code
from mbs_selector.models.selection import ConflictValidation
from mbs_selector.selection.conflicts import active_rules, detect_conflicts, sum_fees
from mbs_selector.selection.engine import SelectionEngine
from mbs_selector.taxonomy.selection_taxonomy import ChangeAction, HistoryAction, OptimisationType

logger = logging.getLogger(__name__)

UpgradeGrouping = Callable[[Recommendation, Recommendation], bool]


def same_category_group(current: Recommendation, candidate: Recommendation) -> bool:
    """Default upgrade grouping: same ``mbs_category``, else same ``category``."""
    if current.mbs_category and candidate.mbs_category:
        return current.mbs_category == candidate.mbs_category
    if current.category and candidate.category:
        return current.category == candidate.category
    return False


def _money(value: float) -> str:
    return f"${value:,.2f}"


class OptimisationAdvisor:
    """Computes optimisation suggestions against one recommendation set.

    Args:
        recommendations: The current recommendation list (order matters for
            tie-breaks).
        grouping: Predicate deciding whether a candidate may upgrade a
            selected code.
        max_codes: Optional cap on the size of a suggested selection.
    """

    CONFIDENCE: ClassVar[dict[OptimisationType, float]] = {
        OptimisationType.MAXIMIZE_FEE: 0.8,
        OptimisationType.UPGRADE_CODES: 0.7,
        OptimisationType.ADD_COMPATIBLE: 0.9,
        OptimisationType.MINIMIZE_CONFLICTS: 0.8,
    }

    def __init__(
        self,
        recommendations: Iterable[Recommendation],
        grouping: UpgradeGrouping = same_category_group,
        max_codes: Optional[int] = None,
    ) -> None:
        self.recommendations = list(recommendations)
        self.index = index_by_code(self.recommendations)
        self.grouping = grouping
        self.max_codes = max_codes
        self._position: dict[str, int] = {}
        for i, rec in enumerate(self.recommendations):
            self._position.setdefault(rec.code, i)

    # ── Public API ────────────────────────────────────────────────────────────

    def suggest(
        self,
        selection: Iterable[str],
        type: Union[OptimisationType, str],
    ) -> list[OptimisationSuggestion]:
        """Suggestions of one type for ``selection``; empty if nothing applies."""
        selected = list(dict.fromkeys(selection))
        strategy = {
            OptimisationType.MAXIMIZE_FEE: self._maximize_fee,
            OptimisationType.UPGRADE_CODES: self._upgrade_codes,
            OptimisationType.ADD_COMPATIBLE: self._add_compatible,
            OptimisationType.MINIMIZE_CONFLICTS: self._minimize_conflicts,
        }[OptimisationType(type)]
        return strategy(selected)

    def suggest_all(self, selection: Iterable[str]) -> list[OptimisationSuggestion]:
        """Suggestions of every type, in ``OptimisationType`` declaration order."""
        selected = list(selection)
        suggestions: list[OptimisationSuggestion] = []
        for opt_type in OptimisationType:
            suggestions.extend(self.suggest(selected, opt_type))
        return suggestions

    # ── Strategies ────────────────────────────────────────────────────────────

    def _maximize_fee(self, selected: list[str]) -> list[OptimisationSuggestion]:
        working = list(selected)
        changes: list[OptimisationChange] = []
        candidates = sorted(
            (rec for rec in self.recommendations if rec.code not in working),
            key=lambda rec: -rec.fee_amount,
        )
        for rec in candidates:
            if self._at_capacity(working):
                break
            if detect_conflicts(rec.code, working, self.index).blocking:
                continue
            working.append(rec.code)
            changes.append(
                OptimisationChange(
                    action=ChangeAction.ADD,
                    code=rec.code,
                    description=rec.description,
                    reason=f"Adds {_money(rec.fee_amount)} without a blocking conflict",
                )
            )

        if not changes:
            return []
        return [self._build(OptimisationType.MAXIMIZE_FEE, selected, working, changes)]

    def _upgrade_codes(self, selected: list[str]) -> list[OptimisationSuggestion]:
        suggestions: list[OptimisationSuggestion] = []
        for code in selected:
            current = self.index.get(code)
            if current is None:
                continue
            others = [c for c in selected if c != code]
            best: Optional[Recommendation] = None
            for rec in self.recommendations:
                if rec.code in selected or rec.fee_amount <= current.fee_amount:
                    continue
                if not self.grouping(current, rec):
                    continue
                if detect_conflicts(rec.code, others, self.index).blocking:
                    continue
                if best is None or rec.fee_amount > best.fee_amount:
                    best = rec
            if best is None:
                continue

            after = [best.code if c == code else c for c in selected]
            change = OptimisationChange(
                action=ChangeAction.REPLACE,
                code=best.code,
                replaces=code,
                description=best.description,
                reason=(
                    f"Same group, {_money(best.fee_amount - current.fee_amount)} higher fee "
                    f"than {code}"
                ),
            )
            suggestions.append(self._build(OptimisationType.UPGRADE_CODES, selected, after, [change]))
        return suggestions

    def _add_compatible(self, selected: list[str]) -> list[OptimisationSuggestion]:
        compatible: set[str] = set()
        for code in selected:
            rec = self.index.get(code)
            if rec is not None:
                compatible.update(rec.compatible_with)

        working = list(selected)
        changes: list[OptimisationChange] = []
        for rec in self.recommendations:
            if rec.code in working or rec.code not in compatible:
                continue
            if self._at_capacity(working):
                break
            if detect_conflicts(rec.code, working, self.index).blocking:
                continue
            working.append(rec.code)
            changes.append(
                OptimisationChange(
                    action=ChangeAction.ADD,
                    code=rec.code,
                    description=rec.description,
                    reason="Listed as compatible with the current selection",
                )
            )

        if not changes:
            return []
        return [self._build(OptimisationType.ADD_COMPATIBLE, selected, working, changes)]

    def _minimize_conflicts(self, selected: list[str]) -> list[OptimisationSuggestion]:
        working = list(selected)
        changes: list[OptimisationChange] = []

        while True:
            active = active_rules(working, self.index)
            if not active:
                break
            participation: Counter[str] = Counter()
            for rule in active:
                participation.update(c for c in rule.involved if c in working)

            victim = min(participation, key=lambda c: self._removal_key(c, participation[c]))
            working.remove(victim)
            rec = self.index.get(victim)
            changes.append(
                OptimisationChange(
                    action=ChangeAction.REMOVE,
                    code=victim,
                    description=rec.description if rec is not None else "",
                    reason=f"Involved in {participation[victim]} active conflict(s)",
                )
            )

        if not changes:
            return []
        return [self._build(OptimisationType.MINIMIZE_CONFLICTS, selected, working, changes)]

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _removal_key(self, code: str, count: int) -> tuple[int, float, float, int]:
        """Sort key whose minimum is the code to remove first."""
        rec = self.index.get(code)
        fee = rec.fee_amount if rec is not None else 0.0
        confidence = rec.confidence if rec is not None else 0.0
        position = self._position.get(code, len(self.recommendations))
        return -count, fee, confidence, -position

    def _at_capacity(self, working: list[str]) -> bool:
        return self.max_codes is not None and len(working) >= self.max_codes

    def _build(
        self,
        opt_type: OptimisationType,
        before: list[str],
        after: list[str],
        changes: list[OptimisationChange],
    ) -> OptimisationSuggestion:
        current_fee = sum_fees(before, self.index)
        suggested_fee = sum_fees(after, self.index)
        return OptimisationSuggestion(
            type=opt_type,
            current_fee=current_fee,
            suggested_fee=suggested_fee,
            improvement=round(suggested_fee - current_fee, 2),
            changes=changes,
            confidence=self.CONFIDENCE[opt_type],
        )


# ── Applying a suggestion ─────────────────────────────────────────────────────


@dataclass
class ApplyResult:
    """Outcome of ``apply_optimisation``.

    Attributes:
        applied: Changes that took effect.
        rejected: ``(change, reason)`` for changes that failed re-validation.
    """

    applied: list[OptimisationChange] = field(default_factory=list)
    rejected: list[tuple[OptimisationChange, str]] = field(default_factory=list)

    @property
    def fully_applied(self) -> bool:
        return not self.rejected


def _rejection_reason(validation: ConflictValidation) -> str:
    if validation.warnings:
        return "; ".join(validation.warnings)
    return "; ".join(rule.message for rule in validation.conflicts) or "validation failed"


def apply_optimisation(suggestion: OptimisationSuggestion, engine: SelectionEngine) -> ApplyResult:
    """Replay ``suggestion.changes`` through ``engine`` as one batch.

    Each change is re-validated against the engine's current state:

      - ``add``: rejected if already selected or ``select_code`` fails.
      - ``remove``: rejected if the code is no longer selected.
      - ``replace``: rejected as stale if ``replaces`` is no longer selected;
        if the incoming code then fails validation, ``replaces`` is restored.

    The batch records one ``apply_optimisation`` history entry and notifies
    listeners once, and only when the selection actually changed.
    """
    result = ApplyResult()

    with engine.batch(HistoryAction.APPLY_OPTIMISATION) as batch:
        for change in suggestion.changes:
            if change.action == ChangeAction.ADD:
                if engine.is_selected(change.code):
                    result.rejected.append((change, f"{change.code} is already selected"))
                    continue
                validation = engine.select_code(change.code)
                if validation.can_select:
                    result.applied.append(change)
                else:
                    result.rejected.append((change, _rejection_reason(validation)))

            elif change.action == ChangeAction.REMOVE:
                if engine.deselect_code(change.code):
                    result.applied.append(change)
                else:
                    result.rejected.append((change, f"{change.code} is not selected"))

            else:
                assert change.replaces is not None
                if not engine.is_selected(change.replaces):
                    result.rejected.append((change, f"{change.replaces} is no longer selected"))
                    continue
                if engine.is_selected(change.code):
                    result.rejected.append((change, f"{change.code} is already selected"))
                    continue
                engine.deselect_code(change.replaces)
                validation = engine.select_code(change.code)
                if validation.can_select:
                    result.applied.append(change)
                else:
                    engine.select_code(change.replaces)
                    result.rejected.append((change, _rejection_reason(validation)))

        batch.detail = (
            f"type={suggestion.type.value}, applied={len(result.applied)}, "
            f"rejected={len(result.rejected)}"
        )

    if result.rejected:
        logger.info(
            "Optimisation %s applied partially: %d rejected.",
            suggestion.type.value, len(result.rejected),
        )
    return result
