"""
Selection engine — the live, validated set of chosen MBS codes.

``SelectionEngine`` owns one selection over one recommendation set.  Every
addition is validated against the conflict rules before it is applied:

  - A blocking rule whose codes would all be selected rejects the addition.
  - A warning rule never rejects; its message is reported.
  - An optional ``max_codes`` limit rejects additions past the limit and
    reports ``"Maximum N codes allowed"`` alongside any conflicts.
  - Unknown codes are reported as a failed validation, never raised.

Derived values (``selection_summary``, ``selection_validation``,
``selection_state``) are recomputed from the selected codes on every read;
the total fee is never cached.

Every mutation appends one ``HistoryEntry`` and notifies listeners with the
new ``SelectionSummary``.  ``batch()`` collapses a run of mutations into a
single entry and a single notification; bulk operations and optimisation
apply are built on it.

Usage::

    engine = SelectionEngine(recommendations, max_codes=10)
    unsubscribe = engine.subscribe(lambda summary: print(summary.total_fee))

    result = engine.select_code("36")
    if not result.can_select:
        print(result.warnings, result.suggestions)

    engine.undo()

Listeners and ``on_conflict_detected`` run synchronously.  They may read
from the engine but must not mutate it; doing so raises
``SelectionReentryError``.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Optional

from mbs_selector.db.kv_store import InMemoryKeyValueStore
from mbs_selector.exceptions import SelectionReentryError
from mbs_selector.models.history import HistoryEntryDraft
from mbs_selector.models.recommendation import Recommendation, index_by_code
from mbs_selector.models.selection import (
    ConflictValidation,
    SelectionSnapshot,
    SelectionState,
    SelectionSummary,
    SelectionValidation,
)
from mbs_selector.selection.conflicts import (
    active_rules,
    conflicts_by_code,
    detect_conflicts,
    sum_fees,
    warning_messages,
)
from mbs_selector.stores.history import HistoryStore
from mbs_selector.taxonomy.selection_taxonomy import CodeSelectionState, HistoryAction

logger = logging.getLogger(__name__)

DEFAULT_UNDO_LIMIT = 50

ALREADY_SELECTED_WARNING = "Code is already selected"

SelectionListener = Callable[[SelectionSummary], None]
ConflictListener = Callable[[ConflictValidation], None]


def not_found_warning(code: str) -> str:
    return f"Code {code} not found in recommendations"


def max_codes_warning(max_codes: int) -> str:
    return f"Maximum {max_codes} codes allowed"


@dataclass
class SelectionBatch:
    """Open batch of mutations; ``detail`` may be filled in before it closes."""

    action: HistoryAction
    detail: Optional[str] = None
    code: Optional[str] = None


class SelectionEngine:
    """Validated, observable selection over one recommendation set.

    Args:
        recommendations: Ranked recommendations for the current analysis.
        initial_selection: Codes selected at construction.  Taken as given
            (no re-validation, no history entry); ``selection_validation``
            reports any blocking pairs it contains.
        max_codes: Maximum number of selected codes, or ``None``.
        history_store: Where history entries go.  Defaults to an unbounded
            in-memory store.
        on_selection_change: Listener subscribed at construction.
        on_conflict_detected: Called with the validation of any select that
            failed, or succeeded with warnings.
        undo_limit: Depth of the undo stack.
    """

    def __init__(
        self,
        recommendations: Iterable[Recommendation],
        initial_selection: Optional[Iterable[str]] = None,
        max_codes: Optional[int] = None,
        history_store: Optional[HistoryStore] = None,
        on_selection_change: Optional[SelectionListener] = None,
        on_conflict_detected: Optional[ConflictListener] = None,
        undo_limit: int = DEFAULT_UNDO_LIMIT,
    ) -> None:
        if max_codes is not None and max_codes < 1:
            raise ValueError(f"max_codes must be >= 1 or None, got {max_codes}.")

        self._recommendations: list[Recommendation] = list(recommendations)
        self._index = index_by_code(self._recommendations)
        self._selected: dict[str, None] = dict.fromkeys(initial_selection or ())
        self.max_codes = max_codes
        self.history = history_store if history_store is not None else HistoryStore(
            InMemoryKeyValueStore()
        )
        self._listeners: list[SelectionListener] = []
        if on_selection_change is not None:
            self._listeners.append(on_selection_change)
        self.on_conflict_detected = on_conflict_detected

        self._undo: deque[tuple[str, ...]] = deque(maxlen=undo_limit)
        self._redo: list[tuple[str, ...]] = []
        self._notifying = False
        self._batch: Optional[SelectionBatch] = None

    # ── Read-only views ───────────────────────────────────────────────────────

    @property
    def recommendations(self) -> list[Recommendation]:
        return list(self._recommendations)

    @property
    def selected_codes(self) -> list[str]:
        """Selected codes in insertion order."""
        return list(self._selected)

    def is_selected(self, code: str) -> bool:
        return code in self._selected

    def get_recommendation(self, code: str) -> Optional[Recommendation]:
        return self._index.get(code)

    @property
    def total_fee(self) -> float:
        return sum_fees(self._selected, self._index)

    @property
    def selection_summary(self) -> SelectionSummary:
        """Counts, fee and conflict overview of the current selection."""
        codes = self.selected_codes
        active = active_rules(codes, self._index)
        return SelectionSummary(
            selected_count=len(codes),
            total_fee=sum_fees(codes, self._index),
            selected_codes=codes,
            conflict_count=len(active),
            has_blocking_conflicts=any(a.is_blocking for a in active),
            warnings=warning_messages(active),
        )

    @property
    def selection_validation(self) -> SelectionValidation:
        """Whole-selection check: invalid iff any blocking rule is active."""
        active = active_rules(self._selected, self._index)
        blocking = [a.rule for a in active if a.is_blocking]
        return SelectionValidation(
            is_valid=not blocking,
            blocking_conflicts=blocking,
            warnings=warning_messages(active),
        )

    @property
    def selection_state(self) -> SelectionState:
        codes = self.selected_codes
        return SelectionState(
            selected_codes=codes,
            total_fee=sum_fees(codes, self._index),
            conflicts=conflicts_by_code(codes, self._index),
            warnings=warning_messages(active_rules(codes, self._index)),
        )

    def snapshot(self) -> SelectionState:
        """Serialisable ``{selected_codes, total_fee, conflicts}`` for exporters."""
        return self.selection_state

    # ── Validation ────────────────────────────────────────────────────────────

    def can_select(
        self,
        code: str,
        recommendations: Optional[Iterable[Recommendation]] = None,
    ) -> ConflictValidation:
        """Validate adding ``code`` to the current selection without mutating.

        Args:
            code: Candidate code.
            recommendations: Resolve against this list instead of the
                engine's own (the selection itself is unchanged).

        Returns:
            ``ConflictValidation``; ``can_select`` is ``False`` when the code
            is unknown, a blocking rule would activate, or ``max_codes`` is
            reached.  Limit and conflict reasons are reported together.
        """
        index = self._index if recommendations is None else index_by_code(list(recommendations))

        if code not in index:
            return ConflictValidation(can_select=False, warnings=[not_found_warning(code)])

        if code in self._selected:
            return ConflictValidation(can_select=True, warnings=[ALREADY_SELECTED_WARNING])

        detected = detect_conflicts(code, self._selected, index)
        warnings = list(detected.warnings)
        allowed = not detected.blocking

        if self.max_codes is not None and len(self._selected) >= self.max_codes:
            allowed = False
            warnings.append(max_codes_warning(self.max_codes))

        return ConflictValidation(
            can_select=allowed,
            conflicts=detected.blocking,
            warnings=warnings,
            suggestions=detected.suggestions,
        )

    def get_code_selection_state(
        self,
        code: str,
        recommendations: Optional[Iterable[Recommendation]] = None,
    ) -> CodeSelectionState:
        """Display state of ``code``; first match of selected, blocked,
        conflict, compatible, available."""
        if code in self._selected:
            return CodeSelectionState.SELECTED

        validation = self.can_select(code, recommendations)
        if validation.conflicts:
            return CodeSelectionState.BLOCKED
        if not validation.can_select or validation.warnings:
            return CodeSelectionState.CONFLICT

        index = self._index if recommendations is None else index_by_code(list(recommendations))
        for selected in self._selected:
            rec = index.get(selected)
            if rec is not None and code in rec.compatible_with:
                return CodeSelectionState.COMPATIBLE
        return CodeSelectionState.AVAILABLE

    # ── Single-code mutations ─────────────────────────────────────────────────

    def select_code(self, code: str) -> ConflictValidation:
        """Select ``code`` if and only if it validates against the current state.

        Already-selected codes are a no-op: the result carries the
        ``"Code is already selected"`` warning and nothing is recorded.
        """
        self._guard("select_code")
        validation = self.can_select(code)

        if code in self._selected:
            return validation

        if validation.can_select:
            self._push_undo()
            self._selected[code] = None
            logger.debug("Selected %s.", code, extra={"code": code, "action": "select"})
            self._record(HistoryAction.SELECT, code=code)
            self._notify_change()
        else:
            logger.debug(
                "Rejected %s: %s", code, "; ".join(validation.warnings) or "blocking conflict",
                extra={"code": code, "action": "select"},
            )

        if validation.has_issues:
            self._notify_conflict(validation)
        return validation

    def deselect_code(self, code: str) -> bool:
        """Remove ``code`` if selected; return whether anything changed."""
        self._guard("deselect_code")
        if code not in self._selected:
            return False

        self._push_undo()
        del self._selected[code]
        logger.debug("Deselected %s.", code, extra={"code": code, "action": "deselect"})
        self._record(HistoryAction.DESELECT, code=code)
        self._notify_change()
        return True

    def toggle_code_selection(self, code: str) -> ConflictValidation:
        """Deselect a selected code (always succeeds), otherwise select it."""
        if code in self._selected:
            self.deselect_code(code)
            return ConflictValidation(can_select=True)
        return self.select_code(code)

    def clear_selection(self) -> None:
        """Empty the selection; always records one ``clear`` entry."""
        self._guard("clear_selection")
        if self._selected:
            self._push_undo()
        self._selected.clear()
        self._record(HistoryAction.CLEAR)
        self._notify_change()

    # ── Wholesale replacement ─────────────────────────────────────────────────

    def replace_selection(
        self,
        codes: Iterable[str],
        action: HistoryAction,
        detail: Optional[str] = None,
    ) -> list[str]:
        """Replace the whole selection with ``codes``, validating greedily.

        Codes are admitted in the given order; a code that is unknown,
        blocked by an earlier admitted code, or past ``max_codes`` is skipped.

        Returns:
            The skipped codes, in input order.
        """
        self._guard("replace_selection")
        admitted: dict[str, None] = {}
        skipped: list[str] = []

        for code in dict.fromkeys(codes):
            if code not in self._index:
                skipped.append(code)
                continue
            if self.max_codes is not None and len(admitted) >= self.max_codes:
                skipped.append(code)
                continue
            if detect_conflicts(code, admitted, self._index).blocking:
                skipped.append(code)
                continue
            admitted[code] = None

        self._push_undo()
        self._selected = admitted
        if skipped:
            logger.info("Replacing selection skipped %d codes: %s", len(skipped), skipped)
        self._record(action, detail=detail)
        self._notify_change()
        return skipped

    def replace_recommendations(self, recommendations: Iterable[Recommendation]) -> None:
        """Swap in a new analysis result; the selection and undo stacks reset."""
        self._guard("replace_recommendations")
        had_selection = bool(self._selected)

        self._recommendations = list(recommendations)
        self._index = index_by_code(self._recommendations)
        self._selected = {}
        self._undo.clear()
        self._redo.clear()
        logger.info("Recommendation set replaced (%d codes).", len(self._recommendations))

        if had_selection:
            self._record(HistoryAction.CLEAR, detail="recommendations replaced")
            self._notify_change()

    # ── Undo / redo ───────────────────────────────────────────────────────────

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def undo(self) -> bool:
        """Restore the selection before the last mutation; ``False`` if none."""
        self._guard("undo")
        if not self._undo:
            return False
        self._redo.append(tuple(self._selected))
        self._selected = dict.fromkeys(self._undo.pop())
        self._record(HistoryAction.UNDO)
        self._notify_change()
        return True

    def redo(self) -> bool:
        """Re-apply the last undone mutation; ``False`` if none."""
        self._guard("redo")
        if not self._redo:
            return False
        self._undo.append(tuple(self._selected))
        self._selected = dict.fromkeys(self._redo.pop())
        self._record(HistoryAction.REDO)
        self._notify_change()
        return True

    # ── Subscriptions ─────────────────────────────────────────────────────────

    def subscribe(self, listener: SelectionListener) -> Callable[[], None]:
        """Register a change listener; call the returned handle to unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ── Batching ──────────────────────────────────────────────────────────────

    @contextmanager
    def batch(
        self,
        action: HistoryAction,
        detail: Optional[str] = None,
        code: Optional[str] = None,
        record_unchanged: bool = False,
    ) -> Iterator[SelectionBatch]:
        """Group mutations into one history entry and one notification.

        Inside the block, per-code history, change notifications and
        conflict callbacks are suppressed.  On exit, if the selection
        changed, a single ``action`` entry is recorded, one undo step is
        pushed and listeners are notified once.  With ``record_unchanged``
        the entry and notification happen even when nothing changed (no
        undo step is pushed then).  If the block raises, the selection is
        restored and nothing is recorded.

        Nested batches join the outermost one.
        """
        self._guard("batch")
        if self._batch is not None:
            yield self._batch
            return

        before = tuple(self._selected)
        current = SelectionBatch(action=action, detail=detail, code=code)
        self._batch = current
        try:
            yield current
        except BaseException:
            self._selected = dict.fromkeys(before)
            raise
        finally:
            self._batch = None

        changed = tuple(self._selected) != before
        if changed:
            self._undo.append(before)
            self._redo.clear()
        if changed or record_unchanged:
            self._record(current.action, code=current.code, detail=current.detail)
            self._notify_change()

    # ── Internals ─────────────────────────────────────────────────────────────

    def _guard(self, operation: str) -> None:
        if self._notifying:
            raise SelectionReentryError(operation)

    def _push_undo(self) -> None:
        if self._batch is not None:
            return
        self._undo.append(tuple(self._selected))
        self._redo.clear()

    def _record(
        self,
        action: HistoryAction,
        code: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        if self._batch is not None:
            return
        codes = self.selected_codes
        self.history.add_entry(
            HistoryEntryDraft(
                action=action,
                code=code,
                selection_state=SelectionSnapshot(
                    selected_codes=codes,
                    total_fee=sum_fees(codes, self._index),
                ),
                detail=detail,
            )
        )

    def _notify_change(self) -> None:
        if self._batch is not None or not self._listeners:
            return
        summary = self.selection_summary
        self._notifying = True
        try:
            for listener in list(self._listeners):
                listener(summary)
        finally:
            self._notifying = False

    def _notify_conflict(self, validation: ConflictValidation) -> None:
        if self._batch is not None or self.on_conflict_detected is None:
            return
        self._notifying = True
        try:
            self.on_conflict_detected(validation)
        finally:
            self._notifying = False
