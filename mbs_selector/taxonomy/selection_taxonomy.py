"""
Selection taxonomy for MBS code recommendation and selection.

Every recommended code and every selection action is described by a small
set of closed vocabularies:
  - ``ConflictReason``     — *why* two codes cannot (or should not) be billed together.
  - ``ConflictSeverity``   — *how hard* the rule is: blocking vs. advisory.
  - ``CodeSelectionState`` — display state of one code relative to the live selection.
  - ``HistoryAction``      — the kind of selection-changing action recorded in history.
  - ``OptimisationType``   — which optimisation strategy produced a suggestion.
  - ``ChangeAction``       — one step of an optimisation suggestion.
  - ``ConfidenceTier``     — named confidence band used by bulk selection.
  - ``ConsultationContext``— clinical setting sent with an analysis request.
  - ``CompatibilityFilter``— quick-filter mode relative to the current selection.

Usage example::

    from mbs_selector.taxonomy.selection_taxonomy import ConflictSeverity, ConfidenceTier

    if rule.severity == ConflictSeverity.BLOCKING:
        ...

This module has NO imports from any other ``mbs_selector`` package.
"""

from enum import StrEnum


class ConflictReason(StrEnum):
    """Reason a conflict rule exists between two or more MBS items."""

    TIME_OVERLAP = "time_overlap"
    """Both items claim the same consultation time."""

    CATEGORY_EXCLUSIVE = "category_exclusive"
    """Items sit in mutually exclusive MBS categories or groups."""

    AGE_RESTRICTION = "age_restriction"
    """One item is restricted to a patient age band the other excludes."""

    FREQUENCY_LIMIT = "frequency_limit"
    """Billing both would exceed a per-period frequency limit."""

    PREREQUISITE_MISSING = "prerequisite_missing"
    """One item requires a prerequisite service that the other precludes."""

    MEDICARE_RULE = "medicare_rule"
    """Explicit Medicare rule (explanatory note) forbids co-claiming."""


class ConflictSeverity(StrEnum):
    """How a conflict rule affects selection."""

    BLOCKING = "blocking"
    """Hard validation failure; the codes may never be selected together."""

    WARNING = "warning"
    """Advisory only; selection proceeds and the message is surfaced."""


class CodeSelectionState(StrEnum):
    """Display state of a single code given the current selection.

    Evaluated in declaration order; the first matching state wins.
    """

    SELECTED = "selected"
    BLOCKED = "blocked"
    CONFLICT = "conflict"
    COMPATIBLE = "compatible"
    AVAILABLE = "available"


class HistoryAction(StrEnum):
    """Selection-changing action recorded in the history log."""

    # ── Single-code actions ───────────────────────────────────────────────────
    SELECT = "select"
    DESELECT = "deselect"
    CLEAR = "clear"

    # ── Bulk actions ──────────────────────────────────────────────────────────
    SELECT_ALL = "select_all"
    SELECT_BY_TIER = "select_by_tier"
    SELECT_BY_CATEGORY = "select_by_category"
    SELECT_BY_FEE_RANGE = "select_by_fee_range"
    SELECT_COMPATIBLE = "select_compatible"
    INVERT = "invert"

    # ── Wholesale replacements ────────────────────────────────────────────────
    APPLY_OPTIMISATION = "apply_optimisation"
    LOAD_PRESET = "load_preset"
    UNDO = "undo"
    REDO = "redo"


class OptimisationType(StrEnum):
    """Optimisation strategy offered by the advisor."""

    MAXIMIZE_FEE = "maximize_fee"
    MINIMIZE_CONFLICTS = "minimize_conflicts"
    UPGRADE_CODES = "upgrade_codes"
    ADD_COMPATIBLE = "add_compatible"


class ChangeAction(StrEnum):
    """A single proposed mutation inside an optimisation suggestion."""

    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"


class ConfidenceTier(StrEnum):
    """Named confidence band; thresholds live in ``SelectionConfig``."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ConsultationContext(StrEnum):
    """Clinical context accepted by the analysis endpoint."""

    GENERAL_PRACTICE = "general_practice"
    EMERGENCY_DEPARTMENT = "emergency_department"
    SPECIALIST = "specialist"
    MENTAL_HEALTH = "mental_health"
    TELEHEALTH = "telehealth"
    OTHER = "other"


class CompatibilityFilter(StrEnum):
    """Quick-filter mode relative to the current selection."""

    ALL = "all"
    COMPATIBLE = "compatible"
    CONFLICTING = "conflicting"
