"""
Selection result models returned by the selection engine.

``ConflictValidation`` is the outcome of a proposed single-code addition.
``SelectionSummary`` and ``SelectionValidation`` are derived views that the
engine recomputes from the live selection on every read.
``SelectionState`` is the serialisable snapshot handed to exporters, and
``SelectionSnapshot`` is the reduced copy stored inside history entries.

None of these models are cached by the engine; ``total_fee`` is always a
fresh sum over the selected codes.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from mbs_selector.models.recommendation import ConflictRule


class ConflictValidation(BaseModel):
    """Result of validating (or attempting) one code addition.

    Attributes:
        can_select: ``False`` when a blocking rule, the capacity limit, or a
            missing code prevents selection.
        conflicts: Active blocking rules that caused the rejection.
        warnings: Advisory messages (warning rules, limits, not-found).
        suggestions: Suggested user actions to resolve the conflicts.
    """

    model_config = ConfigDict(frozen=True)

    can_select: bool
    conflicts: list[ConflictRule] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        return bool(self.conflicts or self.warnings)


class SelectionSummary(BaseModel):
    """Derived summary of the current selection."""

    model_config = ConfigDict(frozen=True)

    selected_count: int = 0
    total_fee: float = 0.0
    selected_codes: list[str] = Field(default_factory=list)
    conflict_count: int = 0
    has_blocking_conflicts: bool = False
    warnings: list[str] = Field(default_factory=list)


class SelectionValidation(BaseModel):
    """Pairwise validation of the whole current selection.

    ``is_valid`` is ``False`` iff any active blocking rule exists among the
    selected codes.  The engine never produces such a state itself; this
    check covers state supplied from outside (initial selection, presets).
    """

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    blocking_conflicts: list[ConflictRule] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class SelectionSnapshot(BaseModel):
    """Codes and total fee at a single point in time (stored in history)."""

    model_config = ConfigDict(frozen=True)

    selected_codes: list[str] = Field(default_factory=list)
    total_fee: float = 0.0


class SelectionState(BaseModel):
    """Serialisable snapshot of the live selection for exporters.

    Attributes:
        selected_codes: Selected codes in insertion order.
        total_fee: Sum of fees of the selected codes, rounded to cents.
        conflicts: Selected code → active rules (blocking and warning) it
            participates in.  Codes with no active rules are omitted.
        warnings: Messages of the active warning rules.
    """

    model_config = ConfigDict(frozen=True)

    selected_codes: list[str] = Field(default_factory=list)
    total_fee: float = 0.0
    conflicts: dict[str, list[ConflictRule]] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
