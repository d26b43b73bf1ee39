"""
Optimisation suggestion models.

Suggestions are transient: the advisor recomputes them on demand, they are
never persisted, and they never mutate the engine.  Applying one is a
separate call (``apply_optimisation``) that re-validates every change.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from mbs_selector.taxonomy.selection_taxonomy import ChangeAction, OptimisationType


class OptimisationChange(BaseModel):
    """One proposed step of a suggestion.

    Attributes:
        action: ``add``, ``remove`` or ``replace``.
        code: Code to add or remove; for ``replace`` the incoming code.
        replaces: For ``replace`` only, the selected code being swapped out.
        description: Description of ``code``.
        reason: Why the advisor proposes this step.
    """

    model_config = ConfigDict(frozen=True)

    action: ChangeAction
    code: str
    replaces: Optional[str] = None
    description: str = ""
    reason: str = ""

    @model_validator(mode="after")
    def validate_replaces(self) -> "OptimisationChange":
        if self.action == ChangeAction.REPLACE and not self.replaces:
            raise ValueError("A replace change must name the code it replaces.")
        if self.action != ChangeAction.REPLACE and self.replaces is not None:
            raise ValueError(f"'replaces' is only valid for replace changes, not {self.action}.")
        return self


class OptimisationSuggestion(BaseModel):
    """A proposed set of changes with its fee impact.

    ``improvement`` is always ``suggested_fee - current_fee`` rounded to
    cents, including for strategies that do not target fee.
    """

    model_config = ConfigDict(frozen=True)

    type: OptimisationType
    current_fee: float
    suggested_fee: float
    improvement: float
    changes: list[OptimisationChange] = Field(default_factory=list)
    confidence: float

    @field_validator("confidence")
    @classmethod
    def validate_confidence(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"confidence must be in [0.0, 1.0], got {v}.")
        return v

    @model_validator(mode="after")
    def validate_improvement(self) -> "OptimisationSuggestion":
        expected = round(self.suggested_fee - self.current_fee, 2)
        if abs(self.improvement - expected) > 0.005:
            raise ValueError(
                f"improvement ({self.improvement}) must equal suggested_fee - "
                f"current_fee ({expected})."
            )
        return self
