"""
Recommendation models — one candidate MBS item returned by the analysis service.

``Recommendation`` wraps a single MBS item with its schedule fee, the
service's confidence, and the pairwise ``ConflictRule`` list the selection
engine validates against.  ``EvidenceSpan`` points back into the original
consultation note.

Field names accept both the backend's snake_case wire names and the
camelCase names used by fixture files, e.g. ``schedule_fee`` / ``feeAmount``
or ``conflicts`` / ``conflictRules``.  Serialisation always uses the Python
field names.

All models are frozen: a recommendation set is immutable for the lifetime of
one analysis result and is discarded wholesale when a new analysis arrives.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from mbs_selector.taxonomy.selection_taxonomy import ConflictReason, ConflictSeverity


class EvidenceSpan(BaseModel):
    """A span of consultation text that supports a recommendation.

    Attributes:
        start: Start offset (inclusive) in the consultation note.
        end: End offset (exclusive) in the consultation note.
        text: The quoted evidence text.
        relevance: Optional relevance score in [0, 1].
    """

    model_config = ConfigDict(frozen=True)

    start: int
    end: int
    text: str
    relevance: Optional[float] = None

    @field_validator("end")
    @classmethod
    def validate_end(cls, v: int, info: ValidationInfo) -> int:
        start = info.data.get("start")
        if start is not None and v < start:
            raise ValueError(f"end ({v}) must be >= start ({start}).")
        return v


class ConflictRule(BaseModel):
    """A conflict between the owning code and one or more other codes.

    Rules are conceptually undirected.  The owning recommendation may or may
    not appear in ``conflicting_codes``; the engine always treats the
    involved set as ``{owner} | conflicting_codes``.

    Attributes:
        conflicting_codes: Codes named by this rule (order preserved, deduplicated).
        reason: Why the codes conflict.
        severity: ``blocking`` rejects the selection; ``warning`` only advises.
        message: Human-readable explanation shown to the user.
        category: Optional MBS category the rule applies to.
        conditions: Optional free-text conditions under which the rule applies.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    conflicting_codes: list[str] = Field(
        validation_alias=AliasChoices("conflicting_codes", "conflictingCodes"),
    )
    reason: ConflictReason
    severity: ConflictSeverity
    message: str
    category: Optional[str] = None
    conditions: list[str] = Field(default_factory=list)

    @field_validator("conflicting_codes", mode="before")
    @classmethod
    def normalise_codes(cls, v: Any) -> list[str]:
        if isinstance(v, (str, bytes)):
            raise ValueError("conflicting_codes must be a list of codes, not a string.")
        seen: dict[str, None] = {}
        for code in v:
            seen.setdefault(str(code).strip(), None)
        return list(seen)

    @property
    def is_blocking(self) -> bool:
        return self.severity == ConflictSeverity.BLOCKING


class Recommendation(BaseModel):
    """One ranked MBS item recommendation.

    Attributes:
        code: MBS item number, unique within one recommendation set.
        description: Item description text.
        fee_amount: Schedule fee in AUD, non-negative, rounded to cents.
        confidence: Service confidence in [0, 1].
        category: MBS category number as a string (e.g. ``"1"``), or ``None``.
        mbs_category: MBS category slug (e.g. ``"professional_attendances"``)
            used for upgrade grouping, or ``None``.
        reasoning: Optional free-text reasoning from the service.
        evidence_spans: Supporting spans from the consultation note.
        conflict_rules: Ordered conflict rules owned by this code.
        compatible_with: Codes known not to conflict (informational only).
        time_requirement: Minimum consultation minutes, or ``None``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    code: str
    description: str = ""
    fee_amount: float = Field(
        validation_alias=AliasChoices("fee_amount", "schedule_fee", "feeAmount", "scheduleFee"),
    )
    confidence: float
    category: Optional[str] = None
    mbs_category: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("mbs_category", "mbsCategory"),
    )
    reasoning: Optional[str] = None
    evidence_spans: list[EvidenceSpan] = Field(
        default_factory=list,
        validation_alias=AliasChoices("evidence_spans", "evidenceSpans"),
    )
    conflict_rules: list[ConflictRule] = Field(
        default_factory=list,
        validation_alias=AliasChoices("conflict_rules", "conflicts", "conflictRules"),
    )
    compatible_with: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("compatible_with", "compatibleWith"),
    )
    time_requirement: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("time_requirement", "timeRequirement"),
    )

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("code must be non-empty.")
        return v

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        return str(v)

    @field_validator("fee_amount")
    @classmethod
    def validate_fee(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"fee_amount must be non-negative, got {v}.")
        return round(v, 2)

    @field_validator("confidence")
    @classmethod
    def validate_confidence(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"confidence must be in [0.0, 1.0], got {v}.")
        return v

    @field_validator("compatible_with", mode="before")
    @classmethod
    def coerce_compatible(cls, v: Any) -> list[str]:
        return [str(code) for code in v]


def index_by_code(recommendations: list[Recommendation]) -> dict[str, Recommendation]:
    """Map ``code -> Recommendation``; the first occurrence of a code wins."""
    index: dict[str, Recommendation] = {}
    for rec in recommendations:
        index.setdefault(rec.code, rec)
    return index
