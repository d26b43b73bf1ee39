"""
Analysis wire contract — request and response bodies for ``POST /api/v1/analyze``.

The request side is validated client-side so obviously bad input (a note
that is too short, ``max_codes`` out of range) never leaves the process.
The response side parses the three body variants the service can return:

  - ``AnalysisSuccessResponse`` — ``{"status": "success", "recommendations": [...], "metadata": {...}}``
  - ``AnalysisErrorResponse``   — ``{"status": "error", "message": ..., "detail": ...}``
  - ``ValidationErrorResponse`` — ``{"detail": [{"loc": [...], "msg": ..., "type": ...}]}`` (HTTP 422)

Unknown extra fields in responses are ignored so that backend additions do
not break older clients.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mbs_selector.models.recommendation import Recommendation
from mbs_selector.taxonomy.selection_taxonomy import ConsultationContext

MIN_NOTE_LENGTH = 10
MAX_NOTE_LENGTH = 10_000


# ── Request ───────────────────────────────────────────────────────────────────


class AnalysisOptions(BaseModel):
    """Optional tuning knobs for one analysis request."""

    model_config = ConfigDict(frozen=True)

    max_codes: int = Field(default=5, ge=1, le=10)
    min_confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    include_reasoning: bool = True


class AnalysisRequest(BaseModel):
    """Body of ``POST /api/v1/analyze``."""

    model_config = ConfigDict(frozen=True)

    consultation_note: str
    context: ConsultationContext = ConsultationContext.GENERAL_PRACTICE
    options: Optional[AnalysisOptions] = None

    @field_validator("consultation_note")
    @classmethod
    def validate_note_length(cls, v: str) -> str:
        length = len(v.strip())
        if length < MIN_NOTE_LENGTH:
            raise ValueError(
                f"consultation_note must be at least {MIN_NOTE_LENGTH} characters, got {length}."
            )
        if len(v) > MAX_NOTE_LENGTH:
            raise ValueError(
                f"consultation_note must be at most {MAX_NOTE_LENGTH} characters, got {len(v)}."
            )
        return v

    def to_payload(self) -> dict[str, Any]:
        """JSON body for the wire; ``options`` omitted when not set."""
        return self.model_dump(mode="json", exclude_none=True)


# ── Responses ─────────────────────────────────────────────────────────────────


class PipelineMetrics(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    tfidf_candidates: Optional[int] = None
    embedding_candidates: Optional[int] = None
    llm_analyzed: Optional[int] = None


class CategorizationInfo(BaseModel):
    """Output of the service's category pre-filter."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    primary_category: Optional[int] = None
    category_name: Optional[str] = None
    group_focus: Optional[str] = None
    context: Optional[str] = None
    complexity: Optional[str] = None
    confidence: Optional[float] = None
    reduction_percentage: Optional[float] = None


class ProcessingMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    processing_time_ms: float = 0.0
    pipeline_stages: Optional[PipelineMetrics] = None
    model_used: Optional[str] = None
    timestamp: Optional[str] = None
    categorization: Optional[CategorizationInfo] = None


class AnalysisSuccessResponse(BaseModel):
    """Successful analysis: ranked recommendations plus processing metadata."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    status: Literal["success"] = "success"
    recommendations: list[Recommendation] = Field(default_factory=list)
    metadata: ProcessingMetadata = Field(default_factory=ProcessingMetadata)


class AnalysisErrorResponse(BaseModel):
    """Server-side processing failure reported in the body."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    status: Literal["error"] = "error"
    message: str = "Analysis failed"
    detail: Optional[Any] = None


class ValidationErrorItem(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    loc: list[Any] = Field(default_factory=list)
    msg: str = ""
    type: str = ""


class ValidationErrorResponse(BaseModel):
    """HTTP 422 body."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    detail: list[ValidationErrorItem] = Field(default_factory=list)

    def messages(self) -> list[str]:
        """``"<loc>: <msg>"`` strings, ``loc`` joined with dots."""
        return [
            ".".join(str(part) for part in item.loc) + f": {item.msg}" if item.loc else item.msg
            for item in self.detail
        ]


# ── Health ────────────────────────────────────────────────────────────────────


class ComponentHealth(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    healthy: bool = False
    message: str = ""
    details: Optional[dict[str, Any]] = None


class HealthResponse(BaseModel):
    """Body of ``GET /health``."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    status: str = "unhealthy"
    version: Optional[str] = None
    checks: dict[str, ComponentHealth] = Field(default_factory=dict)
    uptime_seconds: Optional[float] = None
    cache_stats: Optional[dict[str, Any]] = None

    @property
    def is_healthy(self) -> bool:
        return self.status == "healthy"
