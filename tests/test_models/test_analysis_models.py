"""Tests for mbs_selector.models.analysis."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mbs_selector.models.analysis import (
    MAX_NOTE_LENGTH,
    AnalysisOptions,
    AnalysisRequest,
    ValidationErrorResponse,
)
from mbs_selector.taxonomy.selection_taxonomy import ConsultationContext


def test_request_defaults() -> None:
    request = AnalysisRequest(consultation_note="Routine review of hypertension.")
    assert request.context == ConsultationContext.GENERAL_PRACTICE
    assert request.options is None


@pytest.mark.parametrize("note", ["", "too short", "         x         "])
def test_short_notes_rejected(note: str) -> None:
    with pytest.raises(ValidationError):
        AnalysisRequest(consultation_note=note)


def test_long_note_rejected() -> None:
    with pytest.raises(ValidationError):
        AnalysisRequest(consultation_note="a" * (MAX_NOTE_LENGTH + 1))


def test_unknown_context_rejected() -> None:
    with pytest.raises(ValidationError):
        AnalysisRequest(consultation_note="Routine review of hypertension.", context="dental")


@pytest.mark.parametrize(
    "overrides",
    [{"max_codes": 0}, {"max_codes": 11}, {"min_confidence": 1.5}],
)
def test_options_bounds(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        AnalysisOptions(**overrides)


def test_options_defaults() -> None:
    options = AnalysisOptions()
    assert (options.max_codes, options.min_confidence, options.include_reasoning) == (5, 0.6, True)


def test_validation_error_messages() -> None:
    parsed = ValidationErrorResponse.model_validate(
        {"detail": [{"loc": ["body", "options", "max_codes"], "msg": "too large"}, {"msg": "bare"}]}
    )
    assert parsed.messages() == ["body.options.max_codes: too large", "bare"]
