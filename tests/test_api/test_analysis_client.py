"""Tests for mbs_selector.api.analysis_client using httpx.MockTransport."""

from __future__ import annotations

import json
from typing import Callable

import httpx
import pytest

from mbs_selector.api.analysis_client import AnalysisClient, mbs_online_url
from mbs_selector.exceptions import (
    AnalysisError,
    AnalysisNetworkError,
    AnalysisServerError,
    AnalysisTimeoutError,
    AnalysisValidationError,
)
from mbs_selector.models.analysis import AnalysisOptions, AnalysisRequest
from mbs_selector.taxonomy.selection_taxonomy import ConflictSeverity

NOTE = "45 minute consultation for chronic back pain and anxiety."

SUCCESS_BODY = {
    "status": "success",
    "recommendations": [
        {
            "code": "36",
            "description": "Level C consultation",
            "schedule_fee": 75.05,
            "confidence": 0.85,
            "category": 1,
            "conflicts": [
                {
                    "conflicting_codes": ["36", "44"],
                    "reason": "time_overlap",
                    "severity": "blocking",
                    "message": "Cannot bill with Level D consultation",
                }
            ],
            "compatible_with": [177, 721],
            "unknown_field": "ignored",
        }
    ],
    "metadata": {
        "processing_time_ms": 1834.5,
        "model_used": "pipeline-v2",
        "pipeline_stages": {"tfidf_candidates": 50, "embedding_candidates": 20, "llm_analyzed": 5},
    },
}


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> AnalysisClient:
    return AnalysisClient("http://mbs.test/", transport=httpx.MockTransport(handler))


# ── Construction ──────────────────────────────────────────────────────────────


def test_timeout_below_minimum_rejected() -> None:
    with pytest.raises(ValueError):
        AnalysisClient("http://mbs.test", timeout_seconds=10.0)


def test_base_url_trailing_slash_stripped() -> None:
    client = _client(lambda request: httpx.Response(200, json={}))
    assert client.base_url == "http://mbs.test"
    client.close()


def test_mbs_online_url() -> None:
    url = mbs_online_url("36")
    assert url.startswith("https://")
    assert "q=36" in url


# ── analyze ───────────────────────────────────────────────────────────────────


def test_analyze_success_parses_recommendations() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json=SUCCESS_BODY)

    with _client(handler) as client:
        response = client.analyze(AnalysisRequest(consultation_note=NOTE))

    assert captured["path"] == "/api/v1/analyze"
    assert captured["body"] == {"consultation_note": NOTE, "context": "general_practice"}

    [rec] = response.recommendations
    assert rec.fee_amount == pytest.approx(75.05)
    assert rec.category == "1"
    assert rec.compatible_with == ["177", "721"]
    assert rec.conflict_rules[0].severity == ConflictSeverity.BLOCKING
    assert response.metadata.processing_time_ms == pytest.approx(1834.5)
    assert response.metadata.pipeline_stages.llm_analyzed == 5


def test_analyze_sends_options() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured.update(json.loads(request.content))
        return httpx.Response(200, json={"status": "success", "recommendations": []})

    request = AnalysisRequest(
        consultation_note=NOTE,
        context="mental_health",
        options=AnalysisOptions(max_codes=3, min_confidence=0.7),
    )
    with _client(handler) as client:
        response = client.analyze(request)

    assert captured["context"] == "mental_health"
    assert captured["options"] == {"max_codes": 3, "min_confidence": 0.7, "include_reasoning": True}
    assert response.recommendations == []


def test_analyze_422_maps_to_validation_error() -> None:
    body = {"detail": [{"loc": ["body", "consultation_note"], "msg": "too short", "type": "value_error"}]}

    with _client(lambda request: httpx.Response(422, json=body)) as client:
        with pytest.raises(AnalysisValidationError) as exc_info:
            client.analyze(AnalysisRequest(consultation_note=NOTE))

    exc = exc_info.value
    assert exc.status_code == 422
    assert exc.retryable is False
    assert exc.messages == ["body.consultation_note: too short"]
    assert exc.detail == body["detail"]


def test_analyze_500_maps_to_server_error() -> None:
    body = {"status": "error", "message": "LLM backend unavailable", "detail": "upstream 503"}

    with _client(lambda request: httpx.Response(500, json=body)) as client:
        with pytest.raises(AnalysisServerError) as exc_info:
            client.analyze(AnalysisRequest(consultation_note=NOTE))

    assert exc_info.value.retryable is True
    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "LLM backend unavailable"
    assert exc_info.value.detail == "upstream 503"


def test_analyze_error_body_with_200() -> None:
    body = {"status": "error", "message": "Categorisation failed"}
    with _client(lambda request: httpx.Response(200, json=body)) as client:
        with pytest.raises(AnalysisServerError, match="Categorisation failed"):
            client.analyze(AnalysisRequest(consultation_note=NOTE))


def test_analyze_malformed_body() -> None:
    body = {"status": "success", "recommendations": [{"code": "36", "confidence": 2.0}]}
    with _client(lambda request: httpx.Response(200, json=body)) as client:
        with pytest.raises(AnalysisServerError, match="Malformed"):
            client.analyze(AnalysisRequest(consultation_note=NOTE))


def test_analyze_unexpected_status() -> None:
    with _client(lambda request: httpx.Response(404, text="not here")) as client:
        with pytest.raises(AnalysisError) as exc_info:
            client.analyze(AnalysisRequest(consultation_note=NOTE))
    assert type(exc_info.value) is AnalysisError
    assert exc_info.value.retryable is False


def test_analyze_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with _client(handler) as client:
        with pytest.raises(AnalysisTimeoutError) as exc_info:
            client.analyze(AnalysisRequest(consultation_note=NOTE))
    assert exc_info.value.retryable is True
    assert exc_info.value.status_code is None


def test_analyze_network_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with _client(handler) as client:
        with pytest.raises(AnalysisNetworkError):
            client.analyze(AnalysisRequest(consultation_note=NOTE))


# ── Probes ────────────────────────────────────────────────────────────────────


def test_health_parses_components() -> None:
    body = {
        "status": "healthy",
        "version": "1.2.0",
        "checks": {
            "database": {"healthy": True, "message": "ok"},
            "llm": {"healthy": True, "message": "ok", "details": {"model": "x"}},
        },
        "uptime_seconds": 120.5,
    }
    with _client(lambda request: httpx.Response(200, json=body)) as client:
        report = client.health()

    assert report.is_healthy
    assert report.version == "1.2.0"
    assert report.checks["llm"].details == {"model": "x"}


def test_ready_and_live_probes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/ready":
            return httpx.Response(503, json={"ready": False})
        return httpx.Response(200, json={"alive": True})

    with _client(handler) as client:
        ready = client.ready()
        live = client.live()

    assert ready["ready"] is False
    assert "error" in ready
    assert live == {"alive": True}


def test_probe_swallows_network_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    with _client(handler) as client:
        assert client.live()["alive"] is False
