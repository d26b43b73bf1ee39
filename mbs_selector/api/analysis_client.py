"""
MBS analysis service client.

API contract (frozen; note the US spelling in the path):

  POST /api/v1/analyze
    → Body:    {"consultation_note": "...", "context": "general_practice",
                "options": {"max_codes": 5, "min_confidence": 0.6, "include_reasoning": true}}
    → 200:     {"status": "success", "recommendations": [...], "metadata": {...}}
    → 200/5xx: {"status": "error", "message": "...", "detail": "..."}
    → 422:     {"detail": [{"loc": [...], "msg": "...", "type": "..."}]}

  GET /health   → component health (``HealthResponse``)
  GET /ready    → {"ready": true, ...}
  GET /live     → {"alive": true, ...}

The recommendation pipeline (embeddings + LLM reasoning) is slow, so the
client refuses timeouts under 35 seconds.

Failures are mapped onto the ``AnalysisError`` hierarchy:

  ======================  =================================  =========
  Condition               Exception                          retryable
  ======================  =================================  =========
  HTTP 422                ``AnalysisValidationError``        no
  HTTP 5xx / error body   ``AnalysisServerError``            yes
  timeout                 ``AnalysisTimeoutError``           yes
  no response             ``AnalysisNetworkError``           yes
  ======================  =================================  =========

Retries are never automatic; ``AnalysisSession.retry()`` offers exactly one
explicit retry.

Usage::

    client = AnalysisClient.from_config(config.api)
    response = client.analyze(AnalysisRequest(consultation_note=note))
    engine.replace_recommendations(response.recommendations)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar, Optional

import httpx
from pydantic import ValidationError

from mbs_selector.config import MIN_ANALYSIS_TIMEOUT_SECONDS
from mbs_selector.exceptions import (
    AnalysisError,
    AnalysisNetworkError,
    AnalysisServerError,
    AnalysisTimeoutError,
    AnalysisValidationError,
)
from mbs_selector.models.analysis import (
    AnalysisErrorResponse,
    AnalysisRequest,
    AnalysisSuccessResponse,
    HealthResponse,
    ValidationErrorResponse,
)

if TYPE_CHECKING:
    from mbs_selector.config import ApiConfig

logger = logging.getLogger(__name__)

MBS_ONLINE_URL_TEMPLATE = (
    "https://www9.health.gov.au/mbs/fullDisplay.cfm?type=item&q={code}&qt=item&criteria={code}"
)


def mbs_online_url(code: str) -> str:
    """Link to the item's page on MBS Online."""
    return MBS_ONLINE_URL_TEMPLATE.format(code=code)


class AnalysisClient:
    """Synchronous client for the recommendation service.

    Args:
        base_url: Service root, e.g. ``"http://localhost:8000"``.
        timeout_seconds: Per-request timeout; must be at least 35 s.
        transport: Optional ``httpx`` transport (``httpx.MockTransport`` in tests).

    Raises:
        ValueError: If ``timeout_seconds`` is below the minimum.
    """

    ANALYZE_PATH: ClassVar[str] = "/api/v1/analyze"
    HEALTH_PATH: ClassVar[str] = "/health"
    READY_PATH: ClassVar[str] = "/ready"
    LIVE_PATH: ClassVar[str] = "/live"
    PROBE_TIMEOUT_SECONDS: ClassVar[float] = 5.0

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = MIN_ANALYSIS_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if timeout_seconds < MIN_ANALYSIS_TIMEOUT_SECONDS:
            raise ValueError(
                f"timeout_seconds must be >= {MIN_ANALYSIS_TIMEOUT_SECONDS}, got {timeout_seconds}."
            )
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._http = httpx.Client(
            base_url=self.base_url,
            timeout=timeout_seconds,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def from_config(
        cls,
        config: "ApiConfig",
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "AnalysisClient":
        return cls(config.base_url, config.timeout_seconds, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "AnalysisClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ── Analysis ──────────────────────────────────────────────────────────────

    def analyze(self, request: AnalysisRequest) -> AnalysisSuccessResponse:
        """Submit a consultation note and return ranked recommendations.

        Args:
            request: Validated request body.

        Returns:
            Parsed success response.

        Raises:
            AnalysisValidationError: HTTP 422.
            AnalysisServerError: HTTP 5xx, an error body, or an unparseable body.
            AnalysisTimeoutError: No response within ``timeout_seconds``.
            AnalysisNetworkError: Connection failure.
        """
        logger.info(
            "Submitting analysis (%d chars, context=%s).",
            len(request.consultation_note), request.context.value,
        )
        resp = self._send("POST", self.ANALYZE_PATH, json=request.to_payload())
        body = self._json_body(resp)

        if resp.status_code == 422:
            raise self._validation_error(body)
        if resp.status_code >= 500:
            raise self._server_error(resp.status_code, body)
        if resp.is_error:
            raise AnalysisError(
                f"Unexpected HTTP {resp.status_code} from analysis service.",
                status_code=resp.status_code,
            )

        if isinstance(body, dict) and body.get("status") == "error":
            raise self._server_error(resp.status_code, body)

        try:
            parsed = AnalysisSuccessResponse.model_validate(body)
        except ValidationError as exc:
            raise AnalysisServerError(
                f"Malformed analysis response: {exc.error_count()} validation error(s).",
                status_code=resp.status_code,
                detail=str(exc),
            ) from exc

        logger.info(
            "Analysis returned %d recommendations in %.0f ms.",
            len(parsed.recommendations), parsed.metadata.processing_time_ms,
        )
        return parsed

    # ── Health probes ─────────────────────────────────────────────────────────

    def health(self) -> HealthResponse:
        """Fetch component health.

        Raises:
            AnalysisError: On transport failure or an unparseable body.
        """
        resp = self._send("GET", self.HEALTH_PATH, timeout=self.PROBE_TIMEOUT_SECONDS)
        body = self._json_body(resp)
        try:
            return HealthResponse.model_validate(body)
        except ValidationError as exc:
            raise AnalysisServerError(
                "Malformed health response.", status_code=resp.status_code, detail=str(exc)
            ) from exc

    def ready(self) -> dict[str, Any]:
        """Readiness probe; ``{"ready": False, "error": ...}`` on any failure."""
        return self._probe(self.READY_PATH, "ready")

    def live(self) -> dict[str, Any]:
        """Liveness probe; ``{"alive": False, "error": ...}`` on any failure."""
        return self._probe(self.LIVE_PATH, "alive")

    def _probe(self, path: str, flag: str) -> dict[str, Any]:
        try:
            resp = self._send("GET", path, timeout=self.PROBE_TIMEOUT_SECONDS)
            resp.raise_for_status()
            body = resp.json()
        except (AnalysisError, httpx.HTTPStatusError, ValueError) as exc:
            logger.warning("Probe %s failed: %s", path, exc)
            return {flag: False, "error": str(exc)}
        if not isinstance(body, dict):
            return {flag: False, "error": "Probe returned a non-object body."}
        return body

    # ── Internals ─────────────────────────────────────────────────────────────

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise AnalysisTimeoutError(
                f"Analysis service did not respond within {self.timeout_seconds:.0f}s."
            ) from exc
        except httpx.TransportError as exc:
            raise AnalysisNetworkError(
                f"Could not reach analysis service at {self.base_url}: {exc}"
            ) from exc

    @staticmethod
    def _json_body(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            return None

    @staticmethod
    def _validation_error(body: Any) -> AnalysisValidationError:
        try:
            parsed = ValidationErrorResponse.model_validate(body)
        except ValidationError:
            parsed = ValidationErrorResponse()
        messages = parsed.messages()
        summary = "; ".join(messages) if messages else "Request rejected by analysis service."
        raw_detail = body.get("detail") if isinstance(body, dict) else None
        return AnalysisValidationError(
            f"Invalid analysis request: {summary}",
            detail=raw_detail if isinstance(raw_detail, list) else [],
            messages=messages,
        )

    @staticmethod
    def _server_error(status_code: int, body: Any) -> AnalysisServerError:
        message = f"Analysis service error (HTTP {status_code})."
        detail = None
        if isinstance(body, dict):
            try:
                error = AnalysisErrorResponse.model_validate(body)
            except ValidationError:
                error = None
            if error is not None and body.get("status") == "error":
                message = error.message
                detail = error.detail
            elif "detail" in body:
                detail = body["detail"]
        return AnalysisServerError(message, status_code=status_code, detail=detail)
