"""
Typed exceptions for programmer errors and upstream API failures.

Selection rejections and unknown codes are *not* exceptions: they are
reported through ``ConflictValidation`` return values.  The classes here
cover misuse of the library (unknown preset id, re-entrant mutation,
overlapping analysis submits) and failures of the remote analysis service.

Analysis failures form a small hierarchy so callers can branch on the kind
of failure and on whether a retry is worthwhile::

    try:
        response = client.analyze(request)
    except AnalysisValidationError as exc:   # 422: fix the input
        show(exc.messages)
    except AnalysisError as exc:            # 5xx / timeout / network
        if exc.retryable:
            offer_retry()
"""

from __future__ import annotations

from typing import Any, Optional


# ── Selection / store misuse ──────────────────────────────────────────────────


class SelectionReentryError(RuntimeError):
    """Raised when a selection callback calls back into a mutating operation.

    Attributes:
        operation: Name of the mutating operation that was re-entered.
    """

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            f"'{operation}' called from inside a selection callback; "
            "mutations may not re-enter the engine while it is notifying listeners."
        )


class PresetNotFoundError(KeyError):
    """Raised when a preset id does not exist in the store."""

    def __init__(self, preset_id: str) -> None:
        self.preset_id = preset_id
        super().__init__(preset_id)

    def __str__(self) -> str:
        return f"Preset not found: {self.preset_id}"


class AnalysisInFlightError(RuntimeError):
    """Raised when a second analysis is submitted while one is pending.

    Attributes:
        pending_sequence: Sequence number of the outstanding request.
    """

    def __init__(self, pending_sequence: int) -> None:
        self.pending_sequence = pending_sequence
        super().__init__(
            f"Analysis request #{pending_sequence} is still in flight; "
            "cancel it or wait for it to finish before submitting another."
        )


class RetryNotAvailableError(RuntimeError):
    """Raised when ``retry()`` is called with nothing retryable to retry."""


# ── Analysis service failures ─────────────────────────────────────────────────


class AnalysisError(RuntimeError):
    """Base class for failures talking to the analysis service.

    Attributes:
        message: Human-readable summary.
        status_code: HTTP status, or ``None`` when no response arrived.
        retryable: ``True`` for transient failures (5xx, timeout, network).
    """

    retryable: bool = False

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class AnalysisValidationError(AnalysisError):
    """HTTP 422: the request body was rejected; fix the input.

    Attributes:
        detail: Raw ``detail`` list from the 422 body.
        messages: ``"<loc>: <msg>"`` strings derived from ``detail``.
    """

    retryable = False

    def __init__(
        self,
        message: str,
        detail: Optional[list[Any]] = None,
        messages: Optional[list[str]] = None,
    ) -> None:
        self.detail = detail or []
        self.messages = messages or []
        super().__init__(message, status_code=422)


class AnalysisServerError(AnalysisError):
    """5xx, or a ``{"status": "error"}`` body, or an unparseable body."""

    retryable = True

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        detail: Optional[Any] = None,
    ) -> None:
        self.detail = detail
        super().__init__(message, status_code=status_code)


class AnalysisTimeoutError(AnalysisError):
    """No response within the configured timeout."""

    retryable = True


class AnalysisNetworkError(AnalysisError):
    """The request never got a response (DNS, refused, reset)."""

    retryable = True
