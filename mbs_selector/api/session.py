"""
Analysis session — request lifecycle around ``AnalysisClient``.

The session enforces the request rules the selection UI relies on:

  - At most one analysis is in flight.  ``begin()`` while another request
    is pending raises ``AnalysisInFlightError``.
  - Every request gets a monotonically increasing sequence number.  A
    result delivered for anything but the latest sequence is stale and is
    discarded (``complete()`` returns ``False``).
  - ``cancel()`` abandons the pending request (its eventual result is
    discarded) and optionally clears the current results.
  - After a retryable failure, exactly one explicit ``retry()`` is offered.
    A second consecutive failure does not re-arm it; a fresh ``submit()``
    does.

``begin`` / ``complete`` / ``fail`` let a caller drive the lifecycle around
its own transport (a worker thread, an event loop).  ``submit`` and
``retry`` are the synchronous convenience path that call the client
directly.  On success the new recommendations are handed to
``on_recommendations`` (typically ``engine.replace_recommendations``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from mbs_selector.api.analysis_client import AnalysisClient
from mbs_selector.exceptions import AnalysisError, AnalysisInFlightError, RetryNotAvailableError
from mbs_selector.models.analysis import AnalysisRequest, AnalysisSuccessResponse
from mbs_selector.models.recommendation import Recommendation

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    sequence: int
    request: AnalysisRequest
    is_retry: bool = False


class AnalysisSession:
    """Single-flight analysis lifecycle with stale-response discard.

    Args:
        client: Client used by ``submit`` / ``retry``.
        on_recommendations: Called with the recommendation list of each
            accepted (non-stale) success.
    """

    def __init__(
        self,
        client: Optional[AnalysisClient] = None,
        on_recommendations: Optional[Callable[[list[Recommendation]], None]] = None,
    ) -> None:
        self.client = client
        self.on_recommendations = on_recommendations
        self._sequence = 0
        self._pending: Optional[PendingRequest] = None
        self._last_request: Optional[AnalysisRequest] = None
        self._retry_available = False
        self.response: Optional[AnalysisSuccessResponse] = None
        self.error: Optional[AnalysisError] = None

    # ── State ─────────────────────────────────────────────────────────────────

    @property
    def is_pending(self) -> bool:
        return self._pending is not None

    @property
    def latest_sequence(self) -> int:
        return self._sequence

    @property
    def can_retry(self) -> bool:
        return self._retry_available and self._pending is None and self._last_request is not None

    @property
    def recommendations(self) -> list[Recommendation]:
        return list(self.response.recommendations) if self.response is not None else []

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def begin(self, request: AnalysisRequest, is_retry: bool = False) -> int:
        """Register a new in-flight request and return its sequence number.

        Raises:
            AnalysisInFlightError: If a request is already pending.
        """
        if self._pending is not None:
            raise AnalysisInFlightError(self._pending.sequence)
        self._sequence += 1
        self._pending = PendingRequest(self._sequence, request, is_retry)
        self._last_request = request
        self.error = None
        if not is_retry:
            self._retry_available = False
        logger.debug("Analysis #%d started (retry=%s).", self._sequence, is_retry)
        return self._sequence

    def complete(self, sequence: int, response: AnalysisSuccessResponse) -> bool:
        """Deliver a success for ``sequence``; ``False`` if it was stale."""
        if not self._accept(sequence):
            return False
        self._pending = None
        self._retry_available = False
        self.response = response
        if self.on_recommendations is not None:
            self.on_recommendations(list(response.recommendations))
        return True

    def fail(self, sequence: int, error: AnalysisError) -> bool:
        """Deliver a failure for ``sequence``; ``False`` if it was stale.

        A retryable failure of a first attempt arms ``retry()``; a failed
        retry does not.
        """
        if not self._accept(sequence):
            return False
        pending = self._pending
        self._pending = None
        self.error = error
        self._retry_available = error.retryable and pending is not None and not pending.is_retry
        logger.warning("Analysis #%d failed: %s", sequence, error.message)
        return True

    def cancel(self, clear_results: bool = True) -> None:
        """Abandon the pending request; its result will be discarded."""
        if self._pending is not None:
            logger.debug("Analysis #%d cancelled.", self._pending.sequence)
        self._pending = None
        self._retry_available = False
        if clear_results:
            self.response = None
            self.error = None
            self._last_request = None

    def _accept(self, sequence: int) -> bool:
        if self._pending is None or sequence != self._pending.sequence:
            logger.debug("Discarding stale analysis result #%d.", sequence)
            return False
        return True

    # ── Synchronous convenience ───────────────────────────────────────────────

    def submit(self, request: AnalysisRequest) -> AnalysisSuccessResponse:
        """Run ``request`` through the client.

        Raises:
            AnalysisInFlightError: If a request is already pending.
            AnalysisError: The client's failure, after recording it.
        """
        return self._run(request, is_retry=False)

    def retry(self) -> AnalysisSuccessResponse:
        """Re-send the last request once after a retryable failure.

        Raises:
            RetryNotAvailableError: If no retry is currently offered.
            AnalysisError: If the retry fails too.
        """
        if not self.can_retry:
            raise RetryNotAvailableError("No failed analysis is awaiting a retry.")
        assert self._last_request is not None
        return self._run(self._last_request, is_retry=True)

    def _run(self, request: AnalysisRequest, is_retry: bool) -> AnalysisSuccessResponse:
        if self.client is None:
            raise RuntimeError("AnalysisSession has no client; use begin/complete/fail instead.")
        sequence = self.begin(request, is_retry=is_retry)
        try:
            response = self.client.analyze(request)
        except AnalysisError as exc:
            self.fail(sequence, exc)
            raise
        self.complete(sequence, response)
        return response
