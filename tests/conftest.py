"""
Shared pytest fixtures for the MBS code selector test suite.

Provides:
  - ``recommendations``: The five-code reference set (36, 44, 177, 721, 723)
    with one blocking pair (36/44) and one warning pair (721/723).
  - ``engine``: A fresh ``SelectionEngine`` over that set, no code limit.
  - ``kv``: An empty ``InMemoryKeyValueStore``.
  - ``fixed_clock``: A controllable clock for preset/history timestamps.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from mbs_selector.db.kv_store import InMemoryKeyValueStore
from mbs_selector.models.recommendation import ConflictRule, Recommendation
from mbs_selector.selection.engine import SelectionEngine
from mbs_selector.taxonomy.selection_taxonomy import ConflictReason, ConflictSeverity

LEVEL_C_MESSAGE = "Cannot bill with Level D consultation"
LEVEL_D_MESSAGE = "Cannot bill with Level C consultation"
FREQUENCY_MESSAGE = "Consider frequency limits for mental health"


def _blocking(message: str) -> ConflictRule:
    return ConflictRule(
        conflicting_codes=["36", "44"],
        reason=ConflictReason.TIME_OVERLAP,
        severity=ConflictSeverity.BLOCKING,
        message=message,
    )


def _frequency_warning() -> ConflictRule:
    return ConflictRule(
        conflicting_codes=["721", "723"],
        reason=ConflictReason.FREQUENCY_LIMIT,
        severity=ConflictSeverity.WARNING,
        message=FREQUENCY_MESSAGE,
    )


def build_recommendations() -> list[Recommendation]:
    """The reference recommendation set, in ranked order."""
    return [
        Recommendation(
            code="36",
            description="Level C consultation",
            fee_amount=75.05,
            confidence=0.85,
            category="1",
            mbs_category="professional_attendances",
            conflict_rules=[_blocking(LEVEL_C_MESSAGE)],
            compatible_with=["177", "721"],
        ),
        Recommendation(
            code="44",
            description="Level D consultation",
            fee_amount=105.55,
            confidence=0.75,
            category="1",
            mbs_category="professional_attendances",
            conflict_rules=[_blocking(LEVEL_D_MESSAGE)],
            compatible_with=["177"],
        ),
        Recommendation(
            code="177",
            description="Chronic disease management plan review",
            fee_amount=45.05,
            confidence=0.65,
            category="1",
            mbs_category="professional_attendances",
            compatible_with=["36", "44", "721"],
        ),
        Recommendation(
            code="721",
            description="GP mental health treatment plan",
            fee_amount=85.40,
            confidence=0.70,
            category="14",
            mbs_category="mental_health",
            conflict_rules=[_frequency_warning()],
            compatible_with=["36", "177"],
        ),
        Recommendation(
            code="723",
            description="GP mental health treatment plan review",
            fee_amount=45.20,
            confidence=0.60,
            category="14",
            mbs_category="mental_health",
            conflict_rules=[_frequency_warning()],
        ),
    ]


# ── Domain fixtures ───────────────────────────────────────────────────────────

@pytest.fixture
def recommendations() -> list[Recommendation]:
    return build_recommendations()


@pytest.fixture
def engine(recommendations: list[Recommendation]) -> SelectionEngine:
    """A fresh engine over the reference set with no code limit."""
    return SelectionEngine(recommendations)


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


class FixedClock:
    """Callable clock that starts at a fixed instant and advances on demand."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def fixed_clock() -> FixedClock:
    return FixedClock(datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc))
