"""Tests for knowledge gap status transitions."""

from datetime import datetime, timezone

import pytest

from app.core.errors import InvalidTransitionError
from app.core.gap_status import apply_status_transition, can_transition, plan_status_transition
from app.core.schemas_gaps import GapStatus, KnowledgeGap, Severity

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _gap(status: GapStatus, resolved_at: datetime | None = None) -> KnowledgeGap:
    return KnowledgeGap(
        id="gap-1",
        run_id="run-1",
        title="Short pick handling",
        description="Operators do not know how to record a short pick.",
        signal_count=3,
        severity=Severity.MEDIUM,
        status=status,
        resolved_at=resolved_at,
    )


@pytest.mark.parametrize(
    "current,requested",
    [
        (GapStatus.OPEN, GapStatus.ACKNOWLEDGED),
        (GapStatus.OPEN, GapStatus.RESOLVED),
        (GapStatus.OPEN, GapStatus.DISMISSED),
        (GapStatus.DISMISSED, GapStatus.OPEN),
        (GapStatus.RESOLVED, GapStatus.OPEN),
    ],
)
def test_allowed_transitions(current, requested):
    assert can_transition(current, requested)


@pytest.mark.parametrize(
    "current,requested",
    [
        (GapStatus.ACKNOWLEDGED, GapStatus.OPEN),
        (GapStatus.ACKNOWLEDGED, GapStatus.RESOLVED),
        (GapStatus.DISMISSED, GapStatus.RESOLVED),
        (GapStatus.RESOLVED, GapStatus.DISMISSED),
        (GapStatus.OPEN, GapStatus.OPEN),
    ],
)
def test_rejected_transitions(current, requested):
    gap = _gap(current)

    with pytest.raises(InvalidTransitionError) as exc_info:
        plan_status_transition(gap, requested, NOW)

    assert exc_info.value.current == current.value
    assert exc_info.value.requested == requested.value
    assert gap.status == current


def test_resolving_sets_resolved_at():
    fields = plan_status_transition(_gap(GapStatus.OPEN), GapStatus.RESOLVED, NOW)
    assert fields == {"status": "resolved", "resolved_at": NOW}


def test_reopening_clears_resolved_at():
    fields = plan_status_transition(_gap(GapStatus.RESOLVED, resolved_at=NOW), GapStatus.OPEN, NOW)
    assert fields == {"status": "open", "resolved_at": None}


def test_dismissing_leaves_resolved_at_alone():
    fields = plan_status_transition(_gap(GapStatus.OPEN), GapStatus.DISMISSED, NOW)
    assert fields == {"status": "dismissed"}


def test_apply_returns_copy():
    gap = _gap(GapStatus.OPEN)

    updated = apply_status_transition(gap, GapStatus.RESOLVED, NOW)

    assert updated.status == GapStatus.RESOLVED
    assert updated.resolved_at == NOW
    assert gap.status == GapStatus.OPEN
    assert gap.resolved_at is None
