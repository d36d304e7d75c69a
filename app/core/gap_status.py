"""Knowledge gap status transitions.

    open      → acknowledged | resolved | dismissed
    dismissed → open
    resolved  → open

resolved_at is set on entering resolved and cleared on leaving it.
"""

from datetime import datetime, timezone
from typing import Any

from app.core.errors import InvalidTransitionError
from app.core.schemas_gaps import GapStatus, KnowledgeGap

ALLOWED_TRANSITIONS: dict[GapStatus, frozenset[GapStatus]] = {
    GapStatus.OPEN: frozenset({GapStatus.ACKNOWLEDGED, GapStatus.RESOLVED, GapStatus.DISMISSED}),
    GapStatus.DISMISSED: frozenset({GapStatus.OPEN}),
    GapStatus.RESOLVED: frozenset({GapStatus.OPEN}),
    GapStatus.ACKNOWLEDGED: frozenset(),
}


def can_transition(current: GapStatus, requested: GapStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


def plan_status_transition(
    gap: KnowledgeGap, requested: GapStatus, now: datetime | None = None
) -> dict[str, Any]:
    """
    Compute the field update for a status change without touching the gap.

    Raises:
        InvalidTransitionError: If the transition is not allowed
    """
    if not can_transition(gap.status, requested):
        raise InvalidTransitionError(gap.status.value, requested.value)

    fields: dict[str, Any] = {"status": requested.value}
    if requested == GapStatus.RESOLVED:
        fields["resolved_at"] = now or datetime.now(timezone.utc)
    elif gap.status == GapStatus.RESOLVED:
        fields["resolved_at"] = None
    return fields


def apply_status_transition(
    gap: KnowledgeGap, requested: GapStatus, now: datetime | None = None
) -> KnowledgeGap:
    """Return a copy of the gap with the transition applied."""
    fields = plan_status_transition(gap, requested, now)
    return gap.model_copy(update={**fields, "status": requested})
