"""Severity scoring and module inference for gap clusters."""

from collections.abc import Mapping

from app.core.gap_clustering import SIGNAL_POLICIES, SignalCluster, SignalPolicy
from app.core.schemas_gaps import KnowledgeGap, Severity, SignalKind

# Feedback categories that map onto a WMS module
CATEGORY_MODULES: Mapping[str, str] = {
    "training": "Training",
    "workflow": "Operations",
    "equipment": "Equipment",
    "safety": "Safety",
}

_SEVERITY_RANK = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}


def score_severity(cluster: SignalCluster) -> Severity:
    """
    Urgency tier of a cluster.

    high:   >= 5 signals, any high-urgency feedback, or a complaint in a cluster of >= 3
    medium: >= 3 signals, any negatively rated question, or any complaint
    low:    everything else
    """
    total = cluster.question_count + cluster.feedback_count
    feedback = cluster.feedback
    has_complaint = any(f.is_complaint for f in feedback)

    if total >= 5:
        return Severity.HIGH
    if any(f.urgency == "high" for f in feedback):
        return Severity.HIGH
    if has_complaint and total >= 3:
        return Severity.HIGH

    if total >= 3:
        return Severity.MEDIUM
    if any(q.was_negatively_rated for q in cluster.questions):
        return Severity.MEDIUM
    if has_complaint:
        return Severity.MEDIUM

    return Severity.LOW


def infer_module(
    cluster: SignalCluster,
    policies: Mapping[SignalKind, SignalPolicy] = SIGNAL_POLICIES,
) -> str | None:
    """
    Weighted vote for the module a cluster most likely belongs to.

    Question module hints vote with the question weight; feedback categories are
    mapped through CATEGORY_MODULES and vote with the feedback weight. Equal
    totals go to the lexically first module name.
    """
    votes: dict[str, float] = {}

    for member in cluster.members:
        if member.kind == SignalKind.QUESTION:
            module = member.module_hint
        else:
            module = CATEGORY_MODULES.get(member.category_hint or "")
        if not module:
            continue
        votes[module] = votes.get(module, 0.0) + policies[member.kind].module_weight

    if not votes:
        return None

    return min(votes, key=lambda m: (-votes[m], m))


def rank_gaps(gaps: list[KnowledgeGap]) -> list[KnowledgeGap]:
    """Report order: severity high → low, then larger clusters first."""
    return sorted(gaps, key=lambda g: (_SEVERITY_RANK[g.severity], -g.signal_count))
