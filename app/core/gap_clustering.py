"""Online greedy clustering of gap signals into recurring topics.

Signals are folded into clusters in a fixed order: every question first (in
collector order), then every feedback message (in collector order). Each
signal joins the nearest existing cluster when its cosine similarity to that
cluster's centroid clears the join threshold for its kind, otherwise it seeds
a new cluster. The result depends on this order; callers must not reorder.

Feedback uses a looser threshold than questions: feedback text is less
precise than a direct question, and a strict threshold would leave most
feedback as unmatched singletons.

Zero LLM cost - pure vector math.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

import numpy as np

from app.core.logging import get_logger
from app.core.schemas_gaps import GapSignal, SignalKind
from app.core.vector_math import centroid, cosine_similarity

logger = get_logger(__name__)

MIN_CLUSTER_SIZE = 2


@dataclass(frozen=True)
class SignalPolicy:
    """Per-kind clustering and module-voting parameters."""

    join_threshold: float  # similarity must be strictly greater to join
    module_weight: float  # vote weight in module inference


SIGNAL_POLICIES: Mapping[SignalKind, SignalPolicy] = {
    SignalKind.QUESTION: SignalPolicy(join_threshold=0.80, module_weight=1.0),
    SignalKind.FEEDBACK: SignalPolicy(join_threshold=0.75, module_weight=0.5),
}


@dataclass
class SignalCluster:
    """Mutable accumulator for one topic during an analysis run."""

    members: list[GapSignal] = field(default_factory=list)
    centroid: np.ndarray | None = None

    @classmethod
    def seed(cls, signal: GapSignal) -> SignalCluster:
        cluster = cls()
        cluster.add(signal)
        return cluster

    def add(self, signal: GapSignal) -> None:
        """Append a member and recompute the centroid over all members."""
        self.members.append(signal)
        self.centroid = centroid([m.embedding for m in self.members])

    @property
    def questions(self) -> list[GapSignal]:
        return [m for m in self.members if m.kind == SignalKind.QUESTION]

    @property
    def feedback(self) -> list[GapSignal]:
        return [m for m in self.members if m.kind == SignalKind.FEEDBACK]

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def feedback_count(self) -> int:
        return len(self.feedback)

    @property
    def total(self) -> int:
        return len(self.members)


def find_nearest_cluster(
    clusters: list[SignalCluster], embedding: list[float]
) -> tuple[SignalCluster | None, float]:
    """Cluster with the highest centroid similarity; the earliest cluster wins ties."""
    best: SignalCluster | None = None
    best_similarity = float("-inf")

    for cluster in clusters:
        similarity = cosine_similarity(embedding, cluster.centroid)
        if similarity > best_similarity:
            best = cluster
            best_similarity = similarity

    return best, best_similarity


def assign_signal(
    clusters: list[SignalCluster],
    signal: GapSignal,
    policies: Mapping[SignalKind, SignalPolicy] = SIGNAL_POLICIES,
) -> SignalCluster:
    """
    Fold one signal into the cluster list in place.

    Returns:
        The cluster the signal ended up in (existing or newly seeded)
    """
    threshold = policies[signal.kind].join_threshold
    best, similarity = find_nearest_cluster(clusters, signal.embedding)

    if best is not None and similarity > threshold:
        best.add(signal)
        return best

    cluster = SignalCluster.seed(signal)
    clusters.append(cluster)
    return cluster


def _with_embeddings(signals: Iterable[GapSignal]) -> list[GapSignal]:
    usable = []
    for signal in signals:
        if signal.embedding:
            usable.append(signal)
        else:
            logger.debug(f"Skipping {signal.kind.value} {signal.source_id}: no embedding")
    return usable


def cluster_signals(
    questions: Iterable[GapSignal],
    feedback: Iterable[GapSignal],
    policies: Mapping[SignalKind, SignalPolicy] = SIGNAL_POLICIES,
    min_cluster_size: int = MIN_CLUSTER_SIZE,
) -> list[SignalCluster]:
    """
    Group gap signals into recurring topics.

    Args:
        questions: Question signals in collector order
        feedback: Feedback signals in collector order
        policies: Join thresholds per signal kind
        min_cluster_size: Clusters with fewer members are dropped

    Returns:
        Surviving clusters in creation order
    """
    clusters: list[SignalCluster] = []

    for signal in _with_embeddings(questions):
        assign_signal(clusters, signal, policies)

    for signal in _with_embeddings(feedback):
        assign_signal(clusters, signal, policies)

    surviving = [c for c in clusters if c.question_count + c.feedback_count >= min_cluster_size]

    logger.info(
        f"Formed {len(surviving)} clusters (>= {min_cluster_size} signals each)",
        extra={"candidate_clusters": len(clusters)},
    )
    return surviving
