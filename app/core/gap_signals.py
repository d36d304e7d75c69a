"""Gap signal collection.

Pulls the evidence for one analysis window out of the Store:

- Questions: interactions that were rated unhelpful, answered "not found",
  or whose best retrieval similarity was low.
- Feedback: non-dismissed anonymous feedback about training, workflow or
  equipment, suggestions, and complaints of normal/high urgency.

Feedback without a stored embedding is embedded on demand and written back.
A failed embedding drops that one item and collection continues. Exhausted
provider quota is the exception: it propagates and fails the run.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.core.config import get_settings
from app.core.embeddings import embed_text
from app.core.errors import QuotaExhaustedError
from app.core.logging import get_logger
from app.core.schemas_gaps import GapSignal, SignalKind
from app.db.store import Store

logger = get_logger(__name__)

NOT_FOUND_MARKER = "not found in sops"
GAP_FEEDBACK_CATEGORIES = {"training", "workflow", "equipment"}
COMPLAINT_URGENCIES = {"normal", "high"}


@dataclass
class CollectedSignals:
    questions: list[GapSignal] = field(default_factory=list)
    feedback: list[GapSignal] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.questions) + len(self.feedback)


def _answer_text(answer: Any) -> str:
    if answer is None:
        return ""
    if isinstance(answer, str):
        return answer
    # Structured answers are stored as JSON; search their serialized form
    return json.dumps(answer)


def is_gap_interaction(row: dict[str, Any], low_similarity: float) -> bool:
    """True if the interaction is evidence that the SOPs could not answer it."""
    if row.get("helpful") is False:
        return True

    if NOT_FOUND_MARKER in _answer_text(row.get("answer")).lower():
        return True

    scores = row.get("similarity_scores") or []
    return bool(scores) and scores[0] is not None and float(scores[0]) < low_similarity


def is_gap_feedback(row: dict[str, Any]) -> bool:
    """True if a feedback message plausibly points at missing procedure knowledge."""
    if row.get("status") == "dismissed":
        return False

    if row.get("category") in GAP_FEEDBACK_CATEGORIES:
        return True

    feedback_type = row.get("type")
    if feedback_type == "suggestion":
        return True

    return feedback_type == "complaint" and row.get("urgency") in COMPLAINT_URGENCIES


def _question_signal(row: dict[str, Any]) -> GapSignal:
    return GapSignal(
        kind=SignalKind.QUESTION,
        text=row.get("question") or "",
        source_id=str(row["id"]),
        embedding=row.get("question_embedding"),
        module_hint=row.get("module"),
        was_negatively_rated=row.get("helpful") is False,
    )


def _feedback_signal(row: dict[str, Any], embedding: list[float]) -> GapSignal:
    return GapSignal(
        kind=SignalKind.FEEDBACK,
        text=row.get("message") or "",
        source_id=str(row["id"]),
        embedding=embedding,
        category_hint=row.get("category"),
        urgency=row.get("urgency"),
        is_complaint=row.get("type") == "complaint",
    )


def collect_question_signals(
    store: Store, period_start: datetime, period_end: datetime
) -> list[GapSignal]:
    settings = get_settings()
    rows = store.list_interactions(period_start, period_end)

    signals = []
    skipped = 0
    for row in rows:
        if not is_gap_interaction(row, settings.GAP_LOW_SIMILARITY):
            continue
        if not row.get("question_embedding"):
            skipped += 1
            continue
        signals.append(_question_signal(row))

    if skipped:
        logger.warning(f"Skipped {skipped} gap interactions without a question embedding")
    return signals


def collect_feedback_signals(
    store: Store, period_start: datetime, period_end: datetime
) -> list[GapSignal]:
    rows = store.list_feedback(period_start, period_end)

    signals = []
    for row in rows:
        if not is_gap_feedback(row):
            continue

        embedding = row.get("embedding")
        if not embedding:
            try:
                embedding = embed_text(row.get("message") or "")
            except QuotaExhaustedError:
                # Every later item would fail the same way; fail the run instead
                raise
            except Exception as e:
                logger.warning(f"Dropping feedback {row.get('id')} from this run: embedding failed ({e})")
                continue

            try:
                store.update_feedback_embedding(str(row["id"]), embedding)
            except Exception as e:
                # Signal is still usable; the next run embeds it again
                logger.warning(f"Could not store embedding for feedback {row.get('id')}: {e}")

        signals.append(_feedback_signal(row, embedding))

    return signals


def collect_gap_signals(
    store: Store, period_start: datetime, period_end: datetime
) -> CollectedSignals:
    """
    Collect question and feedback signals for one analysis window.

    Args:
        store: Open Store
        period_start: Window start (inclusive)
        period_end: Window end (inclusive)

    Returns:
        CollectedSignals with questions and feedback in Store order (newest first)
    """
    collected = CollectedSignals(
        questions=collect_question_signals(store, period_start, period_end),
        feedback=collect_feedback_signals(store, period_start, period_end),
    )
    logger.info(
        f"Collected {collected.total} gap signals",
        extra={"questions": len(collected.questions), "feedback": len(collected.feedback)},
    )
    return collected
