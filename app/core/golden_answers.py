"""Golden answer cache: reuse answers that earned positive feedback.

Lookup is a pure read gated by a strict similarity threshold. Promotion
happens on a thumbs-up and skips questions already covered by a near-duplicate.
"""

from typing import Any

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.schemas_retrieval import GoldenMatch
from app.db.store import Store

logger = get_logger(__name__)


def find_golden_answer(
    store: Store,
    embedding: list[float],
    module_filter: str | None = None,
    threshold: float | None = None,
) -> GoldenMatch | None:
    """
    Find the promoted answer closest to a question embedding.

    Args:
        store: Open Store
        embedding: Question embedding
        module_filter: Restrict candidates to one module
        threshold: Override GOLDEN_MATCH_THRESHOLD

    Returns:
        GoldenMatch only when similarity is strictly above the threshold, else None
    """
    threshold = get_settings().GOLDEN_MATCH_THRESHOLD if threshold is None else threshold

    candidates = store.match_golden_answers(embedding, match_count=1, module=module_filter)
    if not candidates:
        return None

    best = max(candidates, key=lambda c: c.similarity)
    if best.similarity <= threshold:
        logger.debug(f"Golden candidate below threshold ({best.similarity:.3f} <= {threshold})")
        return None

    logger.info(f"Golden answer match (similarity={best.similarity:.3f}): {best.question!r}")
    return GoldenMatch(
        question=best.question,
        answer=best.answer,
        module=best.module,
        similarity=best.similarity,
    )


def promote_golden_answer(store: Store, interaction: dict[str, Any]) -> bool:
    """
    Promote a positively rated interaction into the golden answer set.

    Returns:
        True if inserted, False if skipped (no embedding or a near-duplicate exists)
    """
    settings = get_settings()
    embedding = interaction.get("question_embedding")
    if not embedding:
        logger.info(f"Interaction {interaction.get('id')} has no embedding; not promoted")
        return False

    existing = store.match_golden_answers(embedding, match_count=1)
    if existing and existing[0].similarity > settings.GOLDEN_DEDUP_THRESHOLD:
        logger.info("Skipped promotion - similar golden answer already exists")
        return False

    store.insert_golden_answer(
        question=interaction["question"],
        embedding=embedding,
        answer=interaction.get("answer"),
        module=interaction.get("module"),
        interaction_id=str(interaction["id"]),
    )
    logger.info(f"Promoted interaction {interaction['id']} to golden answer")
    return True
