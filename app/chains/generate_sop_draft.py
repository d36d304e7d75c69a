"""SOP draft generation for a knowledge gap.

Pulls the five nearest existing SOP chunks as a style reference and asks the
generator for a structured plain-text procedure covering the gap's questions.
"""

import asyncio
from datetime import datetime, timezone

from app.core.config import get_settings
from app.core.embeddings import embed_text_async
from app.core.errors import GapNotFoundError
from app.core.generator import generate_text
from app.core.logging import get_logger
from app.core.schemas_gaps import KnowledgeGap
from app.core.schemas_retrieval import ScoredChunk
from app.db.store import Store

logger = get_logger(__name__)

STYLE_CONTEXT_CHUNKS = 5


def build_sop_draft_prompt(gap: KnowledgeGap, style_chunks: list[ScoredChunk]) -> str:
    evidence = gap.sample_questions + gap.sample_feedback
    evidence_list = "\n".join(f"{i + 1}. {text}" for i, text in enumerate(evidence))
    style_context = "\n\n".join(
        f"--- {s.chunk.source_locator} ---\n{s.chunk.text}" for s in style_chunks
    )
    module_line = f"Module: {gap.suggested_module}\n" if gap.suggested_module else ""

    return f"""You are a WMS (Warehouse Management System) SOP writer. Operators asked these questions or left this feedback, but our SOPs had no good answers:

Topic: {gap.title}
Description: {gap.description}
{module_line}
Operator questions and feedback:
{evidence_list}

Here are some existing SOPs for reference on style and format:
{style_context}

Write a structured SOP draft that would answer these questions. Use this format:

# [SOP Title]
## Module: [module name]

### Prerequisites
- [list any prerequisites]

### Procedure
1. [Numbered steps with clear instructions]

### Troubleshooting
- **Issue:** [common issue] → **Solution:** [resolution]

### Notes
- [Any important notes or warnings]

Write the SOP in plain text, matching the style of existing SOPs."""


async def generate_sop_draft(store: Store, gap_id: str) -> KnowledgeGap:
    """
    Generate (or regenerate) the SOP draft for a gap and persist it.

    Returns:
        Updated KnowledgeGap with sop_draft and sop_draft_generated_at set

    Raises:
        GapNotFoundError: If the gap does not exist
    """
    settings = get_settings()

    gap = await asyncio.to_thread(store.get_knowledge_gap, gap_id)
    if gap is None:
        raise GapNotFoundError(f"Knowledge gap not found: {gap_id}")

    first_sample = next(iter(gap.sample_questions + gap.sample_feedback), "")
    embedding = await embed_text_async(f"{gap.title} {first_sample}".strip())
    style_chunks = await asyncio.to_thread(store.match_chunks, embedding, STYLE_CONTEXT_CHUNKS, None)

    draft = await generate_text(
        build_sop_draft_prompt(gap, style_chunks),
        max_tokens=settings.SOP_DRAFT_MAX_TOKENS,
    )

    updated = await asyncio.to_thread(
        store.update_knowledge_gap,
        gap_id,
        {"sop_draft": draft, "sop_draft_generated_at": datetime.now(timezone.utc)},
    )
    logger.info(f"Generated SOP draft for gap {gap_id} ({len(draft)} chars)")
    return updated
