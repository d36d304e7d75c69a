"""Multi-query retrieval: embed → parallel nearest-neighbor search → max-similarity merge.

Used once per question by the Q&A path after query expansion. Any caller with
several paraphrases of one information need can use it.

Usage:
    from app.core.retrieval import retrieve_merged

    result = await retrieve_merged(
        store,
        ["How do I short pick?", "short pick procedure pick by order"],
        module_filter="Picking",
    )
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field

from app.core.config import get_settings
from app.core.embeddings import embed_texts_async
from app.core.logging import get_logger
from app.core.schemas_retrieval import ScoredChunk
from app.db.store import Store

logger = get_logger(__name__)


@dataclass
class RetrievalResult:
    """Ranked, deduplicated chunks for a set of paraphrased queries."""

    chunks: list[ScoredChunk] = field(default_factory=list)
    source_queries: list[str] = field(default_factory=list)
    query_embedding: list[float] | None = None  # first query's vector

    @property
    def best_similarity(self) -> float | None:
        return self.chunks[0].similarity if self.chunks else None


def merge_scored_chunks(
    result_sets: Iterable[list[ScoredChunk]], limit: int | None = None
) -> list[ScoredChunk]:
    """
    Deduplicate chunks across result sets keeping the maximum similarity seen.

    Output is sorted by similarity descending with chunk id ascending on ties,
    so it does not depend on which search finished first.
    """
    best: dict[str, ScoredChunk] = {}
    for results in result_sets:
        for scored in results:
            existing = best.get(scored.chunk.id)
            if existing is None or scored.similarity > existing.similarity:
                best[scored.chunk.id] = scored

    merged = sorted(best.values(), key=lambda s: (-s.similarity, s.chunk.id))
    return merged[:limit] if limit is not None else merged


async def _search(
    store: Store, embedding: list[float], top_k: int, module_filter: str | None
) -> list[ScoredChunk]:
    return await asyncio.to_thread(store.match_chunks, embedding, top_k, module_filter)


async def retrieve_merged(
    store: Store,
    queries: list[str],
    module_filter: str | None = None,
    top_k_per_query: int | None = None,
    max_results: int | None = None,
) -> RetrievalResult:
    """
    Retrieve chunks for several queries and merge them.

    Args:
        store: Open Store providing match_chunks
        queries: Search strings; the first is normally the user's question verbatim
        module_filter: Restrict search to one module
        top_k_per_query: Neighbors per query (default RETRIEVAL_TOP_K_PER_QUERY)
        max_results: Chunks kept after merge (default RETRIEVAL_MAX_RESULTS)

    Returns:
        RetrievalResult with each chunk at most once

    Raises:
        EmbeddingError: If the batched embedding call fails
    """
    if not queries:
        return RetrievalResult()

    settings = get_settings()
    top_k = top_k_per_query or settings.RETRIEVAL_TOP_K_PER_QUERY
    limit = max_results or settings.RETRIEVAL_MAX_RESULTS

    # One batched request for every query
    embeddings = await embed_texts_async(queries)

    result_sets = await asyncio.gather(
        *(_search(store, embedding, top_k, module_filter) for embedding in embeddings)
    )

    merged = merge_scored_chunks(result_sets, limit=limit)

    logger.info(
        f"Retrieved {len(merged)} unique chunks for {len(queries)} queries",
        extra={
            "raw_hits": sum(len(r) for r in result_sets),
            "module_filter": module_filter or "all",
        },
    )

    return RetrievalResult(
        chunks=merged,
        source_queries=list(queries),
        query_embedding=embeddings[0],
    )
