"""Question answering API endpoints."""

import asyncio
import time

from fastapi import APIRouter, HTTPException

from app.api.dependencies import StoreDep
from app.chains.answer_question import answer_question, not_found_answer
from app.chains.expand_queries import expand_queries
from app.core.answer_format import normalize_stepwise_answer
from app.core.config import get_settings
from app.core.golden_answers import find_golden_answer, promote_golden_answer
from app.core.logging import get_logger
from app.core.retrieval import retrieve_merged
from app.core.schemas_retrieval import AskFeedbackRequest, AskRequest, AskResponse, SourceRef

logger = get_logger(__name__)

router = APIRouter()


@router.post("/ask")
async def ask(request: AskRequest, store: StoreDep) -> AskResponse:
    """
    Answer an operator question from the SOP knowledge base.

    1. Expand the question into several search queries
    2. Retrieve and merge chunks across all queries
    3. Short-circuit off-topic questions without calling the generator
    4. Consult the golden answer cache (non-fatal)
    5. Generate a cited answer, split into steps for how-to questions
    6. Log the interaction (non-fatal)

    Raises:
        HTTPException 400: Empty or oversized question
        HTTPException 500: Any internal failure (no detail leaked)
    """
    settings = get_settings()
    question = request.question.strip()
    module = request.module or None

    if not question:
        raise HTTPException(status_code=400, detail="Question is required")
    if len(request.question) > settings.MAX_QUESTION_CHARS:
        raise HTTPException(
            status_code=400,
            detail=f"Question must be {settings.MAX_QUESTION_CHARS} characters or less",
        )

    start = time.monotonic()
    try:
        queries = await expand_queries(question)
        retrieval = await retrieve_merged(store, queries, module_filter=module)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(f"Retrieved {len(retrieval.chunks)} chunks for {len(queries)} queries ({elapsed_ms}ms)")

        best = retrieval.best_similarity
        if best is None or best < settings.ANSWER_MIN_SIMILARITY:
            logger.info(f"Low relevance (best: {best}) - returning not-found")
            return AskResponse(**not_found_answer())

        golden = None
        try:
            golden = await asyncio.to_thread(
                find_golden_answer, store, retrieval.query_embedding, module
            )
        except Exception as e:
            logger.warning(f"Golden lookup failed (non-fatal): {e}")

        response = await answer_question(question, retrieval.chunks, golden)
        response = normalize_stepwise_answer(question, response)

        interaction_id = None
        try:
            interaction_id = await asyncio.to_thread(
                store.insert_interaction,
                {
                    "question": question,
                    "module": module,
                    "answer": response,
                    "chunk_ids": [s.chunk.id for s in retrieval.chunks],
                    "similarity_scores": [s.similarity for s in retrieval.chunks],
                    "question_embedding": retrieval.query_embedding,
                },
            )
        except Exception as e:
            logger.warning(f"Failed to log interaction (non-fatal): {e}")

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(f"Answered question ({elapsed_ms}ms total)", extra={"interaction_id": interaction_id})

        return AskResponse(
            answer=response.get("answer"),
            follow_up_question=response.get("follow_up_question"),
            coverage=response.get("coverage") or {},
            sources=[
                SourceRef(
                    doc_title=s.chunk.doc_title,
                    slide_number=s.chunk.slide_number,
                    source_locator=s.chunk.source_locator,
                    text=s.chunk.text,
                )
                for s in retrieval.chunks
            ],
            interaction_id=interaction_id,
            golden_match=golden is not None,
        )

    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to process question")
        raise HTTPException(status_code=500, detail="Failed to process question")


@router.post("/ask/feedback")
async def ask_feedback(request: AskFeedbackRequest, store: StoreDep) -> dict:
    """
    Record helpful/unhelpful feedback on an answer.

    A thumbs-up promotes the interaction into the golden answer cache unless a
    near-duplicate is already there.
    """
    try:
        await asyncio.to_thread(
            store.update_interaction_feedback,
            request.interaction_id,
            request.helpful,
            request.comment or None,
        )

        promoted = False
        if request.helpful is True:
            interaction = await asyncio.to_thread(store.get_interaction, request.interaction_id)
            if interaction:
                promoted = await asyncio.to_thread(promote_golden_answer, store, interaction)

        return {"success": True, "promoted": promoted}

    except Exception:
        logger.exception(f"Failed to store feedback for interaction {request.interaction_id}")
        raise HTTPException(status_code=500, detail="Failed to store feedback")
