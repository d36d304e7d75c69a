"""Grounded answer chain for operator questions."""

import json
from typing import Any

from app.core.generator import generate_json
from app.core.logging import get_logger
from app.core.schemas_retrieval import GoldenMatch, ScoredChunk

logger = get_logger(__name__)


def fallback_answer() -> dict[str, Any]:
    """Well-formed answer returned when the generator output cannot be parsed."""
    return {
        "answer": [
            {
                "claim": "Error generating answer. Please rephrase your question.",
                "citations": [],
            }
        ],
        "follow_up_question": None,
        "coverage": {"chunks_used": 0},
    }


def not_found_answer() -> dict[str, Any]:
    """Answer for questions whose best retrieval match is off-topic."""
    return {
        "answer": "Not found in SOPs",
        "follow_up_question": "Could you rephrase your question using WMS terminology?",
        "suggestions": [
            'Try using specific WMS terms like "pick by order", "inbound order", or "cycle count"',
            "Use the module filter to narrow your search (Picking, Outbound, Inbound, etc.)",
            "Ask about one task at a time, such as a single screen or step",
        ],
        "coverage": {"chunks_used": 0},
    }


def build_answer_prompt(
    question: str,
    chunks: list[ScoredChunk],
    golden: GoldenMatch | None = None,
) -> str:
    context = "\n\n".join(
        f"[{i + 1}] {s.chunk.doc_title} ({s.chunk.source_locator})\n{s.chunk.text}"
        for i, s in enumerate(chunks)
    )

    example = ""
    if golden is not None:
        answer = golden.answer if isinstance(golden.answer, str) else json.dumps(golden.answer)
        example = (
            "\nA previous answer to a very similar question was rated helpful. "
            f"Use it as a style reference:\nQ: {golden.question}\nA: {answer}\n"
        )

    return f"""You answer warehouse operators' questions using ONLY the SOP excerpts below.
Every claim must cite the excerpt numbers it comes from. If the excerpts do not answer
the question, say "Not found in SOPs".

SOP excerpts:
{context}
{example}
Question: {question}

Respond in JSON: {{"answer": [{{"claim": "...", "citations": [1]}}], "follow_up_question": "..." or null, "coverage": {{"chunks_used": <int>}}}}"""


def _is_well_formed_answer(value: Any) -> bool:
    """Check the parsed output has the shape the ask response serializes."""
    if not isinstance(value, dict):
        return False

    answer = value.get("answer")
    if isinstance(answer, str):
        if not answer.strip():
            return False
    elif isinstance(answer, list) and answer:
        for item in answer:
            if not isinstance(item, dict):
                return False
            if not isinstance(item.get("claim"), str):
                return False
            if not isinstance(item.get("citations", []), list):
                return False
    else:
        return False

    follow_up = value.get("follow_up_question")
    if follow_up is not None and not isinstance(follow_up, str):
        return False

    coverage = value.get("coverage")
    if coverage is not None and not isinstance(coverage, dict):
        return False

    return True


async def answer_question(
    question: str,
    chunks: list[ScoredChunk],
    golden: GoldenMatch | None = None,
) -> dict[str, Any]:
    """
    Generate a cited answer grounded in the retrieved chunks.

    Returns:
        Parsed answer dict, or fallback_answer() if the output was malformed
    """
    output = await generate_json(build_answer_prompt(question, chunks, golden), fallback=fallback_answer())

    value = output.value
    if not _is_well_formed_answer(value):
        logger.warning("Answer output has an unexpected shape; using fallback")
        return fallback_answer()
    return value
