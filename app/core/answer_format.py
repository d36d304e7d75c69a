"""Post-processing for generated answers: split run-on procedural claims into steps."""

import re
from typing import Any

PROCEDURAL_PATTERN = re.compile(
    r"\b(how|steps?|process|workflow|procedure|handle|perform|walk me through)\b",
    re.IGNORECASE,
)

NUMBERED_STEP_PATTERN = re.compile(
    r"(?:^|\s)(?:step\s*\d+|\d+)[).:\-]?\s+(.+?)(?=(?:\s(?:step\s*\d+|\d+)[).:\-]?\s+)|$)",
    re.IGNORECASE | re.DOTALL,
)

# Tried in order; the first that yields two usable parts wins
SPLIT_PATTERNS = [
    re.compile(r"\.\s+"),
    re.compile(r";\s+"),
    re.compile(r",\s+(?:then|and then|next|finally|once|after that)\s+", re.IGNORECASE),
    re.compile(r"\s+(?:then|next|finally|after that)\s+", re.IGNORECASE),
]

MIN_CLAIM_CHARS = 80
MIN_STEP_CHARS = 18


def looks_procedural_question(question: str) -> bool:
    return bool(PROCEDURAL_PATTERN.search(question or ""))


def _clean_part(part: str) -> str:
    part = re.sub(r"\s+", " ", part)
    part = re.sub(r"^[,;:\-\s]+", "", part)
    part = re.sub(r"\s+([,.;!?])", r"\1", part)
    return part.strip()


def _split_by_numbered_markers(text: str) -> list[str]:
    matches = list(NUMBERED_STEP_PATTERN.finditer(text))
    if len(matches) < 2:
        return []
    parts = [_clean_part(m.group(1)) for m in matches]
    return [p for p in parts if len(p) >= MIN_STEP_CHARS]


def split_single_claim_into_steps(claim: str) -> list[str]:
    """
    Split one long claim into step claims.

    Explicit numbering ("1. ...", "Step 2 ...") is preferred; otherwise sentence,
    semicolon and sequencing-word boundaries are tried in turn.

    Returns:
        Two or more step texts, or [] if the claim should stay whole
    """
    text = _clean_part(claim or "")
    if len(text) < MIN_CLAIM_CHARS:
        return []

    numbered = _split_by_numbered_markers(text)
    if len(numbered) >= 2:
        return numbered

    for pattern in SPLIT_PATTERNS:
        parts = [_clean_part(p) for p in pattern.split(text)]
        parts = [p for p in parts if len(p) >= MIN_STEP_CHARS]
        if len(parts) >= 2:
            return parts

    return []


def normalize_stepwise_answer(question: str, response: dict[str, Any]) -> dict[str, Any]:
    """
    Turn a single-claim answer to a how-to question into one claim per step.

    Each step keeps the original claim's citations. Anything else is returned as is.
    """
    answer = response.get("answer")
    if not isinstance(answer, list) or len(answer) != 1:
        return response

    if not looks_procedural_question(question):
        return response

    first = answer[0]
    if not isinstance(first, dict) or not isinstance(first.get("claim"), str):
        return response

    if first["claim"].strip().lower() == "not found in sops":
        return response

    parts = split_single_claim_into_steps(first["claim"])
    if len(parts) < 2:
        return response

    citations = first.get("citations")
    if not isinstance(citations, list):
        citations = []

    return {
        **response,
        "answer": [{"claim": part, "citations": citations} for part in parts],
    }
