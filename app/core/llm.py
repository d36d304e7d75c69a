"""LLM client utilities: LangChain chat model factory and JSON output parsing."""

import json
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from langchain_openai import ChatOpenAI

from app.core.config import get_settings

V = TypeVar("V")


def get_llm(model: str | None = None, temperature: float = 0.0) -> ChatOpenAI:
    """
    Get configured LLM instance for LangChain chains.

    Args:
        model: Model name override (defaults to QUERY_EXPANSION_MODEL)
        temperature: Temperature for generation (default 0.0)

    Returns:
        ChatOpenAI instance configured with API key and model
    """
    settings = get_settings()

    return ChatOpenAI(
        api_key=settings.OPENAI_API_KEY,
        model=model or settings.QUERY_EXPANSION_MODEL,
        temperature=temperature,
        max_tokens=300,
    )


def _strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()

    # Unterminated fence
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


@dataclass(frozen=True)
class Ok(Generic[V]):
    """Generator output parsed cleanly."""

    value: V


@dataclass(frozen=True)
class Fallback(Generic[V]):
    """Generator output was unusable; value is the call site's default."""

    value: V
    error: str


ParseResult = Ok | Fallback


def parse_llm_json_dict(raw_output: str) -> Any:
    """
    Parse LLM output as JSON, returning the raw decoded value.

    Raises:
        json.JSONDecodeError: If JSON parsing fails after cleanup
    """
    cleaned = _strip_llm_fences(raw_output)
    return json.loads(cleaned)


def parse_llm_json_or_fallback(raw_output: str, fallback: V) -> ParseResult:
    """
    Parse fenced or unfenced JSON, never raising.

    Args:
        raw_output: Raw string from LLM response
        fallback: Value carried by the Fallback result when parsing fails

    Returns:
        Ok(parsed) or Fallback(fallback, error)
    """
    try:
        return Ok(parse_llm_json_dict(raw_output))
    except (json.JSONDecodeError, TypeError) as e:
        return Fallback(fallback, f"{type(e).__name__}: {e}")
