"""Anthropic text generation for answers, gap summaries and SOP drafts."""

from dataclasses import dataclass
from typing import Any

from anthropic import AsyncAnthropic

from app.core.config import get_settings
from app.core.llm import Fallback, ParseResult, parse_llm_json_or_fallback
from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class GeneratorOutput:
    """Raw model text plus the best-effort JSON parse of it."""

    text: str
    result: ParseResult

    @property
    def value(self) -> Any:
        return self.result.value

    @property
    def is_fallback(self) -> bool:
        return isinstance(self.result, Fallback)


def _get_client() -> AsyncAnthropic:
    settings = get_settings()
    return AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)


async def generate_text(prompt: str, max_tokens: int | None = None) -> str:
    """
    Send a single-turn prompt and return the stripped text reply.

    Raises:
        anthropic.APIError: Transport or API failures propagate to the caller
    """
    settings = get_settings()
    client = _get_client()

    response = await client.messages.create(
        model=settings.GENERATION_MODEL,
        max_tokens=max_tokens or settings.GENERATION_MAX_TOKENS,
        messages=[{"role": "user", "content": prompt}],
    )

    text_parts = [block.text for block in response.content if getattr(block, "type", "") == "text"]
    return "".join(text_parts).strip()


async def generate_json(prompt: str, fallback: Any, max_tokens: int | None = None) -> GeneratorOutput:
    """
    Generate a reply expected to be JSON.

    Parse failures are not errors: the output carries Fallback(fallback).
    """
    text = await generate_text(prompt, max_tokens=max_tokens)
    result = parse_llm_json_or_fallback(text, fallback)

    if isinstance(result, Fallback):
        logger.warning(f"Generator returned unparseable JSON ({result.error}); using fallback")

    return GeneratorOutput(text=text, result=result)
