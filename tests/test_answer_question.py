"""Tests for the grounded answer chain and the generator wrapper."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.chains.answer_question import answer_question, build_answer_prompt, fallback_answer
from app.core.generator import generate_json, generate_text
from app.core.schemas_retrieval import GoldenMatch, RetrievalChunk, ScoredChunk


def _chunks() -> list[ScoredChunk]:
    return [
        ScoredChunk(
            chunk=RetrievalChunk(id="c1", text="Scan the empty bin.", doc_title="Picking SOP", source_locator="Slide 4"),
            similarity=0.8,
        )
    ]


def _anthropic_client(text: str) -> MagicMock:
    block = MagicMock(type="text", text=text)
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=MagicMock(content=[block]))
    return client


@pytest.mark.asyncio
async def test_generate_text_joins_text_blocks():
    with patch("app.core.generator._get_client", return_value=_anthropic_client("  hello  ")):
        assert await generate_text("prompt") == "hello"


@pytest.mark.asyncio
async def test_generate_json_marks_fallback():
    with patch("app.core.generator._get_client", return_value=_anthropic_client("nope")):
        output = await generate_json("prompt", fallback={"x": 1})

    assert output.is_fallback
    assert output.value == {"x": 1}
    assert output.text == "nope"


@pytest.mark.asyncio
async def test_answer_parsed_from_fenced_output():
    raw = '```json\n{"answer": [{"claim": "Scan the bin", "citations": [1]}], "follow_up_question": null}\n```'

    with patch("app.core.generator._get_client", return_value=_anthropic_client(raw)):
        answer = await answer_question("How do I short pick?", _chunks())

    assert answer["answer"][0]["claim"] == "Scan the bin"


@pytest.mark.asyncio
async def test_malformed_answer_uses_well_formed_fallback():
    with patch("app.core.generator._get_client", return_value=_anthropic_client("I think you should...")):
        answer = await answer_question("How do I short pick?", _chunks())

    assert answer == fallback_answer()


@pytest.mark.asyncio
async def test_answer_without_answer_field_uses_fallback():
    with patch("app.core.generator._get_client", return_value=_anthropic_client('{"text": "hi"}')):
        answer = await answer_question("How do I short pick?", _chunks())

    assert answer == fallback_answer()


def test_prompt_includes_golden_example():
    golden = GoldenMatch(question="Short pick steps?", answer={"answer": "Scan it"}, similarity=0.95)

    prompt = build_answer_prompt("How do I short pick?", _chunks(), golden)

    assert "Short pick steps?" in prompt
    assert "[1] Picking SOP (Slide 4)" in prompt


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw",
    [
        '{"answer": [{"claim": "Scan the bin", "citations": [1]}], "follow_up_question": ["x"]}',
        '{"answer": [{"claim": "Scan the bin", "citations": [1]}], "coverage": 1}',
        '{"answer": ["Scan the bin"]}',
        '{"answer": [{"claim": 7, "citations": [1]}]}',
        '{"answer": [{"claim": "Scan the bin", "citations": "1"}]}',
        '{"answer": []}',
        '{"answer": 42}',
        '["Scan the bin"]',
    ],
)
async def test_mistyped_answer_fields_use_fallback(raw):
    with patch("app.core.generator._get_client", return_value=_anthropic_client(raw)):
        answer = await answer_question("How do I short pick?", _chunks())

    assert answer == fallback_answer()


@pytest.mark.asyncio
async def test_plain_string_answer_is_accepted():
    raw = '{"answer": "Not found in SOPs", "follow_up_question": "Which module?", "coverage": {"chunks_used": 0}}'

    with patch("app.core.generator._get_client", return_value=_anthropic_client(raw)):
        answer = await answer_question("How do I short pick?", _chunks())

    assert answer["answer"] == "Not found in SOPs"
    assert answer["follow_up_question"] == "Which module?"
