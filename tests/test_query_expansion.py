"""Tests for query expansion with a mocked chat model."""

import itertools
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.chains import expand_queries as expansion
from app.chains.expand_queries import expand_queries


def _mock_llm(content: str | None = None, error: Exception | None = None) -> MagicMock:
    llm = MagicMock()
    if error is not None:
        llm.ainvoke = AsyncMock(side_effect=error)
    else:
        llm.ainvoke = AsyncMock(return_value=MagicMock(content=content))
    return llm


@pytest.mark.asyncio
async def test_expands_into_queries():
    llm = _mock_llm('["How do I short pick?", "short pick procedure", "pick by order short"]')

    with patch("app.chains.expand_queries.get_llm", return_value=llm):
        queries = await expand_queries("How do I short pick?")

    assert queries == ["How do I short pick?", "short pick procedure", "pick by order short"]


@pytest.mark.asyncio
async def test_caps_at_five_queries():
    llm = _mock_llm('["a", "b", "c", "d", "e", "f", "g"]')

    with patch("app.chains.expand_queries.get_llm", return_value=llm):
        queries = await expand_queries("a")

    assert queries == ["a", "b", "c", "d", "e"]


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["not json", '{"queries": ["a"]}', "[]", '["", "  "]'])
async def test_unusable_output_falls_back_to_question(content):
    with patch("app.chains.expand_queries.get_llm", return_value=_mock_llm(content)):
        queries = await expand_queries("How do I cycle count?")

    assert queries == ["How do I cycle count?"]


@pytest.mark.asyncio
async def test_provider_error_falls_back_to_question():
    with patch("app.chains.expand_queries.get_llm", return_value=_mock_llm(error=RuntimeError("timeout"))):
        queries = await expand_queries("How do I cycle count?")

    assert queries == ["How do I cycle count?"]


@pytest.mark.asyncio
async def test_results_are_cached_per_normalized_question():
    llm = _mock_llm('["How do I short pick?", "short pick procedure"]')

    with patch("app.chains.expand_queries.get_llm", return_value=llm):
        first = await expand_queries("How do I short pick?")
        second = await expand_queries("  how do i SHORT pick?  ")

    assert first == second
    llm.ainvoke.assert_awaited_once()


@pytest.mark.asyncio
async def test_expired_expansions_are_evicted_on_write():
    llm = _mock_llm('["a", "b"]')

    with (
        patch("app.chains.expand_queries.get_llm", return_value=llm),
        patch("app.chains.expand_queries.time") as mock_time,
    ):
        mock_time.monotonic.side_effect = itertools.count(0, 3600)
        for i in range(50):
            await expand_queries(f"question {i}")

    assert len(expansion._expand_cache) == 1
    assert "question 49" in expansion._expand_cache


@pytest.mark.asyncio
async def test_expansion_cache_size_is_capped():
    llm = _mock_llm('["a", "b"]')

    with (
        patch("app.chains.expand_queries.get_llm", return_value=llm),
        patch.object(expansion, "EXPANSION_CACHE_MAX_ENTRIES", 3),
    ):
        for i in range(10):
            await expand_queries(f"question {i}")

    assert list(expansion._expand_cache) == ["question 7", "question 8", "question 9"]
