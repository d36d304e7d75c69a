"""Query expansion chain.

Turns one operator question into 3-5 short WMS search queries. The first
query is always the original question. Any failure falls back to
[question] so retrieval still runs.
"""

import threading
import time

from app.core.config import get_settings
from app.core.llm import get_llm, parse_llm_json_dict
from app.core.logging import get_logger

logger = get_logger(__name__)

EXPANSION_CACHE_MAX_ENTRIES = 2000

# normalized question -> (stored_at, queries)
_expand_cache: dict[str, tuple[float, list[str]]] = {}
_cache_lock = threading.Lock()

EXPANSION_PROMPT = """You are a search query expander for a Warehouse Management System (WMS) SOP knowledge base.

Given a user question, generate 3-5 specific search queries to find relevant SOP content. The SOPs cover:
- Navigation: WMS interface, menus, screens
- Inbound: receiving, purchase orders, ASN
- Outbound: shipping, container build, shipping activities
- Picking: Pick by Order, Pick by Cluster, Pick by Shipment, pick errors, short picks
- Replenishment: replenishment tasks, triggers, waves
- Inventory: store, move, relocation, adjustments, cycle counts, labor management
- Returns: customer returns process
- Admin: system administration, user management, item loads, warehouse setup
- Operations: troubleshooting, exception handling

RULES:
1. The first query MUST be the original question verbatim
2. Add 2-4 more queries that target specific subtopics or use WMS/SOP terminology
3. Use terms warehouse operators would see in SOPs (e.g. "pick by order" not "order-based picking")
4. Keep each query short and focused (5-12 words)

Return a JSON array of strings. No explanation, no code fences.

Question: "{question}"
"""


def clear_expansion_cache() -> None:
    with _cache_lock:
        _expand_cache.clear()


def _cache_get(key: str, ttl_seconds: int) -> list[str] | None:
    with _cache_lock:
        entry = _expand_cache.get(key)
        if entry is None:
            return None
        if time.monotonic() - entry[0] > ttl_seconds:
            del _expand_cache[key]
            return None
        return entry[1]


def _cache_put(key: str, queries: list[str], ttl_seconds: int) -> None:
    """Store an expansion, evicting expired entries and then the oldest beyond the cap."""
    now = time.monotonic()
    with _cache_lock:
        expired = [k for k, (stored_at, _) in _expand_cache.items() if now - stored_at > ttl_seconds]
        for k in expired:
            del _expand_cache[k]

        _expand_cache.pop(key, None)
        _expand_cache[key] = (now, queries)

        while len(_expand_cache) > EXPANSION_CACHE_MAX_ENTRIES:
            del _expand_cache[next(iter(_expand_cache))]


async def expand_queries(question: str) -> list[str]:
    """
    Expand a question into several search queries.

    Returns:
        Up to QUERY_EXPANSION_MAX_QUERIES strings, or [question] on any failure
    """
    settings = get_settings()
    cache_key = question.strip().lower()

    cached = _cache_get(cache_key, settings.QUERY_EXPANSION_CACHE_TTL_SECONDS)
    if cached is not None:
        logger.debug(f"Expansion cache hit for {question!r}")
        return cached

    try:
        llm = get_llm()
        response = await llm.ainvoke(EXPANSION_PROMPT.format(question=question))
        queries = parse_llm_json_dict(str(response.content))
    except Exception as e:
        logger.warning(f"Query expansion failed, using original question: {e}")
        return [question]

    if not isinstance(queries, list):
        logger.warning("Query expansion returned a non-list; using original question")
        return [question]

    queries = [q.strip() for q in queries if isinstance(q, str) and q.strip()]
    if not queries:
        return [question]

    result = queries[: settings.QUERY_EXPANSION_MAX_QUERIES]
    _cache_put(cache_key, result, settings.QUERY_EXPANSION_CACHE_TTL_SECONDS)

    logger.info(f"Expanded {question!r} into {len(result)} queries")
    return result
