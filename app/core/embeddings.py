"""OpenAI embeddings generation with retry classification and a TTL cache."""

import asyncio
import threading
import time

from openai import OpenAI, RateLimitError

from app.core.config import get_settings
from app.core.errors import QuotaExhaustedError, RateLimitedError
from app.core.logging import get_logger

logger = get_logger(__name__)

EMBEDDING_CACHE_MAX_ENTRIES = 2000

# text -> (stored_at, embedding)
_embed_cache: dict[str, tuple[float, list[float]]] = {}
_cache_lock = threading.Lock()


def _get_client() -> OpenAI:
    """Get OpenAI client instance."""
    settings = get_settings()
    return OpenAI(api_key=settings.OPENAI_API_KEY)


def clear_embedding_cache() -> None:
    """Drop every cached embedding."""
    with _cache_lock:
        _embed_cache.clear()


def _cache_get(text: str, ttl_seconds: int) -> list[float] | None:
    with _cache_lock:
        entry = _embed_cache.get(text)
        if entry is None:
            return None
        stored_at, embedding = entry
        if time.monotonic() - stored_at > ttl_seconds:
            del _embed_cache[text]
            return None
        return embedding


def _cache_put(text: str, embedding: list[float], ttl_seconds: int) -> None:
    """Store an embedding, evicting expired entries and then the oldest beyond the cap."""
    now = time.monotonic()
    with _cache_lock:
        expired = [key for key, (stored_at, _) in _embed_cache.items() if now - stored_at > ttl_seconds]
        for key in expired:
            del _embed_cache[key]

        _embed_cache.pop(text, None)
        _embed_cache[text] = (now, embedding)

        # Insertion order is age order
        while len(_embed_cache) > EMBEDDING_CACHE_MAX_ENTRIES:
            del _embed_cache[next(iter(_embed_cache))]


def _is_quota_error(error: RateLimitError) -> bool:
    """OpenAI reports exhausted quota as a 429 with code insufficient_quota."""
    if getattr(error, "code", None) == "insufficient_quota":
        return True
    return "insufficient_quota" in str(error)


def _request_embeddings(texts: list[str]) -> list[list[float]]:
    """
    Call the provider once for a batch, retrying only on rate limiting.

    Raises:
        QuotaExhaustedError: Quota exhausted (no retry)
        RateLimitedError: Still rate limited after EMBEDDING_MAX_RETRIES retries
        ValueError: If embedding dimension doesn't match EMBEDDING_DIM
    """
    settings = get_settings()
    client = _get_client()
    max_retries = settings.EMBEDDING_MAX_RETRIES

    for attempt in range(max_retries + 1):
        try:
            response = client.embeddings.create(
                model=settings.EMBEDDING_MODEL,
                input=texts,
            )
        except RateLimitError as e:
            if _is_quota_error(e):
                logger.error(f"Embedding quota exhausted: {e}")
                raise QuotaExhaustedError(
                    "OpenAI quota exceeded; add credits before retrying"
                ) from e
            if attempt >= max_retries:
                logger.error(f"Embedding still rate limited after {max_retries} retries")
                raise RateLimitedError(
                    f"Embedding provider rate limited after {max_retries} retries"
                ) from e
            delay = settings.EMBEDDING_RETRY_BASE_SECONDS * (2**attempt)
            logger.warning(
                f"Rate limited, waiting {delay}s (retry {attempt + 1}/{max_retries})"
            )
            time.sleep(delay)
            continue

        embeddings = []
        for i, embedding_obj in enumerate(response.data):
            embedding = embedding_obj.embedding
            if len(embedding) != settings.EMBEDDING_DIM:
                raise ValueError(
                    f"Embedding dimension mismatch for text {i}: "
                    f"expected {settings.EMBEDDING_DIM}, got {len(embedding)}"
                )
            embeddings.append(embedding)
        return embeddings

    # Loop always returns or raises
    raise RateLimitedError("Embedding provider rate limited")


def embed_texts(texts: list[str]) -> list[list[float]]:
    """
    Generate embeddings for a list of texts in a single provider request.

    Cached texts are served from memory; only the misses are sent.

    Args:
        texts: List of text strings to embed

    Returns:
        List of embedding vectors, aligned with texts

    Raises:
        QuotaExhaustedError: Quota exhausted
        RateLimitedError: Rate limit retries exhausted
        ValueError: If embedding dimension doesn't match expected EMBEDDING_DIM
        Exception: Any other provider failure propagates unchanged
    """
    if not texts:
        return []

    settings = get_settings()
    results: list[list[float] | None] = [None] * len(texts)
    missing_indices: list[int] = []

    for i, text in enumerate(texts):
        cached = _cache_get(text, settings.EMBEDDING_CACHE_TTL_SECONDS)
        if cached is not None:
            results[i] = cached
        else:
            missing_indices.append(i)

    if not missing_indices:
        logger.debug(f"Embedding cache hit for all {len(texts)} texts")
        return results  # type: ignore[return-value]

    try:
        fresh = _request_embeddings([texts[i] for i in missing_indices])
    except Exception as e:
        logger.error(f"Failed to generate embeddings: {e}")
        raise

    for i, embedding in zip(missing_indices, fresh):
        results[i] = embedding
        _cache_put(texts[i], embedding, settings.EMBEDDING_CACHE_TTL_SECONDS)

    logger.info(
        f"Generated {len(fresh)} embeddings using {settings.EMBEDDING_MODEL}",
        extra={"cached": len(texts) - len(missing_indices), "count": len(fresh)},
    )
    return results  # type: ignore[return-value]


def embed_text(text: str) -> list[float]:
    """Embed a single text."""
    return embed_texts([text])[0]


async def embed_texts_async(texts: list[str]) -> list[list[float]]:
    """Async wrapper around embed_texts using thread pool."""
    return await asyncio.to_thread(embed_texts, texts)


async def embed_text_async(text: str) -> list[float]:
    """Async wrapper around embed_text using thread pool."""
    return await asyncio.to_thread(embed_text, text)
