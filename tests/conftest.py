"""Pytest configuration and fixtures."""

import os

import pytest

from app.chains.expand_queries import clear_expansion_cache
from app.core.embeddings import clear_embedding_cache
from tests.fakes.fake_store import FakeStore

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key")


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ["ANTHROPIC_API_KEY"] = "test-anthropic-key"
    os.environ["WMS_ENV"] = "test"


@pytest.fixture(autouse=True)
def clear_caches():
    """Embedding and expansion caches are process-wide; isolate every test."""
    clear_embedding_cache()
    clear_expansion_cache()
    yield
    clear_embedding_cache()
    clear_expansion_cache()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()
