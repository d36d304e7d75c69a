"""Configuration management for the WMS SOP Assistant."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # Provider keys (required)
    OPENAI_API_KEY: str = Field(..., description="OpenAI API key")
    ANTHROPIC_API_KEY: str = Field(..., description="Anthropic API key")

    # Environment
    WMS_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")
    EMBEDDING_MAX_RETRIES: int = Field(
        default=3, description="Retries on provider rate limiting (quota errors never retry)"
    )
    EMBEDDING_RETRY_BASE_SECONDS: float = Field(
        default=5.0, description="Backoff base delay, doubled on every retry"
    )
    EMBEDDING_CACHE_TTL_SECONDS: int = Field(
        default=1800, description="In-process embedding cache TTL"
    )

    # Query expansion
    QUERY_EXPANSION_MODEL: str = Field(default="gpt-4o-mini", description="Model for query expansion")
    QUERY_EXPANSION_MAX_QUERIES: int = Field(default=5, description="Max expanded queries kept")
    QUERY_EXPANSION_CACHE_TTL_SECONDS: int = Field(
        default=1800, description="Expanded query cache TTL"
    )

    # Generation (answers, gap summaries, SOP drafts)
    GENERATION_MODEL: str = Field(
        default="claude-sonnet-4-5-20250929", description="Anthropic model for generation"
    )
    GENERATION_MAX_TOKENS: int = Field(default=2000, description="Max tokens for answers")
    SOP_DRAFT_MAX_TOKENS: int = Field(default=3000, description="Max tokens for SOP drafts")

    # Retrieval
    RETRIEVAL_TOP_K_PER_QUERY: int = Field(default=8, description="Chunks per expanded query")
    RETRIEVAL_MAX_RESULTS: int = Field(default=10, description="Chunks kept after merge")
    ANSWER_MIN_SIMILARITY: float = Field(
        default=0.58, description="Below this best similarity the question is off-topic"
    )
    MAX_QUESTION_CHARS: int = Field(default=500, description="Max question length")

    # Golden answers
    GOLDEN_MATCH_THRESHOLD: float = Field(
        default=0.92, description="Golden answer match requires strictly greater similarity"
    )
    GOLDEN_DEDUP_THRESHOLD: float = Field(
        default=0.95, description="Skip promotion when an existing golden answer is this close"
    )

    # Gap analysis
    GAP_LOW_SIMILARITY: float = Field(
        default=0.35, description="Interactions whose top similarity is below this are gaps"
    )
    GAP_DEFAULT_PERIOD_DAYS: int = Field(default=7, description="Default analysis window")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
