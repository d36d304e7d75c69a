"""Exception taxonomy shared by the retrieval and gap-mining pipelines."""


class AssistantError(Exception):
    """Base class for errors raised by this service."""


class EmbeddingError(AssistantError):
    """Embedding provider call failed."""


class RateLimitedError(EmbeddingError):
    """Provider kept rate limiting after all retries were used."""


class QuotaExhaustedError(EmbeddingError):
    """Provider account is out of quota. Never retried."""


class PersistenceError(AssistantError):
    """A Store write failed."""


class InvalidTransitionError(AssistantError, ValueError):
    """Illegal knowledge gap status change."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move knowledge gap from '{current}' to '{requested}'")


class GapNotFoundError(AssistantError, LookupError):
    """Knowledge gap id does not exist."""
