"""Pydantic models for grounded retrieval and golden answers."""

from typing import Any

from pydantic import BaseModel, Field


class RetrievalChunk(BaseModel):
    """A retrievable SOP passage. Owned by the ingestion pipeline."""

    id: str
    text: str
    doc_title: str = ""
    source_locator: str = ""
    slide_number: int | None = None
    module: str | None = None
    embedding: list[float] | None = None


class ScoredChunk(BaseModel):
    chunk: RetrievalChunk
    similarity: float


class GoldenMatch(BaseModel):
    """A promoted (question, answer) pair close enough to reuse as an example."""

    question: str
    answer: Any
    module: str | None = None
    similarity: float


class GoldenCandidate(BaseModel):
    """Nearest golden answer before threshold gating."""

    id: str | None = None
    question: str
    answer: Any
    module: str | None = None
    similarity: float


class AskRequest(BaseModel):
    question: str
    module: str | None = None


class AskFeedbackRequest(BaseModel):
    interaction_id: str
    helpful: bool | None = None
    comment: str | None = None


class AnonymousFeedbackRequest(BaseModel):
    type: str
    message: str
    category: str | None = None
    urgency: str | None = None


class SourceRef(BaseModel):
    doc_title: str
    slide_number: int | None = None
    source_locator: str = ""
    text: str = ""


class AskResponse(BaseModel):
    answer: Any
    follow_up_question: str | None = None
    suggestions: list[str] = Field(default_factory=list)
    coverage: dict[str, Any] = Field(default_factory=dict)
    sources: list[SourceRef] = Field(default_factory=list)
    interaction_id: str | None = None
    golden_match: bool = False
