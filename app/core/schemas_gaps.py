"""Pydantic models for knowledge gap mining.

- GapSignal: one unanswered question or feedback message (clustering input)
- KnowledgeGap: persisted, supervisor-facing summary of one surviving cluster
- AnalysisRun: one execution of the gap analysis pipeline
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

MAX_SAMPLE_QUESTIONS = 8
MAX_SAMPLE_FEEDBACK = 5


# =============================================================================
# Enums
# =============================================================================


class SignalKind(str, Enum):
    QUESTION = "question"
    FEEDBACK = "feedback"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class GapStatus(str, Enum):
    """Supervisor lifecycle of a knowledge gap."""

    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# Clustering input
# =============================================================================


class GapSignal(BaseModel):
    """One atomic piece of gap evidence."""

    kind: SignalKind
    text: str
    source_id: str
    embedding: list[float] | None = None
    module_hint: str | None = None  # questions only: module the user filtered on
    category_hint: str | None = None  # feedback only: training, workflow, ...
    urgency: str | None = None  # feedback only: low, normal, high
    is_complaint: bool = False
    was_negatively_rated: bool = False


# =============================================================================
# Persisted entities
# =============================================================================


class KnowledgeGap(BaseModel):
    """A recurring knowledge gap surfaced by an analysis run."""

    id: str | None = None
    run_id: str
    title: str
    description: str
    sample_questions: list[str] = Field(default_factory=list, max_length=MAX_SAMPLE_QUESTIONS)
    sample_feedback: list[str] = Field(default_factory=list, max_length=MAX_SAMPLE_FEEDBACK)
    question_count: int = 0
    feedback_count: int = 0
    signal_count: int
    suggested_module: str | None = None
    severity: Severity
    status: GapStatus = GapStatus.OPEN
    sop_draft: str | None = None
    sop_draft_generated_at: datetime | None = None
    resolved_at: datetime | None = None
    created_at: datetime | None = None

    def to_row(self) -> dict[str, Any]:
        """Serialize for insertion; server-assigned fields are omitted when unset."""
        row = self.model_dump(mode="json")
        for key in ("id", "created_at"):
            if row.get(key) is None:
                row.pop(key, None)
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "KnowledgeGap":
        data = dict(row)
        if data.get("id") is not None:
            data["id"] = str(data["id"])
        if data.get("run_id") is not None:
            data["run_id"] = str(data["run_id"])
        return cls.model_validate(data)


class AnalysisRun(BaseModel):
    """One gap analysis execution record."""

    id: str | None = None
    period_start: datetime
    period_end: datetime
    status: RunStatus = RunStatus.RUNNING
    total_signals: int = 0
    total_questions: int = 0
    total_feedback: int = 0
    gaps_found: int = 0
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def to_row(self) -> dict[str, Any]:
        row = self.model_dump(mode="json")
        for key in ("id", "started_at", "completed_at", "error"):
            if row.get(key) is None:
                row.pop(key, None)
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "AnalysisRun":
        data = dict(row)
        if data.get("id") is not None:
            data["id"] = str(data["id"])
        return cls.model_validate(data)


# =============================================================================
# Pipeline results
# =============================================================================


class GapSummary(BaseModel):
    title: str
    description: str


class GapAnalysisResult(BaseModel):
    run_id: str
    gaps: list[KnowledgeGap] = Field(default_factory=list)
    total_signals: int = 0
