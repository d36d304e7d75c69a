"""Store contract consumed by the collector, the analysis run, retrieval and the golden cache.

Implementations are opened once at a process boundary (FastAPI lifespan, CLI
entry point) and passed explicitly to every consumer.
"""

from datetime import datetime
from typing import Any, Protocol

from app.core.schemas_gaps import AnalysisRun, KnowledgeGap, RunStatus
from app.core.schemas_retrieval import GoldenCandidate, ScoredChunk


class Store(Protocol):
    def close(self) -> None: ...

    # Interactions
    def list_interactions(self, period_start: datetime, period_end: datetime) -> list[dict[str, Any]]:
        """Interactions created in [period_start, period_end], newest first."""
        ...

    def insert_interaction(self, row: dict[str, Any]) -> str: ...

    def get_interaction(self, interaction_id: str) -> dict[str, Any] | None: ...

    def update_interaction_feedback(
        self, interaction_id: str, helpful: bool | None, comment: str | None
    ) -> None: ...

    # Anonymous feedback
    def list_feedback(self, period_start: datetime, period_end: datetime) -> list[dict[str, Any]]:
        """Non-dismissed feedback created in range, newest first."""
        ...

    def insert_feedback(self, row: dict[str, Any]) -> str: ...

    def update_feedback_embedding(self, feedback_id: str, embedding: list[float]) -> None: ...

    # Vector search
    def match_chunks(
        self, embedding: list[float], match_count: int, module: str | None = None
    ) -> list[ScoredChunk]:
        """Nearest chunks by cosine similarity, most similar first."""
        ...

    def match_golden_answers(
        self, embedding: list[float], match_count: int = 1, module: str | None = None
    ) -> list[GoldenCandidate]: ...

    def insert_golden_answer(
        self,
        question: str,
        embedding: list[float],
        answer: Any,
        module: str | None,
        interaction_id: str | None,
    ) -> None: ...

    # Analysis runs
    def create_run(self, run: AnalysisRun) -> AnalysisRun: ...

    def finish_run(
        self,
        run_id: str,
        status: RunStatus,
        *,
        total_questions: int = 0,
        total_feedback: int = 0,
        gaps_found: int = 0,
        error: str | None = None,
    ) -> None: ...

    def list_runs(self, limit: int = 20) -> list[AnalysisRun]: ...

    def get_latest_completed_run(self) -> AnalysisRun | None: ...

    # Knowledge gaps
    def insert_knowledge_gap(self, gap: KnowledgeGap) -> KnowledgeGap: ...

    def get_knowledge_gap(self, gap_id: str) -> KnowledgeGap | None: ...

    def update_knowledge_gap(self, gap_id: str, fields: dict[str, Any]) -> KnowledgeGap: ...

    def list_knowledge_gaps(
        self,
        run_id: str,
        status: str | None = None,
        severity: str | None = None,
    ) -> list[KnowledgeGap]: ...
