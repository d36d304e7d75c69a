"""In-memory Store for behavioral tests."""

from copy import deepcopy
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from app.core.schemas_gaps import AnalysisRun, GapStatus, KnowledgeGap, RunStatus
from app.core.schemas_retrieval import GoldenCandidate, RetrievalChunk, ScoredChunk
from app.core.vector_math import cosine_similarity


def _now() -> datetime:
    return datetime.now(timezone.utc)


class FakeStore:
    """Implements the Store protocol over plain dicts and lists."""

    def __init__(self):
        self.reset()

    def reset(self):
        """Reset all tables to empty."""
        self.interactions: dict[str, dict[str, Any]] = {}
        self.feedback: dict[str, dict[str, Any]] = {}
        self.chunks: list[RetrievalChunk] = []
        self.golden_answers: list[dict[str, Any]] = []
        self.runs: dict[str, AnalysisRun] = {}
        self.gaps: dict[str, KnowledgeGap] = {}
        self.closed = False

        # Failure injection
        self.fail_gap_insert_after: int | None = None
        self.match_chunks_calls: list[tuple[list[float], int, str | None]] = []

    def close(self) -> None:
        self.closed = True

    # Seeding helpers
    def add_interaction(self, **row: Any) -> str:
        row.setdefault("id", str(uuid4()))
        row.setdefault("created_at", _now())
        self.interactions[row["id"]] = row
        return row["id"]

    def add_feedback(self, **row: Any) -> str:
        row.setdefault("id", str(uuid4()))
        row.setdefault("created_at", _now())
        row.setdefault("status", "new")
        self.feedback[row["id"]] = row
        return row["id"]

    def add_chunk(self, chunk_id: str, embedding: list[float], module: str | None = None, **fields: Any) -> None:
        self.chunks.append(
            RetrievalChunk(
                id=chunk_id,
                text=fields.get("text", f"SOP text {chunk_id}"),
                doc_title=fields.get("doc_title", "SOP"),
                source_locator=fields.get("source_locator", f"SOP / {chunk_id}"),
                module=module,
                embedding=embedding,
            )
        )

    # Interactions
    def list_interactions(self, period_start: datetime, period_end: datetime) -> list[dict[str, Any]]:
        rows = [r for r in self.interactions.values() if period_start <= r["created_at"] <= period_end]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return deepcopy(rows)

    def insert_interaction(self, row: dict[str, Any]) -> str:
        return self.add_interaction(**deepcopy(row))

    def get_interaction(self, interaction_id: str) -> dict[str, Any] | None:
        row = self.interactions.get(interaction_id)
        return deepcopy(row) if row else None

    def update_interaction_feedback(self, interaction_id: str, helpful: bool | None, comment: str | None) -> None:
        if interaction_id in self.interactions:
            self.interactions[interaction_id].update({"helpful": helpful, "comment": comment})

    # Anonymous feedback
    def list_feedback(self, period_start: datetime, period_end: datetime) -> list[dict[str, Any]]:
        rows = [
            r
            for r in self.feedback.values()
            if period_start <= r["created_at"] <= period_end and r.get("status") != "dismissed"
        ]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return deepcopy(rows)

    def insert_feedback(self, row: dict[str, Any]) -> str:
        return self.add_feedback(**deepcopy(row))

    def update_feedback_embedding(self, feedback_id: str, embedding: list[float]) -> None:
        self.feedback[feedback_id]["embedding"] = list(embedding)

    # Vector search
    def match_chunks(self, embedding: list[float], match_count: int, module: str | None = None) -> list[ScoredChunk]:
        self.match_chunks_calls.append((list(embedding), match_count, module))
        scored = [
            ScoredChunk(chunk=c, similarity=cosine_similarity(embedding, c.embedding))
            for c in self.chunks
            if module is None or c.module == module
        ]
        scored.sort(key=lambda s: s.similarity, reverse=True)
        return scored[:match_count]

    def match_golden_answers(
        self, embedding: list[float], match_count: int = 1, module: str | None = None
    ) -> list[GoldenCandidate]:
        candidates = [
            GoldenCandidate(
                id=g["id"],
                question=g["question"],
                answer=g["answer"],
                module=g["module"],
                similarity=cosine_similarity(embedding, g["question_embedding"]),
            )
            for g in self.golden_answers
            if module is None or g["module"] == module
        ]
        candidates.sort(key=lambda c: c.similarity, reverse=True)
        return candidates[:match_count]

    def insert_golden_answer(
        self,
        question: str,
        embedding: list[float],
        answer: Any,
        module: str | None,
        interaction_id: str | None,
    ) -> None:
        self.golden_answers.append(
            {
                "id": str(uuid4()),
                "question": question,
                "question_embedding": list(embedding),
                "answer": deepcopy(answer),
                "module": module,
                "interaction_id": interaction_id,
            }
        )

    # Analysis runs
    def create_run(self, run: AnalysisRun) -> AnalysisRun:
        created = run.model_copy(update={"id": str(uuid4()), "started_at": _now()})
        self.runs[created.id] = created
        return created.model_copy()

    def finish_run(
        self,
        run_id: str,
        status: RunStatus,
        *,
        total_questions: int = 0,
        total_feedback: int = 0,
        gaps_found: int = 0,
        error: str | None = None,
    ) -> None:
        self.runs[run_id] = self.runs[run_id].model_copy(
            update={
                "status": status,
                "total_questions": total_questions,
                "total_feedback": total_feedback,
                "total_signals": total_questions + total_feedback,
                "gaps_found": gaps_found,
                "error": error,
                "completed_at": _now(),
            }
        )

    def list_runs(self, limit: int = 20) -> list[AnalysisRun]:
        runs = sorted(self.runs.values(), key=lambda r: r.started_at, reverse=True)
        return [r.model_copy() for r in runs[:limit]]

    def get_latest_completed_run(self) -> AnalysisRun | None:
        completed = [r for r in self.runs.values() if r.status == RunStatus.COMPLETED]
        if not completed:
            return None
        return max(completed, key=lambda r: r.completed_at).model_copy()

    # Knowledge gaps
    def insert_knowledge_gap(self, gap: KnowledgeGap) -> KnowledgeGap:
        if self.fail_gap_insert_after is not None and len(self.gaps) >= self.fail_gap_insert_after:
            raise RuntimeError("simulated insert failure")
        created = gap.model_copy(update={"id": str(uuid4()), "created_at": _now()})
        self.gaps[created.id] = created
        return created.model_copy()

    def get_knowledge_gap(self, gap_id: str) -> KnowledgeGap | None:
        gap = self.gaps.get(gap_id)
        return gap.model_copy() if gap else None

    def update_knowledge_gap(self, gap_id: str, fields: dict[str, Any]) -> KnowledgeGap:
        update = dict(fields)
        if "status" in update:
            update["status"] = GapStatus(update["status"])
        self.gaps[gap_id] = self.gaps[gap_id].model_copy(update=update)
        return self.gaps[gap_id].model_copy()

    def list_knowledge_gaps(
        self,
        run_id: str,
        status: str | None = None,
        severity: str | None = None,
    ) -> list[KnowledgeGap]:
        return [
            g.model_copy()
            for g in self.gaps.values()
            if g.run_id == run_id
            and (status is None or g.status.value == status)
            and (severity is None or g.severity.value == severity)
        ]
