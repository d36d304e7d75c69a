"""Supabase-backed Store implementation.

Tables: interactions, anonymous_feedback, golden_answers, knowledge_gaps,
gap_analysis_runs. Vector search goes through the match_chunks and
match_golden_answers Postgres functions (pgvector cosine distance).
"""

import json
from datetime import datetime, timezone
from typing import Any

from supabase import Client

from app.core.config import Settings
from app.core.errors import PersistenceError
from app.core.logging import get_logger
from app.core.schemas_gaps import AnalysisRun, KnowledgeGap, RunStatus
from app.core.schemas_retrieval import GoldenCandidate, RetrievalChunk, ScoredChunk
from app.db.supabase_client import create_supabase

logger = get_logger(__name__)


def _utc_now_iso() -> str:
    """Get current UTC time as ISO string."""
    return datetime.now(timezone.utc).isoformat()


def parse_vector(value: Any) -> list[float] | None:
    """pgvector columns come back from PostgREST as '[0.1,0.2,...]' strings."""
    if value is None:
        return None
    if isinstance(value, str):
        return [float(x) for x in json.loads(value)]
    return [float(x) for x in value]


class SupabaseStore:
    """Store over a Supabase client. Use open() / close() at process boundaries."""

    def __init__(self, client: Client):
        self._client: Client | None = client

    @classmethod
    def open(cls, settings: Settings | None = None) -> "SupabaseStore":
        store = cls(create_supabase(settings))
        logger.info("Supabase store opened")
        return store

    def close(self) -> None:
        if self._client is None:
            return
        self._client = None
        logger.info("Supabase store closed")

    def __enter__(self) -> "SupabaseStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def client(self) -> Client:
        if self._client is None:
            raise RuntimeError("Store is closed")
        return self._client

    # =========================================================================
    # Interactions
    # =========================================================================

    def list_interactions(self, period_start: datetime, period_end: datetime) -> list[dict[str, Any]]:
        try:
            response = (
                self.client.table("interactions")
                .select("id, question, question_embedding, answer, module, similarity_scores, helpful, created_at")
                .gte("created_at", period_start.isoformat())
                .lte("created_at", period_end.isoformat())
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to list interactions: {e}")
            raise

        rows = response.data or []
        for row in rows:
            row["id"] = str(row["id"])
            row["question_embedding"] = parse_vector(row.get("question_embedding"))
        return rows

    def insert_interaction(self, row: dict[str, Any]) -> str:
        try:
            response = self.client.table("interactions").insert(row).execute()
        except Exception as e:
            logger.error(f"Failed to insert interaction: {e}")
            raise PersistenceError("Failed to insert interaction") from e

        if not response.data:
            raise PersistenceError("No data returned from interaction insert")
        return str(response.data[0]["id"])

    def get_interaction(self, interaction_id: str) -> dict[str, Any] | None:
        response = (
            self.client.table("interactions")
            .select("*")
            .eq("id", interaction_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        row["id"] = str(row["id"])
        row["question_embedding"] = parse_vector(row.get("question_embedding"))
        return row

    def update_interaction_feedback(
        self, interaction_id: str, helpful: bool | None, comment: str | None
    ) -> None:
        try:
            self.client.table("interactions").update(
                {"helpful": helpful, "comment": comment}
            ).eq("id", interaction_id).execute()
        except Exception as e:
            logger.error(f"Failed to store feedback for interaction {interaction_id}: {e}")
            raise PersistenceError("Failed to update interaction feedback") from e

    # =========================================================================
    # Anonymous feedback
    # =========================================================================

    def list_feedback(self, period_start: datetime, period_end: datetime) -> list[dict[str, Any]]:
        try:
            response = (
                self.client.table("anonymous_feedback")
                .select("id, type, category, message, urgency, status, embedding, created_at")
                .gte("created_at", period_start.isoformat())
                .lte("created_at", period_end.isoformat())
                .neq("status", "dismissed")
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to list feedback: {e}")
            raise

        rows = response.data or []
        for row in rows:
            row["id"] = str(row["id"])
            row["embedding"] = parse_vector(row.get("embedding"))
        return rows

    def insert_feedback(self, row: dict[str, Any]) -> str:
        try:
            response = self.client.table("anonymous_feedback").insert(row).execute()
        except Exception as e:
            logger.error(f"Failed to insert feedback: {e}")
            raise PersistenceError("Failed to insert feedback") from e

        if not response.data:
            raise PersistenceError("No data returned from feedback insert")
        return str(response.data[0]["id"])

    def update_feedback_embedding(self, feedback_id: str, embedding: list[float]) -> None:
        try:
            self.client.table("anonymous_feedback").update(
                {"embedding": embedding}
            ).eq("id", feedback_id).execute()
        except Exception as e:
            raise PersistenceError(f"Failed to store embedding for feedback {feedback_id}") from e

    # =========================================================================
    # Vector search
    # =========================================================================

    def match_chunks(
        self, embedding: list[float], match_count: int, module: str | None = None
    ) -> list[ScoredChunk]:
        try:
            response = self.client.rpc(
                "match_chunks",
                {
                    "query_embedding": embedding,
                    "match_count": match_count,
                    "filter_module": module,
                },
            ).execute()
        except Exception as e:
            logger.error(f"Failed to search chunks: {e}")
            raise

        results = []
        for row in response.data or []:
            chunk = RetrievalChunk(
                id=str(row["id"]),
                text=row.get("text") or "",
                doc_title=row.get("doc_title") or "",
                source_locator=row.get("source_locator") or "",
                slide_number=row.get("slide_number"),
                module=row.get("module"),
            )
            results.append(ScoredChunk(chunk=chunk, similarity=float(row.get("similarity", 0.0))))
        return results

    def match_golden_answers(
        self, embedding: list[float], match_count: int = 1, module: str | None = None
    ) -> list[GoldenCandidate]:
        response = self.client.rpc(
            "match_golden_answers",
            {
                "query_embedding": embedding,
                "match_count": match_count,
                "filter_module": module,
            },
        ).execute()

        return [
            GoldenCandidate(
                id=str(row["id"]) if row.get("id") is not None else None,
                question=row["question"],
                answer=row.get("answer"),
                module=row.get("module"),
                similarity=float(row.get("similarity", 0.0)),
            )
            for row in response.data or []
        ]

    def insert_golden_answer(
        self,
        question: str,
        embedding: list[float],
        answer: Any,
        module: str | None,
        interaction_id: str | None,
    ) -> None:
        try:
            self.client.table("golden_answers").insert(
                {
                    "question": question,
                    "question_embedding": embedding,
                    "answer": answer,
                    "module": module,
                    "interaction_id": interaction_id,
                }
            ).execute()
        except Exception as e:
            logger.error(f"Failed to insert golden answer: {e}")
            raise PersistenceError("Failed to insert golden answer") from e

    # =========================================================================
    # Analysis runs
    # =========================================================================

    def create_run(self, run: AnalysisRun) -> AnalysisRun:
        try:
            response = self.client.table("gap_analysis_runs").insert(run.to_row()).execute()
        except Exception as e:
            logger.error(f"Failed to create analysis run: {e}")
            raise PersistenceError("Failed to create analysis run") from e

        if not response.data:
            raise PersistenceError("No data returned from analysis run insert")
        return AnalysisRun.from_row(response.data[0])

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
        try:
            self.client.table("gap_analysis_runs").update(
                {
                    "status": status.value,
                    "total_questions": total_questions,
                    "total_feedback": total_feedback,
                    "total_signals": total_questions + total_feedback,
                    "gaps_found": gaps_found,
                    "error": error,
                    "completed_at": _utc_now_iso(),
                }
            ).eq("id", run_id).execute()
        except Exception as e:
            logger.error(f"Failed to finish analysis run {run_id}: {e}", extra={"run_id": run_id})
            raise PersistenceError(f"Failed to finish analysis run {run_id}") from e

    def list_runs(self, limit: int = 20) -> list[AnalysisRun]:
        response = (
            self.client.table("gap_analysis_runs")
            .select("*")
            .order("started_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [AnalysisRun.from_row(row) for row in response.data or []]

    def get_latest_completed_run(self) -> AnalysisRun | None:
        response = (
            self.client.table("gap_analysis_runs")
            .select("*")
            .eq("status", RunStatus.COMPLETED.value)
            .order("completed_at", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return AnalysisRun.from_row(response.data[0])

    # =========================================================================
    # Knowledge gaps
    # =========================================================================

    def insert_knowledge_gap(self, gap: KnowledgeGap) -> KnowledgeGap:
        try:
            response = self.client.table("knowledge_gaps").insert(gap.to_row()).execute()
        except Exception as e:
            logger.error(f"Failed to insert knowledge gap: {e}", extra={"run_id": gap.run_id})
            raise PersistenceError("Failed to insert knowledge gap") from e

        if not response.data:
            raise PersistenceError("No data returned from knowledge gap insert")
        return KnowledgeGap.from_row(response.data[0])

    def get_knowledge_gap(self, gap_id: str) -> KnowledgeGap | None:
        response = (
            self.client.table("knowledge_gaps")
            .select("*")
            .eq("id", gap_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return KnowledgeGap.from_row(response.data[0])

    def update_knowledge_gap(self, gap_id: str, fields: dict[str, Any]) -> KnowledgeGap:
        payload = {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in fields.items()
        }
        try:
            response = (
                self.client.table("knowledge_gaps")
                .update(payload)
                .eq("id", gap_id)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to update knowledge gap {gap_id}: {e}")
            raise PersistenceError(f"Failed to update knowledge gap {gap_id}") from e

        if not response.data:
            raise PersistenceError(f"Knowledge gap {gap_id} not updated")
        return KnowledgeGap.from_row(response.data[0])

    def list_knowledge_gaps(
        self,
        run_id: str,
        status: str | None = None,
        severity: str | None = None,
    ) -> list[KnowledgeGap]:
        query = self.client.table("knowledge_gaps").select("*").eq("run_id", run_id)
        if status:
            query = query.eq("status", status)
        if severity:
            query = query.eq("severity", severity)

        response = query.execute()
        return [KnowledgeGap.from_row(row) for row in response.data or []]
