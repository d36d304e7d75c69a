"""Knowledge gap analysis LangGraph pipeline.

collect → cluster → summarize_and_persist → finalize

One run is a sequential batch job. Clusters are summarized one at a time and
each gap is inserted as soon as it is built. If a later step fails the run is
marked failed, and gaps inserted earlier in the same run are kept: re-running
the period re-clusters the same signals, so nothing is lost by keeping them.
No lock prevents two concurrent runs; callers serialize triggers.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from langgraph.graph import END, StateGraph

from app.chains.summarize_gap_cluster import sample_texts, summarize_cluster
from app.core.gap_clustering import SignalCluster, cluster_signals
from app.core.gap_scoring import infer_module, score_severity
from app.core.gap_signals import collect_gap_signals
from app.core.logging import get_logger, log_with_context
from app.core.schemas_gaps import (
    AnalysisRun,
    GapAnalysisResult,
    GapSignal,
    KnowledgeGap,
    RunStatus,
)
from app.db.store import Store

logger = get_logger(__name__)


@dataclass
class GapAnalysisState:
    """State for one gap analysis run"""
    run_id: str
    period_start: datetime
    period_end: datetime

    # Collected evidence
    questions: list[GapSignal] = field(default_factory=list)
    feedback: list[GapSignal] = field(default_factory=list)

    # Surviving clusters
    clusters: list[SignalCluster] = field(default_factory=list)

    # Persisted output
    gaps: list[KnowledgeGap] = field(default_factory=list)


def build_gap(run_id: str, cluster: SignalCluster, title: str, description: str) -> KnowledgeGap:
    questions, feedback = sample_texts(cluster)
    return KnowledgeGap(
        run_id=run_id,
        title=title,
        description=description,
        sample_questions=questions,
        sample_feedback=feedback,
        question_count=cluster.question_count,
        feedback_count=cluster.feedback_count,
        signal_count=cluster.question_count + cluster.feedback_count,
        suggested_module=infer_module(cluster),
        severity=score_severity(cluster),
    )


def _build_graph(store: Store) -> StateGraph:
    """Build the gap analysis graph bound to an open Store."""

    async def collect(state: GapAnalysisState) -> dict:
        collected = await asyncio.to_thread(
            collect_gap_signals, store, state.period_start, state.period_end
        )
        return {"questions": collected.questions, "feedback": collected.feedback}

    def cluster(state: GapAnalysisState) -> dict:
        return {"clusters": cluster_signals(state.questions, state.feedback)}

    async def summarize_and_persist(state: GapAnalysisState) -> dict:
        gaps = []
        for signal_cluster in state.clusters:
            summary = await summarize_cluster(signal_cluster)
            gap = build_gap(state.run_id, signal_cluster, summary.title, summary.description)
            gaps.append(await asyncio.to_thread(store.insert_knowledge_gap, gap))
        return {"gaps": gaps}

    def finalize(state: GapAnalysisState) -> dict:
        store.finish_run(
            state.run_id,
            RunStatus.COMPLETED,
            total_questions=len(state.questions),
            total_feedback=len(state.feedback),
            gaps_found=len(state.gaps),
        )
        return {}

    graph = StateGraph(GapAnalysisState)

    graph.add_node("collect", collect)
    graph.add_node("cluster", cluster)
    graph.add_node("summarize_and_persist", summarize_and_persist)
    graph.add_node("finalize", finalize)

    graph.set_entry_point("collect")
    graph.add_edge("collect", "cluster")
    graph.add_edge("cluster", "summarize_and_persist")
    graph.add_edge("summarize_and_persist", "finalize")
    graph.add_edge("finalize", END)

    return graph


async def run_gap_analysis(
    store: Store,
    period_days: int = 7,
    now: datetime | None = None,
) -> GapAnalysisResult:
    """
    Analyze the last period_days of interactions and feedback for knowledge gaps.

    Args:
        store: Open Store
        period_days: Window length ending at now
        now: Window end (defaults to current UTC time)

    Returns:
        GapAnalysisResult with the persisted gaps

    Raises:
        Exception: Whatever aborted the run; the run record is marked failed first
    """
    period_end = now or datetime.now(timezone.utc)
    period_start = period_end - timedelta(days=period_days)

    run = await asyncio.to_thread(
        store.create_run,
        AnalysisRun(period_start=period_start, period_end=period_end, status=RunStatus.RUNNING),
    )
    run_id = run.id
    logger.info(f"Starting gap analysis for last {period_days} days", extra={"run_id": run_id})

    initial_state = GapAnalysisState(
        run_id=run_id,
        period_start=period_start,
        period_end=period_end,
    )

    try:
        final_state = await _build_graph(store).compile().ainvoke(initial_state)
    except Exception as e:
        logger.error(f"Gap analysis failed: {e}", extra={"run_id": run_id})
        try:
            await asyncio.to_thread(
                store.finish_run, run_id, RunStatus.FAILED, error=f"{type(e).__name__}: {e}"
            )
        except Exception as finish_error:
            logger.error(
                f"Could not mark run as failed: {finish_error}", extra={"run_id": run_id}
            )
        raise

    gaps = final_state["gaps"]
    total_signals = len(final_state["questions"]) + len(final_state["feedback"])

    log_with_context(
        logger,
        logging.INFO,
        f"Analysis complete: {len(gaps)} gaps from {total_signals} signals",
        run_id=run_id,
        questions=len(final_state["questions"]),
        feedback=len(final_state["feedback"]),
    )
    return GapAnalysisResult(run_id=run_id, gaps=gaps, total_signals=total_signals)
