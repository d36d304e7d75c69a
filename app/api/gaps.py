"""Knowledge gap API endpoints (supervisor dashboard)."""

import asyncio

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from app.api.dependencies import StoreDep
from app.chains.generate_sop_draft import generate_sop_draft
from app.core.config import get_settings
from app.core.errors import GapNotFoundError, InvalidTransitionError
from app.core.gap_scoring import rank_gaps
from app.core.gap_status import plan_status_transition
from app.core.logging import get_logger
from app.core.schemas_gaps import AnalysisRun, GapAnalysisResult, GapStatus, KnowledgeGap
from app.graphs.gap_analysis_graph import run_gap_analysis

logger = get_logger(__name__)

router = APIRouter()


class AnalyzeRequest(BaseModel):
    period_days: int | None = None


class StatusUpdateRequest(BaseModel):
    status: str


class GapReport(BaseModel):
    run: AnalysisRun | None = None
    gaps: list[KnowledgeGap] = []


@router.post("/analyze")
async def analyze(store: StoreDep, request: AnalyzeRequest | None = None) -> GapAnalysisResult:
    """
    Run gap analysis over the last period_days.

    Raises:
        HTTPException 500: Analysis failed (the run record is marked failed)
    """
    period_days = (request.period_days if request else None) or get_settings().GAP_DEFAULT_PERIOD_DAYS
    logger.info(f"Starting analysis for last {period_days} days")

    try:
        return await run_gap_analysis(store, period_days=period_days)
    except Exception:
        logger.exception("Gap analysis failed")
        raise HTTPException(status_code=500, detail="Gap analysis failed")


@router.get("/report")
async def report(
    store: StoreDep,
    status: str | None = Query(None, description="Filter by status (open, acknowledged, resolved, dismissed)"),
    severity: str | None = Query(None, description="Filter by severity (low, medium, high)"),
) -> GapReport:
    """Latest completed run with its gaps, most severe and largest first."""
    try:
        run = await asyncio.to_thread(store.get_latest_completed_run)
        if run is None:
            return GapReport()

        gaps = await asyncio.to_thread(store.list_knowledge_gaps, run.id, status, severity)
        return GapReport(run=run, gaps=rank_gaps(gaps))

    except Exception:
        logger.exception("Failed to load gap report")
        raise HTTPException(status_code=500, detail="Failed to load report")


@router.get("/runs")
async def list_runs(
    store: StoreDep,
    limit: int = Query(20, description="Maximum number of runs to return"),
) -> list[AnalysisRun]:
    try:
        return await asyncio.to_thread(store.list_runs, limit)
    except Exception:
        logger.exception("Failed to list analysis runs")
        raise HTTPException(status_code=500, detail="Failed to load runs")


@router.patch("/{gap_id}")
async def update_gap_status(gap_id: str, request: StatusUpdateRequest, store: StoreDep) -> KnowledgeGap:
    """
    Move a gap through its supervisor lifecycle.

    Raises:
        HTTPException 400: Unknown status value
        HTTPException 404: Gap not found
        HTTPException 409: Transition not allowed from the current status
    """
    try:
        requested = GapStatus(request.status)
    except ValueError:
        allowed = ", ".join(s.value for s in GapStatus)
        raise HTTPException(status_code=400, detail=f"Status must be one of: {allowed}")

    try:
        gap = await asyncio.to_thread(store.get_knowledge_gap, gap_id)
        if gap is None:
            raise HTTPException(status_code=404, detail="Gap not found")

        fields = plan_status_transition(gap, requested)
        updated = await asyncio.to_thread(store.update_knowledge_gap, gap_id, fields)
        logger.info(f"Gap {gap_id} status {gap.status.value} -> {requested.value}")
        return updated

    except HTTPException:
        raise
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception:
        logger.exception(f"Failed to update gap {gap_id}")
        raise HTTPException(status_code=500, detail="Failed to update gap")


@router.post("/{gap_id}/draft")
async def create_sop_draft(gap_id: str, store: StoreDep) -> dict:
    """Generate or regenerate the SOP draft for a gap."""
    logger.info(f"Generating SOP draft for gap {gap_id}")
    try:
        gap = await generate_sop_draft(store, gap_id)
        return {"draft": gap.sop_draft, "generated_at": gap.sop_draft_generated_at}
    except GapNotFoundError:
        raise HTTPException(status_code=404, detail="Gap not found")
    except Exception:
        logger.exception(f"Draft generation failed for gap {gap_id}")
        raise HTTPException(status_code=500, detail="Failed to generate SOP draft")
