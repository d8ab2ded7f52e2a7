"""
API Routes - Endpoint definitions for the narrative pipeline

Endpoints organized by:
- Health Check
- Pipeline (manual run, regeneration, status)
- Company insights (per-company narratives)
- Item insights (per-post analysis)
- Run history
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from constants import PipelineState, RunStatus, get_company_name, is_nasdaq_listed
from database import get_session_dependency
from repositories import EntityInsightRepository, ItemInsightRepository, RunHistoryRepository

router = APIRouter()


def get_scheduler(request: Request):
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not initialised")
    return scheduler


class RegenerateRequest(BaseModel):
    tickers: Optional[List[str]] = None


def _company_dict(row) -> dict:
    data = row.to_dict()
    data["is_nasdaq_listed"] = is_nasdaq_listed(row.company_ticker)
    return data


# ============================================================
# Health Check
# ============================================================
@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "database": str(settings.DATABASE_PATH),
    }


# ============================================================
# Pipeline
# ============================================================
@router.post("/pipeline/run")
async def run_pipeline(
    limit: Optional[int] = Query(default=None, ge=1, description="Max posts to analyse"),
    scheduler=Depends(get_scheduler),
):
    """
    Run one pass now and return its summary.

    Returns {"status": "skipped"} when a pass is already running.
    """
    if scheduler.state != PipelineState.IDLE:
        return {"status": RunStatus.SKIPPED.value, "state": scheduler.state.value}

    summary = await scheduler.trigger(limit=limit or settings.PIPELINE_BATCH_LIMIT, trigger="manual")
    if summary is None:
        raise HTTPException(status_code=500, detail="Pipeline pass could not be started, check logs")
    return summary.to_dict()


@router.post("/pipeline/regenerate")
async def regenerate_companies(
    body: Optional[RegenerateRequest] = None,
    scheduler=Depends(get_scheduler),
):
    """Rebuild company records from stored insights (all companies if no tickers given)."""
    if scheduler.state != PipelineState.IDLE:
        return {"status": RunStatus.SKIPPED.value, "state": scheduler.state.value}

    tickers = [t.upper() for t in body.tickers] if body and body.tickers else None
    summary = await scheduler.regenerate(tickers)
    if summary is None:
        raise HTTPException(status_code=500, detail="Regeneration could not be started, check logs")
    return summary.to_dict()


@router.get("/pipeline/status")
async def pipeline_status(scheduler=Depends(get_scheduler)):
    """Scheduler state, last pass and item/company counts."""
    return await scheduler.status()


# ============================================================
# Company Insights
# ============================================================
@router.get("/company-insights")
async def list_company_insights(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session_dependency),
):
    """Companies ordered by most recent activity."""
    repo = EntityInsightRepository(session)
    rows = await repo.list_all(limit=limit, offset=offset)
    return {
        "companies": [_company_dict(r) for r in rows],
        "total": await repo.count(),
    }


@router.get("/company-insights/{ticker}")
async def get_company_insight(
    ticker: str,
    include_insights: bool = Query(default=False, description="Also return the per-post insights"),
    session: AsyncSession = Depends(get_session_dependency),
):
    """Consolidated record for one company."""
    ticker = ticker.upper()
    row = await EntityInsightRepository(session).get(ticker)
    if row is None:
        raise HTTPException(
            status_code=404, detail=f"No insights for {ticker} ({get_company_name(ticker)})"
        )

    data = _company_dict(row)
    if include_insights:
        insights = await ItemInsightRepository(session).get_by_ticker(ticker)
        data["insights"] = [i.to_dict() for i in insights]
    return data


# ============================================================
# Item Insights
# ============================================================
@router.get("/insights/{post_id}")
async def get_post_insight(
    post_id: int,
    session: AsyncSession = Depends(get_session_dependency),
):
    """Per-post analysis."""
    row = await ItemInsightRepository(session).get_by_post_id(post_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Insight not found")
    return row.to_dict()


# ============================================================
# Run History
# ============================================================
@router.get("/runs")
async def list_runs(
    limit: int = Query(default=20, le=100),
    session: AsyncSession = Depends(get_session_dependency),
):
    """List pipeline runs, newest first."""
    rows = await RunHistoryRepository(session).get_recent(limit)
    return {"runs": [r.to_dict() for r in rows]}


@router.get("/runs/latest")
async def get_latest_run(session: AsyncSession = Depends(get_session_dependency)):
    """Get the latest pipeline run."""
    row = await RunHistoryRepository(session).get_latest()
    if row is None:
        raise HTTPException(status_code=404, detail="No runs found")
    return row.to_dict()

