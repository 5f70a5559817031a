"""
Scraping admin routes: sources, jobs, review queue, stats, manual triggers,
and service control.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request

from police_tracker.context import AppContext
from police_tracker.models import ScrapingSourceUpdate
from police_tracker.service import ScrapingService
from police_tracker.services import SubmissionNotFoundError
from police_tracker.utils import get_county_statistics

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/scraping", tags=["Scraping"])


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_service(request: Request) -> ScrapingService:
    return request.app.state.service


# =====================
# Sources
# =====================


@router.get("/sources")
async def list_sources(
    enabled_only: bool = Query(False),
    context: AppContext = Depends(get_context),
):
    sources = await context.store.list_sources(enabled_only=enabled_only)
    return {"sources": sources, "total": len(sources)}


@router.get("/sources/{source_id}")
async def get_source(source_id: str, context: AppContext = Depends(get_context)):
    source = await context.store.get_source(source_id)
    if source is None:
        raise HTTPException(status_code=404, detail="Source not found")
    return source


@router.patch("/sources/{source_id}")
async def update_source(
    source_id: str,
    updates: ScrapingSourceUpdate,
    context: AppContext = Depends(get_context),
):
    """Edit a source (enable/disable, URLs, interval)."""
    source = await context.store.update_source(source_id, updates.model_dump(exclude_unset=True))
    if source is None:
        raise HTTPException(status_code=404, detail="Source not found")
    logger.info(f"Updated scraping source {source_id}")
    return source


# =====================
# Jobs
# =====================


@router.get("/jobs")
async def list_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    context: AppContext = Depends(get_context),
):
    jobs, total = await context.store.list_jobs(page=page, limit=limit)
    return {"jobs": jobs, "total": total, "page": page, "limit": limit}


@router.get("/jobs/{job_id}")
async def get_job(job_id: str, context: AppContext = Depends(get_context)):
    job = await context.store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.get("/jobs/{job_id}/articles")
async def list_job_articles(job_id: str, context: AppContext = Depends(get_context)):
    job = await context.store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    articles = await context.store.list_articles(job_id)
    return {"articles": articles, "total": len(articles)}


# =====================
# Review queue
# =====================


@router.get("/submissions/pending")
async def list_pending_submissions(context: AppContext = Depends(get_context)):
    """Scraper-origin submissions awaiting review."""
    submissions = await context.router.list_pending_scraped()
    return {"submissions": submissions, "total": len(submissions)}


@router.post("/submissions/{submission_id}/approve")
async def approve_submission(submission_id: str, context: AppContext = Depends(get_context)):
    try:
        case = await context.router.approve_submission(submission_id)
    except SubmissionNotFoundError:
        raise HTTPException(status_code=404, detail="Submission not found")
    return {"success": True, "case": case}


@router.post("/submissions/{submission_id}/reject")
async def reject_submission(
    submission_id: str,
    reason: Optional[str] = Body(None, embed=True),
    context: AppContext = Depends(get_context),
):
    try:
        submission = await context.router.reject_submission(submission_id, reason)
    except SubmissionNotFoundError:
        raise HTTPException(status_code=404, detail="Submission not found")
    return {"success": True, "submission": submission}


# =====================
# Stats
# =====================


@router.get("/stats")
async def get_stats(context: AppContext = Depends(get_context)):
    return await context.orchestrator.get_scraping_stats()


@router.get("/metrics")
async def get_metrics(context: AppContext = Depends(get_context)):
    """Daily (30 day) and per-source (7 day) job metrics."""
    return await context.orchestrator.get_scraping_metrics()


@router.get("/counties")
async def get_county_stats(
    limit: Optional[int] = Query(None, ge=1),
    context: AppContext = Depends(get_context),
):
    cases = await context.store.list_cases()
    counties = get_county_statistics(cases)
    if limit:
        counties = counties[:limit]
    return {"counties": counties, "total_cases": len(cases)}


# =====================
# Manual triggers
# =====================


@router.post("/trigger")
async def trigger_all(context: AppContext = Depends(get_context)):
    job_ids = await context.scheduler.trigger_manual_scraping()
    return {"success": True, "job_ids": job_ids}


@router.post("/trigger/{source_id}")
async def trigger_source(source_id: str, context: AppContext = Depends(get_context)):
    job_id = await context.scheduler.trigger_source_scraping(source_id)
    if job_id is None:
        raise HTTPException(
            status_code=409,
            detail="Scraping not started: source missing, disabled, or already running",
        )
    return {"success": True, "job_id": job_id}


# =====================
# Service control
# =====================


@router.post("/service/start")
async def start_service(service: ScrapingService = Depends(get_service)):
    job_ids = await service.start()
    return {"success": True, "running": service.running, "job_ids": job_ids}


@router.post("/service/stop")
async def stop_service(service: ScrapingService = Depends(get_service)):
    await service.stop()
    return {"success": True, "running": service.running}


@router.get("/service/status")
async def service_status(
    service: ScrapingService = Depends(get_service),
    context: AppContext = Depends(get_context),
):
    status = await service.get_status()
    status["next_runs"] = context.scheduler.get_next_run_times()
    status["running_sources"] = context.orchestrator.running_sources()
    return status
