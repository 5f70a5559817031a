"""Scheduled Celery tasks: periodic scraping, daily stats, weekly cleanup."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from police_tracker.celery_app import SCRAPE_SOFT_TIME_LIMIT, SCRAPE_TIME_LIMIT, app
from police_tracker.config import load_config
from police_tracker.context import AppContext, build_context

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_with_context(handler: Callable[[AppContext], Awaitable[T]]) -> T:
    """Build a fresh context, run the handler, wait for spawned jobs, close.

    Each task invocation gets its own event loop via asyncio.run(), so the
    asyncpg pool and HTTP client are created and closed per task.
    """
    context = await build_context(load_config())
    try:
        result = await handler(context)
        await context.orchestrator.wait_for_jobs()
        return result
    finally:
        await context.close()


async def _async_main_scraping(context: AppContext) -> dict:
    job_ids = await context.orchestrator.start_all_scraping_jobs()
    return {"job_ids": job_ids}


async def _async_daily_stats(context: AppContext) -> dict:
    stats = await context.orchestrator.get_scraping_stats()
    logger.info(
        f"Daily scraping stats: {stats.total_jobs} jobs "
        f"({stats.successful_jobs} ok, {stats.failed_jobs} failed), "
        f"{stats.total_articles_scraped} articles, "
        f"{stats.total_incidents_extracted} incidents"
    )
    return stats.model_dump(mode="json")


async def _async_weekly_cleanup(context: AppContext) -> dict:
    return await context.scheduler.cleanup_old_data()


@app.task(
    bind=True,
    name="police_tracker.tasks.scheduled_tasks.run_main_scraping",
    acks_late=True,
    soft_time_limit=SCRAPE_SOFT_TIME_LIMIT,
    time_limit=SCRAPE_TIME_LIMIT,
)
def run_main_scraping(self):
    """Six-hourly scrape of every due source, triggered by Celery Beat."""
    logger.info("Scheduled scraping starting")
    try:
        result = asyncio.run(run_with_context(_async_main_scraping))
        logger.info(f"Scheduled scraping completed: {len(result['job_ids'])} jobs")
        return result
    except Exception as exc:
        logger.error(f"Scheduled scraping failed: {exc}")
        raise


@app.task(
    bind=True,
    name="police_tracker.tasks.scheduled_tasks.scrape_source",
    acks_late=True,
    soft_time_limit=SCRAPE_SOFT_TIME_LIMIT,
    time_limit=SCRAPE_TIME_LIMIT,
)
def scrape_source(self, source_id: str):
    """Scrape a single source on demand."""
    async def handler(context: AppContext) -> dict:
        job_id = await context.orchestrator.start_scraping_job(source_id)
        return {"job_id": job_id}

    logger.info(f"Source scraping starting for {source_id}")
    try:
        return asyncio.run(run_with_context(handler))
    except Exception as exc:
        logger.error(f"Source scraping failed for {source_id}: {exc}")
        raise


@app.task(
    bind=True,
    name="police_tracker.tasks.scheduled_tasks.log_daily_stats",
    acks_late=True,
    soft_time_limit=60,
    time_limit=120,
)
def log_daily_stats(self):
    """Log aggregate scraping statistics at midnight."""
    try:
        return asyncio.run(run_with_context(_async_daily_stats))
    except Exception as exc:
        logger.error(f"Daily stats failed: {exc}")
        raise


@app.task(
    bind=True,
    name="police_tracker.tasks.scheduled_tasks.weekly_cleanup",
    acks_late=True,
    soft_time_limit=300,
    time_limit=360,
)
def weekly_cleanup(self):
    """Delete old jobs and processed articles (Sunday 02:00)."""
    logger.info("Weekly cleanup starting")
    try:
        result = asyncio.run(run_with_context(_async_weekly_cleanup))
        logger.info(f"Weekly cleanup completed: {result}")
        return result
    except Exception as exc:
        logger.error(f"Weekly cleanup failed: {exc}")
        raise
