"""
Long-running scraping service: scheduler lifecycle plus status reporting.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from celery.schedules import crontab

from police_tracker.context import AppContext

logger = logging.getLogger(__name__)

STATUS_REPORT = "status-report"


class ScrapingService:
    """Starts and stops the scheduler and reports on the running pipeline."""

    def __init__(self, context: AppContext):
        self.context = context
        self.running = False
        self.start_time: Optional[datetime] = None

    def uptime_seconds(self) -> float:
        if not self.start_time:
            return 0.0
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()

    async def start(self) -> List[str]:
        """Start all triggers and kick off an initial scrape of due sources."""
        if self.running:
            logger.info("Scraping service is already running")
            return []

        scheduler = self.context.scheduler
        logger.info("Initializing scraping scheduler")
        scheduler.init()
        scheduler.schedule_job(STATUS_REPORT, crontab(minute=0), self.log_status_report)
        scheduler.start_all()

        logger.info("Running initial scraping pass")
        job_ids = await self.context.orchestrator.start_all_scraping_jobs()
        logger.info(f"Started {len(job_ids)} initial scraping jobs")

        self.running = True
        self.start_time = datetime.now(timezone.utc)
        logger.info("Scraping service started; scraping runs every 6 hours")
        return job_ids

    async def stop(self) -> None:
        if not self.running:
            logger.info("Scraping service is not running")
            return

        logger.info("Stopping scraping service")
        self.context.scheduler.stop_all()
        self.context.scheduler.destroy()

        uptime_minutes = round(self.uptime_seconds() / 60)
        self.running = False
        logger.info(f"Scraping service stopped (uptime: {uptime_minutes} minutes)")

    async def get_status(self) -> Dict[str, Any]:
        stats = await self.context.orchestrator.get_scraping_stats()
        return {
            "running": self.running,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "uptime_seconds": self.uptime_seconds(),
            "stats": stats.model_dump(mode="json"),
            "scheduler": self.context.scheduler.get_jobs_status(),
        }

    async def run_test(self) -> List[str]:
        """Run one full scraping pass immediately and wait for it to finish."""
        logger.info("Running test scraping pass")
        job_ids = await self.context.scheduler.trigger_manual_scraping()
        await self.context.orchestrator.wait_for_jobs()
        logger.info(f"Test scraping finished: {len(job_ids)} jobs")
        return job_ids

    async def log_status_report(self) -> None:
        stats = await self.context.orchestrator.get_scraping_stats()
        logger.info(
            f"Status report: uptime {round(self.uptime_seconds() / 60)} minutes, "
            f"{stats.total_jobs} jobs ({stats.successful_jobs} ok, {stats.failed_jobs} failed), "
            f"{stats.total_articles_scraped} articles, "
            f"{stats.total_incidents_extracted} incidents"
        )
