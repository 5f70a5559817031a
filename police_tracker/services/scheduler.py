"""
In-process scraping scheduler.

Each named trigger owns an asyncio task that sleeps until its next crontab
fire time and then runs an async callback. Fire times are computed with
``celery.schedules.crontab`` in the scheduler's timezone, so the same
schedules can be handed to Celery beat unchanged (see ``celery_app.py``).

A failing callback is logged and the trigger keeps running.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Union

from celery import Celery
from celery.schedules import crontab

from .thresholds import ARTICLE_RETENTION_DAYS, JOB_RETENTION_DAYS, SCHEDULER_TIMEZONE

logger = logging.getLogger(__name__)

TriggerCallback = Callable[[], Awaitable[object]]

MAIN_SCRAPING = "main-scraping"
DAILY_STATS = "daily-stats"
WEEKLY_CLEANUP = "weekly-cleanup"


def default_schedules() -> Dict[str, crontab]:
    """Crontab schedules for the built-in triggers."""
    return {
        MAIN_SCRAPING: crontab(minute=0, hour="*/6"),               # Every 6 hours at :00
        DAILY_STATS: crontab(minute=0, hour=0),                     # Midnight
        WEEKLY_CLEANUP: crontab(minute=0, hour=2, day_of_week=0),   # Sunday 02:00
    }


def parse_cron_expression(expression: str) -> crontab:
    """Parse a five-field cron expression (``m h dom mon dow``)."""
    fields = expression.split()
    if len(fields) != 5:
        raise ValueError(f"Invalid cron expression {expression!r}: expected 5 fields")
    minute, hour, day_of_month, month_of_year, day_of_week = fields
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        day_of_week=day_of_week,
    )


class ScheduledTrigger:
    """A named crontab schedule bound to an async callback."""

    def __init__(self, name: str, schedule: crontab, callback: TriggerCallback):
        self.name = name
        self.schedule = schedule
        self.callback = callback
        self.last_run_at: Optional[datetime] = None
        # Crontab resolution is one minute; pause after a run so it fires once
        self.cooldown_seconds = 1.0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_run_time(self) -> datetime:
        now = self.schedule.now()
        run_at = now + self.schedule.remaining_estimate(now)
        # Crontab fires on whole minutes; drop the drift between the two now() calls
        return (run_at + timedelta(seconds=30)).replace(second=0, microsecond=0)

    def seconds_until_next_run(self) -> float:
        now = self.schedule.now()
        return max(0.0, self.schedule.remaining_estimate(now).total_seconds())

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run_loop(), name=f"trigger:{self.name}")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
        self._task = None

    async def run_once(self) -> None:
        """Run the callback now, logging instead of raising."""
        try:
            await self.callback()
        except Exception as e:
            logger.error(f"Scheduled task {self.name} failed: {e}")
        self.last_run_at = self.schedule.now()

    async def _run_loop(self) -> None:
        while True:
            delay = self.seconds_until_next_run()
            logger.debug(f"Trigger {self.name} sleeping {delay:.0f}s")
            await asyncio.sleep(delay)
            await self.run_once()
            await asyncio.sleep(self.cooldown_seconds)


class ScrapingScheduler:
    """Owns the periodic scraping, stats and cleanup triggers."""

    def __init__(self, orchestrator, store, timezone_name: str = SCHEDULER_TIMEZONE):
        self.orchestrator = orchestrator
        self.store = store
        self.timezone = timezone_name

        # Private Celery app used only for crontab timezone handling
        self.app = Celery("police_tracker.scheduler", set_as_current=False)
        self.app.conf.timezone = timezone_name
        self.app.conf.enable_utc = True

        self._triggers: Dict[str, ScheduledTrigger] = {}
        self._initialized = False

    def init(self) -> None:
        """Register the built-in triggers. Safe to call more than once."""
        if self._initialized:
            logger.info("Scheduler already initialized")
            return

        schedules = default_schedules()
        self.schedule_job(MAIN_SCRAPING, schedules[MAIN_SCRAPING], self._run_main_scraping)
        self.schedule_job(DAILY_STATS, schedules[DAILY_STATS], self._log_daily_stats)
        self.schedule_job(WEEKLY_CLEANUP, schedules[WEEKLY_CLEANUP], self.cleanup_old_data)

        self._initialized = True
        logger.info(f"Scheduler initialized ({self.timezone})")

    def schedule_job(
        self,
        name: str,
        schedule: Union[crontab, str],
        task: TriggerCallback,
    ) -> ScheduledTrigger:
        """Register (or replace) a named trigger. Triggers start stopped."""
        if isinstance(schedule, str):
            schedule = parse_cron_expression(schedule)
        schedule.app = self.app

        existing = self._triggers.get(name)
        if existing is not None:
            existing.stop()
            logger.info(f"Replacing scheduled job {name}")

        trigger = ScheduledTrigger(name, schedule, task)
        self._triggers[name] = trigger
        return trigger

    def start_all(self) -> None:
        for trigger in self._triggers.values():
            trigger.start()
        logger.info(f"Started {len(self._triggers)} scheduled jobs")

    def stop_all(self) -> None:
        for trigger in self._triggers.values():
            trigger.stop()
        logger.info("Stopped all scheduled jobs")

    def start_job(self, name: str) -> bool:
        trigger = self._triggers.get(name)
        if trigger is None:
            return False
        trigger.start()
        logger.info(f"Started scheduled job {name}")
        return True

    def stop_job(self, name: str) -> bool:
        trigger = self._triggers.get(name)
        if trigger is None:
            return False
        trigger.stop()
        logger.info(f"Stopped scheduled job {name}")
        return True

    def get_jobs_status(self) -> List[dict]:
        return [{"name": name, "running": t.running} for name, t in self._triggers.items()]

    def get_next_run_times(self) -> Dict[str, str]:
        return {name: t.next_run_time().isoformat() for name, t in self._triggers.items()}

    def destroy(self) -> None:
        self.stop_all()
        self._triggers.clear()
        self._initialized = False
        logger.info("Scheduler destroyed")

    # =====================
    # Manual triggers
    # =====================

    async def trigger_manual_scraping(self) -> List[str]:
        logger.info("Manually triggering scraping for all sources")
        try:
            job_ids = await self.orchestrator.start_all_scraping_jobs()
        except Exception as e:
            logger.error(f"Error in manual scraping trigger: {e}")
            return []
        logger.info(f"Manually started {len(job_ids)} scraping jobs")
        return job_ids

    async def trigger_source_scraping(self, source_id: str) -> Optional[str]:
        logger.info(f"Manually triggering scraping for source {source_id}")
        try:
            return await self.orchestrator.start_scraping_job(source_id)
        except Exception as e:
            logger.error(f"Error triggering scraping for source {source_id}: {e}")
            return None

    # =====================
    # Trigger callbacks
    # =====================

    async def _run_main_scraping(self) -> List[str]:
        logger.info("Running scheduled scraping")
        job_ids = await self.orchestrator.start_all_scraping_jobs()
        logger.info(f"Scheduled scraping started {len(job_ids)} jobs")
        return job_ids

    async def _log_daily_stats(self):
        stats = await self.orchestrator.get_scraping_stats()
        logger.info(
            f"Daily scraping stats: {stats.total_jobs} jobs "
            f"({stats.successful_jobs} ok, {stats.failed_jobs} failed, "
            f"{stats.running_jobs} running), {stats.total_articles_scraped} articles, "
            f"{stats.total_incidents_extracted} incidents"
        )
        return stats

    async def cleanup_old_data(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Delete jobs older than 30 days and processed articles older than 7."""
        now = now or datetime.now(timezone.utc)
        jobs_deleted = await self.store.delete_jobs_older_than(
            now - timedelta(days=JOB_RETENTION_DAYS)
        )
        articles_deleted = await self.store.delete_processed_articles_older_than(
            now - timedelta(days=ARTICLE_RETENTION_DAYS)
        )
        logger.info(f"Cleanup removed {jobs_deleted} jobs and {articles_deleted} articles")
        return {"jobs_deleted": jobs_deleted, "articles_deleted": articles_deleted}
