"""
Scraping job orchestration.

One job = one pass over one source:

    discovery -> filter already-visited URLs -> cap -> extract in batches
    -> dedupe -> route for review -> job bookkeeping

``start_scraping_job`` returns as soon as the job row exists; the pass itself
runs as a background asyncio task. At most one job runs per source at a time
within this process.
"""

import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from police_tracker.models import (
    JobStatus,
    ScrapingSource,
    ScrapingStats,
    SourceStatus,
)
from .thresholds import (
    BATCH_DELAY_SECONDS,
    BATCH_SIZE,
    MAX_URLS_PER_JOB,
    SEARCH_RESULT_LIMIT,
)

logger = logging.getLogger(__name__)

KENYA_SEARCH_QUERY = (
    "police brutality Kenya OR police violence Kenya OR extrajudicial killing Kenya"
)

TOPIC_KEYWORDS = [
    'police brutality',
    'police violence',
    'extrajudicial killing',
    'unlawful arrest',
    'police harassment',
    'human rights violation',
]

METRICS_DAILY_WINDOW_DAYS = 30
METRICS_SOURCE_WINDOW_DAYS = 7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class ScrapingOrchestrator:
    """Runs scraping jobs against configured sources."""

    def __init__(self, store, client, detector, router, config=None):
        self.store = store
        self.client = client
        self.detector = detector
        self.router = router

        self.max_urls_per_job = getattr(config, 'max_urls_per_job', MAX_URLS_PER_JOB)
        self.batch_size = getattr(config, 'batch_size', BATCH_SIZE)
        self.batch_delay = getattr(config, 'batch_delay_seconds', BATCH_DELAY_SECONDS)
        self.search_limit = getattr(config, 'search_limit', SEARCH_RESULT_LIMIT)

        # Source ids with a job in flight
        self._running: Set[str] = set()
        self._tasks: Set[asyncio.Task] = set()

    # =====================
    # Job lifecycle
    # =====================

    async def start_scraping_job(self, source_id: str) -> Optional[str]:
        """Create a job for the source and run it in the background.

        Returns the job id, or None when the source is already being scraped,
        is unknown or disabled, or the job row could not be created.
        """
        if source_id in self._running:
            logger.info(f"Scraping already in progress for source {source_id}")
            return None
        # Reserve before the first await so a concurrent call sees it
        self._running.add(source_id)
        spawned = False

        try:
            source = await self.store.get_source(source_id)
            if source is None:
                logger.warning(f"Source {source_id} not found")
                return None
            if not source.enabled:
                logger.info(f"Source {source.name} is disabled, skipping")
                return None

            job = await self.store.create_job(source_id)

            task = asyncio.create_task(self._execute_scraping_job(job.id, source))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            spawned = True
        except Exception as e:
            logger.error(f"Failed to create scraping job for source {source_id}: {e}")
            return None
        finally:
            # Once spawned the job task owns the guard; also covers cancellation
            if not spawned:
                self._running.discard(source_id)

        logger.info(f"Started scraping job {job.id} for {source.name}")
        return job.id

    async def _execute_scraping_job(self, job_id: str, source: ScrapingSource) -> None:
        try:
            await self.store.mark_job_running(job_id, _utcnow())

            discovered = await self._discover_urls(source)
            new_urls = await self._filter_new_urls(discovered)
            urls = new_urls[:self.max_urls_per_job]
            logger.info(
                f"Job {job_id}: {len(discovered)} discovered, {len(new_urls)} new, "
                f"{len(urls)} to scrape for {source.name}"
            )

            if urls:
                articles_found, incidents_extracted = await self._extract_all(job_id, source, urls)
            else:
                articles_found, incidents_extracted = 0, 0

            now = _utcnow()
            await self.store.complete_job(
                job_id,
                articles_found=articles_found,
                incidents_extracted=incidents_extracted,
                urls_scraped=urls,
                completed_at=now,
            )
            await self.store.mark_source_scraped(source.id, now)

            logger.info(
                f"Job {job_id} completed: {articles_found} articles, "
                f"{incidents_extracted} incidents"
            )

        except Exception as e:
            logger.error(f"Scraping job {job_id} failed: {e}")
            try:
                await self.store.fail_job(job_id, str(e), _utcnow())
            except Exception as db_err:
                logger.error(f"Could not mark job {job_id} as failed: {db_err}")

        finally:
            self._running.discard(source.id)

    async def _discover_urls(self, source: ScrapingSource) -> List[str]:
        urls: List[str] = []

        # One failing discovery call must not discard what the others found
        for search_url in source.search_urls:
            logger.debug(f"Searching for {source.name} via {search_url}")
            try:
                urls.extend(await self.client.search_incidents(KENYA_SEARCH_QUERY, self.search_limit))
            except Exception as e:
                logger.error(f"Error searching via {search_url}: {e}")

        for category_url in source.category_urls:
            try:
                urls.extend(await self.client.crawl_news_source(category_url, TOPIC_KEYWORDS))
            except Exception as e:
                logger.error(f"Error crawling category {category_url}: {e}")

        # Order-preserving dedupe
        return list(OrderedDict.fromkeys(u for u in urls if u))

    async def _filter_new_urls(self, urls: List[str]) -> List[str]:
        if not urls:
            return []
        seen = await self.store.existing_article_urls(urls)
        return [u for u in urls if u not in seen]

    async def _extract_all(
        self, job_id: str, source: ScrapingSource, urls: List[str]
    ) -> Tuple[int, int]:
        articles_found = 0
        incidents_extracted = 0

        for i in range(0, len(urls), self.batch_size):
            batch = urls[i:i + self.batch_size]
            results = await asyncio.gather(
                *(self._process_url(job_id, source, url) for url in batch),
                return_exceptions=True,
            )

            for url, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.error(f"Failed to process {url}: {result}")
                    continue
                found, extracted = result
                articles_found += found
                incidents_extracted += extracted

            if i + self.batch_size < len(urls):
                await asyncio.sleep(self.batch_delay)

        return articles_found, incidents_extracted

    async def _process_url(self, job_id: str, source: ScrapingSource, url: str) -> Tuple[int, int]:
        """Extract one URL; returns (articles_found, incidents_extracted) increments."""
        incident = await self.client.scrape_incident(url)

        if incident is None:
            try:
                await self.store.insert_article(
                    job_id, url,
                    processed=True,
                    incidents_extracted=0,
                    source_id=source.id,
                )
            except Exception as e:
                logger.warning(f"Could not record visited URL {url}: {e}")
            return 0, 0

        await self.store.insert_article(
            job_id, url,
            title=incident.article_title,
            content=incident.description,
            published_date=incident.published_date,
            processed=True,
            incidents_extracted=1,
            source_id=source.id,
            extracted_data=incident.model_dump(mode='json'),
        )

        match = await self.detector.check_duplicate(incident)
        if match is not None:
            logger.info(f"Skipping duplicate incident from {url}: {match.reason}")
            return 1, 0

        await self.router.submit_incident(incident, job_id)
        return 1, 1

    async def start_all_scraping_jobs(self) -> List[str]:
        """Start jobs for every enabled source that is due."""
        try:
            sources = await self.store.list_sources(enabled_only=True)
        except Exception as e:
            logger.error(f"Failed to load scraping sources: {e}")
            return []

        job_ids = []
        for source in sources:
            if not self.should_scrape_source(source):
                logger.debug(f"Source {source.name} not due yet")
                continue
            job_id = await self.start_scraping_job(source.id)
            if job_id:
                job_ids.append(job_id)

        logger.info(f"Started {len(job_ids)} scraping jobs")
        return job_ids

    def should_scrape_source(self, source: ScrapingSource, now: Optional[datetime] = None) -> bool:
        if source.last_scraped is None:
            return True
        now = _aware(now or _utcnow())
        hours_since = (now - _aware(source.last_scraped)).total_seconds() / 3600
        return hours_since >= source.scraping_interval_hours

    async def wait_for_jobs(self) -> None:
        """Block until every job started by this orchestrator has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def running_sources(self) -> List[str]:
        return sorted(self._running)

    # =====================
    # Reporting
    # =====================

    async def get_scraping_stats(self) -> ScrapingStats:
        jobs = await self.store.list_all_jobs()
        sources = await self.store.list_sources()

        completed = [j for j in jobs if j.status == JobStatus.COMPLETED]
        last_success = max(
            (j.completed_at for j in completed if j.completed_at), default=None
        )

        return ScrapingStats(
            total_jobs=len(jobs),
            successful_jobs=len(completed),
            failed_jobs=sum(1 for j in jobs if j.status == JobStatus.FAILED),
            running_jobs=sum(1 for j in jobs if j.status == JobStatus.RUNNING),
            total_articles_scraped=sum(j.articles_found or 0 for j in jobs),
            total_incidents_extracted=sum(j.incidents_extracted or 0 for j in jobs),
            last_successful_scrape=last_success,
            sources_status=[
                SourceStatus(
                    source_id=s.id,
                    source_name=s.name,
                    last_scraped=s.last_scraped,
                    status='active' if s.enabled else 'disabled',
                )
                for s in sources
            ],
        )

    async def get_scraping_metrics(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Daily totals for the last 30 days and per-source totals for the last 7."""
        now = _aware(now or _utcnow())
        since = now - timedelta(days=METRICS_DAILY_WINDOW_DAYS)
        source_since = now - timedelta(days=METRICS_SOURCE_WINDOW_DAYS)

        jobs = await self.store.list_jobs_since(since)

        def empty_bucket(**keys):
            return {**keys, 'jobs': 0, 'articles': 0, 'incidents': 0, 'successful': 0, 'failed': 0}

        def add(bucket, job):
            bucket['jobs'] += 1
            bucket['articles'] += job.articles_found or 0
            bucket['incidents'] += job.incidents_extracted or 0
            if job.status == JobStatus.COMPLETED:
                bucket['successful'] += 1
            elif job.status == JobStatus.FAILED:
                bucket['failed'] += 1

        daily = OrderedDict()
        for offset in range(METRICS_DAILY_WINDOW_DAYS - 1, -1, -1):
            day = (now - timedelta(days=offset)).date().isoformat()
            daily[day] = empty_bucket(date=day)

        by_source: Dict[str, Dict[str, Any]] = {}
        for job in jobs:
            if job.created_at is None:
                continue
            created = _aware(job.created_at)
            day = created.date().isoformat()
            if day in daily:
                add(daily[day], job)
            if created >= source_since:
                if job.source_id not in by_source:
                    by_source[job.source_id] = empty_bucket(
                        source_id=job.source_id,
                        source_name=job.source_name or job.source_id,
                    )
                add(by_source[job.source_id], job)

        return {
            'daily': list(daily.values()),
            'by_source': sorted(by_source.values(), key=lambda b: b['jobs'], reverse=True),
        }
