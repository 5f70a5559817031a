"""
Application context: every long-lived component, built once from config.

The CLI, the admin API and the Celery tasks each build one context and pass
it down explicitly; there are no module-level singletons.
"""

import logging
from dataclasses import dataclass

from police_tracker.config import ScraperConfig
from police_tracker.database import Database
from police_tracker.services import (
    BaseDuplicateDetector,
    ExactMatchDuplicateDetector,
    FirecrawlClient,
    ReviewRouter,
    ScrapingOrchestrator,
    ScrapingScheduler,
    ScrapingStore,
)

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    config: ScraperConfig
    db: Database
    store: ScrapingStore
    client: FirecrawlClient
    detector: BaseDuplicateDetector
    router: ReviewRouter
    orchestrator: ScrapingOrchestrator
    scheduler: ScrapingScheduler

    async def close(self):
        """Stop triggers and release HTTP and database resources."""
        self.scheduler.destroy()
        await self.client.close()
        await self.db.close()
        logger.info("Application context closed")


async def build_context(
    config: ScraperConfig,
    store=None,
    client=None,
    connect: bool = True,
) -> AppContext:
    """
    Wire up the pipeline components for one process.

    ``store`` and ``client`` replace the database-backed store and the HTTP
    extraction client; the database pool is only opened when the default
    store is used and ``connect`` is true.
    """
    db = Database(config.database_url)
    if store is None:
        store = ScrapingStore(db)
        if connect:
            await db.connect()

    if client is None:
        client = FirecrawlClient(
            api_key=config.firecrawl_api_key,
            base_url=config.firecrawl_api_url,
            timeout=config.request_timeout,
            batch_size=config.batch_size,
            batch_delay=config.batch_delay_seconds,
        )

    detector = ExactMatchDuplicateDetector(store)
    router = ReviewRouter(store, auto_approve_threshold=config.auto_approve_threshold)
    orchestrator = ScrapingOrchestrator(store, client, detector, router, config)
    scheduler = ScrapingScheduler(orchestrator, store, timezone_name=config.timezone)

    return AppContext(
        config=config,
        db=db,
        store=store,
        client=client,
        detector=detector,
        router=router,
        orchestrator=orchestrator,
        scheduler=scheduler,
    )
