"""
Celery application, queue definition, and beat schedule.

Alternative to the in-process scheduler for deployments that already run a
broker: ``celery -A police_tracker.celery_app worker -B``.
"""

import os

from celery import Celery
from kombu import Exchange, Queue

from police_tracker.config import load_celery_settings
from police_tracker.services.scheduler import (
    DAILY_STATS,
    MAIN_SCRAPING,
    WEEKLY_CLEANUP,
    default_schedules,
)

settings = load_celery_settings()

# A full scraping pass: discovery + up to MAX_URLS_PER_JOB scrapes per source
SCRAPE_SOFT_TIME_LIMIT = int(os.getenv("CELERY_SCRAPE_SOFT_TIME_LIMIT", "3000"))
SCRAPE_TIME_LIMIT = int(os.getenv("CELERY_SCRAPE_TIME_LIMIT", "3600"))

app = Celery(
    "police_tracker",
    include=[
        "police_tracker.tasks.scheduled_tasks",
    ],
)

# ---------------------------------------------------------------------------
# Broker / result backend
# ---------------------------------------------------------------------------
app.conf.broker_url = settings["broker_url"]
app.conf.result_backend = settings["result_backend"]

# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
app.conf.accept_content = ["json"]
app.conf.task_serializer = "json"
app.conf.result_serializer = "json"

# ---------------------------------------------------------------------------
# Timezone (crontab fields below are Nairobi local time)
# ---------------------------------------------------------------------------
app.conf.timezone = settings["timezone"]
app.conf.enable_utc = True

# ---------------------------------------------------------------------------
# Reliability
# ---------------------------------------------------------------------------
app.conf.task_acks_late = True                 # ACK only after task completes
app.conf.worker_prefetch_multiplier = 1        # One task at a time per process
app.conf.task_reject_on_worker_lost = True     # Re-queue on crash
app.conf.broker_connection_retry_on_startup = True

# ---------------------------------------------------------------------------
# Queue topology
# ---------------------------------------------------------------------------
scraping_exchange = Exchange("scraping", type="direct")

app.conf.task_queues = (
    Queue("scraping", scraping_exchange, routing_key="scraping"),
)

app.conf.task_default_queue = "scraping"
app.conf.task_default_exchange = "scraping"
app.conf.task_default_routing_key = "scraping"

# ---------------------------------------------------------------------------
# Beat schedule (same triggers as the in-process scheduler)
# ---------------------------------------------------------------------------
_schedules = default_schedules()

app.conf.beat_schedule = {
    MAIN_SCRAPING: {
        "task": "police_tracker.tasks.scheduled_tasks.run_main_scraping",
        "schedule": _schedules[MAIN_SCRAPING],
    },
    DAILY_STATS: {
        "task": "police_tracker.tasks.scheduled_tasks.log_daily_stats",
        "schedule": _schedules[DAILY_STATS],
    },
    WEEKLY_CLEANUP: {
        "task": "police_tracker.tasks.scheduled_tasks.weekly_cleanup",
        "schedule": _schedules[WEEKLY_CLEANUP],
    },
}
