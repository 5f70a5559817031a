"""
Centralized scraping constants -- single source of truth.

Batch sizes, rate limits, the per-job URL cap, the auto-approval threshold
and retention windows are defined here. Configuration (``config.py``) reads
these as defaults; environment variables can override them at startup.
"""

# ---------------------------------------------------------------------------
# Review routing
# ---------------------------------------------------------------------------

# Confidence score (0-100) at or above which a scraped incident is published
# without human review
AUTO_APPROVE_CONFIDENCE = 80

# ---------------------------------------------------------------------------
# Extraction service throttling
# ---------------------------------------------------------------------------

# URLs extracted concurrently per batch
BATCH_SIZE = 5

# Pause between batches (seconds)
BATCH_DELAY_SECONDS = 2.0

# Per-scrape request timeout (seconds)
SCRAPE_TIMEOUT_SECONDS = 30

# Result limit for each discovery search
SEARCH_RESULT_LIMIT = 20

# Result limit for site maps during category crawling
MAP_RESULT_LIMIT = 100

# Maximum new URLs extracted by a single job
MAX_URLS_PER_JOB = 50

# ---------------------------------------------------------------------------
# Retention (weekly cleanup)
# ---------------------------------------------------------------------------

JOB_RETENTION_DAYS = 30
ARTICLE_RETENTION_DAYS = 7

# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------

SCHEDULER_TIMEZONE = "Africa/Nairobi"
