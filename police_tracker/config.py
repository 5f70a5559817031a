"""
Runtime configuration.

All environment-driven settings are read once by ``load_config()`` before any
component starts. Missing or placeholder credentials raise
``ConfigurationError`` so the process never starts half-configured.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from police_tracker.services.thresholds import (
    AUTO_APPROVE_CONFIDENCE,
    BATCH_DELAY_SECONDS,
    BATCH_SIZE,
    MAX_URLS_PER_JOB,
    SCHEDULER_TIMEZONE,
    SCRAPE_TIMEOUT_SECONDS,
    SEARCH_RESULT_LIMIT,
)

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent

REQUIRED_ENV_VARS = ["FIRECRAWL_API_KEY", "DATABASE_URL"]

PLACEHOLDER_VALUES = {"your_firecrawl_api_key_here", "changeme", "xxx"}

DEFAULT_BROKER_URL = "redis://localhost:6379/0"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = missing or []


@dataclass(frozen=True)
class ScraperConfig:
    """Validated configuration for the scraping backend."""
    firecrawl_api_key: str
    database_url: str
    firecrawl_api_url: str = "https://api.firecrawl.dev"
    timezone: str = SCHEDULER_TIMEZONE
    max_urls_per_job: int = MAX_URLS_PER_JOB
    batch_size: int = BATCH_SIZE
    batch_delay_seconds: float = BATCH_DELAY_SECONDS
    request_timeout: float = SCRAPE_TIMEOUT_SECONDS
    search_limit: int = SEARCH_RESULT_LIMIT
    auto_approve_threshold: int = AUTO_APPROVE_CONFIDENCE
    pid_file: str = ".scraper.pid"
    celery_broker_url: str = DEFAULT_BROKER_URL
    result_backend: str = DEFAULT_BROKER_URL
    log_level: str = "INFO"


def is_placeholder(value: Optional[str]) -> bool:
    """True for unset, blank, or template values like ``your_api_key_here``."""
    if value is None:
        return True
    value = value.strip()
    if not value:
        return True
    return value.lower() in PLACEHOLDER_VALUES or value.lower().startswith("your_")


def _int_env(env: dict, name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _float_env(env: dict, name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def load_environment_files() -> None:
    """Load ``.env.local`` then ``.env`` from the project root (no override)."""
    for name in (".env.local", ".env"):
        path = PROJECT_ROOT / name
        if path.exists():
            load_dotenv(path, override=False)
            logger.debug(f"Loaded environment from {path}")


def _read_env(env: Optional[dict]) -> dict:
    if env is None:
        load_environment_files()
        env = dict(os.environ)
    return env


def load_celery_settings(env: Optional[dict] = None) -> Dict[str, str]:
    """
    Broker, result backend and timezone for the Celery app.

    Read when ``celery_app`` is imported, so no credentials are required here;
    ``load_config`` resolves the same three values the same way.
    """
    env = _read_env(env)
    broker = env.get("CELERY_BROKER_URL") or DEFAULT_BROKER_URL
    return {
        "broker_url": broker,
        "result_backend": env.get("REDIS_URL") or broker,
        "timezone": env.get("SCRAPER_TIMEZONE") or SCHEDULER_TIMEZONE,
    }


def load_config(env: Optional[dict] = None) -> ScraperConfig:
    """
    Build the configuration from the environment.

    When ``env`` is None the process environment is used, after loading any
    dotenv files. Raises ConfigurationError listing every missing variable.
    """
    env = _read_env(env)

    missing = [name for name in REQUIRED_ENV_VARS if is_placeholder(env.get(name))]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}",
            missing=missing,
        )

    batch_size = _int_env(env, "SCRAPER_BATCH_SIZE", BATCH_SIZE)
    if batch_size < 1:
        raise ConfigurationError("SCRAPER_BATCH_SIZE must be at least 1")

    threshold = _int_env(env, "SCRAPER_AUTO_APPROVE_THRESHOLD", AUTO_APPROVE_CONFIDENCE)
    if not 0 <= threshold <= 100:
        raise ConfigurationError("SCRAPER_AUTO_APPROVE_THRESHOLD must be between 0 and 100")

    celery = load_celery_settings(env)

    return ScraperConfig(
        firecrawl_api_key=env["FIRECRAWL_API_KEY"].strip(),
        database_url=env["DATABASE_URL"].strip(),
        firecrawl_api_url=(env.get("FIRECRAWL_API_URL") or "https://api.firecrawl.dev").rstrip("/"),
        timezone=celery["timezone"],
        max_urls_per_job=_int_env(env, "SCRAPER_MAX_URLS_PER_JOB", MAX_URLS_PER_JOB),
        batch_size=batch_size,
        batch_delay_seconds=_float_env(env, "SCRAPER_BATCH_DELAY_SECONDS", BATCH_DELAY_SECONDS),
        request_timeout=_float_env(env, "SCRAPER_REQUEST_TIMEOUT", SCRAPE_TIMEOUT_SECONDS),
        search_limit=_int_env(env, "SCRAPER_SEARCH_LIMIT", SEARCH_RESULT_LIMIT),
        auto_approve_threshold=threshold,
        pid_file=env.get("SCRAPER_PID_FILE") or ".scraper.pid",
        celery_broker_url=celery["broker_url"],
        result_backend=celery["result_backend"],
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
