#!/usr/bin/env python3
"""
Command-line interface for the scraping service.

Usage:
    python -m police_tracker start                 # Run the scheduler in the foreground
    python -m police_tracker stop                  # Signal a running service to stop
    python -m police_tracker status                # Show service and scraping status
    python -m police_tracker test                  # Scrape all due sources once and wait
    python -m police_tracker trigger --source ID   # Start a job for one source (or all)
    python -m police_tracker extract URL [URL ...] # Preview extraction for URLs
    python -m police_tracker init-db               # Create database tables
"""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
import time
from pathlib import Path
from typing import List, Optional

from police_tracker.config import ConfigurationError, ScraperConfig, load_config
from police_tracker.context import build_context
from police_tracker.database import Database
from police_tracker.service import STATUS_REPORT, ScrapingService
from police_tracker.services import FirecrawlClient
from police_tracker.services.scheduler import default_schedules

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, level: str = "INFO"):
    """Configure logging."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def read_pid(pid_file: str) -> Optional[int]:
    try:
        return int(Path(pid_file).read_text().strip())
    except (FileNotFoundError, ValueError):
        return None


def pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


# =====================
# Commands
# =====================

async def _run_service(config: ScraperConfig):
    context = await build_context(config)
    service = ScrapingService(context)
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await service.start()
        print("Scraping service started. Press Ctrl+C to stop.")
        await stop_event.wait()
        logger.info("Shutdown requested, stopping gracefully")
        await service.stop()
        await context.orchestrator.wait_for_jobs()
    finally:
        await context.close()


def cmd_start(args, config: ScraperConfig):
    """Run the scheduler until SIGINT/SIGTERM."""
    pid_path = Path(config.pid_file)
    existing = read_pid(config.pid_file)
    if existing and pid_alive(existing):
        print(f"Scraping service already running (pid {existing})")
        return 1

    pid_path.write_text(str(os.getpid()))
    try:
        asyncio.run(_run_service(config))
    finally:
        pid_path.unlink(missing_ok=True)
    print("Scraping service stopped")
    return 0


def cmd_stop(args, config: ScraperConfig):
    """Send SIGTERM to the running service."""
    pid = read_pid(config.pid_file)
    if pid is None:
        print("Scraping service is not running")
        return 0

    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        print(f"No process {pid}; removing stale pid file")
        Path(config.pid_file).unlink(missing_ok=True)
        return 0

    print(f"Sent SIGTERM to scraping service (pid {pid})")
    return 0


async def _status(config: ScraperConfig) -> dict:
    pid = read_pid(config.pid_file)
    running = bool(pid and pid_alive(pid))
    uptime = 0.0
    if running:
        uptime = time.time() - Path(config.pid_file).stat().st_mtime

    context = await build_context(config)
    try:
        stats = await context.orchestrator.get_scraping_stats()
    finally:
        await context.close()

    return {
        "running": running,
        "pid": pid if running else None,
        "uptime_seconds": round(uptime),
        "stats": stats.model_dump(mode="json"),
        "scheduler": list(default_schedules()) + [STATUS_REPORT],
    }


def cmd_status(args, config: ScraperConfig):
    """Show service and scraping status as JSON."""
    status = asyncio.run(_status(config))
    print(json.dumps(status, indent=2))
    return 0


async def _test(config: ScraperConfig) -> dict:
    context = await build_context(config)
    try:
        service = ScrapingService(context)
        job_ids = await service.run_test()
        stats = await context.orchestrator.get_scraping_stats()
    finally:
        await context.close()
    return {"job_ids": job_ids, "stats": stats.model_dump(mode="json")}


def cmd_test(args, config: ScraperConfig):
    """Scrape every due source once and wait for the jobs."""
    print("Running test scraping pass...")
    result = asyncio.run(_test(config))
    print(f"Completed {len(result['job_ids'])} jobs")
    print(json.dumps(result["stats"], indent=2))
    return 0


async def _trigger(config: ScraperConfig, source_id: Optional[str]) -> List[str]:
    context = await build_context(config)
    try:
        if source_id:
            job_id = await context.scheduler.trigger_source_scraping(source_id)
            job_ids = [job_id] if job_id else []
        else:
            job_ids = await context.scheduler.trigger_manual_scraping()
        await context.orchestrator.wait_for_jobs()
    finally:
        await context.close()
    return job_ids


def cmd_trigger(args, config: ScraperConfig):
    """Start scraping now for one source or all due sources."""
    job_ids = asyncio.run(_trigger(config, args.source))
    if not job_ids:
        print("No scraping jobs started")
        return 1 if args.source else 0
    for job_id in job_ids:
        print(f"  job {job_id}")
    return 0


async def _extract(config: ScraperConfig, urls: List[str]) -> list:
    async with FirecrawlClient(
        api_key=config.firecrawl_api_key,
        base_url=config.firecrawl_api_url,
        timeout=config.request_timeout,
        batch_size=config.batch_size,
        batch_delay=config.batch_delay_seconds,
    ) as client:
        incidents = await client.batch_scrape_incidents(urls)
    return [i.model_dump(mode="json") for i in incidents]


def cmd_extract(args, config: ScraperConfig):
    """Extract incidents from URLs without storing anything."""
    incidents = asyncio.run(_extract(config, args.urls))
    print(json.dumps(incidents, indent=2))
    print(f"\nExtracted {len(incidents)} of {len(args.urls)} URLs", file=sys.stderr)
    return 0


async def _init_db(config: ScraperConfig) -> bool:
    db = Database(config.database_url)
    try:
        if not await db.check_connection():
            return False
        await db.init_schema()
    finally:
        await db.close()
    return True


def cmd_init_db(args, config: ScraperConfig):
    """Create the scraping tables."""
    if not asyncio.run(_init_db(config)):
        print("Could not connect to the database", file=sys.stderr)
        return 1
    print("Database schema initialized")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="police_tracker",
        description="Kenya police brutality tracker: automated scraping service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('-v', '--verbose', action='store_true', help="Verbose output")

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    subparsers.add_parser('start', help='Run the scraping service in the foreground')
    subparsers.add_parser('stop', help='Stop a running scraping service')
    subparsers.add_parser('status', help='Show service status as JSON')
    subparsers.add_parser('test', help='Run one scraping pass and wait for it')

    trigger_parser = subparsers.add_parser('trigger', help='Start scraping immediately')
    trigger_parser.add_argument('--source', type=str, help='Source id (default: all due sources)')

    extract_parser = subparsers.add_parser('extract', help='Preview extraction for URLs')
    extract_parser.add_argument('urls', nargs='+', help='Article URLs')

    subparsers.add_parser('init-db', help='Create database tables')

    return parser


COMMANDS = {
    'start': cmd_start,
    'stop': cmd_stop,
    'status': cmd_status,
    'test': cmd_test,
    'trigger': cmd_trigger,
    'extract': cmd_extract,
    'init-db': cmd_init_db,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_config()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        for name in e.missing:
            print(f"  - {name}", file=sys.stderr)
        return 1

    setup_logging(args.verbose, config.log_level)

    return COMMANDS[args.command](args, config)


if __name__ == '__main__':
    sys.exit(main())
