"""
Persistence interface for the scraping pipeline.

``ScrapingStore`` is the only component that issues SQL. Every other service
receives a store instance and calls its methods, so tests can substitute an
in-memory implementation with the same method names.

Tables: scraping_sources, scraping_jobs, scraped_articles, case_submissions,
cases. All writes are single-row statements; nothing spans a transaction.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from police_tracker.database import Database, parse_status_count
from police_tracker.models import (
    Case,
    CaseSubmission,
    SCRAPER_REPORTER_NAME,
    ScrapedArticle,
    ScrapingJob,
    ScrapingSource,
    SubmissionStatus,
)

logger = logging.getLogger(__name__)

SOURCE_UPDATE_COLUMNS = {
    "name", "base_url", "search_urls", "category_urls", "enabled",
    "scraping_interval_hours",
}

SUBMISSION_COLUMNS = [
    "victim_name", "age", "incident_date", "location", "county", "case_type",
    "description", "justice_served", "officer_names", "witnesses",
    "reporter_name", "reporter_contact", "status", "scraped_from_url",
    "scraping_job_id", "confidence_score", "auto_approved",
]

CASE_COLUMNS = [
    "victim_name", "age", "incident_date", "location", "county", "case_type",
    "description", "status", "source", "justice_served", "officer_names",
    "witnesses", "scraped_from_url", "scraping_job_id", "submission_id",
    "confidence_score", "auto_approved",
]

_JOB_COLS = """j.id, j.source_id, j.status, j.created_at, j.started_at,
    j.completed_at, j.articles_found, j.incidents_extracted, j.urls_scraped,
    j.error_message"""


def _is_uuid(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, uuid.UUID):
        return True
    try:
        uuid.UUID(str(value))
        return True
    except ValueError:
        return False


def _record(row) -> Dict[str, Any]:
    """Convert an asyncpg Record to a dict with string ids."""
    data = dict(row)
    for key, value in data.items():
        if isinstance(value, uuid.UUID):
            data[key] = str(value)
    return data


def _insert_sql(table: str, columns: List[str]) -> str:
    placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
    return f"""
        INSERT INTO {table} ({', '.join(columns)})
        VALUES ({placeholders})
        RETURNING *
    """


def _enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


class ScrapingStore:
    """asyncpg-backed store for sources, jobs, articles, submissions and cases."""

    def __init__(self, db: Database):
        self.db = db

    # =====================
    # Sources
    # =====================

    async def get_source(self, source_id: str) -> Optional[ScrapingSource]:
        if not _is_uuid(source_id):
            return None
        row = await self.db.fetchrow(
            "SELECT * FROM scraping_sources WHERE id = $1::uuid", source_id
        )
        return ScrapingSource(**_record(row)) if row else None

    async def list_sources(self, enabled_only: bool = False) -> List[ScrapingSource]:
        if enabled_only:
            rows = await self.db.fetch(
                "SELECT * FROM scraping_sources WHERE enabled = true ORDER BY name"
            )
        else:
            rows = await self.db.fetch("SELECT * FROM scraping_sources ORDER BY name")
        return [ScrapingSource(**_record(r)) for r in rows]

    async def update_source(self, source_id: str, updates: Dict[str, Any]) -> Optional[ScrapingSource]:
        fields = {k: v for k, v in updates.items() if k in SOURCE_UPDATE_COLUMNS and v is not None}
        if not _is_uuid(source_id):
            return None
        if not fields:
            return await self.get_source(source_id)

        assignments = ", ".join(f"{col} = ${i}" for i, col in enumerate(fields, start=2))
        row = await self.db.fetchrow(
            f"UPDATE scraping_sources SET {assignments} WHERE id = $1::uuid RETURNING *",
            source_id,
            *fields.values(),
        )
        return ScrapingSource(**_record(row)) if row else None

    async def mark_source_scraped(self, source_id: str, scraped_at: datetime) -> None:
        await self.db.execute(
            "UPDATE scraping_sources SET last_scraped = $1 WHERE id = $2::uuid",
            scraped_at,
            source_id,
        )

    # =====================
    # Jobs
    # =====================

    async def create_job(self, source_id: str) -> ScrapingJob:
        row = await self.db.fetchrow(
            """
            INSERT INTO scraping_jobs (source_id, status)
            VALUES ($1::uuid, 'pending')
            RETURNING *
            """,
            source_id,
        )
        return ScrapingJob(**_record(row))

    async def mark_job_running(self, job_id: str, started_at: datetime) -> None:
        await self.db.execute(
            """
            UPDATE scraping_jobs
            SET status = 'running', started_at = $1
            WHERE id = $2::uuid
            """,
            started_at,
            job_id,
        )

    async def complete_job(
        self,
        job_id: str,
        articles_found: int,
        incidents_extracted: int,
        urls_scraped: List[str],
        completed_at: datetime,
    ) -> None:
        await self.db.execute(
            """
            UPDATE scraping_jobs
            SET status = 'completed',
                completed_at = $1,
                articles_found = $2,
                incidents_extracted = $3,
                urls_scraped = $4
            WHERE id = $5::uuid
            """,
            completed_at,
            articles_found,
            incidents_extracted,
            urls_scraped,
            job_id,
        )

    async def fail_job(self, job_id: str, error_message: str, completed_at: datetime) -> None:
        await self.db.execute(
            """
            UPDATE scraping_jobs
            SET status = 'failed', completed_at = $1, error_message = $2
            WHERE id = $3::uuid
            """,
            completed_at,
            error_message,
            job_id,
        )

    async def get_job(self, job_id: str) -> Optional[ScrapingJob]:
        if not _is_uuid(job_id):
            return None
        row = await self.db.fetchrow(
            f"""
            SELECT {_JOB_COLS}, s.name AS source_name
            FROM scraping_jobs j
            LEFT JOIN scraping_sources s ON s.id = j.source_id
            WHERE j.id = $1::uuid
            """,
            job_id,
        )
        return ScrapingJob(**_record(row)) if row else None

    async def list_jobs(self, page: int = 1, limit: int = 20) -> Tuple[List[ScrapingJob], int]:
        """Newest-first page of jobs plus the total job count."""
        offset = (page - 1) * limit
        rows = await self.db.fetch(
            f"""
            SELECT {_JOB_COLS}, s.name AS source_name
            FROM scraping_jobs j
            LEFT JOIN scraping_sources s ON s.id = j.source_id
            ORDER BY j.created_at DESC
            LIMIT $1 OFFSET $2
            """,
            limit,
            offset,
        )
        total = await self.db.fetchval("SELECT COUNT(*) FROM scraping_jobs")
        return [ScrapingJob(**_record(r)) for r in rows], total or 0

    async def list_all_jobs(self) -> List[ScrapingJob]:
        rows = await self.db.fetch(f"SELECT {_JOB_COLS} FROM scraping_jobs j")
        return [ScrapingJob(**_record(r)) for r in rows]

    async def list_jobs_since(self, since: datetime) -> List[ScrapingJob]:
        rows = await self.db.fetch(
            f"""
            SELECT {_JOB_COLS}, s.name AS source_name
            FROM scraping_jobs j
            LEFT JOIN scraping_sources s ON s.id = j.source_id
            WHERE j.created_at >= $1
            ORDER BY j.created_at
            """,
            since,
        )
        return [ScrapingJob(**_record(r)) for r in rows]

    async def delete_jobs_older_than(self, cutoff: datetime) -> int:
        status = await self.db.execute(
            "DELETE FROM scraping_jobs WHERE created_at < $1", cutoff
        )
        return parse_status_count(status)

    # =====================
    # Articles
    # =====================

    async def existing_article_urls(self, urls: Iterable[str]) -> Set[str]:
        urls = list(urls)
        if not urls:
            return set()
        rows = await self.db.fetch(
            "SELECT DISTINCT url FROM scraped_articles WHERE url = ANY($1::text[])", urls
        )
        return {r["url"] for r in rows}

    async def insert_article(
        self,
        job_id: str,
        url: str,
        title: Optional[str] = None,
        content: Optional[str] = None,
        published_date: Optional[str] = None,
        processed: bool = True,
        incidents_extracted: int = 0,
        source_id: Optional[str] = None,
        extracted_data: Optional[dict] = None,
    ) -> ScrapedArticle:
        row = await self.db.fetchrow(
            """
            INSERT INTO scraped_articles (
                job_id, source_id, url, title, content, published_date,
                processed, incidents_extracted, extracted_data
            ) VALUES ($1::uuid, $2::uuid, $3, $4, $5, $6, $7, $8, $9)
            RETURNING *
            """,
            job_id,
            source_id,
            url,
            title,
            content,
            published_date,
            processed,
            incidents_extracted,
            extracted_data,
        )
        return ScrapedArticle(**_record(row))

    async def list_articles(self, job_id: str) -> List[ScrapedArticle]:
        if not _is_uuid(job_id):
            return []
        rows = await self.db.fetch(
            """
            SELECT * FROM scraped_articles
            WHERE job_id = $1::uuid
            ORDER BY created_at DESC
            """,
            job_id,
        )
        return [ScrapedArticle(**_record(r)) for r in rows]

    async def delete_processed_articles_older_than(self, cutoff: datetime) -> int:
        status = await self.db.execute(
            "DELETE FROM scraped_articles WHERE processed = true AND created_at < $1",
            cutoff,
        )
        return parse_status_count(status)

    # =====================
    # Cases
    # =====================

    async def case_exists_by_url(self, url: str) -> bool:
        row = await self.db.fetchrow(
            "SELECT id FROM cases WHERE scraped_from_url = $1 LIMIT 1", url
        )
        return row is not None

    async def case_exists_by_identity(
        self, victim_name: str, location: str, incident_date: str
    ) -> bool:
        row = await self.db.fetchrow(
            """
            SELECT id FROM cases
            WHERE victim_name = $1 AND location = $2 AND incident_date = $3
            LIMIT 1
            """,
            victim_name,
            location,
            incident_date,
        )
        return row is not None

    async def insert_case(self, data: Dict[str, Any]) -> Case:
        values = [_enum_value(data.get(col)) for col in CASE_COLUMNS]
        row = await self.db.fetchrow(_insert_sql("cases", CASE_COLUMNS), *values)
        return Case(**_record(row))

    async def list_cases(self) -> List[Case]:
        rows = await self.db.fetch("SELECT * FROM cases ORDER BY created_at DESC")
        return [Case(**_record(r)) for r in rows]

    # =====================
    # Submissions
    # =====================

    async def insert_submission(self, data: Dict[str, Any]) -> CaseSubmission:
        values = [_enum_value(data.get(col)) for col in SUBMISSION_COLUMNS]
        row = await self.db.fetchrow(_insert_sql("case_submissions", SUBMISSION_COLUMNS), *values)
        return CaseSubmission(**_record(row))

    async def get_submission(self, submission_id: str) -> Optional[CaseSubmission]:
        if not _is_uuid(submission_id):
            return None
        row = await self.db.fetchrow(
            "SELECT * FROM case_submissions WHERE id = $1::uuid", submission_id
        )
        return CaseSubmission(**_record(row)) if row else None

    async def update_submission_review(
        self,
        submission_id: str,
        status: SubmissionStatus,
        reviewed_at: datetime,
        rejection_reason: Optional[str] = None,
    ) -> Optional[CaseSubmission]:
        if not _is_uuid(submission_id):
            return None
        row = await self.db.fetchrow(
            """
            UPDATE case_submissions
            SET status = $1, reviewed_at = $2, rejection_reason = $3
            WHERE id = $4::uuid
            RETURNING *
            """,
            _enum_value(status),
            reviewed_at,
            rejection_reason,
            submission_id,
        )
        return CaseSubmission(**_record(row)) if row else None

    async def list_pending_scraped_submissions(self) -> List[CaseSubmission]:
        rows = await self.db.fetch(
            """
            SELECT * FROM case_submissions
            WHERE reporter_name = $1 AND status = $2
            ORDER BY created_at DESC
            """,
            SCRAPER_REPORTER_NAME,
            SubmissionStatus.PENDING.value,
        )
        return [CaseSubmission(**_record(r)) for r in rows]

