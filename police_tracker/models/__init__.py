"""
Pydantic models for the scraping pipeline.
"""

from .scraping import (
    JobStatus,
    CaseType,
    SubmissionStatus,
    CaseStatus,
    SCRAPER_REPORTER_NAME,
    SCRAPER_REPORTER_CONTACT,
    ScrapingSource,
    ScrapingSourceUpdate,
    ScrapingJob,
    ScrapedArticle,
    ScrapedIncident,
    CaseSubmission,
    Case,
    SourceStatus,
    ScrapingStats,
)

__all__ = [
    "JobStatus",
    "CaseType",
    "SubmissionStatus",
    "CaseStatus",
    "SCRAPER_REPORTER_NAME",
    "SCRAPER_REPORTER_CONTACT",
    "ScrapingSource",
    "ScrapingSourceUpdate",
    "ScrapingJob",
    "ScrapedArticle",
    "ScrapedIncident",
    "CaseSubmission",
    "Case",
    "SourceStatus",
    "ScrapingStats",
]
