"""
Scraping pipeline models: sources, jobs, articles, extracted incidents,
review-queue submissions and published cases.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict


class JobStatus(str, Enum):
    """Scraping job lifecycle: pending -> running -> completed | failed."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class CaseType(str, Enum):
    """Incident categories produced by extraction."""
    DEATH = "death"
    ASSAULT = "assault"
    HARASSMENT = "harassment"
    UNLAWFUL_ARREST = "unlawful_arrest"


class SubmissionStatus(str, Enum):
    """Review queue status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CaseStatus(str, Enum):
    """Published case status."""
    VERIFIED = "verified"
    INVESTIGATING = "investigating"
    DISMISSED = "dismissed"


# Fixed reporter identity stamped on scraper-origin submissions
SCRAPER_REPORTER_NAME = "Automated Scraper"
SCRAPER_REPORTER_CONTACT = "system@automated-scraper.com"


class ScrapingSource(BaseModel):
    """A configured news origin."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    base_url: str
    search_urls: List[str] = Field(default_factory=list)
    category_urls: List[str] = Field(default_factory=list)
    enabled: bool = True
    last_scraped: Optional[datetime] = None
    scraping_interval_hours: float = 6


class ScrapingSourceUpdate(BaseModel):
    """Partial update of a source (admin edits)."""
    name: Optional[str] = None
    base_url: Optional[str] = None
    search_urls: Optional[List[str]] = None
    category_urls: Optional[List[str]] = None
    enabled: Optional[bool] = None
    scraping_interval_hours: Optional[float] = Field(default=None, gt=0)


class ScrapingJob(BaseModel):
    """One execution of the orchestrator against one source."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    source_id: str
    status: JobStatus = JobStatus.PENDING
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    articles_found: int = 0
    incidents_extracted: int = 0
    urls_scraped: List[str] = Field(default_factory=list)
    error_message: Optional[str] = None

    # Populated when joining scraping_sources
    source_name: Optional[str] = None


class ScrapedArticle(BaseModel):
    """A URL visited during a job."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    job_id: str
    source_id: Optional[str] = None
    url: str
    title: Optional[str] = None
    content: Optional[str] = None
    published_date: Optional[str] = None
    processed: bool = True
    incidents_extracted: int = 0
    extracted_data: Optional[dict] = None
    created_at: Optional[datetime] = None


class ScrapedIncident(BaseModel):
    """Structured incident data pulled from an article."""
    # Extracted fields
    victim_name: Optional[str] = None
    age: Optional[int] = None
    incident_date: Optional[str] = None
    location: Optional[str] = None
    county: Optional[str] = None
    case_type: CaseType
    description: str

    # Article metadata
    source: str = "Unknown Source"
    article_url: str
    article_title: str = "Unknown Title"
    published_date: Optional[str] = None

    # Supporting details
    reported_by: Optional[str] = None
    justice_served: bool = False
    witnesses: Optional[List[str]] = None
    police_station: Optional[str] = None
    officer_names: Optional[List[str]] = None

    confidence_score: int = Field(default=0, ge=0, le=100)


class CaseSubmission(BaseModel):
    """Review-queue entry, human- or scraper-submitted."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    victim_name: Optional[str] = None
    age: Optional[int] = None
    incident_date: Optional[str] = None
    location: Optional[str] = None
    county: Optional[str] = None
    case_type: str
    description: str
    justice_served: bool = False
    officer_names: Optional[List[str]] = None
    witnesses: Optional[List[str]] = None

    reporter_name: str
    reporter_contact: Optional[str] = None
    status: SubmissionStatus = SubmissionStatus.PENDING

    scraped_from_url: Optional[str] = None
    scraping_job_id: Optional[str] = None
    confidence_score: Optional[int] = None
    auto_approved: bool = False

    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def is_scraped(self) -> bool:
        return self.reporter_name == SCRAPER_REPORTER_NAME


class Case(BaseModel):
    """Published, user-facing incident."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    victim_name: Optional[str] = None
    age: Optional[int] = None
    incident_date: Optional[str] = None
    location: Optional[str] = None
    county: Optional[str] = None
    case_type: str
    description: str
    status: CaseStatus
    source: Optional[str] = None
    justice_served: bool = False
    officer_names: Optional[List[str]] = None
    witnesses: Optional[List[str]] = None

    scraped_from_url: Optional[str] = None
    scraping_job_id: Optional[str] = None
    submission_id: Optional[str] = None
    confidence_score: Optional[int] = None
    auto_approved: bool = False
    created_at: Optional[datetime] = None


class SourceStatus(BaseModel):
    """Per-source summary in scraping stats."""
    source_id: str
    source_name: str
    last_scraped: Optional[datetime] = None
    status: str  # active, disabled


class ScrapingStats(BaseModel):
    """Aggregate scraping statistics."""
    total_jobs: int = 0
    successful_jobs: int = 0
    failed_jobs: int = 0
    running_jobs: int = 0
    total_articles_scraped: int = 0
    total_incidents_extracted: int = 0
    last_successful_scrape: Optional[datetime] = None
    sources_status: List[SourceStatus] = Field(default_factory=list)
