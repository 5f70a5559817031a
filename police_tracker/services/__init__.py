"""
Scraping pipeline services.
"""

from .confidence import calculate_confidence_score
from .duplicate_detection import BaseDuplicateDetector, DuplicateMatch, ExactMatchDuplicateDetector
from .extraction_errors import ErrorCategory, ExtractionError
from .firecrawl_client import FirecrawlClient
from .review_router import ReviewDecision, ReviewRouter, SubmissionNotFoundError
from .scheduler import ScheduledTrigger, ScrapingScheduler
from .scraping_orchestrator import ScrapingOrchestrator
from .storage import ScrapingStore

__all__ = [
    # Extraction
    "FirecrawlClient",
    "ExtractionError",
    "ErrorCategory",
    "calculate_confidence_score",
    # Duplicate Detection
    "BaseDuplicateDetector",
    "ExactMatchDuplicateDetector",
    "DuplicateMatch",
    # Review
    "ReviewRouter",
    "ReviewDecision",
    "SubmissionNotFoundError",
    # Orchestration
    "ScrapingOrchestrator",
    "ScrapingScheduler",
    "ScheduledTrigger",
    # Persistence
    "ScrapingStore",
]
