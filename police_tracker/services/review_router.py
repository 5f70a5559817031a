"""
Review routing for extracted incidents.

High-confidence incidents are published immediately as verified cases; the
rest land in the review queue as pending submissions for a moderator.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from police_tracker.models import (
    Case,
    CaseStatus,
    CaseSubmission,
    SCRAPER_REPORTER_CONTACT,
    SCRAPER_REPORTER_NAME,
    ScrapedIncident,
    SubmissionStatus,
)
from .thresholds import AUTO_APPROVE_CONFIDENCE

logger = logging.getLogger(__name__)


class SubmissionNotFoundError(Exception):
    """Raised when a review action targets an unknown submission."""

    def __init__(self, submission_id: str):
        super().__init__(f"Submission {submission_id} not found")
        self.submission_id = submission_id


@dataclass
class ReviewDecision:
    """Result of routing evaluation."""
    decision: str  # 'auto_approve', 'needs_review'
    confidence: int
    reason: str

    @property
    def auto_approve(self) -> bool:
        return self.decision == 'auto_approve'


class ReviewRouter:
    """Routes incidents to publication or the moderation queue."""

    def __init__(self, store, auto_approve_threshold: int = AUTO_APPROVE_CONFIDENCE):
        self.store = store
        self.auto_approve_threshold = auto_approve_threshold

    def evaluate(self, incident: ScrapedIncident) -> ReviewDecision:
        score = incident.confidence_score
        if score >= self.auto_approve_threshold:
            return ReviewDecision(
                decision='auto_approve',
                confidence=score,
                reason=f"Confidence {score} >= {self.auto_approve_threshold}",
            )
        return ReviewDecision(
            decision='needs_review',
            confidence=score,
            reason=f"Confidence {score} below {self.auto_approve_threshold}",
        )

    async def submit_incident(self, incident: ScrapedIncident, job_id: Optional[str]) -> CaseSubmission:
        """
        Persist an incident as a submission.

        Auto-approved incidents are written already approved and a verified
        Case is created alongside.
        """
        decision = self.evaluate(incident)

        submission = await self.store.insert_submission({
            'victim_name': incident.victim_name,
            'age': incident.age,
            'incident_date': incident.incident_date,
            'location': incident.location,
            'county': incident.county,
            'case_type': incident.case_type,
            'description': incident.description,
            'justice_served': incident.justice_served,
            'officer_names': incident.officer_names,
            'witnesses': incident.witnesses,
            'reporter_name': SCRAPER_REPORTER_NAME,
            'reporter_contact': SCRAPER_REPORTER_CONTACT,
            'status': SubmissionStatus.APPROVED if decision.auto_approve else SubmissionStatus.PENDING,
            'scraped_from_url': incident.article_url,
            'scraping_job_id': job_id,
            'confidence_score': incident.confidence_score,
            'auto_approved': decision.auto_approve,
        })

        if decision.auto_approve:
            await self.store.insert_case({
                'victim_name': incident.victim_name,
                'age': incident.age,
                'incident_date': incident.incident_date,
                'location': incident.location,
                'county': incident.county,
                'case_type': incident.case_type,
                'description': incident.description,
                'status': CaseStatus.VERIFIED,
                'source': incident.source,
                'justice_served': incident.justice_served,
                'officer_names': incident.officer_names,
                'witnesses': incident.witnesses,
                'scraped_from_url': incident.article_url,
                'scraping_job_id': job_id,
                'submission_id': submission.id,
                'confidence_score': incident.confidence_score,
                'auto_approved': True,
            })
            logger.info(
                f"Auto-approved incident from {incident.article_url} "
                f"(confidence {incident.confidence_score})"
            )
        else:
            logger.info(
                f"Queued incident from {incident.article_url} for review "
                f"(confidence {incident.confidence_score})"
            )

        return submission

    async def approve_submission(self, submission_id: str) -> Case:
        """Publish a submission as a Case and mark it approved."""
        submission = await self.store.get_submission(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(submission_id)

        status = CaseStatus.VERIFIED if submission.is_scraped else CaseStatus.INVESTIGATING
        case = await self.store.insert_case({
            'victim_name': submission.victim_name,
            'age': submission.age,
            'incident_date': submission.incident_date,
            'location': submission.location,
            'county': submission.county,
            'case_type': submission.case_type,
            'description': submission.description,
            'status': status,
            'source': submission.reporter_name,
            'justice_served': submission.justice_served,
            'officer_names': submission.officer_names,
            'witnesses': submission.witnesses,
            'scraped_from_url': submission.scraped_from_url,
            'scraping_job_id': submission.scraping_job_id,
            'submission_id': submission.id,
            'confidence_score': submission.confidence_score,
            'auto_approved': False,
        })

        await self.store.update_submission_review(
            submission_id,
            SubmissionStatus.APPROVED,
            reviewed_at=datetime.now(timezone.utc),
        )
        logger.info(f"Approved submission {submission_id} as case {case.id} ({status.value})")
        return case

    async def reject_submission(self, submission_id: str, reason: Optional[str] = None) -> CaseSubmission:
        submission = await self.store.update_submission_review(
            submission_id,
            SubmissionStatus.REJECTED,
            reviewed_at=datetime.now(timezone.utc),
            rejection_reason=reason,
        )
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        logger.info(f"Rejected submission {submission_id}: {reason or 'no reason given'}")
        return submission

    async def list_pending_scraped(self) -> List[CaseSubmission]:
        return await self.store.list_pending_scraped_submissions()
