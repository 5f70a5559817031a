"""Duplicate detection for extracted incidents.

Checks a freshly extracted incident against the published ``cases`` table
before it is routed for review. Two strategies, applied in order:

1. **URL match** -- a Case already records ``scraped_from_url`` equal to the
   incident's article URL.
2. **Identity match** -- a Case with exactly the same victim name, location
   and incident date. Only attempted when all three fields are present.

Output contract:
    - ``is_duplicate()`` returns a bool.
    - ``check_duplicate()`` returns ``None`` or a ``DuplicateMatch`` with
      ``match_type`` and a human-readable ``reason``.

Known limitations:
    - Matching is exact; spelling variants of a victim's name or a differently
      worded location are not caught.
    - Storage errors during the check are logged and treated as "not a
      duplicate", so a database hiccup can let a repeat through to review.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from police_tracker.models import ScrapedIncident

logger = logging.getLogger(__name__)


@dataclass
class DuplicateMatch:
    match_type: str  # url, identity
    reason: str


class BaseDuplicateDetector(ABC):
    """Interface for duplicate detection strategies."""

    @abstractmethod
    async def check_duplicate(self, incident: ScrapedIncident) -> Optional[DuplicateMatch]:
        ...

    async def is_duplicate(self, incident: ScrapedIncident) -> bool:
        return await self.check_duplicate(incident) is not None


class ExactMatchDuplicateDetector(BaseDuplicateDetector):
    """URL then (victim_name, location, incident_date) exact matching."""

    def __init__(self, store):
        self.store = store

    async def check_duplicate(self, incident: ScrapedIncident) -> Optional[DuplicateMatch]:
        try:
            if await self.store.case_exists_by_url(incident.article_url):
                return DuplicateMatch(
                    match_type="url",
                    reason=f"Case already scraped from {incident.article_url}",
                )

            if incident.victim_name and incident.location and incident.incident_date:
                if await self.store.case_exists_by_identity(
                    incident.victim_name, incident.location, incident.incident_date
                ):
                    return DuplicateMatch(
                        match_type="identity",
                        reason=(
                            f"Case exists for {incident.victim_name} at "
                            f"{incident.location} on {incident.incident_date}"
                        ),
                    )
        except Exception as e:
            logger.error(f"Duplicate check failed for {incident.article_url}: {e}")
            return None

        return None
