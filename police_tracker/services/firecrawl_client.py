"""
Firecrawl extraction client.

Wraps the external scrape / search / map endpoints:

- ``scrape_incident`` fetches one article and asks the service for a
  structured incident using a fixed JSON schema.
- ``search_incidents`` runs a Kenya-scoped keyword search and returns URLs.
- ``crawl_news_source`` maps a site and keeps URLs that look relevant.
- ``batch_scrape_incidents`` extracts many URLs in rate-limited batches.

Every failure (HTTP error, timeout, ``success: false``, incomplete extraction)
is logged and degrades to "no result"; nothing here raises to the caller and
nothing here touches the database.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from police_tracker.models import CaseType, ScrapedIncident
from .confidence import calculate_confidence_score
from .extraction_errors import ExtractionError, ErrorCategory, classify_exception, classify_status
from .thresholds import (
    BATCH_DELAY_SECONDS,
    BATCH_SIZE,
    MAP_RESULT_LIMIT,
    SCRAPE_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.firecrawl.dev"

SEARCH_COUNTRY = "KE"

# URL substrings that suggest police-misconduct coverage
RELEVANCE_KEYWORDS = [
    'police', 'brutality', 'assault', 'death', 'shooting', 'arrest',
    'harassment', 'violence', 'officer', 'cop', 'law enforcement',
    'human rights', 'justice', 'victim', 'killed', 'beaten',
]

INCIDENT_EXTRACTION_SCHEMA: Dict[str, Any] = {
    'type': 'object',
    'properties': {
        'victim_name': {
            'type': 'string',
            'description': 'Full name of the victim of police brutality',
        },
        'age': {
            'type': 'number',
            'description': 'Age of the victim in years',
        },
        'incident_date': {
            'type': 'string',
            'description': 'Date when the incident occurred (YYYY-MM-DD format)',
        },
        'location': {
            'type': 'string',
            'description': 'Specific location where the incident took place',
        },
        'county': {
            'type': 'string',
            'description': 'Kenyan county where the incident occurred',
        },
        'case_type': {
            'type': 'string',
            'enum': [c.value for c in CaseType],
            'description': 'Type of police brutality incident',
        },
        'description': {
            'type': 'string',
            'description': 'Detailed description of what happened during the incident',
        },
        'reported_by': {
            'type': 'string',
            'description': 'Organization or person who reported the incident',
        },
        'justice_served': {
            'type': 'boolean',
            'description': 'Whether justice has been served or officers held accountable',
        },
        'witnesses': {
            'type': 'array',
            'items': {'type': 'string'},
            'description': 'Names or descriptions of witnesses to the incident',
        },
        'police_station': {
            'type': 'string',
            'description': 'Police station or unit involved in the incident',
        },
        'officer_names': {
            'type': 'array',
            'items': {'type': 'string'},
            'description': 'Names of police officers involved if mentioned',
        },
    },
    'required': ['case_type', 'description'],
}

_CASE_TYPES = {c.value for c in CaseType}


def is_relevant_url(url: str, search_terms: Optional[List[str]] = None) -> bool:
    """True if the URL mentions a relevance keyword or a caller-supplied term."""
    url_lower = url.lower()
    keywords = RELEVANCE_KEYWORDS + [t.lower() for t in (search_terms or [])]
    return any(keyword in url_lower for keyword in keywords)


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _clean_age(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        age = int(float(value))
    except (TypeError, ValueError):
        return None
    return age if 0 < age < 130 else None


def _clean_list(value: Any) -> Optional[List[str]]:
    if not value:
        return None
    if isinstance(value, str):
        value = [value]
    items = [str(v).strip() for v in value if v is not None and str(v).strip()]
    return items or None


def build_incident(data: Optional[dict], url: str, metadata: Optional[dict]) -> Optional[ScrapedIncident]:
    """
    Validate an extraction payload and turn it into a ScrapedIncident.

    Returns None when case_type or description is missing or case_type is not
    one of the known categories.
    """
    if not data or not isinstance(data, dict):
        return None

    case_type = _clean_str(data.get('case_type'))
    description = _clean_str(data.get('description'))
    if not case_type or not description:
        return None
    case_type = case_type.lower()
    if case_type not in _CASE_TYPES:
        logger.info(f"Unknown case_type {case_type!r} from {url}, discarding")
        return None

    metadata = metadata or {}
    title = _clean_str(metadata.get('title'))

    incident = ScrapedIncident(
        victim_name=_clean_str(data.get('victim_name')),
        age=_clean_age(data.get('age')),
        incident_date=_clean_str(data.get('incident_date')),
        location=_clean_str(data.get('location')),
        county=_clean_str(data.get('county')),
        case_type=CaseType(case_type),
        description=description,
        source=title or 'Unknown Source',
        article_url=url,
        article_title=title or 'Unknown Title',
        published_date=_clean_str(metadata.get('publishedTime')),
        reported_by=_clean_str(data.get('reported_by')),
        justice_served=bool(data.get('justice_served') or False),
        witnesses=_clean_list(data.get('witnesses')),
        police_station=_clean_str(data.get('police_station')),
        officer_names=_clean_list(data.get('officer_names')),
    )
    # Scored on the raw extraction, before cleaning drops implausible values
    incident.confidence_score = calculate_confidence_score(data)
    return incident


class FirecrawlClient:
    """Async client for the Firecrawl scrape/search/map API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_API_URL,
        timeout: float = SCRAPE_TIMEOUT_SECONDS,
        batch_size: int = BATCH_SIZE,
        batch_delay: float = BATCH_DELAY_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            headers={
                'Authorization': f'Bearer {api_key}',
                'Content-Type': 'application/json',
            },
            timeout=timeout,
        )

    async def close(self):
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def _post(self, path: str, payload: dict, url: Optional[str] = None) -> dict:
        """POST to the API and return the decoded body, raising ExtractionError."""
        try:
            response = await self._client.post(
                f"{self.base_url}{path}",
                json=payload,
                # Leave headroom over the server-side scrape timeout
                timeout=self.timeout + 5,
            )
        except Exception as e:
            raise classify_exception(e, url=url)

        if response.status_code >= 400:
            raise classify_status(response.status_code, response.text[:200], url=url)

        try:
            body = response.json()
        except ValueError as e:
            raise classify_exception(e, url=url)

        if not isinstance(body, dict) or not body.get('success'):
            error = body.get('error') if isinstance(body, dict) else None
            raise ExtractionError(
                category=ErrorCategory.INVALID,
                error_code='unsuccessful',
                message=str(error or 'success=false'),
                url=url,
            )
        return body

    async def scrape_incident(self, url: str) -> Optional[ScrapedIncident]:
        """Scrape a single URL and extract incident data."""
        payload = {
            'url': url,
            'formats': ['markdown', 'json'],
            'jsonOptions': {'schema': INCIDENT_EXTRACTION_SCHEMA},
            'onlyMainContent': True,
            'timeout': int(self.timeout * 1000),
        }
        try:
            body = await self._post('/v1/scrape', payload, url=url)
        except ExtractionError as e:
            logger.warning(f"Failed to scrape {url}: {e}")
            return None

        data = body.get('data') or {}
        extracted = data.get('json') or data.get('llm_extraction')
        incident = build_incident(extracted, url, data.get('metadata'))
        if incident is None:
            logger.info(f"No incident extracted from {url}")
        return incident

    async def search_incidents(self, query: str, limit: int = 10) -> List[str]:
        """Search the web for incident coverage; returns result URLs."""
        try:
            body = await self._post('/v1/search', {
                'query': query,
                'limit': limit,
                'country': SEARCH_COUNTRY,
            })
        except ExtractionError as e:
            logger.error(f"Search failed for {query!r}: {e}")
            return []

        return [r['url'] for r in body.get('data') or [] if isinstance(r, dict) and r.get('url')]

    async def crawl_news_source(self, base_url: str, search_terms: Optional[List[str]] = None) -> List[str]:
        """Map a news site and keep URLs that look like incident coverage."""
        search_terms = search_terms or []
        try:
            body = await self._post('/v1/map', {
                'url': base_url,
                'search': ' OR '.join(search_terms),
                'limit': MAP_RESULT_LIMIT,
            }, url=base_url)
        except ExtractionError as e:
            logger.error(f"Failed to map {base_url}: {e}")
            return []

        links = body.get('links') or body.get('data') or []
        urls = [
            link if isinstance(link, str) else link.get('url')
            for link in links
            if isinstance(link, (str, dict))
        ]
        return [u for u in urls if u and is_relevant_url(u, search_terms)]

    async def batch_scrape_incidents(self, urls: List[str]) -> List[ScrapedIncident]:
        """Extract incidents from many URLs, a batch at a time, keeping successes."""
        incidents: List[ScrapedIncident] = []

        for i in range(0, len(urls), self.batch_size):
            batch = urls[i:i + self.batch_size]
            results = await asyncio.gather(
                *(self.scrape_incident(url) for url in batch),
                return_exceptions=True,
            )

            for url, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.error(f"Failed to scrape URL {url}: {result}")
                elif result is None:
                    logger.debug(f"No data for URL {url}")
                else:
                    incidents.append(result)

            # Rate limiting between batches
            if i + self.batch_size < len(urls):
                await asyncio.sleep(self.batch_delay)

        return incidents
