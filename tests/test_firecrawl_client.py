"""Tests for the Firecrawl extraction client using mocked httpx responses."""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx

from police_tracker.models import CaseType
from police_tracker.services.extraction_errors import (
    ErrorCategory,
    ExtractionError,
    classify_exception,
    classify_status,
)
from police_tracker.services.firecrawl_client import (
    FirecrawlClient,
    INCIDENT_EXTRACTION_SCHEMA,
    build_incident,
    is_relevant_url,
)

API = "https://api.firecrawl.test"
ARTICLE = "https://www.standardmedia.co.ke/article/police-brutality-kibera"


def scrape_body(extracted, metadata=None, key="json"):
    return {
        "success": True,
        "data": {
            "markdown": "# Article",
            key: extracted,
            "metadata": metadata or {"title": "The Standard", "publishedTime": "2024-06-26T08:00:00Z"},
        },
    }


@pytest.fixture
async def fc():
    client = FirecrawlClient(api_key="fc-test", base_url=API, batch_delay=0)
    yield client
    await client.close()


# ---------------------------------------------------------------------------
# scrape_incident
# ---------------------------------------------------------------------------


class TestScrapeIncident:
    async def test_valid_extraction(self, fc):
        extracted = {
            "victim_name": "John Otieno",
            "age": 27.0,
            "incident_date": "2024-06-25",
            "location": "Kibera",
            "county": "Nairobi",
            "case_type": "death",
            "description": "Shot during protests",
            "witnesses": ["A neighbour"],
        }
        with respx.mock(base_url=API) as mock:
            route = mock.post("/v1/scrape").mock(
                return_value=httpx.Response(200, json=scrape_body(extracted))
            )
            incident = await fc.scrape_incident(ARTICLE)

        assert incident is not None
        assert incident.case_type == CaseType.DEATH
        assert incident.age == 27
        assert incident.confidence_score == 100
        assert incident.source == "The Standard"
        assert incident.article_title == "The Standard"
        assert incident.published_date == "2024-06-26T08:00:00Z"
        assert incident.article_url == ARTICLE

        request = route.calls.last.request
        payload = json.loads(request.content)
        assert payload["url"] == ARTICLE
        assert payload["formats"] == ["markdown", "json"]
        assert payload["jsonOptions"]["schema"] == INCIDENT_EXTRACTION_SCHEMA
        assert payload["onlyMainContent"] is True
        assert payload["timeout"] == 30000
        assert request.headers["Authorization"] == "Bearer fc-test"

    async def test_llm_extraction_key_accepted(self, fc):
        extracted = {"case_type": "assault", "description": "Beaten at a roadblock"}
        with respx.mock(base_url=API) as mock:
            mock.post("/v1/scrape").mock(
                return_value=httpx.Response(200, json=scrape_body(extracted, key="llm_extraction"))
            )
            incident = await fc.scrape_incident(ARTICLE)

        assert incident is not None
        assert incident.confidence_score == 30

    async def test_missing_metadata_uses_defaults(self, fc):
        body = {"success": True, "data": {"json": {"case_type": "assault", "description": "x"}}}
        with respx.mock(base_url=API) as mock:
            mock.post("/v1/scrape").mock(return_value=httpx.Response(200, json=body))
            incident = await fc.scrape_incident(ARTICLE)

        assert incident.source == "Unknown Source"
        assert incident.article_title == "Unknown Title"

    @pytest.mark.parametrize("extracted", [
        {"description": "No case type"},
        {"case_type": "assault"},
        {"case_type": "assault", "description": "   "},
        {"case_type": "robbery", "description": "Not a known category"},
        None,
    ])
    async def test_incomplete_extraction_returns_none(self, fc, extracted):
        with respx.mock(base_url=API) as mock:
            mock.post("/v1/scrape").mock(
                return_value=httpx.Response(200, json=scrape_body(extracted))
            )
            assert await fc.scrape_incident(ARTICLE) is None

    async def test_unsuccessful_response_returns_none(self, fc):
        with respx.mock(base_url=API) as mock:
            mock.post("/v1/scrape").mock(
                return_value=httpx.Response(200, json={"success": False, "error": "blocked"})
            )
            assert await fc.scrape_incident(ARTICLE) is None

    @pytest.mark.parametrize("status", [401, 402, 429, 500, 503])
    async def test_http_error_returns_none(self, fc, status):
        with respx.mock(base_url=API) as mock:
            mock.post("/v1/scrape").mock(return_value=httpx.Response(status, text="nope"))
            assert await fc.scrape_incident(ARTICLE) is None

    async def test_timeout_returns_none(self, fc):
        with respx.mock(base_url=API) as mock:
            mock.post("/v1/scrape").mock(side_effect=httpx.ReadTimeout("timed out"))
            assert await fc.scrape_incident(ARTICLE) is None


# ---------------------------------------------------------------------------
# search / map
# ---------------------------------------------------------------------------


class TestSearchAndCrawl:
    async def test_search_returns_urls_scoped_to_kenya(self, fc):
        body = {
            "success": True,
            "data": [
                {"url": "https://nation.africa/a", "title": "A"},
                {"url": "https://nation.africa/b", "title": "B"},
                {"title": "no url"},
            ],
        }
        with respx.mock(base_url=API) as mock:
            route = mock.post("/v1/search").mock(return_value=httpx.Response(200, json=body))
            urls = await fc.search_incidents("police brutality Kenya", limit=20)

        assert urls == ["https://nation.africa/a", "https://nation.africa/b"]
        payload = json.loads(route.calls.last.request.content)
        assert payload == {"query": "police brutality Kenya", "limit": 20, "country": "KE"}

    async def test_search_failure_returns_empty(self, fc):
        with respx.mock(base_url=API) as mock:
            mock.post("/v1/search").mock(return_value=httpx.Response(500))
            assert await fc.search_incidents("anything") == []

    async def test_crawl_filters_relevant_urls(self, fc):
        body = {
            "success": True,
            "links": [
                "https://www.the-star.co.ke/news/police-shooting-in-mathare",
                "https://www.the-star.co.ke/sports/harambee-stars-win",
                "https://www.the-star.co.ke/news/extrajudicial-killing-probe",
                "https://www.the-star.co.ke/news/unlawful-arrest-of-activist",
            ],
        }
        with respx.mock(base_url=API) as mock:
            route = mock.post("/v1/map").mock(return_value=httpx.Response(200, json=body))
            urls = await fc.crawl_news_source(
                "https://www.the-star.co.ke/news", ["extrajudicial", "unlawful"]
            )

        assert urls == [
            "https://www.the-star.co.ke/news/police-shooting-in-mathare",
            "https://www.the-star.co.ke/news/extrajudicial-killing-probe",
            "https://www.the-star.co.ke/news/unlawful-arrest-of-activist",
        ]
        payload = json.loads(route.calls.last.request.content)
        assert payload["search"] == "extrajudicial OR unlawful"
        assert payload["limit"] == 100

    async def test_crawl_failure_returns_empty(self, fc):
        with respx.mock(base_url=API) as mock:
            mock.post("/v1/map").mock(side_effect=httpx.ConnectError("refused"))
            assert await fc.crawl_news_source("https://example.co.ke") == []

    async def test_crawl_skips_malformed_links(self, fc):
        body = {
            "success": True,
            "links": [
                None,
                42,
                {"title": "no url"},
                {"url": "https://x.co.ke/officer-charged"},
                "https://x.co.ke/police-shooting",
            ],
        }
        with respx.mock(base_url=API) as mock:
            mock.post("/v1/map").mock(return_value=httpx.Response(200, json=body))
            urls = await fc.crawl_news_source("https://x.co.ke")

        assert urls == ["https://x.co.ke/officer-charged", "https://x.co.ke/police-shooting"]


def test_is_relevant_url_is_case_insensitive():
    assert is_relevant_url("https://x.co.ke/POLICE-Raid")
    assert is_relevant_url("https://x.co.ke/teargas", ["TearGas"])
    assert not is_relevant_url("https://x.co.ke/business/markets")


def test_build_incident_coerces_age():
    incident = build_incident(
        {"case_type": "Assault", "description": "x", "age": "31"}, ARTICLE, None
    )
    assert incident.age == 31
    assert incident.case_type == CaseType.ASSAULT

    incident = build_incident({"case_type": "assault", "description": "x", "age": "unknown"}, ARTICLE, None)
    assert incident.age is None


# ---------------------------------------------------------------------------
# batch_scrape_incidents
# ---------------------------------------------------------------------------


class TestBatchScrape:
    async def test_failures_are_isolated(self, fc, monkeypatch):
        from conftest import make_incident

        urls = [f"https://example.co.ke/police-{i}" for i in range(5)]

        async def fake_scrape(url):
            if url.endswith(("1", "3")):
                raise RuntimeError("boom")
            return make_incident(url)

        monkeypatch.setattr(fc, "scrape_incident", fake_scrape)
        incidents = await fc.batch_scrape_incidents(urls)

        assert [i.article_url for i in incidents] == [urls[0], urls[2], urls[4]]

    async def test_pauses_between_batches_only(self, monkeypatch):
        client = FirecrawlClient(api_key="k", base_url=API, batch_size=5, batch_delay=2.0)
        scrape = AsyncMock(return_value=None)
        monkeypatch.setattr(client, "scrape_incident", scrape)

        with patch("police_tracker.services.firecrawl_client.asyncio.sleep", new=AsyncMock()) as sleep:
            await client.batch_scrape_incidents([f"https://e.co.ke/{i}" for i in range(12)])

        await client.close()
        assert scrape.await_count == 12
        # 3 batches -> 2 pauses
        assert sleep.await_count == 2
        sleep.assert_awaited_with(2.0)


# ---------------------------------------------------------------------------
# error classification
# ---------------------------------------------------------------------------


class TestErrorClassification:
    @pytest.mark.parametrize("status,category,code", [
        (401, ErrorCategory.PERMANENT, "authentication_error"),
        (402, ErrorCategory.PERMANENT, "payment_required"),
        (429, ErrorCategory.TRANSIENT, "rate_limit"),
        (502, ErrorCategory.TRANSIENT, "server_error"),
        (418, ErrorCategory.PERMANENT, "http_418"),
    ])
    def test_status_codes(self, status, category, code):
        err = classify_status(status)
        assert err.category == category
        assert err.error_code == code
        assert err.status_code == status

    def test_timeout_is_retryable(self):
        err = classify_exception(httpx.ReadTimeout("slow"), url=ARTICLE)
        assert err.retryable
        assert err.url == ARTICLE

    def test_value_error_is_invalid(self):
        err = classify_exception(ValueError("bad json"))
        assert err.category == ErrorCategory.INVALID
        assert "invalid_response" in str(err)

    def test_existing_error_passes_through(self):
        original = ExtractionError(ErrorCategory.PERMANENT, "x", "y")
        assert classify_exception(original) is original


def test_confidence_scores_raw_extraction():
    # An implausible age is dropped from the incident but still counts as extracted
    incident = build_incident(
        {"case_type": "assault", "description": "Beaten in custody", "age": 150}, ARTICLE, None
    )
    assert incident.age is None
    assert incident.confidence_score == 40
