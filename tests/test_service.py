"""Tests for the long-running scraping service."""

import pytest

from conftest import make_incident
from police_tracker.service import STATUS_REPORT, ScrapingService


@pytest.fixture
def service(context):
    return ScrapingService(context)


async def test_start_runs_initial_pass(store, context, service):
    store.add_source()

    job_ids = await service.start()
    await context.orchestrator.wait_for_jobs()

    assert service.running
    assert len(job_ids) == 1
    names = {job["name"] for job in context.scheduler.get_jobs_status()}
    assert STATUS_REPORT in names
    assert all(job["running"] for job in context.scheduler.get_jobs_status())


async def test_stop_clears_triggers(context, service):
    await service.start()
    await service.stop()

    assert not service.running
    assert context.scheduler.get_jobs_status() == []
    assert service.uptime_seconds() >= 0


async def test_stop_when_not_running(service):
    await service.stop()
    assert not service.running


async def test_status(store, service):
    store.add_source(name="Nation")

    status = await service.get_status()

    assert status["running"] is False
    assert status["start_time"] is None
    assert status["uptime_seconds"] == 0.0
    assert status["stats"]["sources_status"][0]["source_name"] == "Nation"
    assert status["scheduler"] == []


async def test_run_test_waits_for_jobs(store, client, service):
    source = store.add_source(search_urls=["https://www.kenyans.co.ke/search"])
    url = "https://www.kenyans.co.ke/news/officer-arrested"
    client.search_results = [url]
    client.incidents = {url: make_incident(url, confidence=95)}

    job_ids = await service.run_test()

    assert len(job_ids) == 1
    assert store.jobs[job_ids[0]].status.value == "completed"
    assert len(store.cases) == 1
    assert store.sources[source.id].last_scraped is not None


async def test_status_report(store, service, caplog):
    store.add_source()
    caplog.set_level("INFO", logger="police_tracker.service")

    await service.log_status_report()

    assert "Status report" in caplog.text
