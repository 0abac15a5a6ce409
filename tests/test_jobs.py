"""Tests for the job store, state transitions and the wall-clock budget."""

import asyncio
from contextlib import asynccontextmanager

import pytest

from brand_crawler.errors import JobTimeoutError
from brand_crawler.jobs import (
    InMemoryJobStore,
    JobRecord,
    JobStatus,
    create_job,
    run_job,
    within_budget,
)

from conftest import BASE, BrokenRenderer, FakeRenderer, ScriptedGenerator


class SlowRenderer(FakeRenderer):
    """Serves the seed immediately and stalls on every other page."""

    @asynccontextmanager
    async def open(self, url: str):
        if url != f"{BASE}/":
            self.opened.append(url)
            await asyncio.sleep(30)
        async with super().open(url) as page:
            yield page


def test_create_job_is_pending():
    store = InMemoryJobStore()

    record = create_job(store, f"{BASE}/", brand_name="Acme", industry="furniture")

    assert record.status == JobStatus.PENDING
    assert store.get(record.id) is record
    assert store.list() == [record]


def test_invalid_transition_is_rejected():
    record = JobRecord(id="job-1", seed_url=f"{BASE}/")

    with pytest.raises(ValueError, match="Invalid job transition"):
        record.transition(JobStatus.COMPLETED)

    record.transition(JobStatus.PROCESSING)
    record.transition(JobStatus.FAILED)
    with pytest.raises(ValueError):
        record.transition(JobStatus.PROCESSING)


@pytest.mark.asyncio
async def test_run_job_completes(fast_config, allow_all, site):
    store = InMemoryJobStore()
    record = create_job(store, f"{BASE}/")

    result = await run_job(
        store,
        record.id,
        fast_config,
        renderer_factory=lambda config: FakeRenderer(site),
        robots=allow_all,
    )

    assert result.status == JobStatus.COMPLETED
    assert result.brand_kit is not None
    assert result.brand_kit.logo_url == f"{BASE}/logo.png"
    assert store.get(record.id).to_dict()["status"] == "completed"


@pytest.mark.asyncio
async def test_run_job_fails_when_renderer_cannot_start(fast_config, allow_all):
    store = InMemoryJobStore()
    record = create_job(store, f"{BASE}/")

    result = await run_job(
        store,
        record.id,
        fast_config,
        renderer_factory=lambda config: BrokenRenderer(),
        robots=allow_all,
    )

    assert result.status == JobStatus.FAILED
    assert "Chromium" in result.error
    assert result.brand_kit is None


@pytest.mark.asyncio
async def test_timeout_returns_partial_kit_without_generator(fast_config, allow_all, site):
    fast_config.job_timeout = 0.2
    store = InMemoryJobStore()
    record = create_job(store, f"{BASE}/")
    generator = ScriptedGenerator()
    renderer = SlowRenderer(site)

    result = await run_job(
        store,
        record.id,
        fast_config,
        generator=generator,
        renderer_factory=lambda config: renderer,
        robots=allow_all,
    )

    assert result.status == JobStatus.COMPLETED
    assert result.brand_kit.partial is True
    assert result.brand_kit.source_urls == [f"{BASE}/"]
    assert result.brand_kit.voice_summary.source == "fallback"
    assert generator.calls == []
    assert renderer.exited


@pytest.mark.asyncio
async def test_run_job_unknown_id():
    with pytest.raises(KeyError):
        await run_job(InMemoryJobStore(), "missing")


@pytest.mark.asyncio
async def test_within_budget_raises_job_timeout():
    with pytest.raises(JobTimeoutError):
        await within_budget(asyncio.sleep(1), 0.01)

    assert await within_budget(asyncio.sleep(0, result="done"), None) == "done"
