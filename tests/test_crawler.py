"""Tests for the bounded breadth-first crawl and run_brand_crawl."""

from contextlib import asynccontextmanager
from urllib.parse import urlparse

import pytest

from brand_crawler import crawler
from brand_crawler.crawler import crawl_website, new_crawl_job, run_brand_crawl
from brand_crawler.errors import PageLoadError, RenderEngineUnavailable
from brand_crawler.models import ImageRole, PageType
from brand_crawler.renderer import StaticRenderedPage
from brand_crawler.robots import RobotsEvaluator

from conftest import BASE, BrokenRenderer, FakeRenderer


@pytest.mark.asyncio
async def test_crawl_respects_depth_and_host(fast_config, allow_all, site):
    renderer = FakeRenderer(site)
    job = new_crawl_job(f"{BASE}/", fast_config)

    await crawl_website(job, fast_config, renderer, allow_all)

    urls = [page.url for page in job.pages]
    assert urls[0] == f"{BASE}/"
    assert f"{BASE}/team/deep" in urls
    assert f"{BASE}/team/deeper" not in renderer.opened
    assert all(page.depth <= fast_config.max_depth for page in job.pages)
    assert all(urlparse(url).hostname == "acme.test" for url in renderer.opened)
    assert len(renderer.opened) == len(set(renderer.opened))


@pytest.mark.asyncio
async def test_crawl_is_breadth_first(fast_config, allow_all, site):
    job = new_crawl_job(f"{BASE}/", fast_config)

    await crawl_website(job, fast_config, FakeRenderer(site), allow_all)

    depths = [page.depth for page in job.pages]
    assert depths == sorted(depths)


@pytest.mark.asyncio
async def test_crawl_stops_at_page_cap(fast_config, allow_all, site):
    fast_config.max_pages = 2
    job = new_crawl_job(f"{BASE}/", fast_config)

    await crawl_website(job, fast_config, FakeRenderer(site), allow_all)

    assert len(job.pages) == 2


@pytest.mark.asyncio
async def test_robots_disallowed_paths_are_never_fetched(fast_config, site):
    robots = RobotsEvaluator(
        f"{BASE}/robots.txt", "User-agent: *\nDisallow: /private/\n"
    )
    renderer = FakeRenderer(site)
    job = new_crawl_job(f"{BASE}/", fast_config)

    await crawl_website(job, fast_config, renderer, robots)

    assert f"{BASE}/private/admin" not in renderer.opened
    assert f"{BASE}/about" in renderer.opened


@pytest.mark.asyncio
async def test_transient_failure_is_retried(fast_config, allow_all, site):
    renderer = FakeRenderer(site, failures={f"{BASE}/about": 1})
    job = new_crawl_job(f"{BASE}/", fast_config)

    await crawl_website(job, fast_config, renderer, allow_all)

    assert renderer.opened.count(f"{BASE}/about") == 2
    assert f"{BASE}/about" in [page.url for page in job.pages]


@pytest.mark.asyncio
async def test_exhausted_retries_skip_page_and_continue(fast_config, allow_all, site):
    renderer = FakeRenderer(site, failures={f"{BASE}/about": 10})
    job = new_crawl_job(f"{BASE}/", fast_config)

    await crawl_website(job, fast_config, renderer, allow_all)

    assert renderer.opened.count(f"{BASE}/about") == fast_config.max_retries + 1
    urls = [page.url for page in job.pages]
    assert f"{BASE}/about" not in urls
    assert f"{BASE}/team" in urls


@pytest.mark.asyncio
async def test_missing_page_does_not_fail_crawl(fast_config, allow_all, site):
    del site[f"{BASE}/team"]
    job = new_crawl_job(f"{BASE}/", fast_config)

    await crawl_website(job, fast_config, FakeRenderer(site), allow_all)

    assert f"{BASE}/about" in [page.url for page in job.pages]


@pytest.mark.asyncio
async def test_seed_page_sets_brand_name_and_palette(fast_config, allow_all, site):
    job = new_crawl_job(f"{BASE}/", fast_config)

    await crawl_website(job, fast_config, FakeRenderer(site), allow_all)

    assert job.brand_name == "Acme"
    assert job.palette is not None
    assert job.palette.primary == "#1e40af"
    assert len(job.palette.all_colors) >= 3


@pytest.mark.asyncio
async def test_home_page_images_are_classified(fast_config, allow_all, site):
    fast_config.max_pages = 1
    job = new_crawl_job(f"{BASE}/", fast_config)

    await crawl_website(job, fast_config, FakeRenderer(site), allow_all)

    home = job.pages[0]
    assert home.page_type == PageType.MAIN
    assert [logo.url for logo in home.logo_candidates] == [f"{BASE}/logo.png"]
    assert any(image.role == ImageRole.HERO for image in home.images)


@pytest.mark.asyncio
async def test_run_brand_crawl_builds_kit(fast_config, allow_all, site):
    kit = await run_brand_crawl(
        f"{BASE}/",
        fast_config,
        renderer_factory=lambda config: FakeRenderer(site),
        robots=allow_all,
    )

    assert kit.logo_url == f"{BASE}/logo.png"
    assert not kit.logo.fallback
    assert kit.brand_name == "Acme"
    assert kit.voice_summary.source == "fallback"
    assert kit.about_blurb.startswith("Acme builds durable outdoor furniture")
    assert f"{BASE}/" in kit.source_urls
    assert not kit.partial
    assert kit.to_dict()["logo_url"] == f"{BASE}/logo.png"


@pytest.mark.asyncio
async def test_renderer_launch_failure_propagates(fast_config, allow_all):
    with pytest.raises(RenderEngineUnavailable):
        await run_brand_crawl(
            f"{BASE}/",
            fast_config,
            renderer_factory=lambda config: BrokenRenderer(),
            robots=allow_all,
        )


class CrashingScreenshotRenderer(FakeRenderer):
    """Pages whose screenshot step blows up with a non-extraction error."""

    @asynccontextmanager
    async def open(self, url: str):
        self.opened.append(url)
        if url not in self.pages:
            raise PageLoadError(url, "HTTP 404")
        page = StaticRenderedPage(url, self.pages[url])

        async def screenshot():
            raise RuntimeError("quantizer crashed")

        page.screenshot = screenshot
        yield page


@pytest.mark.asyncio
async def test_screenshot_crash_keeps_seed_page(fast_config, allow_all, site):
    fast_config.max_pages = 1
    job = new_crawl_job(f"{BASE}/", fast_config)

    await crawl_website(job, fast_config, CrashingScreenshotRenderer(site), allow_all)

    assert [page.url for page in job.pages] == [f"{BASE}/"]
    assert job.pages[0].logo_candidates
    assert job.palette.primary == "#1e40af"
    assert len(job.palette.all_colors) >= 3


@pytest.mark.asyncio
async def test_palette_failure_falls_back_and_keeps_page(
    fast_config, allow_all, site, monkeypatch
):
    async def broken_palette(page, thresholds=None):
        raise RuntimeError("palette exploded")

    monkeypatch.setattr(crawler, "extract_palette", broken_palette)
    fast_config.max_pages = 1
    job = new_crawl_job(f"{BASE}/", fast_config)

    await crawl_website(job, fast_config, FakeRenderer(site), allow_all)

    assert [page.url for page in job.pages] == [f"{BASE}/"]
    assert job.palette.source == "fallback"


def record_sleeps(monkeypatch):
    delays = []

    async def fake_sleep(delay, *args, **kwargs):
        delays.append(delay)

    monkeypatch.setattr(crawler.asyncio, "sleep", fake_sleep)
    return delays


@pytest.mark.asyncio
async def test_politeness_delay_between_fetches(fast_config, allow_all, site, monkeypatch):
    delays = record_sleeps(monkeypatch)
    fast_config.max_pages = 3
    fast_config.crawl_delay = 0.25
    job = new_crawl_job(f"{BASE}/", fast_config)

    await crawl_website(job, fast_config, FakeRenderer(site), allow_all)

    assert len(job.pages) == 3
    assert delays == [0.25, 0.25]


@pytest.mark.asyncio
async def test_no_delay_when_disabled(fast_config, allow_all, site, monkeypatch):
    delays = record_sleeps(monkeypatch)
    fast_config.max_pages = 3
    job = new_crawl_job(f"{BASE}/", fast_config)

    await crawl_website(job, fast_config, FakeRenderer(site), allow_all)

    assert delays == []


@pytest.mark.asyncio
@pytest.mark.parametrize("crawl_delay, expected", [("3", 3.0), ("60", 10.0)])
async def test_robots_crawl_delay_raises_politeness_delay(
    fast_config, site, monkeypatch, crawl_delay, expected
):
    delays = record_sleeps(monkeypatch)
    robots = RobotsEvaluator(
        f"{BASE}/robots.txt", f"User-agent: *\nCrawl-delay: {crawl_delay}\n"
    )
    fast_config.max_pages = 2
    fast_config.crawl_delay = 0.25
    job = new_crawl_job(f"{BASE}/", fast_config)

    await crawl_website(job, fast_config, FakeRenderer(site), robots)

    assert delays == [expected]
