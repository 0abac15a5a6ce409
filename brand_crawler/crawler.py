"""High-level orchestration: bounded breadth-first crawl and brand kit synthesis."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional, Set

from .colors import extract_palette, fallback_palette
from .config import CrawlConfig
from .content import classify_page_type
from .errors import ExtractionError, PageLoadError, RenderEngineUnavailable
from .generation import TextGenerator
from .images import PageImages
from .models import BrandKit, CrawlJob, PageRecord
from .renderer import RenderedPage, create_renderer
from .robots import RobotsEvaluator, load_robots
from .synthesis import synthesize_brand_kit
from .typography import extract_typography  # noqa: F401  registers "typography"
from .utils import retry_async, same_host

logger = logging.getLogger("brand_crawler")

RendererFactory = Callable[[CrawlConfig], Any]
MAX_ROBOTS_DELAY = 10.0


async def _safe_extract(
    page: RenderedPage, extractor_id: str, default: Any, **kwargs: Any
) -> Any:
    """Run one extraction step; a failing step yields ``default``."""
    try:
        return await page.extract(extractor_id, **kwargs)
    except ExtractionError as exc:
        logger.warning("%s on %s", exc, page.url)
        return default


async def process_page(
    renderer: Any,
    url: str,
    depth: int,
    job: CrawlJob,
    config: CrawlConfig,
) -> PageRecord:
    """Render ``url`` once and extract a :class:`PageRecord` from it."""
    async with renderer.open(url) as page:
        record = await _safe_extract(page, "content", None, depth=depth)
        if record is None:
            record = PageRecord(
                url=page.url, depth=depth, page_type=classify_page_type(page.url)
            )

        if job.brand_name is None:
            job.brand_name = await _safe_extract(page, "brand_name", None)
            if job.brand_name:
                logger.info("Inferred brand name %r from %s", job.brand_name, page.url)

        images = await _safe_extract(
            page,
            "images",
            PageImages(),
            page_type=record.page_type,
            brand_name=job.brand_name,
            thresholds=config.classification,
        )
        record.images = images.images
        record.logo_candidates = images.logo_candidates
        record.typography = await _safe_extract(page, "typography", None)

        if job.palette is None:
            try:
                job.palette = await extract_palette(page, config.colors)
            except PageLoadError:
                raise
            except Exception:  # pylint: disable=broad-except
                logger.exception("Palette extraction failed on %s", page.url)
                job.palette = fallback_palette()
        return record


def _politeness_delay(config: CrawlConfig, robots: RobotsEvaluator) -> float:
    delay = config.crawl_delay
    robots_delay = robots.crawl_delay(config.user_agent)
    if robots_delay:
        delay = max(delay, min(robots_delay, MAX_ROBOTS_DELAY))
    return delay


async def crawl_website(
    job: CrawlJob,
    config: CrawlConfig,
    renderer: Any,
    robots: RobotsEvaluator,
) -> CrawlJob:
    """Breadth-first crawl of the seed's host, bounded by page and depth caps.

    Pages are appended to ``job`` as they complete so a caller that cancels
    the crawl still sees everything gathered so far. Only a renderer that
    cannot start escapes; every other failure skips the page.
    """
    delay = _politeness_delay(config, robots)
    queued: Set[str] = {job.seed_url}
    attempts = max(1, config.max_retries + 1)

    while job.queue and not job.is_full:
        url, depth = job.next()
        if url in job.visited or depth > job.max_depth:
            continue
        if not robots.is_allowed(url, config.user_agent):
            logger.info("Skipping %s (disallowed by robots.txt)", url)
            continue
        job.visited.add(url)

        start = time.perf_counter()
        try:
            record = await retry_async(
                lambda: process_page(renderer, url, depth, job, config),
                max_attempts=attempts,
                base_delay=config.retry_delay,
                retry_on=(PageLoadError,),
            )
        except RenderEngineUnavailable:
            raise
        except PageLoadError as exc:
            logger.error("Giving up on %s after %d attempt(s): %s", url, attempts, exc)
            record = None
        except Exception:  # pylint: disable=broad-except
            logger.exception("Unexpected error processing %s", url)
            record = None

        if record is not None:
            job.visited.add(record.url)
            job.pages.append(record)
            logger.info(
                "Processed %s (depth %d, %d image(s)) in %.2fs",
                record.url,
                depth,
                len(record.images),
                time.perf_counter() - start,
            )
            if depth < job.max_depth:
                for link in record.links:
                    if link in queued or link in job.visited:
                        continue
                    if not same_host(link, job.hostname):
                        continue
                    queued.add(link)
                    job.enqueue(link, depth + 1)

        if job.queue and not job.is_full and delay > 0:
            await asyncio.sleep(delay)

    logger.info(
        "Crawl of %s finished: %d page(s), %d visited",
        job.seed_url,
        len(job.pages),
        len(job.visited),
    )
    return job


def new_crawl_job(
    url: str, config: CrawlConfig, brand_name: Optional[str] = None
) -> CrawlJob:
    return CrawlJob(
        seed_url=url,
        max_pages=config.max_pages,
        max_depth=config.max_depth,
        brand_name=brand_name,
    )


async def run_brand_crawl(
    url: str,
    config: Optional[CrawlConfig] = None,
    generator: Optional[TextGenerator] = None,
    brand_name: Optional[str] = None,
    industry: Optional[str] = None,
    renderer_factory: Optional[RendererFactory] = None,
    robots: Optional[RobotsEvaluator] = None,
    job: Optional[CrawlJob] = None,
) -> BrandKit:
    """Crawl ``url`` and synthesize a BrandKit from what was found."""
    config = config or CrawlConfig.from_env()
    job = job or new_crawl_job(url, config, brand_name)
    if robots is None:
        robots = await load_robots(url, config.user_agent, config.robots_timeout)

    factory = renderer_factory or create_renderer
    async with factory(config) as renderer:
        await crawl_website(job, config, renderer, robots)

    palette = job.palette or fallback_palette()
    return await synthesize_brand_kit(
        job.pages,
        palette,
        config,
        generator=generator,
        brand_name=brand_name or job.brand_name,
        industry=industry,
    )
