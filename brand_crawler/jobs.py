"""Job records, storage and the wall-clock-bounded job runner."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Protocol, TypeVar

from .colors import fallback_palette
from .config import CrawlConfig
from .crawler import RendererFactory, new_crawl_job, run_brand_crawl
from .errors import JobTimeoutError, RenderEngineUnavailable
from .generation import TextGenerator
from .models import BrandKit
from .robots import RobotsEvaluator
from .synthesis import synthesize_brand_kit

logger = logging.getLogger("brand_crawler")

T = TypeVar("T")


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# pending -> processing -> {completed, failed}
ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.PROCESSING},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


@dataclass
class JobRecord:
    """State of one brand crawl request."""

    id: str
    seed_url: str
    brand_name: Optional[str] = None
    industry: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    brand_kit: Optional[BrandKit] = None
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def transition(self, status: JobStatus) -> None:
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(f"Invalid job transition {self.status.value} -> {status.value}")
        self.status = status
        self.updated_at = time.time()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "seed_url": self.seed_url,
            "brand_name": self.brand_name,
            "industry": self.industry,
            "status": self.status.value,
            "brand_kit": self.brand_kit.to_dict() if self.brand_kit else None,
            "error": self.error,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class JobStore(Protocol):
    def get(self, job_id: str) -> Optional[JobRecord]:
        ...

    def set(self, record: JobRecord) -> None:
        ...

    def list(self) -> List[JobRecord]:
        ...


class InMemoryJobStore:
    """Process-local job store."""

    def __init__(self) -> None:
        self._records: Dict[str, JobRecord] = {}

    def get(self, job_id: str) -> Optional[JobRecord]:
        return self._records.get(job_id)

    def set(self, record: JobRecord) -> None:
        self._records[record.id] = record

    def list(self) -> List[JobRecord]:
        return sorted(self._records.values(), key=lambda r: r.created_at)


def create_job(
    store: JobStore,
    url: str,
    brand_name: Optional[str] = None,
    industry: Optional[str] = None,
) -> JobRecord:
    record = JobRecord(
        id=uuid.uuid4().hex, seed_url=url, brand_name=brand_name, industry=industry
    )
    store.set(record)
    logger.info("Created job %s for %s", record.id, url)
    return record


async def within_budget(awaitable: Awaitable[T], timeout: Optional[float]) -> T:
    """Await ``awaitable``, raising :class:`JobTimeoutError` past ``timeout``."""
    if not timeout:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as exc:
        raise JobTimeoutError(f"Job exceeded its {timeout:.1f}s budget") from exc


async def run_job(
    store: JobStore,
    job_id: str,
    config: Optional[CrawlConfig] = None,
    generator: Optional[TextGenerator] = None,
    renderer_factory: Optional[RendererFactory] = None,
    robots: Optional[RobotsEvaluator] = None,
) -> JobRecord:
    """Drive a pending job to ``completed`` or ``failed``.

    When the wall-clock budget runs out, a partial brand kit is built from the
    pages gathered so far without calling the text generator; that still
    counts as completed.
    """
    record = store.get(job_id)
    if record is None:
        raise KeyError(f"Unknown job {job_id}")
    config = config or CrawlConfig.from_env()

    record.transition(JobStatus.PROCESSING)
    store.set(record)

    crawl = new_crawl_job(record.seed_url, config, record.brand_name)
    try:
        kit = await within_budget(
            run_brand_crawl(
                record.seed_url,
                config,
                generator=generator,
                brand_name=record.brand_name,
                industry=record.industry,
                renderer_factory=renderer_factory,
                robots=robots,
                job=crawl,
            ),
            config.job_timeout,
        )
    except JobTimeoutError as exc:
        logger.warning(
            "%s; returning partial result from %d page(s)", exc, len(crawl.pages)
        )
        kit = await synthesize_brand_kit(
            crawl.pages,
            crawl.palette or fallback_palette(),
            config,
            brand_name=record.brand_name or crawl.brand_name,
            industry=record.industry,
        )
        kit.partial = True
    except RenderEngineUnavailable as exc:
        logger.error("Job %s failed: %s", job_id, exc)
        return _fail(store, record, str(exc))
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Job %s failed unexpectedly", job_id)
        return _fail(store, record, str(exc))

    record.brand_kit = kit
    record.transition(JobStatus.COMPLETED)
    store.set(record)
    logger.info("Job %s completed (%d source page(s))", job_id, len(kit.source_urls))
    return record


def _fail(store: JobStore, record: JobRecord, error: str) -> JobRecord:
    record.error = error
    record.transition(JobStatus.FAILED)
    store.set(record)
    return record
