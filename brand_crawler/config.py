"""Configuration objects and constants for the brand crawler."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

DEFAULT_USER_AGENT = "BrandCrawlerBot/1.0"
DEFAULT_MODEL_ID = "mlx-community/Qwen2.5-3B-Instruct-4bit"


def is_serverless(env: Optional[Mapping[str, str]] = None) -> bool:
    """Return True when running inside a constrained serverless runtime."""
    env = os.environ if env is None else env
    return bool(env.get("VERCEL") or env.get("AWS_LAMBDA_FUNCTION_NAME"))


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class ClassificationThresholds:
    """Empirically tuned image-size cutoffs used by role classification."""

    max_logo_dimension: int = 400
    max_logo_area: int = 200_000
    preferred_logo_dimension: int = 300
    large_platform_dimension: int = 300
    partner_max_dimension: int = 120
    icon_max_dimension: int = 150
    min_logo_dimension: int = 40
    logo_score_max_dimension: int = 500
    photo_min_area: int = 40_000
    hero_min_area: int = 360_000
    hero_min_dimension: int = 600
    min_image_dimension: int = 50
    max_page_images: int = 15


@dataclass
class ColorThresholds:
    """Perceptual filtering parameters for palette extraction."""

    merge_distance: float = 15.0
    min_brightness: float = 15.0
    max_brightness: float = 245.0
    gray_saturation: float = 0.1
    gray_min_brightness: float = 50.0
    gray_max_brightness: float = 200.0
    min_colors: int = 3
    max_colors: int = 6


@dataclass
class CrawlConfig:
    """Top-level settings that control crawling and synthesis behaviour."""

    max_pages: int = 50
    max_depth: int = 3
    navigation_timeout: float = 30.0
    wait_after_load: float = 1.0
    crawl_delay: float = 1.0
    max_retries: int = 2
    retry_delay: float = 0.5
    user_agent: str = DEFAULT_USER_AGENT
    job_timeout: Optional[float] = None
    renderer: str = "playwright"
    headless: bool = True
    robots_timeout: float = 10.0
    keyword_count: int = 5
    max_headlines: int = 5
    max_prompt_chars: int = 10_000
    model_id: str = DEFAULT_MODEL_ID
    max_tokens: int = 1024
    classification: ClassificationThresholds = field(
        default_factory=ClassificationThresholds
    )
    colors: ColorThresholds = field(default_factory=ColorThresholds)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "CrawlConfig":
        """Build a config from ``CRAWL_*`` environment variables.

        Serverless runtimes get smaller page caps and a wall-clock budget so a
        single request cannot outlive the platform's execution limit.
        """
        env = os.environ if env is None else env
        serverless = is_serverless(env)
        default_pages = 5 if serverless else 50
        default_depth = 1 if serverless else 3
        default_job_ms = 25_000 if serverless else 0

        job_ms = _env_int(env, "CRAWL_JOB_TIMEOUT_MS", default_job_ms)
        return cls(
            max_pages=_env_int(env, "CRAWL_MAX_PAGES", default_pages),
            max_depth=_env_int(env, "CRAWL_MAX_DEPTH", default_depth),
            navigation_timeout=_env_int(env, "CRAWL_TIMEOUT_MS", 30_000) / 1000,
            crawl_delay=_env_int(env, "CRAWL_DELAY_MS", 1000) / 1000,
            max_retries=_env_int(env, "CRAWL_MAX_RETRIES", 2),
            retry_delay=_env_int(env, "CRAWL_RETRY_DELAY_MS", 500) / 1000,
            user_agent=env.get("CRAWL_USER_AGENT") or DEFAULT_USER_AGENT,
            job_timeout=job_ms / 1000 if job_ms > 0 else None,
            renderer=env.get("CRAWL_RENDERER") or "playwright",
            model_id=env.get("BRAND_MODEL_ID") or DEFAULT_MODEL_ID,
        )
