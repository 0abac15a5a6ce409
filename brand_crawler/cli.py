"""Command-line entry point for the brand crawler."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from .config import CrawlConfig
from .generation import MLXTextGenerator, TextGenerator
from .jobs import InMemoryJobStore, JobStatus, create_job, run_job

logger = logging.getLogger("brand_crawler.cli")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    defaults = CrawlConfig.from_env()
    parser = argparse.ArgumentParser(
        description="Crawl a business website and print its inferred brand kit as JSON.",
    )
    parser.add_argument("url", help="Seed URL of the site to crawl")
    parser.add_argument("--brand-name", default=None, help="Brand name hint")
    parser.add_argument("--industry", default=None, help="Industry hint")
    parser.add_argument(
        "--max-pages",
        type=int,
        default=defaults.max_pages,
        help="Maximum number of pages to visit",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=defaults.max_depth,
        help="Maximum link depth from the seed URL",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=defaults.navigation_timeout,
        help="Navigation timeout in seconds",
    )
    parser.add_argument(
        "--wait",
        type=float,
        default=defaults.wait_after_load,
        help="Seconds to wait after network idle before reading the page",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=defaults.crawl_delay,
        help="Politeness delay between page fetches in seconds",
    )
    parser.add_argument(
        "--job-timeout",
        type=float,
        default=defaults.job_timeout,
        help="Wall-clock budget for the whole job in seconds",
    )
    parser.add_argument(
        "--renderer",
        choices=("playwright", "static"),
        default=defaults.renderer,
        help="Page renderer: headless Chromium or plain HTTP fetch",
    )
    parser.add_argument(
        "--model",
        default=defaults.model_id,
        help="MLX model identifier used for brand voice generation",
    )
    parser.add_argument(
        "--no-ai",
        action="store_true",
        help="Skip the text generator and use deterministic fallbacks",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the JSON result to this file instead of stdout",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CrawlConfig:
    config = CrawlConfig.from_env()
    config.max_pages = args.max_pages
    config.max_depth = args.max_depth
    config.navigation_timeout = args.timeout
    config.wait_after_load = args.wait
    config.crawl_delay = args.delay
    config.job_timeout = args.job_timeout or None
    config.renderer = args.renderer
    config.model_id = args.model
    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )

    config = build_config(args)
    generator: Optional[TextGenerator] = None
    if not args.no_ai:
        generator = MLXTextGenerator(config.model_id, config.max_tokens)

    store = InMemoryJobStore()
    record = create_job(store, args.url, args.brand_name, args.industry)
    overall_start = time.perf_counter()
    record = asyncio.run(run_job(store, record.id, config, generator=generator))
    logger.info(
        "Finished in %.2fs with status %s",
        time.perf_counter() - overall_start,
        record.status.value,
    )

    payload = json.dumps(record.to_dict(), indent=2, ensure_ascii=False)
    if args.output:
        args.output.write_text(payload + "\n", encoding="utf-8")
        logger.info("Saved brand kit to %s", args.output)
    else:
        sys.stdout.write(payload + "\n")
        sys.stdout.flush()
    return 0 if record.status == JobStatus.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main())
