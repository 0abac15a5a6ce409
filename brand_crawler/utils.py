"""Utility helpers for URL handling, hashing and retries."""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar
from urllib.parse import urljoin, urldefrag, urlparse

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger("brand_crawler")

T = TypeVar("T")

WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_text(text: Optional[str]) -> str:
    """Collapse runs of whitespace and trim."""
    return WHITESPACE_PATTERN.sub(" ", text or "").strip()


def content_hash(text: str) -> str:
    """Deterministic digest of extracted body text used for page dedup."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def normalize_url(src: Optional[str], base_url: str) -> Optional[str]:
    """Resolve ``src`` against ``base_url``; data URIs pass through untouched."""
    if not src:
        return None
    src = src.strip()
    if not src:
        return None
    if src.startswith("data:"):
        return src
    try:
        absolute = urljoin(base_url, src)
        parsed = urlparse(absolute)
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return absolute


def normalize_link(href: Optional[str], base_url: str) -> Optional[str]:
    """Absolute, fragment-free http(s) URL for a link, or None when unusable."""
    if not href or href.startswith(("mailto:", "tel:", "javascript:")):
        return None
    absolute = normalize_url(href, base_url)
    if not absolute or absolute.startswith("data:"):
        return None
    return urldefrag(absolute)[0]


def same_host(url: str, hostname: str) -> bool:
    try:
        return (urlparse(url).hostname or "").lower() == hostname.lower()
    except ValueError:
        return False


def _log_retry(call_state: RetryCallState) -> None:
    outcome = call_state.outcome
    error = outcome.exception() if outcome else None
    delay = call_state.next_action.sleep if call_state.next_action else 0.0
    logger.warning(
        "Attempt %d failed: %s. Retrying in %.2fs",
        call_state.attempt_number,
        error,
        delay,
    )


async def retry_async(
    func: Callable[[], Awaitable[T]],
    max_attempts: int,
    base_delay: float,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    max_delay: float = 30.0,
) -> T:
    """Run ``func`` with exponential backoff, re-raising the last error.

    The n-th retry waits ``base_delay * 2 ** (n - 1)`` seconds, capped at
    ``max_delay``.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=base_delay, min=base_delay, max=max_delay),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_retry,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await func()
    raise RuntimeError("retry loop exited without a result")  # pragma: no cover
