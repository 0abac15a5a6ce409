"""robots.txt retrieval and allow/deny evaluation."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional
from urllib.parse import urljoin
from urllib.robotparser import RobotFileParser

import requests

from .errors import RobotsFetchError

logger = logging.getLogger("brand_crawler")


class RobotsEvaluator:
    """Answers allow/deny for (url, agent) from a robots.txt body.

    An empty body (or a failed fetch) allows everything.
    """

    def __init__(self, robots_url: str, body: str = "") -> None:
        self.robots_url = robots_url
        self.body = body
        self._parser = RobotFileParser(robots_url)
        self._parser.parse(body.splitlines())

    @classmethod
    def allow_all(cls, robots_url: str = "") -> "RobotsEvaluator":
        return cls(robots_url, "")

    def is_allowed(self, url: str, user_agent: str) -> bool:
        if not self.body.strip():
            return True
        return self._parser.can_fetch(user_agent, url)

    def crawl_delay(self, user_agent: str) -> Optional[float]:
        delay = self._parser.crawl_delay(user_agent)
        return float(delay) if delay is not None else None


def robots_url_for(url: str) -> str:
    return urljoin(url, "/robots.txt")


def fetch_robots_body(
    url: str,
    user_agent: str,
    timeout: float = 10.0,
    session: Optional[requests.Session] = None,
) -> str:
    """Download robots.txt for the site hosting ``url``.

    Non-2xx responses return an empty body; transport failures raise
    :class:`RobotsFetchError`.
    """
    robots_url = robots_url_for(url)
    headers = {"User-Agent": user_agent}
    try:
        if session is not None:
            resp = session.get(robots_url, timeout=timeout, headers=headers)
        else:
            with requests.Session() as http:
                resp = http.get(robots_url, timeout=timeout, headers=headers)
    except requests.RequestException as exc:
        raise RobotsFetchError(f"Failed to fetch {robots_url}: {exc}") from exc
    if not resp.ok:
        logger.debug("robots.txt at %s returned %s", robots_url, resp.status_code)
        return ""
    return resp.text


async def load_robots(
    url: str,
    user_agent: str,
    timeout: float = 10.0,
    session: Optional[requests.Session] = None,
) -> RobotsEvaluator:
    """Fetch and parse robots.txt, defaulting to allow-all on failure."""
    robots_url = robots_url_for(url)
    try:
        body = await asyncio.to_thread(
            fetch_robots_body, url, user_agent, timeout, session
        )
    except RobotsFetchError as exc:
        logger.warning("%s; treating site as allow-all", exc)
        return RobotsEvaluator.allow_all(robots_url)
    return RobotsEvaluator(robots_url, body)
