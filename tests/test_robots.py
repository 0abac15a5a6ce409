"""Tests for robots.txt fetching and evaluation."""

from unittest.mock import MagicMock

import pytest
import requests

from brand_crawler.errors import RobotsFetchError
from brand_crawler.robots import (
    RobotsEvaluator,
    fetch_robots_body,
    load_robots,
    robots_url_for,
)

AGENT = "BrandCrawlerBot/1.0"
ROBOTS = """
User-agent: *
Disallow: /private/
Allow: /private/press
Crawl-delay: 3
"""


def response(status=200, text=""):
    resp = MagicMock()
    resp.ok = 200 <= status < 300
    resp.status_code = status
    resp.text = text
    return resp


def test_disallow_and_allow_rules():
    robots = RobotsEvaluator("https://acme.test/robots.txt", ROBOTS)

    assert robots.is_allowed("https://acme.test/about", AGENT)
    assert not robots.is_allowed("https://acme.test/private/admin", AGENT)
    assert robots.crawl_delay(AGENT) == 3.0


def test_empty_body_allows_everything():
    robots = RobotsEvaluator.allow_all("https://acme.test/robots.txt")

    assert robots.is_allowed("https://acme.test/private/admin", AGENT)
    assert robots.crawl_delay(AGENT) is None


def test_robots_url_for():
    assert robots_url_for("https://acme.test/team/page?x=1") == "https://acme.test/robots.txt"


def test_fetch_sends_user_agent():
    session = MagicMock()
    session.get.return_value = response(text=ROBOTS)

    body = fetch_robots_body("https://acme.test/about", AGENT, timeout=5, session=session)

    assert body == ROBOTS
    session.get.assert_called_once_with(
        "https://acme.test/robots.txt", timeout=5, headers={"User-Agent": AGENT}
    )


def test_missing_robots_is_empty_body():
    session = MagicMock()
    session.get.return_value = response(status=404, text="not found")

    assert fetch_robots_body("https://acme.test/", AGENT, session=session) == ""


def test_transport_failure_raises():
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("refused")

    with pytest.raises(RobotsFetchError):
        fetch_robots_body("https://acme.test/", AGENT, session=session)


@pytest.mark.asyncio
async def test_load_robots_defaults_to_allow_all_on_failure():
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("refused")

    robots = await load_robots("https://acme.test/", AGENT, session=session)

    assert robots.is_allowed("https://acme.test/private/admin", AGENT)


@pytest.mark.asyncio
async def test_load_robots_parses_body():
    session = MagicMock()
    session.get.return_value = response(text=ROBOTS)

    robots = await load_robots("https://acme.test/", AGENT, session=session)

    assert not robots.is_allowed("https://acme.test/private/admin", AGENT)


def test_owned_session_is_closed(monkeypatch):
    session = MagicMock()
    session.__enter__.return_value = session
    session.get.return_value = response(text=ROBOTS)
    monkeypatch.setattr(requests, "Session", lambda: session)

    assert fetch_robots_body("https://acme.test/", AGENT) == ROBOTS
    session.__exit__.assert_called_once()
