"""Shared fixtures: an in-memory site, a fake renderer and a scripted generator."""

from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import pytest

from brand_crawler.config import CrawlConfig
from brand_crawler.errors import PageLoadError, RenderEngineUnavailable
from brand_crawler.renderer import StaticRenderedPage
from brand_crawler.robots import RobotsEvaluator

BASE = "https://acme.test"

HOME_HTML = """
<html>
<head>
  <title>Acme | Outdoor Furniture</title>
  <meta name="description" content="Acme builds durable outdoor furniture for patios, gardens and public parks.">
  <meta property="og:image" content="/social-card.jpg">
  <link rel="icon" href="/favicon.ico">
  <style>:root { --brand-primary: #1E40AF; --brand-accent: #F97316; }</style>
</head>
<body>
  <header class="site-header">
    <a href="/"><img src="/logo.png" alt="Acme Logo"></a>
    <nav>
      <a href="/about">About</a>
      <a href="/team">Team</a>
      <a href="/private/admin">Admin</a>
      <a href="https://other.example/page">Elsewhere</a>
      <a href="mailto:hello@acme.test">Mail</a>
      <a href="/about#history">History</a>
    </nav>
  </header>
  <div class="hero">
    <img src="/hero-garden.jpg" width="1200" height="800" alt="Garden bench">
    <img src="/hero-patio.jpg" width="1200" height="800" alt="Patio set">
  </div>
  <main>
    <h1>Outdoor furniture built to last</h1>
    <h2>Handmade benches</h2>
    <p>Acme furniture is handmade from reclaimed timber. Every bench, table and
    chair is finished by hand and built to survive decades of weather.</p>
  </main>
  <footer><p>Copyright Acme</p></footer>
</body>
</html>
"""

ABOUT_HTML = """
<html>
<head><title>About | Acme</title></head>
<body>
  <header><img src="/logo.png" alt="Acme Logo"></header>
  <main>
    <h1>Our story</h1>
    <p>Founded in a small timber workshop, Acme has grown into a furniture studio
    trusted by parks and gardens across the region.</p>
    <a href="/">Home</a>
    <a href="/team">Meet the team</a>
  </main>
</body>
</html>
"""

TEAM_HTML = """
<html>
<head><title>Team | Acme</title></head>
<body>
  <main>
    <h1>Meet the team</h1>
    <img src="/team-founder.jpg" width="400" height="500" alt="Founder portrait">
    <p>Our makers combine carpentry skill with careful design.</p>
    <a href="/team/deep">Deeper</a>
  </main>
</body>
</html>
"""

DEEP_HTML = """
<html><head><title>Deep | Acme</title></head>
<body><main><p>Workshop notes about timber seasoning.</p><a href="/team/deeper">Deeper still</a></main></body></html>
"""

PRIVATE_HTML = """
<html><head><title>Private</title></head><body><p>Secret admin page.</p></body></html>
"""


def site_pages() -> Dict[str, str]:
    return {
        f"{BASE}/": HOME_HTML,
        f"{BASE}/about": ABOUT_HTML,
        f"{BASE}/team": TEAM_HTML,
        f"{BASE}/team/deep": DEEP_HTML,
        f"{BASE}/team/deeper": DEEP_HTML.replace("Deep", "Deeper"),
        f"{BASE}/private/admin": PRIVATE_HTML,
    }


class FakeRenderer:
    """Serves in-memory pages through the static page implementation."""

    def __init__(
        self,
        pages: Dict[str, str],
        failures: Optional[Dict[str, int]] = None,
    ) -> None:
        self.pages = pages
        self.failures = dict(failures or {})
        self.opened: List[str] = []
        self.entered = False
        self.exited = False

    async def __aenter__(self) -> "FakeRenderer":
        self.entered = True
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.exited = True

    @asynccontextmanager
    async def open(self, url: str):
        self.opened.append(url)
        remaining = self.failures.get(url, 0)
        if remaining:
            self.failures[url] = remaining - 1
            raise PageLoadError(url, "simulated timeout")
        if url not in self.pages:
            raise PageLoadError(url, "HTTP 404")
        yield StaticRenderedPage(url, self.pages[url])


class BrokenRenderer:
    async def __aenter__(self):
        raise RenderEngineUnavailable("Could not launch Chromium: missing executable")

    async def __aexit__(self, *exc_info) -> None:
        return None


class ScriptedGenerator:
    """Returns queued responses per agent type and records every call."""

    def __init__(self, responses: Optional[Dict[str, List[str]]] = None) -> None:
        self.responses = {key: list(value) for key, value in (responses or {}).items()}
        self.calls: List[tuple] = []

    def generate(self, prompt: str, agent_type: str) -> str:
        self.calls.append((agent_type, prompt))
        queue = self.responses.get(agent_type) or []
        if not queue:
            raise RuntimeError(f"no scripted response for {agent_type}")
        return queue.pop(0)


@pytest.fixture
def fast_config() -> CrawlConfig:
    return CrawlConfig(
        max_pages=10,
        max_depth=2,
        crawl_delay=0.0,
        retry_delay=0.0,
        wait_after_load=0.0,
        max_retries=2,
    )


@pytest.fixture
def allow_all() -> RobotsEvaluator:
    return RobotsEvaluator.allow_all(f"{BASE}/robots.txt")


@pytest.fixture
def site() -> Dict[str, str]:
    return site_pages()
