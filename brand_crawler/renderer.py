"""Page rendering backends and the extractor registry they dispatch to."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Optional

import requests
from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from .config import CrawlConfig
from .dom import (
    CAPTURED_ATTRS,
    DEFAULT_VIEWPORT,
    MAX_SNAPSHOT_NODES,
    SNAPSHOT_SCRIPT,
    DomSnapshot,
    snapshot_from_html,
)
from .errors import ExtractionError, PageLoadError, RenderEngineUnavailable
from .keywords import BRAND_CSS_VARIABLES

logger = logging.getLogger("brand_crawler")

# Bundled site code sometimes references helpers injected by esbuild/tsc that
# are missing at runtime; defining no-op versions keeps page scripts alive.
BUNDLER_SHIM = """
(() => {
  const g = globalThis;
  if (typeof g.__name === "undefined") g.__name = (target) => target;
  if (typeof g.__publicField === "undefined") {
    g.__publicField = (obj, key, value) => { obj[key] = value; return value; };
  }
  if (typeof g.__defProp === "undefined") g.__defProp = Object.defineProperty;
  if (typeof g.__export === "undefined") {
    g.__export = (target, all) => {
      for (const name in all) {
        Object.defineProperty(target, name, { get: all[name], enumerable: true });
      }
    };
  }
})();
"""


@dataclass
class PageView:
    """Read-only page data handed to extractor functions."""

    url: str
    html: str
    snapshot: DomSnapshot


Extractor = Callable[..., Any]
EXTRACTORS: Dict[str, Extractor] = {}


def register_extractor(extractor_id: str) -> Callable[[Extractor], Extractor]:
    """Register a pure ``fn(view, **kwargs)`` under ``extractor_id``."""

    def decorator(func: Extractor) -> Extractor:
        EXTRACTORS[extractor_id] = func
        return func

    return decorator


class RenderedPage:
    """A loaded page. Subclasses provide raw HTML and a DOM snapshot."""

    def __init__(self, url: str) -> None:
        self.url = url
        self._view: Optional[PageView] = None

    async def html(self) -> str:
        raise NotImplementedError

    async def snapshot(self) -> DomSnapshot:
        raise NotImplementedError

    async def screenshot(self) -> bytes:
        raise ExtractionError("screenshot", "renderer does not produce screenshots")

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        raise ExtractionError("evaluate", "renderer cannot run scripts")

    async def view(self) -> PageView:
        if self._view is None:
            html = await self.html()
            try:
                snapshot = await self.snapshot()
            except ExtractionError as exc:
                logger.warning("%s; falling back to static snapshot", exc)
                snapshot = snapshot_from_html(html, self.url)
            self._view = PageView(url=self.url, html=html, snapshot=snapshot)
        return self._view

    async def extract(self, extractor_id: str, **kwargs: Any) -> Any:
        """Run a registered extractor against this page's view."""
        func = EXTRACTORS.get(extractor_id)
        if func is None:
            raise ExtractionError(extractor_id, "unknown extractor")
        view = await self.view()
        try:
            return func(view, **kwargs)
        except ExtractionError:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            raise ExtractionError(extractor_id, str(exc)) from exc


class PlaywrightRenderedPage(RenderedPage):
    def __init__(self, page: Page) -> None:
        super().__init__(page.url)
        self._page = page

    async def html(self) -> str:
        try:
            return await self._page.content()
        except PlaywrightError as exc:
            raise PageLoadError(self.url, f"could not read content: {exc}") from exc

    async def snapshot(self) -> DomSnapshot:
        raw = await self.evaluate(
            SNAPSHOT_SCRIPT,
            [MAX_SNAPSHOT_NODES, list(BRAND_CSS_VARIABLES), list(CAPTURED_ATTRS)],
        )
        if not isinstance(raw, dict):
            raise ExtractionError("snapshot", "unexpected snapshot payload")
        return DomSnapshot.from_raw(raw)

    async def screenshot(self) -> bytes:
        try:
            return await self._page.screenshot(type="png", full_page=False)
        except PlaywrightError as exc:
            raise ExtractionError("screenshot", str(exc)) from exc

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        try:
            return await self._page.evaluate(script, arg)
        except PlaywrightError as exc:
            raise ExtractionError("evaluate", str(exc)) from exc


class StaticRenderedPage(RenderedPage):
    """A page built from fetched markup; no scripts, styles or screenshots."""

    def __init__(self, url: str, html: str) -> None:
        super().__init__(url)
        self._html = html

    async def html(self) -> str:
        return self._html

    async def snapshot(self) -> DomSnapshot:
        return snapshot_from_html(self._html, self.url)


class PlaywrightRenderer:
    """Headless Chromium renderer. Use as ``async with``; one per job."""

    def __init__(self, config: CrawlConfig) -> None:
        self.config = config
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def __aenter__(self) -> "PlaywrightRenderer":
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless
            )
        except Exception as exc:  # pylint: disable=broad-except
            await self._shutdown()
            raise RenderEngineUnavailable(f"Could not launch Chromium: {exc}") from exc
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self._shutdown()

    async def _shutdown(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError:
                logger.debug("Browser already closed")
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    @asynccontextmanager
    async def open(self, url: str) -> AsyncIterator[RenderedPage]:
        """Navigate to ``url`` and yield the loaded page; closes it on exit."""
        if self._browser is None:
            raise RenderEngineUnavailable("Renderer used outside its context")
        context = await self._browser.new_context(
            user_agent=self.config.user_agent,
            viewport={"width": DEFAULT_VIEWPORT[0], "height": DEFAULT_VIEWPORT[1]},
        )
        try:
            await context.add_init_script(BUNDLER_SHIM)
            page = await context.new_page()
            page.set_default_navigation_timeout(self.config.navigation_timeout * 1000)
            logger.info("Loading %s", url)
            try:
                response = await page.goto(url, wait_until="networkidle")
            except PlaywrightTimeoutError as exc:
                raise PageLoadError(
                    url, f"timed out after {self.config.navigation_timeout:.0f}s"
                ) from exc
            except PlaywrightError as exc:
                raise PageLoadError(url, str(exc)) from exc
            if response is not None and response.status >= 400:
                raise PageLoadError(url, f"HTTP {response.status}")
            if self.config.wait_after_load:
                await page.wait_for_timeout(int(self.config.wait_after_load * 1000))
            yield PlaywrightRenderedPage(page)
        finally:
            await context.close()


class StaticRenderer:
    """Plain HTTP renderer backed by ``requests``."""

    def __init__(
        self, config: CrawlConfig, session: Optional[requests.Session] = None
    ) -> None:
        self.config = config
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "StaticRenderer":
        if self._session is None:
            self._session = requests.Session()
        self._session.headers.update({"User-Agent": self.config.user_agent})
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._session is not None and self._owns_session:
            self._session.close()
            self._session = None

    def _fetch(self, url: str) -> requests.Response:
        assert self._session is not None
        return self._session.get(url, timeout=self.config.navigation_timeout)

    @asynccontextmanager
    async def open(self, url: str) -> AsyncIterator[RenderedPage]:
        if self._session is None:
            raise RenderEngineUnavailable("Renderer used outside its context")
        logger.info("Fetching %s", url)
        try:
            resp = await asyncio.to_thread(self._fetch, url)
        except requests.RequestException as exc:
            raise PageLoadError(url, str(exc)) from exc
        if not resp.ok:
            raise PageLoadError(url, f"HTTP {resp.status_code}")
        content_type = resp.headers.get("Content-Type", "")
        if content_type and "html" not in content_type.lower():
            raise PageLoadError(url, f"unsupported content type {content_type}")
        yield StaticRenderedPage(resp.url or url, resp.text)


def create_renderer(config: CrawlConfig) -> Any:
    """Instantiate the renderer named by ``config.renderer``."""
    if config.renderer == "static":
        return StaticRenderer(config)
    if config.renderer == "playwright":
        return PlaywrightRenderer(config)
    raise ValueError(f"Unknown renderer {config.renderer!r}")
