"""Exception types raised across the crawl pipeline."""

from __future__ import annotations


class BrandCrawlerError(Exception):
    """Base class for every error raised by the brand crawler."""


class RenderEngineUnavailable(BrandCrawlerError):
    """The headless browser could not be started; fatal to the job."""


class PageLoadError(BrandCrawlerError):
    """Navigation to a page failed or timed out."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to load {url}: {reason}")
        self.url = url
        self.reason = reason


class ExtractionError(BrandCrawlerError):
    """An extractor raised while evaluating page data."""

    def __init__(self, extractor_id: str, reason: str) -> None:
        super().__init__(f"Extractor {extractor_id!r} failed: {reason}")
        self.extractor_id = extractor_id
        self.reason = reason


class RobotsFetchError(BrandCrawlerError):
    """robots.txt could not be retrieved."""


class CollaboratorError(BrandCrawlerError):
    """The text-generation collaborator failed or returned unusable output."""


class ColorExtractionError(ExtractionError):
    """Palette extraction failed at a step that has no local fallback."""

    def __init__(self, reason: str) -> None:
        super().__init__("colors", reason)


class TypographyExtractionError(ExtractionError):
    """Font detection had nothing to work from."""

    def __init__(self, reason: str) -> None:
        super().__init__("typography", reason)


class JobTimeoutError(BrandCrawlerError):
    """The job exceeded its wall-clock budget."""
