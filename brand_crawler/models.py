"""Data models used throughout the crawl pipeline."""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Set, Tuple
from urllib.parse import urlparse


class SourceType(str, Enum):
    """How an image candidate was discovered on the page."""

    SVG = "svg"
    CSS_BG = "css-bg"
    HTML_IMG = "html-img"
    OG = "og"
    FAVICON = "favicon"


class ImageRole(str, Enum):
    """Semantic category assigned to an extracted image."""

    LOGO = "logo"
    HERO = "hero"
    PHOTO = "photo"
    TEAM = "team"
    SUBJECT = "subject"
    SOCIAL_ICON = "social_icon"
    PLATFORM_LOGO = "platform_logo"
    PARTNER_LOGO = "partner_logo"
    UI_ICON = "ui_icon"
    OTHER = "other"


class PageType(str, Enum):
    MAIN = "main"
    TEAM = "team"
    ABOUT = "about"
    OTHER = "other"


class ColorOrigin(str, Enum):
    UI = "ui"
    IMAGE = "image"


@dataclass
class ImageCandidate:
    """An image reference found on a page, with the signals used to classify it."""

    url: str
    alt: str = ""
    title: str = ""
    width: Optional[int] = None
    height: Optional[int] = None
    source_type: SourceType = SourceType.HTML_IMG
    in_header_or_nav: bool = False
    in_footer: bool = False
    in_affiliate_or_partner_section: bool = False
    in_hero_or_above_fold: bool = False
    logo_hint: bool = False
    brand_match_score: int = 0
    page_url: str = ""
    page_type: PageType = PageType.OTHER
    role: ImageRole = ImageRole.OTHER
    priority: float = 0.0

    @property
    def has_dimensions(self) -> bool:
        return bool(self.width) and bool(self.height)

    @property
    def max_dimension(self) -> Optional[int]:
        if not self.has_dimensions:
            return None
        return max(self.width or 0, self.height or 0)

    @property
    def area(self) -> Optional[int]:
        if not self.has_dimensions:
            return None
        return (self.width or 0) * (self.height or 0)

    @property
    def filename(self) -> str:
        if self.url.startswith("data:"):
            return ""
        path = urlparse(self.url).path
        return path.rsplit("/", 1)[-1].lower()

    def metadata_richness(self) -> int:
        """Count populated descriptive fields, used when collapsing duplicates."""
        return sum(
            1
            for value in (self.alt, self.title, self.width, self.height)
            if value
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TypographyResult:
    """Heading/body font families detected on a page."""

    heading: str
    body: str
    source: str = "custom"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ColorCandidate:
    """A weighted vote for a normalized hex color."""

    hex: str
    weight: float
    origin: ColorOrigin = ColorOrigin.UI
    label: str = ""

    @property
    def rgb(self) -> Tuple[int, int, int]:
        value = self.hex.lstrip("#")
        return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)

    @property
    def brightness(self) -> float:
        r, g, b = self.rgb
        return (r * 299 + g * 587 + b * 114) / 1000


@dataclass
class ColorPalette:
    """Ranked brand palette: positions 0-2 primary, 3-5 secondary."""

    all_colors: List[str]
    source: str = "dom"
    confidence: int = 0

    @property
    def primary_colors(self) -> List[str]:
        return self.all_colors[:3]

    @property
    def secondary_colors(self) -> List[str]:
        return self.all_colors[3:6]

    @property
    def primary(self) -> Optional[str]:
        return self.all_colors[0] if self.all_colors else None

    @property
    def secondary(self) -> Optional[str]:
        return self.all_colors[1] if len(self.all_colors) > 1 else None

    @property
    def accent(self) -> Optional[str]:
        return self.all_colors[2] if len(self.all_colors) > 2 else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary": self.primary,
            "secondary": self.secondary,
            "accent": self.accent,
            "confidence": self.confidence,
            "primary_colors": self.primary_colors,
            "secondary_colors": self.secondary_colors,
            "all_colors": list(self.all_colors),
            "source": self.source,
        }


@dataclass
class PageRecord:
    """Everything extracted from a single visited page."""

    url: str
    depth: int = 0
    page_type: PageType = PageType.OTHER
    title: str = ""
    meta_description: str = ""
    h1: List[str] = field(default_factory=list)
    h2: List[str] = field(default_factory=list)
    h3: List[str] = field(default_factory=list)
    body_text: str = ""
    lead_text: str = ""
    content_hash: str = ""
    images: List[ImageCandidate] = field(default_factory=list)
    logo_candidates: List[ImageCandidate] = field(default_factory=list)
    headlines: List[str] = field(default_factory=list)
    typography: Optional[TypographyResult] = None
    open_graph: Dict[str, str] = field(default_factory=dict)
    favicons: List[str] = field(default_factory=list)
    links: List[str] = field(default_factory=list)


@dataclass
class LogoSelection:
    """Logos chosen for the job; ``fallback`` marks a degraded pick."""

    logos: List[ImageCandidate] = field(default_factory=list)
    fallback: bool = False

    @property
    def primary(self) -> Optional[ImageCandidate]:
        return self.logos[0] if self.logos else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "logos": [logo.to_dict() for logo in self.logos],
            "fallback": self.fallback,
        }


@dataclass
class VoiceSummary:
    tone: List[str] = field(default_factory=list)
    style: str = "conversational"
    avoid: List[str] = field(default_factory=list)
    audience: str = ""
    personality: List[str] = field(default_factory=list)
    source: str = "ai"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BrandKit:
    """Synthesized brand description returned to the caller."""

    voice_summary: VoiceSummary
    keyword_themes: List[str]
    about_blurb: str
    colors: ColorPalette
    source_urls: List[str]
    logo: LogoSelection = field(default_factory=LogoSelection)
    typography: Optional[TypographyResult] = None
    about_long: Optional[str] = None
    headlines: List[str] = field(default_factory=list)
    images: List[ImageCandidate] = field(default_factory=list)
    brand_name: Optional[str] = None
    about_source: str = "ai"
    partial: bool = False

    @property
    def logo_url(self) -> Optional[str]:
        primary = self.logo.primary
        return primary.url if primary else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "brand_name": self.brand_name,
            "voice_summary": self.voice_summary.to_dict(),
            "keyword_themes": list(self.keyword_themes),
            "about_blurb": self.about_blurb,
            "about_long": self.about_long,
            "about_source": self.about_source,
            "colors": self.colors.to_dict(),
            "typography": self.typography.to_dict() if self.typography else None,
            "source_urls": list(self.source_urls),
            "logo_url": self.logo_url,
            "logo": self.logo.to_dict(),
            "headlines": list(self.headlines),
            "images": [image.to_dict() for image in self.images],
            "partial": self.partial,
        }


@dataclass
class CrawlJob:
    """Transient traversal state for one crawl.

    The queue is a plain FIFO of ``(url, depth)`` pairs; since every page
    enqueues at ``depth + 1``, FIFO order is breadth-first.
    """

    seed_url: str
    max_pages: int
    max_depth: int
    visited: Set[str] = field(default_factory=set)
    queue: Deque[Tuple[str, int]] = field(default_factory=deque)
    pages: List[PageRecord] = field(default_factory=list)
    palette: Optional[ColorPalette] = None
    brand_name: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.queue:
            self.queue.append((self.seed_url, 0))

    @property
    def hostname(self) -> str:
        return (urlparse(self.seed_url).hostname or "").lower()

    @property
    def is_full(self) -> bool:
        return len(self.pages) >= self.max_pages

    def enqueue(self, url: str, depth: int) -> None:
        self.queue.append((url, depth))

    def next(self) -> Tuple[str, int]:
        return self.queue.popleft()
