"""Image candidate discovery, context flags, merging and per-page filtering."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional, Tuple
from urllib.parse import quote, urlparse

from .classifier import (
    EXCLUDED_ROLES,
    classify_and_prioritize,
    compute_priority,
    is_oversized,
)
from .config import ClassificationThresholds
from .dom import DomNode, DomSnapshot
from .keywords import (
    BLOCKED_HOST_LABELS,
    BLOCKED_IMAGE_HOSTS,
    HERO_CONTAINER_TERMS,
    LOGO_CONTAINER_TERMS,
    PARTNER_TERMS,
    PLACEHOLDER_PATHS,
    TILE_PATTERNS,
)
from .models import ImageCandidate, ImageRole, PageType, SourceType
from .renderer import PageView, register_extractor
from .utils import normalize_text, normalize_url

logger = logging.getLogger("brand_crawler")

# Lower index wins when the same URL is found by several sources.
SOURCE_PRIORITY = (
    SourceType.SVG,
    SourceType.CSS_BG,
    SourceType.HTML_IMG,
    SourceType.OG,
    SourceType.FAVICON,
)
META_SOURCES = (SourceType.OG, SourceType.FAVICON)

HEADER_TOKEN = re.compile(r"(^|[-_])(header|nav|navbar|navigation|topbar|masthead)($|[-_])")
FOOTER_TOKEN = re.compile(r"(^|[-_])footer($|[-_])")
CSS_URL = re.compile(r"url\(\s*['\"]?([^'\")]+)['\"]?\s*\)")
TITLE_SEPARATOR = re.compile(r"\s+[|\-–—:·•]\s+|\s*\|\s*")
HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
SECTION_TAGS = ("section", "aside", "footer", "article")
AFFILIATE_MAX_ANCESTORS = 6
LOGO_HINT_MAX_ANCESTORS = 3
FAVICON_RELS = ("icon", "shortcut icon", "apple-touch-icon", "mask-icon")


@dataclass
class PageImages:
    """Per-page image extraction result."""

    images: List[ImageCandidate] = field(default_factory=list)
    logo_candidates: List[ImageCandidate] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Brand name
# ---------------------------------------------------------------------------


@register_extractor("brand_name")
def infer_brand_name(view: PageView) -> Optional[str]:
    """og:site_name, then the title prefix, then the first H1."""
    snapshot = view.snapshot
    site_name = snapshot.meta("og:site_name")
    if site_name:
        return site_name
    title = normalize_text(snapshot.title)
    if title:
        prefix = TITLE_SEPARATOR.split(title, maxsplit=1)[0].strip()
        if prefix:
            return prefix
    for node in snapshot.select(("h1",)):
        text = normalize_text(snapshot.subtree_text(node, limit=120))
        if text:
            return text
    return None


def brand_variants(brand_name: Optional[str]) -> Tuple[str, ...]:
    if not brand_name:
        return ()
    lowered = normalize_text(brand_name).lower()
    if not lowered:
        return ()
    variants = {lowered, lowered.replace(" ", ""), lowered.replace(" ", "-")}
    return tuple(sorted(variants, key=len, reverse=True))


def brand_match_score(candidate: ImageCandidate, variants: Tuple[str, ...]) -> int:
    if not variants:
        return 0
    score = 0
    text = f"{candidate.alt} {candidate.title}".lower()
    if any(variant in text for variant in variants):
        score += 1
    if not candidate.url.startswith("data:"):
        path = urlparse(candidate.url).path.lower()
        if any(variant in path for variant in variants):
            score += 1
    return score


# ---------------------------------------------------------------------------
# Context flags
# ---------------------------------------------------------------------------


def _token_match(node: DomNode, pattern: re.Pattern) -> bool:
    tokens = node.classes + node.attr("id").lower().split()
    return any(pattern.search(token) for token in tokens)


def _in_header_or_nav(snapshot: DomSnapshot, node: DomNode) -> bool:
    for ancestor in snapshot.ancestors(node):
        if ancestor.tag in ("header", "nav"):
            return True
        if ancestor.attr("role").lower() in ("banner", "navigation"):
            return True
        if _token_match(ancestor, HEADER_TOKEN):
            return True
    return False


def _in_footer(snapshot: DomSnapshot, node: DomNode) -> bool:
    for ancestor in snapshot.ancestors(node):
        if ancestor.tag == "footer" or ancestor.attr("role").lower() == "contentinfo":
            return True
        if _token_match(ancestor, FOOTER_TOKEN):
            return True
    return False


def _in_hero(snapshot: DomSnapshot, node: DomNode) -> bool:
    rect = node.rect
    if snapshot.has_layout and rect is not None and (rect.width or rect.height):
        if rect.top < snapshot.viewport_height and rect.top + rect.height > 0:
            return True
    for ancestor in snapshot.ancestors(node):
        label = ancestor.label
        if any(term in label for term in HERO_CONTAINER_TERMS):
            return True
    return False


def _section_heading(snapshot: DomSnapshot, container: DomNode) -> str:
    for child in snapshot.descendants(container, max_depth=3):
        if child.tag in HEADING_TAGS:
            return snapshot.subtree_text(child, limit=160).lower()
    return ""


def _in_affiliate_section(snapshot: DomSnapshot, node: DomNode) -> bool:
    for count, ancestor in enumerate(snapshot.ancestors(node)):
        if count >= AFFILIATE_MAX_ANCESTORS or ancestor.tag in ("body", "html", "main"):
            break
        haystack = " ".join(
            (ancestor.label, ancestor.text.lower(), _section_heading(snapshot, ancestor))
        )
        if any(term in haystack for term in PARTNER_TERMS):
            return True
        if ancestor.tag in SECTION_TAGS:
            break
    return False


def _logo_hint(snapshot: DomSnapshot, node: DomNode) -> bool:
    chain = [node]
    for count, ancestor in enumerate(snapshot.ancestors(node)):
        if count >= LOGO_HINT_MAX_ANCESTORS:
            break
        chain.append(ancestor)
    for item in chain:
        label = f"{' '.join(item.classes)} {item.attr('id').lower()}"
        if any(term in label for term in LOGO_CONTAINER_TERMS):
            return True
    return False


# ---------------------------------------------------------------------------
# Candidate gathering
# ---------------------------------------------------------------------------


def _first_srcset_url(srcset: str) -> str:
    first = srcset.split(",", 1)[0].strip()
    return first.split()[0] if first else ""


def _node_dimensions(node: DomNode) -> Tuple[Optional[int], Optional[int]]:
    if node.natural_width and node.natural_height:
        return node.natural_width, node.natural_height
    rect = node.rect
    if rect is not None and rect.width >= 1 and rect.height >= 1:
        return int(round(rect.width)), int(round(rect.height))
    return None, None


def _svg_label(snapshot: DomSnapshot, node: DomNode) -> str:
    label = node.attr("aria-label") or node.attr("title")
    if label:
        return label
    markup = node.markup or ""
    match = re.search(r"<title[^>]*>(.*?)</title>", markup, re.IGNORECASE | re.DOTALL)
    return normalize_text(match.group(1)) if match else ""


def _svg_data_uri(markup: str) -> str:
    return "data:image/svg+xml;utf8," + quote(markup, safe="")


def _element_sources(
    snapshot: DomSnapshot, base_url: str
) -> Iterator[Tuple[DomNode, str, SourceType, str, str]]:
    """Yield (node, url, source, alt, title) for every element-backed image."""
    for node in snapshot.nodes:
        if node.tag == "svg":
            if node.markup:
                label = _svg_label(snapshot, node)
                yield node, _svg_data_uri(node.markup), SourceType.SVG, label, ""
            continue

        if node.tag == "img":
            raw = (
                node.attr("src")
                or node.attr("data-src")
                or _first_srcset_url(node.attr("srcset"))
            )
            url = normalize_url(raw, base_url)
            if url:
                yield node, url, SourceType.HTML_IMG, node.attr("alt"), node.attr("title")

        for prop in ("background-image", "mask-image"):
            value = node.style.get(prop, "")
            if "url(" not in value:
                continue
            for raw in CSS_URL.findall(value):
                url = normalize_url(raw, base_url)
                if url:
                    yield (
                        node,
                        url,
                        SourceType.CSS_BG,
                        node.attr("aria-label"),
                        node.attr("title"),
                    )


def _meta_sources(snapshot: DomSnapshot, base_url: str) -> Iterator[Tuple[str, SourceType]]:
    og_image = normalize_url(snapshot.meta("og:image"), base_url)
    if og_image:
        yield og_image, SourceType.OG
    for node in snapshot.select(("link",)):
        rel = node.attr("rel").lower()
        if rel in FAVICON_RELS or "icon" in rel.split():
            url = normalize_url(node.attr("href"), base_url)
            if url:
                yield url, SourceType.FAVICON


def gather_candidates(
    snapshot: DomSnapshot,
    page_url: str,
    page_type: PageType,
    brand_name: Optional[str] = None,
) -> List[ImageCandidate]:
    """Collect unclassified candidates from every source on the page."""
    variants = brand_variants(brand_name)
    candidates: List[ImageCandidate] = []

    for node, url, source, alt, title in _element_sources(snapshot, page_url):
        width, height = _node_dimensions(node)
        in_header = _in_header_or_nav(snapshot, node)
        logo_hint = _logo_hint(snapshot, node)
        if source == SourceType.SVG and not (in_header or logo_hint or alt):
            continue
        candidate = ImageCandidate(
            url=url,
            alt=normalize_text(alt),
            title=normalize_text(title),
            width=width,
            height=height,
            source_type=source,
            in_header_or_nav=in_header,
            in_footer=_in_footer(snapshot, node),
            in_affiliate_or_partner_section=_in_affiliate_section(snapshot, node),
            in_hero_or_above_fold=_in_hero(snapshot, node),
            logo_hint=logo_hint,
            page_url=page_url,
            page_type=page_type,
        )
        candidate.brand_match_score = brand_match_score(candidate, variants)
        candidates.append(candidate)

    for url, source in _meta_sources(snapshot, page_url):
        candidate = ImageCandidate(
            url=url, source_type=source, page_url=page_url, page_type=page_type
        )
        candidate.brand_match_score = brand_match_score(candidate, variants)
        candidates.append(candidate)

    return candidates


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def _source_rank(source: SourceType) -> int:
    return SOURCE_PRIORITY.index(source)


def merge_duplicates(candidates: List[ImageCandidate]) -> List[ImageCandidate]:
    """Collapse exact-URL duplicates, keeping the richest metadata.

    Context flags are OR-ed and the higher-priority source type is kept.
    """
    merged: Dict[str, ImageCandidate] = {}
    for candidate in candidates:
        existing = merged.get(candidate.url)
        if existing is None:
            merged[candidate.url] = candidate
            continue
        if candidate.metadata_richness() > existing.metadata_richness():
            keep, other = candidate, existing
        else:
            keep, other = existing, candidate
        keep.alt = keep.alt or other.alt
        keep.title = keep.title or other.title
        if not keep.has_dimensions and other.has_dimensions:
            keep.width, keep.height = other.width, other.height
        keep.in_header_or_nav = keep.in_header_or_nav or other.in_header_or_nav
        keep.in_footer = keep.in_footer or other.in_footer
        keep.in_affiliate_or_partner_section = (
            keep.in_affiliate_or_partner_section or other.in_affiliate_or_partner_section
        )
        keep.in_hero_or_above_fold = (
            keep.in_hero_or_above_fold or other.in_hero_or_above_fold
        )
        keep.logo_hint = keep.logo_hint or other.logo_hint
        keep.brand_match_score = max(keep.brand_match_score, other.brand_match_score)
        if _source_rank(other.source_type) < _source_rank(keep.source_type):
            keep.source_type = other.source_type
        merged[candidate.url] = keep
    return list(merged.values())


def logo_candidates_for_page(
    candidates: List[ImageCandidate],
    thresholds: ClassificationThresholds,
) -> List[ImageCandidate]:
    """Logo-role candidates, falling back to OG/favicon when none exist.

    Promoted OG/favicon entries are copies; the originals keep their role in
    the page image list.
    """
    logos = [
        c
        for c in candidates
        if c.role == ImageRole.LOGO and c.source_type not in META_SOURCES
    ]
    if logos:
        return sorted(logos, key=lambda c: _source_rank(c.source_type))

    promoted: List[ImageCandidate] = []
    for candidate in candidates:
        if candidate.source_type not in META_SOURCES:
            continue
        if candidate.role in EXCLUDED_ROLES or is_oversized(candidate, thresholds):
            continue
        logo = replace(candidate, role=ImageRole.LOGO)
        logo.priority = compute_priority(logo)
        promoted.append(logo)
    return sorted(promoted, key=lambda c: _source_rank(c.source_type))


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


def is_blocked_url(url: str) -> bool:
    """Data URIs, placeholders, tracking pixels and map tiles."""
    if url.startswith("data:"):
        return True
    lowered = url.lower()
    if any(pattern in lowered for pattern in PLACEHOLDER_PATHS):
        return True
    if any(pattern in lowered for pattern in TILE_PATTERNS):
        return True
    host = (urlparse(url).hostname or "").lower()
    if any(host == blocked or host.endswith("." + blocked) for blocked in BLOCKED_IMAGE_HOSTS):
        return True
    labels = set(host.split("."))
    return bool(labels & BLOCKED_HOST_LABELS)


def filter_page_images(
    candidates: List[ImageCandidate],
    thresholds: ClassificationThresholds,
) -> List[ImageCandidate]:
    kept: List[ImageCandidate] = []
    for candidate in candidates:
        if candidate.source_type == SourceType.FAVICON:
            continue
        if is_blocked_url(candidate.url):
            continue
        if (
            candidate.has_dimensions
            and (candidate.width or 0) < thresholds.min_image_dimension
            and (candidate.height or 0) < thresholds.min_image_dimension
        ):
            continue
        kept.append(candidate)
    kept.sort(key=lambda c: c.priority, reverse=True)
    return kept[: thresholds.max_page_images]


@register_extractor("images")
def extract_images(
    view: PageView,
    page_type: PageType = PageType.OTHER,
    brand_name: Optional[str] = None,
    thresholds: Optional[ClassificationThresholds] = None,
) -> PageImages:
    thresholds = thresholds or ClassificationThresholds()
    candidates = merge_duplicates(
        gather_candidates(view.snapshot, view.url, page_type, brand_name)
    )
    for candidate in candidates:
        classify_and_prioritize(candidate, thresholds)
    logos = logo_candidates_for_page(candidates, thresholds)
    images = filter_page_images(candidates, thresholds)
    logger.debug(
        "Found %d candidates on %s (%d logo, %d kept)",
        len(candidates),
        view.url,
        len(logos),
        len(images),
    )
    return PageImages(images=images, logo_candidates=logos)
