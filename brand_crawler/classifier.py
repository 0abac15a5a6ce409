"""Role classification, priority and logo selection for image candidates.

Everything here is a pure function of :class:`ImageCandidate` fields and the
thresholds passed in, so the same candidate always lands in the same role.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Set
from urllib.parse import urlparse

from .config import ClassificationThresholds
from .keywords import (
    GRAPHIC_TERMS,
    ICON_PACK_PATHS,
    LOGO_TERMS,
    LOGOISH_TERMS,
    PARTNER_TERMS,
    PLATFORM_VENDOR_TERMS,
    SOCIAL_NETWORK_TERMS,
    SUBJECT_TERMS,
    TEAM_TERMS,
    UI_ICON_TERMS,
)
from .models import ImageCandidate, ImageRole, LogoSelection, PageType, SourceType

TOKEN_PATTERN = re.compile(r"[a-z0-9]+")

EXCLUDED_ROLES = frozenset(
    {
        ImageRole.SOCIAL_ICON,
        ImageRole.PLATFORM_LOGO,
        ImageRole.PARTNER_LOGO,
        ImageRole.UI_ICON,
    }
)

# Relative weights; only their ordering matters.
ROLE_WEIGHTS: Dict[ImageRole, float] = {
    ImageRole.LOGO: 1000,
    ImageRole.TEAM: 800,
    ImageRole.SUBJECT: 600,
    ImageRole.HERO: 500,
    ImageRole.PHOTO: 400,
    ImageRole.OTHER: 100,
}
PAGE_TYPE_BONUS: Dict[PageType, float] = {
    PageType.MAIN: 20,
    PageType.TEAM: 10,
    PageType.ABOUT: 10,
    PageType.OTHER: 0,
}
SECOND_LOGO_MARGIN = 2.0


def _path(candidate: ImageCandidate) -> str:
    """Lowercased URL path without the host."""
    if candidate.url.startswith("data:"):
        return ""
    return urlparse(candidate.url).path.lower()


def _descriptive_text(candidate: ImageCandidate) -> str:
    """Filename, alt and title, lowercased and space-joined."""
    return " ".join(
        part for part in (candidate.filename, candidate.alt, candidate.title) if part
    ).lower()


def _haystack(candidate: ImageCandidate) -> str:
    return f"{_path(candidate)} {_descriptive_text(candidate)}"


def _contains_any(text: str, terms: Iterable[str]) -> bool:
    return any(term in text for term in terms)


def _tokens(text: str) -> Set[str]:
    return set(TOKEN_PATTERN.findall(text))


def has_logo_keyword(candidate: ImageCandidate) -> bool:
    return candidate.logo_hint or _contains_any(_haystack(candidate), LOGO_TERMS)


def is_ui_icon(candidate: ImageCandidate) -> bool:
    """Matches the UI-icon vocabulary or lives under an icon-pack path."""
    if _contains_any(_path(candidate), ICON_PACK_PATHS):
        return True
    text = _descriptive_text(candidate)
    tokens = _tokens(text)
    for term in UI_ICON_TERMS:
        if "-" in term:
            if term in text:
                return True
        elif term in tokens:
            return True
    return False


def is_oversized(candidate: ImageCandidate, thresholds: ClassificationThresholds) -> bool:
    if not candidate.has_dimensions:
        return False
    return (
        (candidate.max_dimension or 0) > thresholds.max_logo_dimension
        or (candidate.area or 0) > thresholds.max_logo_area
    )


def _is_small(candidate: ImageCandidate, limit: int) -> bool:
    """Unknown dimensions count as small."""
    return not candidate.has_dimensions or (candidate.max_dimension or 0) < limit


def _base_role(
    candidate: ImageCandidate, thresholds: ClassificationThresholds
) -> ImageRole:
    haystack = _haystack(candidate)
    descriptive = _descriptive_text(candidate)
    max_dim = candidate.max_dimension

    if is_oversized(candidate, thresholds):
        if candidate.in_hero_or_above_fold:
            return ImageRole.HERO
        return ImageRole.PHOTO

    if _contains_any(haystack, SOCIAL_NETWORK_TERMS):
        return ImageRole.SOCIAL_ICON

    if _contains_any(haystack, PLATFORM_VENDOR_TERMS) and _contains_any(
        haystack, LOGOISH_TERMS
    ):
        large = max_dim is not None and max_dim > thresholds.large_platform_dimension
        if not large:
            return ImageRole.PLATFORM_LOGO

    if candidate.in_affiliate_or_partner_section:
        return ImageRole.PARTNER_LOGO
    if (
        max_dim is not None
        and max_dim < thresholds.partner_max_dimension
        and _contains_any(haystack, PARTNER_TERMS)
    ):
        return ImageRole.PARTNER_LOGO

    logo_keyword = has_logo_keyword(candidate)
    brand_match = candidate.brand_match_score > 0
    if _is_small(candidate, thresholds.preferred_logo_dimension):
        if candidate.in_header_or_nav or logo_keyword or brand_match:
            return ImageRole.LOGO
    elif _is_small(candidate, thresholds.max_logo_dimension):
        if logo_keyword or brand_match:
            return ImageRole.LOGO

    if candidate.page_type in (PageType.TEAM, PageType.ABOUT) and _contains_any(
        descriptive, TEAM_TERMS
    ):
        return ImageRole.TEAM

    if _contains_any(descriptive, SUBJECT_TERMS):
        return ImageRole.SUBJECT

    area = candidate.area
    if (
        area is not None
        and area >= thresholds.photo_min_area
        and not _contains_any(descriptive, GRAPHIC_TERMS)
    ):
        if (
            candidate.in_hero_or_above_fold
            or area >= thresholds.hero_min_area
            or (max_dim or 0) >= thresholds.hero_min_dimension
        ):
            return ImageRole.HERO
        return ImageRole.PHOTO

    return ImageRole.OTHER


def classify_image(
    candidate: ImageCandidate,
    thresholds: Optional[ClassificationThresholds] = None,
) -> ImageRole:
    """Assign a semantic role; the first matching rule wins."""
    thresholds = thresholds or ClassificationThresholds()
    role = _base_role(candidate, thresholds)
    if (
        role not in EXCLUDED_ROLES
        and role not in (ImageRole.HERO, ImageRole.PHOTO)
        and _is_small(candidate, thresholds.icon_max_dimension)
        and is_ui_icon(candidate)
        and not _contains_any(_haystack(candidate), LOGO_TERMS)
    ):
        return ImageRole.UI_ICON
    return role


def size_tier_bonus(candidate: ImageCandidate) -> float:
    area = candidate.area
    if area is None:
        return 0.0
    if area >= 250_000:
        return 15.0
    if area >= 90_000:
        return 10.0
    if area >= 10_000:
        return 5.0
    return 0.0


def compute_priority(candidate: ImageCandidate) -> float:
    """Role weight, then page-type and size bonuses as tie breakers."""
    return (
        ROLE_WEIGHTS.get(candidate.role, 0.0)
        + PAGE_TYPE_BONUS.get(candidate.page_type, 0.0)
        + size_tier_bonus(candidate)
    )


def classify_and_prioritize(
    candidate: ImageCandidate,
    thresholds: Optional[ClassificationThresholds] = None,
) -> ImageCandidate:
    candidate.role = classify_image(candidate, thresholds)
    candidate.priority = compute_priority(candidate)
    return candidate


def logo_score(
    candidate: ImageCandidate,
    thresholds: Optional[ClassificationThresholds] = None,
) -> float:
    thresholds = thresholds or ClassificationThresholds()
    score = 0.0
    if candidate.in_header_or_nav:
        score += 4
    if candidate.in_hero_or_above_fold:
        score += 2
    score += 2 * candidate.brand_match_score
    if candidate.role == ImageRole.LOGO:
        score += 2
    if candidate.in_affiliate_or_partner_section:
        score -= 5
    max_dim = candidate.max_dimension
    if max_dim is not None:
        if max_dim < thresholds.min_logo_dimension:
            score -= 2
        elif max_dim <= thresholds.logo_score_max_dimension:
            score += 1
    if candidate.source_type == SourceType.SVG:
        score += 1
    elif candidate.source_type == SourceType.CSS_BG:
        score += 0.5
    return score


def _passes_logo_filter(
    candidate: ImageCandidate, thresholds: ClassificationThresholds
) -> bool:
    if candidate.role in EXCLUDED_ROLES or candidate.in_affiliate_or_partner_section:
        return False
    max_dim = candidate.max_dimension
    return max_dim is None or max_dim >= thresholds.min_logo_dimension


def _best_by_url(
    candidates: Iterable[ImageCandidate], thresholds: ClassificationThresholds
) -> List[ImageCandidate]:
    best: Dict[str, ImageCandidate] = {}
    for candidate in candidates:
        current = best.get(candidate.url)
        if current is None or logo_score(candidate, thresholds) > logo_score(
            current, thresholds
        ):
            best[candidate.url] = candidate
    return list(best.values())


def select_logos(
    candidates: Iterable[ImageCandidate],
    thresholds: Optional[ClassificationThresholds] = None,
    max_logos: int = 2,
) -> LogoSelection:
    """Pick the job's logo(s) from every logo-role candidate seen on any page.

    A second logo is kept only when it scores within two points of the best.
    When filtering leaves nothing, the best unfiltered candidate is returned
    with ``fallback`` set.
    """
    thresholds = thresholds or ClassificationThresholds()
    pool = _best_by_url(
        (c for c in candidates if c.role == ImageRole.LOGO), thresholds
    )
    if not pool:
        return LogoSelection()

    def ranked(items: List[ImageCandidate]) -> List[ImageCandidate]:
        return sorted(items, key=lambda c: logo_score(c, thresholds), reverse=True)

    eligible = ranked([c for c in pool if _passes_logo_filter(c, thresholds)])
    if not eligible:
        return LogoSelection(logos=ranked(pool)[:1], fallback=True)

    best = eligible[0]
    best_score = logo_score(best, thresholds)
    selected = [best]
    for candidate in eligible[1:]:
        if len(selected) >= max_logos:
            break
        if best_score - logo_score(candidate, thresholds) <= SECOND_LOGO_MARGIN:
            selected.append(candidate)
    return LogoSelection(logos=selected)
