"""Heading and body font detection from computed font stacks."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Optional

from .dom import DomSnapshot
from .errors import TypographyExtractionError
from .keywords import GENERIC_FONT_FAMILIES, GOOGLE_FONTS
from .models import TypographyResult
from .renderer import PageView, register_extractor

HEADING_TAGS = ("h1", "h2", "h3")
BODY_TAGS = ("p", "body", "main", "article", "section")
GOOGLE_FONT_NAMES = {name.lower() for name in GOOGLE_FONTS}


def primary_family(font_family: Optional[str]) -> Optional[str]:
    """First non-generic family of a CSS font stack, unquoted."""
    if not font_family:
        return None
    first = font_family.split(",", 1)[0].strip().strip("'\"").strip()
    if not first or first.lower() in GENERIC_FONT_FAMILIES:
        return None
    return first


def _most_common(snapshot: DomSnapshot, tags: Iterable[str]) -> Optional[str]:
    tally: Counter = Counter()
    for node in snapshot.select(tags):
        family = primary_family(node.style.get("font-family"))
        if family:
            tally[family] += 1
    if not tally:
        return None
    return tally.most_common(1)[0][0]


def font_source(family: str) -> str:
    return "google" if family.lower() in GOOGLE_FONT_NAMES else "custom"


def detect_typography(snapshot: DomSnapshot) -> Optional[TypographyResult]:
    """Most common heading and body families; None when no styles name a font."""
    if not snapshot.nodes:
        raise TypographyExtractionError(f"empty snapshot for {snapshot.url}")
    heading = _most_common(snapshot, HEADING_TAGS)
    body = _most_common(snapshot, BODY_TAGS)
    if heading is None and body is None:
        return None
    heading = heading or body
    body = body or heading
    return TypographyResult(heading=heading, body=body, source=font_source(heading))


@register_extractor("typography")
def extract_typography(view: PageView) -> Optional[TypographyResult]:
    return detect_typography(view.snapshot)
