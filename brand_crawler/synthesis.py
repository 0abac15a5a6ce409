"""Brand kit synthesis from the pages gathered by a crawl."""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .classifier import EXCLUDED_ROLES, select_logos
from .config import CrawlConfig
from .errors import CollaboratorError
from .generation import TextGenerator, call_generator, parse_json_response
from .keywords import STOPWORDS
from .models import (
    BrandKit,
    ColorPalette,
    ImageCandidate,
    PageRecord,
    TypographyResult,
    VoiceSummary,
)
from .utils import normalize_text

logger = logging.getLogger("brand_crawler")

WORD_PATTERN = re.compile(r"\b[a-z]{4,}\b")
GENERIC_BLURB = "A professional brand committed to excellence."
MIN_BLURB_CHARS = 40
MAX_BLURB_CHARS = 160
MAX_KIT_IMAGES = 15

FALLBACK_TONE = ["professional", "modern"]
FALLBACK_STYLE = "conversational"
FALLBACK_PERSONALITY = ["trustworthy", "reliable"]
FALLBACK_AUDIENCE = "general public"

BRAND_PROMPT = """Analyze this brand's website content and extract:
1. Tone (3-5 adjectives, e.g., "professional", "friendly", "innovative")
2. Writing style (1-2 words, e.g., "conversational", "formal")
3. Words to avoid (if any compliance issues detected)
4. Target audience (1 sentence)
5. Brand personality traits (3-5 adjectives)
6. Top 5 keyword themes
7. A concise "About" blurb (120-160 characters)
8. A longer "About" description (2-3 sentences)
{hints}
Website content:
{text}

Respond in JSON format:
{{
  "tone": ["..."],
  "style": "...",
  "avoid": ["..."],
  "audience": "...",
  "personality": ["..."],
  "keyword_themes": ["..."],
  "about_blurb": "...",
  "about_long": "..."
}}"""

ABOUT_PROMPT = """Write a concise "About" description (120-160 characters) for {subject}.
{hints}
Website content:
{text}"""


def dedupe_pages(pages: Iterable[PageRecord]) -> List[PageRecord]:
    """Keep the first page for each content hash."""
    seen = set()
    unique: List[PageRecord] = []
    for page in pages:
        if page.content_hash in seen:
            continue
        seen.add(page.content_hash)
        unique.append(page)
    return unique


def extract_keywords(pages: Iterable[PageRecord], count: int = 5) -> List[str]:
    """Most frequent 4+ letter words across page bodies, minus stopwords."""
    tally: Counter = Counter()
    for page in pages:
        for word in WORD_PATTERN.findall(page.body_text.lower()):
            if word not in STOPWORDS:
                tally[word] += 1
    return [word for word, _ in tally.most_common(count)]


def combine_text(pages: Iterable[PageRecord], limit: int = 10_000) -> str:
    parts: List[str] = []
    for page in pages:
        section = "\n".join(
            part
            for part in (page.title, page.meta_description, " ".join(page.headlines), page.body_text)
            if part
        )
        if section:
            parts.append(section)
    return "\n\n".join(parts)[:limit]


def _hints(brand_name: Optional[str], industry: Optional[str]) -> str:
    lines = []
    if brand_name:
        lines.append(f"Brand name: {brand_name}")
    if industry:
        lines.append(f"Industry: {industry}")
    return "\n".join(lines) + ("\n" if lines else "")


def fallback_blurb(pages: List[PageRecord]) -> str:
    """Meta description, then lead text, then body text, then a generic line."""
    if pages:
        first = pages[0]
        for source in (first.meta_description, first.lead_text, first.body_text):
            text = normalize_text(source)
            if text:
                return text[:MAX_BLURB_CHARS]
    return GENERIC_BLURB


def fallback_voice() -> VoiceSummary:
    return VoiceSummary(
        tone=list(FALLBACK_TONE),
        style=FALLBACK_STYLE,
        avoid=[],
        audience=FALLBACK_AUDIENCE,
        personality=list(FALLBACK_PERSONALITY),
        source="fallback",
    )


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def voice_from_response(data: Dict[str, Any]) -> Optional[VoiceSummary]:
    tone = _str_list(data.get("tone"))
    personality = _str_list(data.get("personality"))
    if not tone and not personality:
        return None
    return VoiceSummary(
        tone=tone,
        style=str(data.get("style") or FALLBACK_STYLE).strip(),
        avoid=_str_list(data.get("avoid")),
        audience=str(data.get("audience") or "").strip(),
        personality=personality,
        source="ai",
    )


def needs_better_blurb(blurb: str) -> bool:
    text = blurb.strip()
    return len(text) < MIN_BLURB_CHARS or text == GENERIC_BLURB


async def _generate_voice(
    generator: TextGenerator,
    text: str,
    brand_name: Optional[str],
    industry: Optional[str],
) -> Tuple[Optional[VoiceSummary], str, Optional[str]]:
    prompt = BRAND_PROMPT.format(hints=_hints(brand_name, industry), text=text)
    try:
        response = await call_generator(generator, prompt, "brand")
    except CollaboratorError as exc:
        logger.warning("Brand voice generation unavailable: %s", exc)
        return None, "", None
    data = parse_json_response(response)
    if data is None:
        logger.warning("Brand voice response was not valid JSON; using fallback")
        return None, "", None
    about_long = normalize_text(str(data.get("about_long") or "")) or None
    return (
        voice_from_response(data),
        normalize_text(str(data.get("about_blurb") or "")),
        about_long,
    )


async def _generate_blurb(
    generator: TextGenerator,
    text: str,
    brand_name: Optional[str],
    industry: Optional[str],
) -> Optional[str]:
    prompt = ABOUT_PROMPT.format(
        subject=brand_name or "this business",
        hints=_hints(brand_name, industry),
        text=text,
    )
    try:
        response = await call_generator(generator, prompt, "doc")
    except CollaboratorError as exc:
        logger.warning("About blurb generation unavailable: %s", exc)
        return None
    blurb = normalize_text(response).strip("\"'")
    return blurb or None


def aggregate_headlines(pages: Iterable[PageRecord], limit: int = 5) -> List[str]:
    seen = set()
    headlines: List[str] = []
    for page in pages:
        for headline in page.headlines:
            key = headline.strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            headlines.append(headline.strip())
            if len(headlines) >= limit:
                return headlines
    return headlines


def aggregate_images(pages: Iterable[PageRecord], limit: int = MAX_KIT_IMAGES) -> List[ImageCandidate]:
    """Brand imagery across pages: deduped by URL, highest priority first."""
    best: Dict[str, ImageCandidate] = {}
    for page in pages:
        for image in page.images:
            if image.role in EXCLUDED_ROLES:
                continue
            current = best.get(image.url)
            if current is None or image.priority > current.priority:
                best[image.url] = image
    ranked = sorted(best.values(), key=lambda c: c.priority, reverse=True)
    return ranked[:limit]


def first_typography(pages: Iterable[PageRecord]) -> Optional[TypographyResult]:
    for page in pages:
        if page.typography is not None:
            return page.typography
    return None


async def synthesize_brand_kit(
    pages: List[PageRecord],
    palette: ColorPalette,
    config: Optional[CrawlConfig] = None,
    generator: Optional[TextGenerator] = None,
    brand_name: Optional[str] = None,
    industry: Optional[str] = None,
) -> BrandKit:
    """Assemble a BrandKit; the collaborator is optional and never fatal."""
    config = config or CrawlConfig()
    unique = dedupe_pages(pages)
    text = combine_text(unique, config.max_prompt_chars)

    voice: Optional[VoiceSummary] = None
    blurb = ""
    about_long: Optional[str] = None
    about_source = "ai"
    if generator is not None and text:
        voice, blurb, about_long = await _generate_voice(
            generator, text, brand_name, industry
        )
        if needs_better_blurb(blurb):
            better = await _generate_blurb(generator, text, brand_name, industry)
            if better and not needs_better_blurb(better):
                blurb = better

    if needs_better_blurb(blurb):
        blurb = fallback_blurb(unique)
        about_source = "fallback"
    voice = voice or fallback_voice()

    all_logos = [logo for page in unique for logo in page.logo_candidates]
    logo = select_logos(all_logos, config.classification)
    if logo.fallback:
        logger.info("No logo passed filtering; using best unfiltered candidate")

    return BrandKit(
        voice_summary=voice,
        keyword_themes=extract_keywords(unique, config.keyword_count),
        about_blurb=blurb,
        colors=palette,
        source_urls=[page.url for page in unique],
        logo=logo,
        typography=first_typography(unique),
        about_long=about_long,
        headlines=aggregate_headlines(unique, config.max_headlines),
        images=aggregate_images(unique),
        brand_name=brand_name,
        about_source=about_source,
    )
