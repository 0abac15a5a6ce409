"""Brand palette extraction: UI-first votes, screenshot fallback, perceptual filters."""

from __future__ import annotations

import colorsys
import io
import logging
import math
import re
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .config import ColorThresholds
from .dom import DomNode, DomSnapshot
from .errors import ColorExtractionError, ExtractionError
from .keywords import HERO_CONTAINER_TERMS
from .models import ColorCandidate, ColorOrigin, ColorPalette
from .renderer import PageView, RenderedPage, register_extractor

logger = logging.getLogger("brand_crawler")

FALLBACK_COLORS = ("#312e81", "#6366f1", "#8b5cf6")

HEX_PATTERN = re.compile(r"^#([0-9a-f]{3,4}|[0-9a-f]{6}|[0-9a-f]{8})$")
RGB_PATTERN = re.compile(r"^rgba?\(([^)]*)\)$")
SRGB_PATTERN = re.compile(r"^color\(\s*srgb\s+([^)]*)\)$")
OKLCH_PATTERN = re.compile(r"^oklch\(([^)]*)\)$")
COLOR_TOKEN = re.compile(
    r"#[0-9a-fA-F]{3,8}\b|rgba?\([^)]*\)|oklch\([^)]*\)|color\(\s*srgb[^)]*\)"
)

CSS_VARIABLE_WEIGHT = 10.0
HEADER_BACKGROUND_WEIGHT = 8.0
HEADER_TEXT_WEIGHT = 6.0
LOGO_CONTAINER_WEIGHT = 7.0
BUTTON_BACKGROUND_WEIGHT = 7.0
BUTTON_TEXT_WEIGHT = 5.0
BUTTON_BORDER_WEIGHT = 4.0
BADGE_BACKGROUND_WEIGHT = 5.0
BADGE_TEXT_WEIGHT = 3.0
HERO_TEXT_WEIGHT = 6.0
HERO_BACKGROUND_WEIGHT = 5.0
HERO_GRADIENT_WEIGHT = 4.0

BUTTON_CLASS_TERMS = ("btn", "button", "cta")
BADGE_CLASS_TERMS = ("badge", "tag", "chip", "pill")
MAX_BUTTONS = 20
MAX_BADGES = 20

# (name, weight) in descending preference.
SWATCHES = (
    ("vibrant", 5.0),
    ("dark_vibrant", 4.0),
    ("muted", 3.0),
    ("light_vibrant", 2.0),
    ("light_muted", 1.0),
    ("dark_muted", 1.0),
)
QUANTIZE_COLORS = 24
THUMBNAIL_SIZE = (200, 200)


# ---------------------------------------------------------------------------
# Color math
# ---------------------------------------------------------------------------


def normalize_color(value: Optional[str]) -> Optional[str]:
    """Lowercase ``#rrggbb`` for hex, rgb(), oklch() or color(srgb) input.

    None when transparent or in a notation that cannot be converted.
    """
    if not value:
        return None
    value = value.strip().lower()
    if value in ("transparent", "none", "inherit", "initial", "currentcolor"):
        return None

    match = HEX_PATTERN.match(value)
    if match:
        digits = match.group(1)
        if len(digits) in (3, 4):
            if len(digits) == 4 and digits[3] == "0":
                return None
            digits = "".join(ch * 2 for ch in digits[:3])
        elif len(digits) == 8:
            if digits[6:] == "00":
                return None
            digits = digits[:6]
        return f"#{digits}"

    for pattern, convert in (
        (RGB_PATTERN, _rgb_channels),
        (SRGB_PATTERN, _srgb_channels),
        (OKLCH_PATTERN, _oklch_channels),
    ):
        match = pattern.match(value)
        if match:
            break
    else:
        logger.debug("Dropping unsupported color value %r", value)
        return None

    parts = [p for p in re.split(r"[\s,/]+", match.group(1).strip()) if p]
    if len(parts) < 3:
        return None
    try:
        channels = convert(parts[:3])
        alpha = _alpha(parts[3]) if len(parts) > 3 else 1.0
    except ValueError:
        logger.debug("Dropping malformed color value %r", value)
        return None
    if alpha == 0:
        return None
    return "#" + "".join(f"{c:02x}" for c in channels)


def _rgb_channels(tokens: List[str]) -> List[int]:
    return [_channel(t) for t in tokens]


def _channel(token: str) -> int:
    if token.endswith("%"):
        return max(0, min(255, round(float(token[:-1]) * 2.55)))
    return max(0, min(255, round(float(token))))


def _unit(value: float) -> int:
    return max(0, min(255, round(value * 255)))


def _number(token: str, percent_scale: float = 1.0) -> float:
    if token == "none":
        return 0.0
    if token.endswith("%"):
        return float(token[:-1]) / 100 * percent_scale
    return float(token)


def _srgb_channels(tokens: List[str]) -> List[int]:
    return [_unit(_number(t)) for t in tokens]


def _oklch_channels(tokens: List[str]) -> List[int]:
    """OKLCH to gamma-encoded sRGB, clipped to the gamut."""
    lightness = _number(tokens[0])
    chroma = _number(tokens[1], percent_scale=0.4)
    hue = math.radians(_number(tokens[2].replace("deg", "")))
    a = chroma * math.cos(hue)
    b = chroma * math.sin(hue)

    l_ = (lightness + 0.3963377774 * a + 0.2158037573 * b) ** 3
    m_ = (lightness - 0.1055613458 * a - 0.0638541728 * b) ** 3
    s_ = (lightness - 0.0894841775 * a - 1.2914855480 * b) ** 3
    linear = (
        4.0767416621 * l_ - 3.3077115913 * m_ + 0.2309699292 * s_,
        -1.2684380046 * l_ + 2.6097574011 * m_ - 0.3413193965 * s_,
        -0.0041960863 * l_ - 0.7034186147 * m_ + 1.7076147010 * s_,
    )
    return [_unit(_gamma_encode(c)) for c in linear]


def _gamma_encode(value: float) -> float:
    value = max(0.0, min(1.0, value))
    if value <= 0.0031308:
        return 12.92 * value
    return 1.055 * value ** (1 / 2.4) - 0.055


def _alpha(token: str) -> float:
    if token.endswith("%"):
        return float(token[:-1]) / 100
    return float(token)


def hex_to_rgb(hex_value: str) -> Tuple[int, int, int]:
    value = hex_value.lstrip("#")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def color_distance(a: str, b: str) -> float:
    ra, ga, ba = hex_to_rgb(a)
    rb, gb, bb = hex_to_rgb(b)
    return math.sqrt((ra - rb) ** 2 + (ga - gb) ** 2 + (ba - bb) ** 2)


def brightness(hex_value: str) -> float:
    r, g, b = hex_to_rgb(hex_value)
    return (r * 299 + g * 587 + b * 114) / 1000


def saturation(hex_value: str) -> float:
    r, g, b = hex_to_rgb(hex_value)
    high, low = max(r, g, b), min(r, g, b)
    return 0.0 if high == 0 else (high - low) / high


def _hsv(hex_value: str) -> Tuple[float, float, float]:
    r, g, b = hex_to_rgb(hex_value)
    h, s, v = colorsys.rgb_to_hsv(r / 255, g / 255, b / 255)
    return h * 360, s, v


def is_excluded_color(hex_value: str, thresholds: ColorThresholds) -> bool:
    """Near-black, near-white, mid-gray or brown/beige icon fills."""
    value = brightness(hex_value)
    if value < thresholds.min_brightness or value > thresholds.max_brightness:
        return True
    if (
        saturation(hex_value) < thresholds.gray_saturation
        and thresholds.gray_min_brightness < value < thresholds.gray_max_brightness
    ):
        return True
    hue, sat, val = _hsv(hex_value)
    return 20 <= hue <= 45 and 0.15 <= sat <= 0.6 and 0.3 <= val <= 0.85


def is_photo_color(hex_value: str) -> bool:
    """Skin tones, sky blues and over-saturated garment colors."""
    r, g, b = hex_to_rgb(hex_value)
    if 150 < r < 255 and 100 < g < 200 and 50 < b < 180 and r > g > b:
        return True
    hue, sat, val = _hsv(hex_value)
    if 185 <= hue <= 210 and 0.2 <= sat <= 0.55 and val >= 0.8:
        return True
    return sat >= 0.95 and val >= 0.95 and not (200 <= hue <= 260)


# ---------------------------------------------------------------------------
# UI pass
# ---------------------------------------------------------------------------


def _vote(
    votes: List[ColorCandidate], value: Optional[str], weight: float, label: str
) -> None:
    hex_value = normalize_color(value)
    if hex_value:
        votes.append(ColorCandidate(hex_value, weight, ColorOrigin.UI, label))


def _gradient_stops(value: str) -> List[str]:
    if "gradient" not in value:
        return []
    return COLOR_TOKEN.findall(value)


def _visible(snapshot: DomSnapshot, node: DomNode) -> bool:
    if not snapshot.has_layout or node.rect is None:
        return True
    return node.rect.width > 0 and node.rect.height > 0


def _is_header(node: DomNode) -> bool:
    if node.tag in ("header", "nav"):
        return True
    if node.attr("role").lower() in ("banner", "navigation"):
        return True
    return any(
        token in ("header", "site-header", "navbar", "topbar") for token in node.classes
    )


def _has_class_term(node: DomNode, terms: Iterable[str]) -> bool:
    return any(term in token for token in node.classes for term in terms)


@register_extractor("colors.ui")
def ui_color_candidates(view: PageView) -> List[ColorCandidate]:
    """Weighted votes from CSS variables and brand-bearing UI elements."""
    snapshot = view.snapshot
    votes: List[ColorCandidate] = []

    for name, value in snapshot.css_variables.items():
        _vote(votes, value, CSS_VARIABLE_WEIGHT, f"css-var:{name}")

    buttons = badges = 0
    for node in snapshot.nodes:
        if not node.style or not _visible(snapshot, node):
            continue
        style = node.style
        label = node.label

        if _is_header(node):
            _vote(votes, style.get("background-color"), HEADER_BACKGROUND_WEIGHT, "header-bg")
            _vote(votes, style.get("color"), HEADER_TEXT_WEIGHT, "header-text")
        if "logo" in label:
            _vote(votes, style.get("color"), LOGO_CONTAINER_WEIGHT, "logo")
            _vote(votes, style.get("background-color"), LOGO_CONTAINER_WEIGHT, "logo")

        if buttons < MAX_BUTTONS and (
            node.tag == "button"
            or (node.tag in ("a", "input") and _has_class_term(node, BUTTON_CLASS_TERMS))
        ):
            buttons += 1
            _vote(votes, style.get("background-color"), BUTTON_BACKGROUND_WEIGHT, "button-bg")
            _vote(votes, style.get("color"), BUTTON_TEXT_WEIGHT, "button-text")
            _vote(votes, style.get("border-color"), BUTTON_BORDER_WEIGHT, "button-border")
        elif badges < MAX_BADGES and _has_class_term(node, BADGE_CLASS_TERMS):
            badges += 1
            _vote(votes, style.get("background-color"), BADGE_BACKGROUND_WEIGHT, "badge-bg")
            _vote(votes, style.get("color"), BADGE_TEXT_WEIGHT, "badge-text")

        if any(term in label for term in HERO_CONTAINER_TERMS):
            _vote(votes, style.get("background-color"), HERO_BACKGROUND_WEIGHT, "hero-bg")
            for stop in _gradient_stops(style.get("background-image", "")):
                _vote(votes, stop, HERO_GRADIENT_WEIGHT, "hero-gradient")
            for child in snapshot.descendants(node, max_depth=4):
                if child.tag in ("h1", "h2"):
                    _vote(votes, child.style.get("color"), HERO_TEXT_WEIGHT, "hero-text")

    return votes


# ---------------------------------------------------------------------------
# Screenshot pass
# ---------------------------------------------------------------------------


def _swatch_bucket(rgb: Tuple[int, int, int]) -> str:
    _, lightness, sat = colorsys.rgb_to_hls(rgb[0] / 255, rgb[1] / 255, rgb[2] / 255)
    vivid = sat >= 0.35
    if lightness < 0.3:
        tone = "dark_"
    elif lightness > 0.7:
        tone = "light_"
    else:
        tone = ""
    return f"{tone}{'vibrant' if vivid else 'muted'}"


def screenshot_color_candidates(png_bytes: bytes) -> List[ColorCandidate]:
    """Quantize a screenshot into up to six weighted dominant swatches."""
    try:
        with Image.open(io.BytesIO(png_bytes)) as image:
            rgb_image = image.convert("RGB")
    except (UnidentifiedImageError, OSError) as exc:
        raise ColorExtractionError(f"Unreadable screenshot: {exc}") from exc

    rgb_image.thumbnail(THUMBNAIL_SIZE)
    quantized = rgb_image.quantize(colors=QUANTIZE_COLORS)
    palette = quantized.getpalette() or []
    counts = quantized.getcolors() or []

    best: Dict[str, Tuple[int, Tuple[int, int, int]]] = {}
    for count, index in counts:
        rgb = tuple(palette[index * 3 : index * 3 + 3])
        if len(rgb) != 3:
            continue
        bucket = _swatch_bucket(rgb)  # type: ignore[arg-type]
        if bucket not in best or count > best[bucket][0]:
            best[bucket] = (count, rgb)  # type: ignore[assignment]

    candidates = []
    for name, weight in SWATCHES:
        if name in best:
            r, g, b = best[name][1]
            candidates.append(
                ColorCandidate(f"#{r:02x}{g:02x}{b:02x}", weight, ColorOrigin.IMAGE, name)
            )
    return candidates


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


def _aggregate(candidates: Iterable[ColorCandidate]) -> List[ColorCandidate]:
    totals: "OrderedDict[str, ColorCandidate]" = OrderedDict()
    for candidate in candidates:
        existing = totals.get(candidate.hex)
        if existing is None:
            totals[candidate.hex] = ColorCandidate(
                candidate.hex, candidate.weight, candidate.origin, candidate.label
            )
        else:
            existing.weight += candidate.weight
            if candidate.origin == ColorOrigin.UI:
                existing.origin = ColorOrigin.UI
    return sorted(totals.values(), key=lambda c: c.weight, reverse=True)


def _merge_close(
    candidates: List[ColorCandidate], distance: float
) -> List[ColorCandidate]:
    merged: List[ColorCandidate] = []
    for candidate in candidates:
        for kept in merged:
            if color_distance(candidate.hex, kept.hex) <= distance:
                kept.weight += candidate.weight
                break
        else:
            merged.append(candidate)
    return merged


def rank_colors(
    candidates: Iterable[ColorCandidate],
    thresholds: Optional[ColorThresholds] = None,
) -> List[ColorCandidate]:
    """Aggregate, filter and merge votes into a ranked list."""
    thresholds = thresholds or ColorThresholds()
    aggregated = [
        c for c in _aggregate(candidates) if not is_excluded_color(c.hex, thresholds)
    ]
    merged = _merge_close(aggregated, thresholds.merge_distance)
    non_photo = [c for c in merged if not is_photo_color(c.hex)]
    if len(non_photo) >= thresholds.min_colors:
        merged = non_photo
    return sorted(merged, key=lambda c: c.weight, reverse=True)


def _confidence(ranked: List[ColorCandidate]) -> int:
    if not ranked:
        return 0
    sources = {c.label.split(":", 1)[0] for c in ranked}
    avg_weight = sum(c.weight for c in ranked) / len(ranked)
    score = len(ranked) * 10 + len(sources) * 10 + min(avg_weight, 10) * 3
    return min(round(score), 100)


def fallback_palette() -> ColorPalette:
    return ColorPalette(all_colors=list(FALLBACK_COLORS), source="fallback", confidence=0)


def build_palette(
    ui_candidates: Iterable[ColorCandidate],
    image_candidates: Iterable[ColorCandidate] = (),
    thresholds: Optional[ColorThresholds] = None,
) -> ColorPalette:
    """UI colors first, then screenshot colors; padded so it is never empty."""
    thresholds = thresholds or ColorThresholds()
    ui_ranked = rank_colors(ui_candidates, thresholds)
    image_ranked = rank_colors(image_candidates, thresholds)

    ranked = list(ui_ranked)
    for candidate in image_ranked:
        if all(
            color_distance(candidate.hex, kept.hex) > thresholds.merge_distance
            for kept in ranked
        ):
            ranked.append(candidate)
    ranked = ranked[: thresholds.max_colors]

    if not ranked:
        return fallback_palette()

    colors = [c.hex for c in ranked]
    for filler in FALLBACK_COLORS:
        if len(colors) >= thresholds.min_colors:
            break
        if all(color_distance(filler, kept) > thresholds.merge_distance for kept in colors):
            colors.append(filler)

    has_ui = any(c.origin == ColorOrigin.UI for c in ranked)
    has_image = any(c.origin == ColorOrigin.IMAGE for c in ranked)
    if has_ui and has_image:
        source = "hybrid"
    elif has_image:
        source = "screenshot"
    else:
        source = "dom"
    return ColorPalette(all_colors=colors, source=source, confidence=_confidence(ranked))


async def extract_palette(
    page: RenderedPage, thresholds: Optional[ColorThresholds] = None
) -> ColorPalette:
    """Run the UI pass and, when it is thin, the screenshot pass on ``page``."""
    thresholds = thresholds or ColorThresholds()
    try:
        ui_votes = await page.extract("colors.ui")
    except ExtractionError as exc:
        logger.warning("UI color pass failed on %s: %s", page.url, exc)
        ui_votes = []

    image_votes: List[ColorCandidate] = []
    if len(rank_colors(ui_votes, thresholds)) < thresholds.min_colors:
        try:
            image_votes = screenshot_color_candidates(await page.screenshot())
        except ExtractionError as exc:
            logger.info("Screenshot color pass unavailable for %s: %s", page.url, exc)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Screenshot color pass failed on %s: %s", page.url, exc)

    palette = build_palette(ui_votes, image_votes, thresholds)
    logger.info(
        "Palette for %s (source: %s, confidence: %d): %s",
        page.url,
        palette.source,
        palette.confidence,
        ", ".join(palette.all_colors),
    )
    return palette
