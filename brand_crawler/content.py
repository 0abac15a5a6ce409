"""Textual content extraction for a rendered page."""

from __future__ import annotations

import logging
from typing import Dict, List
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from readability import Document
from readability.readability import Unparseable

from .keywords import ABOUT_PAGE_TERMS, TEAM_PAGE_TERMS
from .models import PageRecord, PageType
from .renderer import PageView, register_extractor
from .utils import content_hash, normalize_link, normalize_text, normalize_url

logger = logging.getLogger("brand_crawler")

STRIPPED_TAGS = ["nav", "footer", "script", "style", "noscript", "iframe"]
OPEN_GRAPH_FIELDS = ("site_name", "image", "title", "description")
MAX_BODY_CHARS = 50_000
MAX_LEAD_CHARS = 500
MIN_LEAD_PARAGRAPH = 40
MIN_HEADLINE_CHARS = 4
HEADLINES_PER_PAGE = 5


def classify_page_type(url: str) -> PageType:
    """Bucket a page by its URL path."""
    path = urlparse(url).path.lower()
    if path in ("", "/"):
        return PageType.MAIN
    if any(term in path for term in TEAM_PAGE_TERMS):
        return PageType.TEAM
    if any(term in path for term in ABOUT_PAGE_TERMS):
        return PageType.ABOUT
    return PageType.OTHER


def _clean_content(soup: BeautifulSoup) -> BeautifulSoup:
    """Remove navigation chrome and non-content tags."""
    for tag in soup(STRIPPED_TAGS):
        tag.decompose()
    return soup


def _heading_texts(soup: BeautifulSoup, name: str) -> List[str]:
    texts = []
    for tag in soup.find_all(name):
        text = normalize_text(tag.get_text(" "))
        if text:
            texts.append(text)
    return texts


def _open_graph(soup: BeautifulSoup) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    for key in OPEN_GRAPH_FIELDS:
        tag = soup.find("meta", attrs={"property": f"og:{key}"}) or soup.find(
            "meta", attrs={"name": f"og:{key}"}
        )
        if tag and tag.get("content"):
            fields[key] = str(tag["content"]).strip()
    return fields


def _favicons(soup: BeautifulSoup, base_url: str) -> List[str]:
    icons: List[str] = []
    for link in soup.find_all("link", href=True):
        rel = " ".join(link.get("rel") or []).lower()
        if "icon" not in rel:
            continue
        url = normalize_url(str(link["href"]), base_url)
        if url and url not in icons:
            icons.append(url)
    return icons


def _links(soup: BeautifulSoup, base_url: str) -> List[str]:
    seen = set()
    links: List[str] = []
    for anchor in soup.find_all("a", href=True):
        link = normalize_link(str(anchor["href"]), base_url)
        if link and link not in seen:
            seen.add(link)
            links.append(link)
    return links


def extract_lead_text(html: str) -> str:
    """First substantial paragraph of the readability main-content block."""
    if not html.strip():
        return ""
    try:
        summary_html = Document(html).summary(html_partial=True)
    except Unparseable as exc:
        logger.debug("Readability could not parse page: %s", exc)
        return ""
    summary = BeautifulSoup(summary_html, "html.parser")
    for paragraph in summary.find_all("p"):
        text = normalize_text(paragraph.get_text(" "))
        if len(text) >= MIN_LEAD_PARAGRAPH:
            return text[:MAX_LEAD_CHARS]
    return normalize_text(summary.get_text(" "))[:MAX_LEAD_CHARS]


def select_headlines(h1: List[str], h2: List[str], h3: List[str]) -> List[str]:
    headlines = [text.strip() for text in (*h1, *h2, *h3)]
    return [text for text in headlines if len(text) >= MIN_HEADLINE_CHARS][
        :HEADLINES_PER_PAGE
    ]


@register_extractor("content")
def extract_content(view: PageView, depth: int = 0) -> PageRecord:
    """Build the textual part of a :class:`PageRecord` from page HTML."""
    soup = BeautifulSoup(view.html, "html.parser")

    title = soup.title.get_text(strip=True) if soup.title else ""
    meta_description = ""
    description_tag = soup.find("meta", attrs={"name": "description"})
    if description_tag and description_tag.get("content"):
        meta_description = str(description_tag["content"]).strip()

    open_graph = _open_graph(soup)
    favicons = _favicons(soup, view.url)
    links = _links(soup, view.url)

    body = _clean_content(BeautifulSoup(view.html, "html.parser"))
    h1 = _heading_texts(body, "h1")
    h2 = _heading_texts(body, "h2")
    h3 = _heading_texts(body, "h3")
    scope = body.body or body
    body_text = normalize_text(scope.get_text(" "))[:MAX_BODY_CHARS]

    return PageRecord(
        url=view.url,
        depth=depth,
        page_type=classify_page_type(view.url),
        title=title,
        meta_description=meta_description,
        h1=h1,
        h2=h2,
        h3=h3,
        body_text=body_text,
        lead_text=extract_lead_text(view.html),
        content_hash=content_hash(body_text),
        headlines=select_headlines(h1, h2, h3),
        open_graph=open_graph,
        favicons=favicons,
        links=links,
    )
