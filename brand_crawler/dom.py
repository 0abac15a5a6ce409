"""Serializable DOM snapshot consumed by the per-page extractors.

A snapshot is captured once per page, either in the browser (computed styles
and layout boxes included) or from static markup. Extractors are pure
functions over it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from bs4 import BeautifulSoup
from bs4.element import Tag

from .keywords import BRAND_CSS_VARIABLES

MAX_SNAPSHOT_NODES = 4000
MAX_NODE_TEXT = 300
MAX_SVG_MARKUP = 20_000
DEFAULT_VIEWPORT = (1440, 900)

SKIPPED_TAGS = {"script", "style", "noscript", "template"}
CAPTURED_ATTRS = (
    "id",
    "class",
    "src",
    "data-src",
    "srcset",
    "alt",
    "title",
    "aria-label",
    "role",
    "href",
    "rel",
    "name",
    "property",
    "content",
    "width",
    "height",
)
STYLE_PROPS = (
    "color",
    "background-color",
    "border-color",
    "background-image",
    "mask-image",
    "font-family",
)

# Runs in page context. Receives [maxNodes, cssVariableNames, styleProps].
SNAPSHOT_SCRIPT = """
([maxNodes, cssVariableNames, captured]) => {
  const skipped = new Set(["SCRIPT", "STYLE", "NOSCRIPT", "TEMPLATE"]);
  const indexOf = new Map();
  const nodes = [];
  const scrollY = window.scrollY || 0;
  const scrollX = window.scrollX || 0;
  const all = document.querySelectorAll("*");
  for (const el of all) {
    if (nodes.length >= maxNodes) break;
    if (skipped.has(el.tagName)) continue;
    const tag = el.tagName.toLowerCase();
    const svgRoot = el.closest("svg");
    if (svgRoot && svgRoot !== el) continue;
    const attrs = {};
    for (const name of captured) {
      const value = el.getAttribute(name);
      if (value !== null) attrs[name] = value;
    }
    let text = "";
    for (const child of el.childNodes) {
      if (child.nodeType === Node.TEXT_NODE) text += child.textContent;
    }
    text = text.replace(/\\s+/g, " ").trim().slice(0, 300);
    const node = {
      tag,
      parent: el.parentElement && indexOf.has(el.parentElement)
        ? indexOf.get(el.parentElement) : null,
      attrs,
      text,
      rect: null,
      natural: null,
      style: {},
      markup: null,
    };
    if (el.closest("body")) {
      const rect = el.getBoundingClientRect();
      node.rect = {
        top: rect.top + scrollY,
        left: rect.left + scrollX,
        width: rect.width,
        height: rect.height,
      };
      const cs = window.getComputedStyle(el);
      node.style = {
        "color": cs.color,
        "background-color": cs.backgroundColor,
        "border-color": cs.borderTopColor,
        "background-image": cs.backgroundImage,
        "mask-image": cs.maskImage || cs.webkitMaskImage || "",
        "font-family": cs.fontFamily,
      };
    }
    if (tag === "img") {
      node.natural = { width: el.naturalWidth || 0, height: el.naturalHeight || 0 };
    }
    if (tag === "svg") {
      node.markup = el.outerHTML.slice(0, 20000);
    }
    indexOf.set(el, nodes.length);
    nodes.push(node);
  }
  const rootStyle = window.getComputedStyle(document.documentElement);
  const cssVariables = {};
  for (const name of cssVariableNames) {
    const value = rootStyle.getPropertyValue(name).trim();
    if (value) cssVariables[name] = value;
  }
  return {
    url: location.href,
    title: document.title || "",
    viewport: { width: window.innerWidth, height: window.innerHeight },
    cssVariables,
    nodes,
  };
}
"""


@dataclass
class Rect:
    top: float
    left: float
    width: float
    height: float


@dataclass
class DomNode:
    """One element of the snapshot; ``parent`` is an index into the node list."""

    index: int
    tag: str
    parent: Optional[int] = None
    attrs: Dict[str, str] = field(default_factory=dict)
    text: str = ""
    rect: Optional[Rect] = None
    natural_width: Optional[int] = None
    natural_height: Optional[int] = None
    style: Dict[str, str] = field(default_factory=dict)
    markup: Optional[str] = None

    def attr(self, name: str) -> str:
        return self.attrs.get(name, "") or ""

    @property
    def classes(self) -> List[str]:
        return self.attr("class").lower().split()

    @property
    def label(self) -> str:
        """Lowercased class, id and aria-label, for keyword matching."""
        return " ".join(
            part
            for part in (self.attr("class"), self.attr("id"), self.attr("aria-label"))
            if part
        ).lower()


@dataclass
class DomSnapshot:
    """Flat, parent-indexed view of a rendered document."""

    url: str
    title: str = ""
    viewport_width: int = DEFAULT_VIEWPORT[0]
    viewport_height: int = DEFAULT_VIEWPORT[1]
    css_variables: Dict[str, str] = field(default_factory=dict)
    nodes: List[DomNode] = field(default_factory=list)
    has_layout: bool = True
    _children: Optional[Dict[int, List[int]]] = field(
        default=None, repr=False, compare=False
    )

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "DomSnapshot":
        """Build a snapshot from the in-page script's JSON result."""
        viewport = raw.get("viewport") or {}
        nodes: List[DomNode] = []
        for index, item in enumerate(raw.get("nodes") or []):
            rect_data = item.get("rect")
            natural = item.get("natural") or {}
            nodes.append(
                DomNode(
                    index=index,
                    tag=str(item.get("tag") or "").lower(),
                    parent=item.get("parent"),
                    attrs={k: str(v) for k, v in (item.get("attrs") or {}).items()},
                    text=str(item.get("text") or ""),
                    rect=Rect(**rect_data) if rect_data else None,
                    natural_width=int(natural.get("width") or 0) or None,
                    natural_height=int(natural.get("height") or 0) or None,
                    style={k: str(v) for k, v in (item.get("style") or {}).items()},
                    markup=item.get("markup"),
                )
            )
        return cls(
            url=str(raw.get("url") or ""),
            title=str(raw.get("title") or ""),
            viewport_width=int(viewport.get("width") or DEFAULT_VIEWPORT[0]),
            viewport_height=int(viewport.get("height") or DEFAULT_VIEWPORT[1]),
            css_variables=dict(raw.get("cssVariables") or {}),
            nodes=nodes,
        )

    def _child_map(self) -> Dict[int, List[int]]:
        if self._children is None:
            children: Dict[int, List[int]] = {}
            for node in self.nodes:
                if node.parent is not None:
                    children.setdefault(node.parent, []).append(node.index)
            self._children = children
        return self._children

    def parent_of(self, node: DomNode) -> Optional[DomNode]:
        if node.parent is None or not 0 <= node.parent < len(self.nodes):
            return None
        return self.nodes[node.parent]

    def ancestors(self, node: DomNode) -> Iterator[DomNode]:
        """Yield ancestors from the direct parent up to the root."""
        current = self.parent_of(node)
        while current is not None:
            yield current
            current = self.parent_of(current)

    def children(self, node: DomNode) -> List[DomNode]:
        return [self.nodes[i] for i in self._child_map().get(node.index, [])]

    def descendants(self, node: DomNode, max_depth: Optional[int] = None) -> Iterator[DomNode]:
        stack = [(child, 1) for child in reversed(self.children(node))]
        while stack:
            current, depth = stack.pop()
            yield current
            if max_depth is None or depth < max_depth:
                stack.extend((child, depth + 1) for child in reversed(self.children(current)))

    def subtree_text(self, node: DomNode, limit: int = 500) -> str:
        parts = [node.text] if node.text else []
        for child in self.descendants(node):
            if child.text:
                parts.append(child.text)
            if sum(len(p) for p in parts) >= limit:
                break
        return " ".join(parts)[:limit]

    def select(self, tags: Iterable[str]) -> List[DomNode]:
        wanted = set(tags)
        return [node for node in self.nodes if node.tag in wanted]

    def meta(self, key: str) -> str:
        """Content of the first ``<meta>`` whose name or property equals ``key``."""
        for node in self.select(("meta",)):
            if key in (node.attr("property").lower(), node.attr("name").lower()):
                content = node.attr("content").strip()
                if content:
                    return content
        return ""


# ---------------------------------------------------------------------------
# Static snapshots
# ---------------------------------------------------------------------------

_INLINE_DECL = re.compile(r"([a-zA-Z-]+)\s*:\s*([^;]+)")
_CSS_VARIABLE_DECL = re.compile(r"(--[\w-]+)\s*:\s*([^;}]+)")


def _parse_inline_style(value: str) -> Dict[str, str]:
    style: Dict[str, str] = {}
    for prop, raw in _INLINE_DECL.findall(value or ""):
        prop = prop.strip().lower()
        raw = raw.strip()
        if prop == "background" and "url(" in raw:
            style.setdefault("background-image", raw)
        elif prop == "background" and raw:
            style.setdefault("background-color", raw.split()[0])
        elif prop in ("-webkit-mask-image", "mask"):
            style.setdefault("mask-image", raw)
        elif prop in STYLE_PROPS:
            style[prop] = raw
    return style


def _int_attr(value: Any) -> Optional[int]:
    if value is None:
        return None
    match = re.match(r"\s*(\d+)", str(value))
    return int(match.group(1)) if match else None


def _direct_text(tag: Tag) -> str:
    text = " ".join(
        str(child) for child in tag.children if isinstance(child, str)
    )
    return re.sub(r"\s+", " ", text).strip()[:MAX_NODE_TEXT]


def _stylesheet_variables(soup: BeautifulSoup, names: Sequence[str]) -> Dict[str, str]:
    wanted = set(names)
    found: Dict[str, str] = {}
    for style_tag in soup.find_all("style"):
        for name, value in _CSS_VARIABLE_DECL.findall(style_tag.get_text() or ""):
            if name in wanted and name not in found:
                found[name] = value.strip()
    return found


def snapshot_from_html(
    html: str,
    url: str,
    viewport: Sequence[int] = DEFAULT_VIEWPORT,
) -> DomSnapshot:
    """Build a layout-free snapshot from markup.

    Dimensions come from ``width``/``height`` attributes and styles only from
    inline ``style`` attributes, so context flags that rely on layout fall back
    to ancestor class names.
    """
    soup = BeautifulSoup(html, "html.parser")
    nodes: List[DomNode] = []
    positions: Dict[int, int] = {}

    for tag in soup.find_all(True):
        if len(nodes) >= MAX_SNAPSHOT_NODES:
            break
        name = tag.name.lower()
        if name in SKIPPED_TAGS:
            continue
        if any(parent.name == "svg" for parent in tag.parents):
            continue
        if any(parent.name in SKIPPED_TAGS for parent in tag.parents):
            continue

        attrs: Dict[str, str] = {}
        for key in CAPTURED_ATTRS:
            value = tag.get(key)
            if value is None:
                continue
            attrs[key] = " ".join(value) if isinstance(value, list) else str(value)

        parent_index = positions.get(id(tag.parent)) if tag.parent is not None else None
        width = _int_attr(tag.get("width"))
        height = _int_attr(tag.get("height"))
        node = DomNode(
            index=len(nodes),
            tag=name,
            parent=parent_index,
            attrs=attrs,
            text=_direct_text(tag),
            style=_parse_inline_style(str(tag.get("style") or "")),
            natural_width=width if name == "img" else None,
            natural_height=height if name == "img" else None,
            markup=str(tag)[:MAX_SVG_MARKUP] if name == "svg" else None,
        )
        if name != "img" and width and height:
            node.rect = Rect(top=0.0, left=0.0, width=float(width), height=float(height))
        positions[id(tag)] = node.index
        nodes.append(node)

    title = soup.title.get_text(strip=True) if soup.title else ""
    return DomSnapshot(
        url=url,
        title=title,
        viewport_width=int(viewport[0]),
        viewport_height=int(viewport[1]),
        css_variables=_stylesheet_variables(soup, BRAND_CSS_VARIABLES),
        nodes=nodes,
        has_layout=False,
    )
