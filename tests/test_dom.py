"""Tests for DOM snapshots built from markup and from the in-page script."""

from brand_crawler.dom import DomSnapshot, snapshot_from_html

HTML = """
<html>
<head>
  <title>Acme</title>
  <meta property="og:site_name" content="Acme Co">
  <style>:root { --brand-primary: #1E40AF; --unrelated: red; }</style>
  <script>var ignored = true;</script>
</head>
<body>
  <header id="top" class="Site-Header">
    <img src="/logo.png" width="120" height="40px" alt="Acme">
    <svg viewBox="0 0 1 1"><title>Mark</title><path d="M0 0"/></svg>
  </header>
  <div class="promo" style="background: url('/bg.jpg') no-repeat; color: #333">Sale <b>now</b></div>
</body>
</html>
"""


def test_static_snapshot_structure():
    snapshot = snapshot_from_html(HTML, "https://acme.test/")

    assert snapshot.title == "Acme"
    assert not snapshot.has_layout
    assert snapshot.meta("og:site_name") == "Acme Co"
    assert snapshot.css_variables == {"--brand-primary": "#1E40AF"}
    tags = [node.tag for node in snapshot.nodes]
    assert "script" not in tags
    assert "style" not in tags
    assert "path" not in tags

    img = snapshot.select(("img",))[0]
    assert (img.natural_width, img.natural_height) == (120, 40)
    header = snapshot.parent_of(img)
    assert header.tag == "header"
    assert header.classes == ["site-header"]
    assert "top" in header.label
    assert [a.tag for a in snapshot.ancestors(img)] == ["header", "body", "html"]


def test_svg_markup_and_inline_styles():
    snapshot = snapshot_from_html(HTML, "https://acme.test/")

    svg = snapshot.select(("svg",))[0]
    assert svg.markup.startswith("<svg")
    assert "<title>Mark</title>" in svg.markup

    promo = next(node for node in snapshot.nodes if "promo" in node.classes)
    assert promo.style["background-image"].startswith("url('/bg.jpg')")
    assert promo.style["color"] == "#333"
    assert promo.text == "Sale"
    assert snapshot.subtree_text(promo) == "Sale now"


def test_descendants_respects_depth():
    snapshot = snapshot_from_html(
        "<div id='a'><div id='b'><div id='c'><p>deep</p></div></div></div>",
        "https://acme.test/",
    )
    outer = snapshot.nodes[0]

    assert [n.attr("id") for n in snapshot.descendants(outer, max_depth=1)] == ["b"]
    assert len(list(snapshot.descendants(outer))) == 3


def test_from_raw_payload():
    raw = {
        "url": "https://acme.test/",
        "title": "Acme",
        "viewport": {"width": 1280, "height": 720},
        "cssVariables": {"--primary": "#123456"},
        "nodes": [
            {"tag": "BODY", "parent": None, "attrs": {}, "text": "", "rect": None},
            {
                "tag": "img",
                "parent": 0,
                "attrs": {"src": "/logo.png", "alt": "Acme"},
                "text": "",
                "rect": {"top": 10, "left": 5, "width": 120, "height": 40},
                "natural": {"width": 240, "height": 80},
                "style": {"color": "rgb(0, 0, 0)"},
            },
        ],
    }

    snapshot = DomSnapshot.from_raw(raw)

    assert snapshot.has_layout
    assert snapshot.viewport_height == 720
    img = snapshot.nodes[1]
    assert img.tag == "img"
    assert snapshot.parent_of(img).tag == "body"
    assert img.rect.width == 120
    assert (img.natural_width, img.natural_height) == (240, 80)
    assert snapshot.css_variables == {"--primary": "#123456"}
