"""Tests for heading and body font detection."""

import pytest

from brand_crawler.dom import snapshot_from_html
from brand_crawler.errors import TypographyExtractionError
from brand_crawler.typography import detect_typography, font_source, primary_family


def test_primary_family_skips_generic_and_strips_quotes():
    assert primary_family('"Playfair Display", Georgia, serif') == "Playfair Display"
    assert primary_family("sans-serif") is None
    assert primary_family("-apple-system, Inter") is None
    assert primary_family("") is None


def test_font_source():
    assert font_source("Montserrat") == "google"
    assert font_source("Acme Grotesk") == "custom"


def test_detects_heading_and_body_families():
    html = """
    <html><body>
      <h1 style="font-family: 'Playfair Display', serif">Title</h1>
      <h2 style="font-family: 'Playfair Display', serif">Sub</h2>
      <p style="font-family: Inter, sans-serif">One</p>
      <p style="font-family: Inter, sans-serif">Two</p>
    </body></html>
    """

    result = detect_typography(snapshot_from_html(html, "https://acme.test/"))

    assert result.heading == "Playfair Display"
    assert result.body == "Inter"
    assert result.source == "google"


def test_missing_side_borrows_the_other():
    html = '<html><body><p style="font-family: \'Acme Grotesk\'">Body</p></body></html>'

    result = detect_typography(snapshot_from_html(html, "https://acme.test/"))

    assert (result.heading, result.body, result.source) == (
        "Acme Grotesk",
        "Acme Grotesk",
        "custom",
    )


def test_no_fonts_detected():
    assert detect_typography(snapshot_from_html("<p>plain</p>", "https://acme.test/")) is None


def test_empty_snapshot_is_an_extraction_error():
    with pytest.raises(TypographyExtractionError):
        detect_typography(snapshot_from_html("", "https://acme.test/"))
