"""Unit tests for sitemap fetching and parsing."""
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from sitesift.crawler.sitemap import (
    SITEMAP_NS,
    SitemapEntry,
    SitemapFetcher,
    SitemapFetchError,
    SitemapParseError,
    is_absolute_url,
    parse_lastmod,
    parse_sitemap,
)

SITEMAP_URL = "https://example.com/sitemap.xml"

# Sample test data
SAMPLE_SITEMAP_XML = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"
        xmlns:image="http://www.google.com/schemas/sitemap-image/1.1">
  <url>
    <loc>https://example.com/page1</loc>
    <lastmod>2023-01-01</lastmod>
    <changefreq>daily</changefreq>
    <priority>0.8</priority>
  </url>
  <url>
    <loc> https://example.com/page2 </loc>
    <lastmod>2023-01-02T10:30:00+02:00</lastmod>
  </url>
  <url>
    <loc>https://example.com/no-lastmod</loc>
  </url>
  <url>
    <loc>/relative/page</loc>
    <lastmod>2023-01-03</lastmod>
  </url>
  <url>
    <loc>https://example.com/bad-date</loc>
    <lastmod>yesterday</lastmod>
  </url>
</urlset>"""

SAMPLE_SITEMAP_INDEX = """<?xml version="1.0" encoding="UTF-8"?>
<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <sitemap>
    <loc>https://example.com/sitemap1.xml</loc>
    <lastmod>2023-01-01</lastmod>
  </sitemap>
</sitemapindex>"""


def test_parse_sitemap_keeps_valid_entries():
    """Test that only entries with an absolute loc and a valid lastmod are kept."""
    entries = parse_sitemap(SAMPLE_SITEMAP_XML, SITEMAP_URL)

    assert entries == [
        SitemapEntry(
            url="https://example.com/page1",
            lastmod=datetime(2023, 1, 1, tzinfo=timezone.utc),
        ),
        SitemapEntry(
            url="https://example.com/page2",
            lastmod=datetime(2023, 1, 2, 8, 30, tzinfo=timezone.utc),
        ),
    ]


def test_parse_sitemap_logs_invalid_entries(caplog):
    """Test that dropped entries are reported."""
    parse_sitemap(SAMPLE_SITEMAP_XML, SITEMAP_URL)

    warnings = [r for r in caplog.records if r.levelname == "WARNING"]
    assert len(warnings) == 2
    assert any("/relative/page" in r.getMessage() for r in warnings)
    assert any("yesterday" in r.getMessage() for r in warnings)


def test_parse_sitemap_index_is_not_followed():
    """Test that a sitemap index yields no entries."""
    assert parse_sitemap(SAMPLE_SITEMAP_INDEX, SITEMAP_URL) == []


def test_parse_empty_urlset():
    """Test a well-formed sitemap without entries."""
    xml = f'<urlset xmlns="{SITEMAP_NS["sm"]}"></urlset>'
    assert parse_sitemap(xml) == []


def test_parse_sitemap_invalid_xml():
    """Test that malformed XML is an error."""
    with pytest.raises(SitemapParseError) as exc_info:
        parse_sitemap("<urlset><url>", SITEMAP_URL)
    assert exc_info.value.url == SITEMAP_URL


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2023-01-01", datetime(2023, 1, 1, tzinfo=timezone.utc)),
        ("2023-01-01T12:00:00Z", datetime(2023, 1, 1, 12, tzinfo=timezone.utc)),
        ("2023-01-01T12:00:00", datetime(2023, 1, 1, 12, tzinfo=timezone.utc)),
        ("2023-01-01T12:00:00-01:00", datetime(2023, 1, 1, 13, tzinfo=timezone.utc)),
        ("2024-05", datetime(2024, 5, 1, tzinfo=timezone.utc)),
        ("2024", datetime(2024, 1, 1, tzinfo=timezone.utc)),
        ("2024-5", None),
        ("2024-13", None),
        ("not a date", None),
        ("2023-13-01", None),
    ],
)
def test_parse_lastmod(value, expected):
    """Test W3C datetime parsing."""
    assert parse_lastmod(value) == expected


@pytest.mark.parametrize(
    "value,expected",
    [
        ("https://example.com/a", True),
        ("http://example.com", True),
        ("/relative", False),
        ("example.com/page", False),
        ("https://example.com/a b", False),
        ("", False),
        ("https://example.com/" + "a" * 1000, False),
    ],
)
def test_is_absolute_url(value, expected):
    """Test URL validation."""
    assert is_absolute_url(value) is expected


@pytest.mark.asyncio
async def test_fetch_sitemap(mock_aioresponse, http_client):
    """Test downloading and parsing a sitemap."""
    mock_aioresponse.get(SITEMAP_URL, status=200, body=SAMPLE_SITEMAP_XML)

    entries = await SitemapFetcher(http_client).fetch(SITEMAP_URL)

    assert [e.url for e in entries] == ["https://example.com/page1", "https://example.com/page2"]


@pytest.mark.asyncio
async def test_fetch_sitemap_http_error(mock_aioresponse, http_client):
    """Test that an error status is a fetch error."""
    mock_aioresponse.get(SITEMAP_URL, status=404)

    with pytest.raises(SitemapFetchError) as exc_info:
        await SitemapFetcher(http_client).fetch(SITEMAP_URL)

    assert not isinstance(exc_info.value, SitemapParseError)
    assert exc_info.value.url == SITEMAP_URL


@pytest.mark.asyncio
async def test_fetch_sitemap_timeout(mock_aioresponse, http_client):
    """Test that a timeout is a fetch error."""
    mock_aioresponse.get(SITEMAP_URL, exception=asyncio.TimeoutError())

    with pytest.raises(SitemapFetchError):
        await SitemapFetcher(http_client).fetch(SITEMAP_URL)


@pytest.mark.asyncio
async def test_fetch_sitemap_invalid_xml(mock_aioresponse, http_client):
    """Test that a malformed document is a parse error."""
    mock_aioresponse.get(SITEMAP_URL, status=200, body="<html>not a sitemap")

    with pytest.raises(SitemapParseError):
        await SitemapFetcher(http_client).fetch(SITEMAP_URL)


def test_parse_sitemap_reduced_precision_lastmod():
    """Test that year and year-month lastmod values keep their entries."""
    xml = f"""<urlset xmlns="{SITEMAP_NS['sm']}">
      <url><loc>https://example.com/monthly</loc><lastmod>2024-05</lastmod></url>
      <url><loc>https://example.com/yearly</loc><lastmod>2024</lastmod></url>
    </urlset>"""

    entries = parse_sitemap(xml, SITEMAP_URL)

    assert entries == [
        SitemapEntry(url="https://example.com/monthly", lastmod=datetime(2024, 5, 1, tzinfo=timezone.utc)),
        SitemapEntry(url="https://example.com/yearly", lastmod=datetime(2024, 1, 1, tzinfo=timezone.utc)),
    ]
