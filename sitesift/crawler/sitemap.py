"""Sitemap fetching and parsing for SiteSift.

Only the standard sitemap protocol is read: ``/urlset/url`` elements having
both ``loc`` and ``lastmod`` children. Sitemap indexes are not followed.
"""
from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlparse

from ..models.site import MAX_URL_LENGTH, as_utc
from .http import FETCH_ERRORS, HttpClient

logger = logging.getLogger(__name__)

SITEMAP_NS = {"sm": "http://www.sitemaps.org/schemas/sitemap/0.9"}

# Reduced-precision W3C datetimes: YYYY and YYYY-MM.
_YEAR_RE = re.compile(r"\d{4}")
_YEAR_MONTH_RE = re.compile(r"\d{4}-\d{2}")


class SitemapFetchError(Exception):
    """Raised when a sitemap cannot be downloaded."""

    def __init__(self, url: str, message: str):
        self.url = url
        self.message = message
        super().__init__(f"Cannot load sitemap from {url}: {message}")


class SitemapParseError(SitemapFetchError):
    """Raised when a downloaded sitemap is not well-formed XML."""


@dataclass(frozen=True)
class SitemapEntry:
    """A ``<url>`` entry of a sitemap."""

    url: str
    """Absolute URL of the page."""

    lastmod: datetime
    """Last modification time of the page (UTC)."""


def is_absolute_url(value: str) -> bool:
    """Whether ``value`` is an absolute, well-formed URL."""
    if not value or len(value) > MAX_URL_LENGTH or any(c.isspace() for c in value):
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return bool(parsed.scheme and parsed.netloc)


def parse_lastmod(value: str) -> Optional[datetime]:
    """Parse a W3C datetime as used by ``<lastmod>``.

    All W3C granularities are accepted: ``YYYY`` and ``YYYY-MM`` stand for
    the first day of the period, date-only values for midnight. Naive values
    are taken as UTC.

    Returns:
        The parsed datetime in UTC, or None if the value is not a valid timestamp.
    """
    if _YEAR_RE.fullmatch(value):
        value = f"{value}-01-01"
    elif _YEAR_MONTH_RE.fullmatch(value):
        value = f"{value}-01"
    try:
        return as_utc(datetime.fromisoformat(value))
    except ValueError:
        return None


def parse_sitemap(content: bytes | str, source: str = "<sitemap>") -> List[SitemapEntry]:
    """Parse sitemap XML into entries.

    Args:
        content: Sitemap document.
        source: URL of the document, used in messages.

    Returns:
        Valid entries in document order. Invalid entries are dropped with a warning.

    Raises:
        SitemapParseError: If the document is not well-formed XML.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise SitemapParseError(source, f"invalid XML: {e}") from e

    if root.tag != f"{{{SITEMAP_NS['sm']}}}urlset":
        logger.warning(f"Sitemap {source} has unexpected root element {root.tag}")
        return []

    entries = []
    for url_elem in root.findall("sm:url", SITEMAP_NS):
        loc_elem = url_elem.find("sm:loc", SITEMAP_NS)
        lastmod_elem = url_elem.find("sm:lastmod", SITEMAP_NS)
        if loc_elem is None or lastmod_elem is None:
            continue

        loc = (loc_elem.text or "").strip()
        lastmod_text = (lastmod_elem.text or "").strip()
        lastmod = parse_lastmod(lastmod_text) if lastmod_text else None
        if not is_absolute_url(loc) or lastmod is None:
            logger.warning(f"Sitemap item {loc!r} in {source} is invalid (lastmod {lastmod_text!r})")
            continue

        entries.append(SitemapEntry(url=loc, lastmod=lastmod))

    return entries


class SitemapFetcher:
    """Downloads and parses a site's sitemap."""

    def __init__(self, http: HttpClient):
        """Initialize the fetcher.

        Args:
            http: Shared pooled HTTP client.
        """
        self.http = http

    async def fetch(self, sitemap_url: str) -> List[SitemapEntry]:
        """Fetch a sitemap and return its valid entries.

        Args:
            sitemap_url: URL of the sitemap.

        Returns:
            Valid entries; empty if the document lists none.

        Raises:
            SitemapFetchError: On network errors, timeouts or HTTP error status.
            SitemapParseError: If the document is not well-formed XML.
        """
        try:
            content = await self.http.get_bytes(sitemap_url)
        except FETCH_ERRORS as e:
            raise SitemapFetchError(sitemap_url, str(e) or type(e).__name__) from e

        entries = parse_sitemap(content, sitemap_url)
        logger.debug(f"Loaded {len(entries)} entries from sitemap {sitemap_url}")
        return entries
