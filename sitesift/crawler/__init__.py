"""Sitemap crawling and page content extraction for SiteSift."""

from .diff import DiffAction, DiffDecision, SitemapDiff, SitemapUpdater, diff_sitemap
from .extractors import PageContent, PageContentExtractor, PageFetchError
from .http import HttpClient
from .sitemap import (
    SitemapEntry,
    SitemapFetcher,
    SitemapFetchError,
    SitemapParseError,
    parse_sitemap,
)
from .text import normalize_whitespace

__all__ = [
    "DiffAction",
    "DiffDecision",
    "HttpClient",
    "PageContent",
    "PageContentExtractor",
    "PageFetchError",
    "SitemapDiff",
    "SitemapEntry",
    "SitemapFetchError",
    "SitemapFetcher",
    "SitemapParseError",
    "SitemapUpdater",
    "diff_sitemap",
    "normalize_whitespace",
    "parse_sitemap",
]
