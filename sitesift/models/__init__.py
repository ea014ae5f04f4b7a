"""Pydantic models for SiteSift."""

from .search import SearchResponse, SearchResult
from .site import Page, PageSummary, Site

__all__ = [
    "Page",
    "PageSummary",
    "SearchResponse",
    "SearchResult",
    "Site",
]
