"""SiteSift: a sitemap-driven site crawler and full-text search backend."""

__version__ = "0.1.0"
__license__ = "MIT"

# Import key components for easier access
from .api import app
from .config import CrawlerConfig
from .core import CrawlScheduler, InvalidQueryError, translate_query
from .models import Page, PageSummary, SearchResponse, SearchResult, Site
from .storage import PageStore, PageStoreFactory, StoreConfig

__all__ = [
    "app",
    "CrawlerConfig",
    "CrawlScheduler",
    "InvalidQueryError",
    "translate_query",
    "Page",
    "PageSummary",
    "SearchResponse",
    "SearchResult",
    "Site",
    "PageStore",
    "PageStoreFactory",
    "StoreConfig",
]
