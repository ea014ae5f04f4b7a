"""Page store implementations for SiteSift."""

from .base import (
    PageNotFoundError,
    PageStore,
    PageStoreFactory,
    SiteNotFoundError,
    StoreConfig,
    StoreError,
    StoreType,
)
from .fulltext import InvalidPredicateError, parse_predicate, rank_pages
from .memory_store import MemoryPageStore

__all__ = [
    "InvalidPredicateError",
    "MemoryPageStore",
    "PageNotFoundError",
    "PageStore",
    "PageStoreFactory",
    "SiteNotFoundError",
    "StoreConfig",
    "StoreError",
    "StoreType",
    "parse_predicate",
    "rank_pages",
]
