"""Base classes for page stores."""
from __future__ import annotations

import abc
import json
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field

from ..models.search import SearchResult
from ..models.site import Page, PageSummary, Site


class StoreType(str, Enum):
    """Supported page store types."""
    MEMORY = "memory"


class StoreError(Exception):
    """Base class for storage contract errors."""


class SiteNotFoundError(StoreError, LookupError):
    """Raised when a site ID is not known to the store."""

    def __init__(self, site_id: uuid.UUID):
        self.site_id = site_id
        super().__init__(f"Site {site_id} not found")


class PageNotFoundError(StoreError, LookupError):
    """Raised when a page ID is not known to the store."""

    def __init__(self, page_id: uuid.UUID):
        self.page_id = page_id
        super().__init__(f"Page {page_id} not found")


class StoreConfig(BaseModel):
    """Configuration for page stores."""

    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    type: StoreType = Field(StoreType.MEMORY, description="Type of page store")
    options: Dict[str, Any] = Field(
        default_factory=dict,
        description="Backend specific options",
    )

    @classmethod
    def from_json(cls, json_str: str) -> StoreConfig:
        """Create a config from a JSON string.

        Args:
            json_str: JSON string containing the configuration.

        Returns:
            StoreConfig instance.
        """
        return cls(**json.loads(json_str))


class PageStore(abc.ABC):
    """Abstract storage contract consumed by the crawler.

    The crawler only reads and writes the fields it needs; the rest of the
    site and page records belong to the management side.
    """

    def __init__(self, config: Optional[StoreConfig] = None):
        """Initialize the store.

        Args:
            config: Configuration for the store.
        """
        self.config = config or StoreConfig()
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        """Whether the store is initialized."""
        return self._initialized

    async def initialize(self) -> None:
        """Initialize the store. Called before any other method."""
        self._initialized = True

    async def close(self) -> None:
        """Close the store and release resources."""
        self._initialized = False

    # Crawl state reads

    @abc.abstractmethod
    async def get_sites_requiring_refresh(self) -> List[Site]:
        """Get all sites whose sitemap must be diffed."""

    @abc.abstractmethod
    async def get_stale_pages(self) -> List[Tuple[Page, Site]]:
        """Get all pages whose content must be extracted, with their owning site."""

    @abc.abstractmethod
    async def get_page_summaries(self, site_id: uuid.UUID) -> List[PageSummary]:
        """Get summaries of all pages of a site.

        Raises:
            SiteNotFoundError: If the site does not exist.
        """

    # Crawl state writes

    @abc.abstractmethod
    async def delete_page(self, page_id: uuid.UUID) -> bool:
        """Delete a page.

        Returns:
            True if the page was deleted, False if it did not exist.
        """

    @abc.abstractmethod
    async def mark_page_stale(self, page_id: uuid.UUID) -> None:
        """Flag a page for content extraction.

        Raises:
            PageNotFoundError: If the page does not exist.
        """

    @abc.abstractmethod
    async def add_page(self, page: Page) -> Page:
        """Insert a new page.

        Raises:
            SiteNotFoundError: If the owning site does not exist.
            StoreError: If the site already has a page with the same URL.
        """

    @abc.abstractmethod
    async def update_page_content(
        self,
        page_id: uuid.UUID,
        *,
        title: str,
        description: str,
        text: str,
        updated_at: datetime,
    ) -> None:
        """Store extracted content and clear the page's stale flag.

        Raises:
            PageNotFoundError: If the page does not exist.
        """

    @abc.abstractmethod
    async def complete_site_refresh(self, site_id: uuid.UUID, updated_at: datetime) -> None:
        """Clear a site's refresh flag and stamp its last update time.

        Raises:
            SiteNotFoundError: If the site does not exist.
        """

    # Management

    @abc.abstractmethod
    async def add_site(self, site: Site) -> Site:
        """Register a new site."""

    @abc.abstractmethod
    async def get_site(self, site_id: uuid.UUID) -> Optional[Site]:
        """Get a site by ID, or None if it does not exist."""

    @abc.abstractmethod
    async def get_sites(self) -> List[Site]:
        """Get all sites ordered by name."""

    @abc.abstractmethod
    async def get_pages(self, site_id: uuid.UUID) -> List[Page]:
        """Get all pages of a site.

        Raises:
            SiteNotFoundError: If the site does not exist.
        """

    @abc.abstractmethod
    async def request_site_refresh(self, update_key: str) -> bool:
        """Flag the site owning ``update_key`` for a sitemap refresh.

        Returns:
            True if a site matched the key.
        """

    # Search

    @abc.abstractmethod
    async def search_pages(self, site_id: uuid.UUID, predicate: str) -> List[SearchResult]:
        """Run a full-text predicate against the pages of a site.

        Args:
            site_id: Site to search in.
            predicate: Predicate produced by :func:`sitesift.core.query.translate_query`.

        Returns:
            Ranked search results.

        Raises:
            SiteNotFoundError: If the site does not exist.
        """

    async def __aenter__(self):
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()


class PageStoreFactory:
    """Factory for creating page stores."""

    _registry: Dict[StoreType, Type[PageStore]] = {}

    @classmethod
    def register(cls, store_type: StoreType, store_cls: Type[PageStore]) -> None:
        """Register a page store class.

        Args:
            store_type: Type of page store.
            store_cls: Page store class.
        """
        if not issubclass(store_cls, PageStore):
            raise TypeError(f"{store_cls.__name__} is not a subclass of PageStore")
        cls._registry[StoreType(store_type)] = store_cls

    @classmethod
    def create(cls, config: Optional[StoreConfig] = None) -> PageStore:
        """Create a page store.

        Args:
            config: Page store configuration.

        Returns:
            Page store instance.

        Raises:
            ValueError: If the store type is not registered.
        """
        config = config or StoreConfig()
        store_cls = cls._registry.get(StoreType(config.type))
        if not store_cls:
            raise ValueError(f"No page store registered for type '{config.type}'")
        return store_cls(config)
