"""In-memory page store implementation."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ..models.search import SearchResult
from ..models.site import Page, PageSummary, Site
from .base import (
    PageNotFoundError,
    PageStore,
    PageStoreFactory,
    SiteNotFoundError,
    StoreConfig,
    StoreError,
    StoreType,
)
from .fulltext import rank_pages

logger = logging.getLogger(__name__)


class MemoryPageStore(PageStore):
    """Page store keeping sites and pages in process memory.

    Records are copied on the way in and out, so callers never share state
    with the store. Searches evaluate the full-text predicate over the
    stored titles, descriptions and texts.
    """

    def __init__(self, config: Optional[StoreConfig] = None):
        super().__init__(config)
        self._sites: Dict[uuid.UUID, Site] = {}
        self._pages: Dict[uuid.UUID, Page] = {}

    def _site(self, site_id: uuid.UUID) -> Site:
        site = self._sites.get(site_id)
        if site is None:
            raise SiteNotFoundError(site_id)
        return site

    def _page(self, page_id: uuid.UUID) -> Page:
        page = self._pages.get(page_id)
        if page is None:
            raise PageNotFoundError(page_id)
        return page

    async def get_sites_requiring_refresh(self) -> List[Site]:
        return [site.model_copy() for site in self._sites.values() if site.refresh_required]

    async def get_stale_pages(self) -> List[Tuple[Page, Site]]:
        return [
            (page.model_copy(), self._site(page.site_id).model_copy())
            for page in self._pages.values()
            if page.refresh_required
        ]

    async def get_page_summaries(self, site_id: uuid.UUID) -> List[PageSummary]:
        self._site(site_id)
        return [page.to_summary() for page in self._pages.values() if page.site_id == site_id]

    async def delete_page(self, page_id: uuid.UUID) -> bool:
        return self._pages.pop(page_id, None) is not None

    async def mark_page_stale(self, page_id: uuid.UUID) -> None:
        self._page(page_id).refresh_required = True

    async def add_page(self, page: Page) -> Page:
        self._site(page.site_id)
        if page.id in self._pages:
            raise StoreError(f"Page {page.id} already exists")
        if any(p.site_id == page.site_id and p.url == page.url for p in self._pages.values()):
            raise StoreError(f"Site {page.site_id} already has a page with URL {page.url}")
        self._pages[page.id] = page.model_copy()
        return page

    async def update_page_content(
        self,
        page_id: uuid.UUID,
        *,
        title: str,
        description: str,
        text: str,
        updated_at: datetime,
    ) -> None:
        page = self._page(page_id)
        self._pages[page_id] = page.model_copy(
            update={
                "title": title,
                "description": description,
                "text": text,
                "updated_at": updated_at,
                "refresh_required": False,
            }
        )

    async def complete_site_refresh(self, site_id: uuid.UUID, updated_at: datetime) -> None:
        site = self._site(site_id)
        site.refresh_required = False
        site.updated_at = updated_at

    async def add_site(self, site: Site) -> Site:
        if site.id in self._sites:
            raise StoreError(f"Site {site.id} already exists")
        self._sites[site.id] = site.model_copy()
        logger.info(f"Registered site {site.id} ({site.name})")
        return site

    async def get_site(self, site_id: uuid.UUID) -> Optional[Site]:
        site = self._sites.get(site_id)
        return site.model_copy() if site else None

    async def get_sites(self) -> List[Site]:
        return [site.model_copy() for site in sorted(self._sites.values(), key=lambda s: s.name)]

    async def get_pages(self, site_id: uuid.UUID) -> List[Page]:
        self._site(site_id)
        return [page.model_copy() for page in self._pages.values() if page.site_id == site_id]

    async def request_site_refresh(self, update_key: str) -> bool:
        for site in self._sites.values():
            if site.update_key == update_key:
                site.refresh_required = True
                logger.info(f"Refresh requested for site {site.id} ({site.name})")
                return True
        return False

    async def search_pages(self, site_id: uuid.UUID, predicate: str) -> List[SearchResult]:
        self._site(site_id)
        pages = [page for page in self._pages.values() if page.site_id == site_id]
        return [
            SearchResult(
                url=page.url,
                title=page.title,
                description=page.description,
                updated_at=page.updated_at,
                rank=rank,
            )
            for page, rank in rank_pages(predicate, pages)
        ]


PageStoreFactory.register(StoreType.MEMORY, MemoryPageStore)
