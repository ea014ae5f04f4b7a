"""Reconciliation of stored pages against a freshly fetched sitemap."""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from ..models.site import Page, PageSummary, Site, as_utc, utcnow
from ..storage.base import PageStore
from .sitemap import SitemapEntry, SitemapFetcher

logger = logging.getLogger(__name__)


class DiffAction(str, Enum):
    """What to do with a page after comparing it with the sitemap."""
    DELETE = "delete"
    MARK_STALE = "mark_stale"
    INSERT = "insert"


@dataclass(frozen=True)
class DiffDecision:
    """A single mutation emitted by the sitemap diff."""

    action: DiffAction
    url: str
    page_id: Optional[uuid.UUID] = None
    """Stored page the decision applies to; None for inserts."""


@dataclass
class SitemapDiff:
    """Decisions of one diff pass."""

    decisions: List[DiffDecision] = field(default_factory=list)
    current: int = 0
    "Number of stored pages found up to date"

    def _of(self, action: DiffAction) -> List[DiffDecision]:
        return [d for d in self.decisions if d.action is action]

    @property
    def deletes(self) -> List[DiffDecision]:
        return self._of(DiffAction.DELETE)

    @property
    def marks(self) -> List[DiffDecision]:
        return self._of(DiffAction.MARK_STALE)

    @property
    def inserts(self) -> List[DiffDecision]:
        return self._of(DiffAction.INSERT)

    def __bool__(self) -> bool:
        return bool(self.decisions)


def diff_sitemap(pages: Iterable[PageSummary], entries: Iterable[SitemapEntry]) -> SitemapDiff:
    """Compare stored pages with sitemap entries.

    A stored page missing from the sitemap is deleted. A page older than its
    entry (or never extracted) is marked stale unless it already is. Entries
    not matched by any stored page become inserts. URLs are compared exactly;
    when the sitemap lists a URL twice the first entry wins.

    Args:
        pages: Summaries of the pages currently stored for the site.
        entries: Entries of the freshly fetched sitemap.

    Returns:
        The decisions, at most one per distinct URL.
    """
    # First entry per URL, in sitemap order.
    by_url: Dict[str, SitemapEntry] = {}
    for entry in entries:
        by_url.setdefault(entry.url, entry)

    diff = SitemapDiff()
    stored = set()

    for page in pages:
        # A URL stored twice matches a single entry; the extra page is deleted.
        entry = by_url.get(page.url) if page.url not in stored else None
        stored.add(page.url)
        if entry is None:
            diff.decisions.append(DiffDecision(DiffAction.DELETE, page.url, page.id))
            continue

        updated_at = as_utc(page.updated_at)
        if updated_at is None or updated_at < entry.lastmod:
            if not page.refresh_required:
                diff.decisions.append(DiffDecision(DiffAction.MARK_STALE, page.url, page.id))
        else:
            diff.current += 1

    for url in by_url:
        if url not in stored:
            diff.decisions.append(DiffDecision(DiffAction.INSERT, url))

    return diff


class SitemapUpdater:
    """Runs a sitemap diff pass for one site and applies it to the store."""

    def __init__(
        self,
        store: PageStore,
        fetcher: SitemapFetcher,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the updater.

        Args:
            store: Page store holding the crawl state.
            fetcher: Sitemap fetcher.
            clock: Source of the pass time.
        """
        self.store = store
        self.fetcher = fetcher
        self.clock = clock

    async def update(self, site: Site) -> Optional[SitemapDiff]:
        """Fetch the site's sitemap, diff it and apply the decisions.

        Args:
            site: Site to refresh.

        Returns:
            The applied diff, or None if the sitemap had no valid entries and
            the site was left flagged for the next cycle.

        Raises:
            SitemapFetchError: If the sitemap cannot be fetched or parsed.
            SiteNotFoundError: If the site no longer exists.
        """
        entries = await self.fetcher.fetch(site.sitemap_url)
        if not entries:
            logger.warning(f"Sitemap for site {site.id} ({site.name}) does not contain any valid elements")
            return None

        pages = await self.store.get_page_summaries(site.id)
        diff = diff_sitemap(pages, entries)

        # The decisions and the flag reset are one unit: never leave them half-applied.
        await asyncio.shield(self._apply(site, diff, self.clock()))
        logger.info(
            f"Sitemap of site {site.id} ({site.name}) processed: "
            f"{len(diff.inserts)} new, {len(diff.marks)} stale, "
            f"{len(diff.deletes)} deleted, {diff.current} current"
        )
        return diff

    async def _apply(self, site: Site, diff: SitemapDiff, now: datetime) -> None:
        for decision in diff.decisions:
            if decision.action is DiffAction.DELETE:
                logger.info(f"Deleting {decision.page_id} ({decision.url}) because it's no longer present in sitemap")
                await self.store.delete_page(decision.page_id)
            elif decision.action is DiffAction.MARK_STALE:
                logger.info(f"Page {decision.page_id} ({decision.url}) is newer, setting for update")
                await self.store.mark_page_stale(decision.page_id)
            else:
                logger.debug(f"Adding new page with url {decision.url}")
                await self.store.add_page(
                    Page(site_id=site.id, url=decision.url, created_at=now, refresh_required=True)
                )

        await self.store.complete_site_refresh(site.id, now)
