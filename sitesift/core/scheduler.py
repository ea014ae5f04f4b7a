"""Background crawl scheduler for SiteSift."""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from ..crawler.diff import SitemapUpdater
from ..crawler.extractors import PageContentExtractor, PageFetchError
from ..crawler.http import HttpClient
from ..crawler.sitemap import SitemapFetchError, SitemapFetcher, SitemapParseError
from ..models.site import Page, Site, utcnow
from ..storage.base import PageStore
from ..config import CrawlerConfig

logger = logging.getLogger(__name__)


class UnitStatus(str, Enum):
    """Outcome of one unit of crawl work."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    "Nothing changed; the unit stays flagged and is retried next cycle"
    FAILED = "failed"


@dataclass
class UnitResult:
    """Result of processing one site or one page."""

    kind: str
    "'site' or 'page'"

    id: uuid.UUID
    url: str
    status: UnitStatus
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is UnitStatus.SUCCESS


@dataclass
class CycleReport:
    """Results of one crawl cycle."""

    started_at: datetime
    sites: List[UnitResult] = field(default_factory=list)
    pages: List[UnitResult] = field(default_factory=list)
    interrupted: bool = False

    def count(self, kind: str, status: UnitStatus) -> int:
        results = self.sites if kind == "site" else self.pages
        return sum(1 for r in results if r.status is status)

    @property
    def failures(self) -> List[UnitResult]:
        return [r for r in self.sites + self.pages if r.status is UnitStatus.FAILED]


class CrawlScheduler:
    """Polls the store for sites and pages needing work and processes them.

    Work is strictly sequential: one site at a time, then one page at a
    time. A failing site or page is logged and reported without affecting
    the others; it stays flagged and is retried on the next cycle.
    """

    def __init__(
        self,
        store: PageStore,
        config: Optional[CrawlerConfig] = None,
        http: Optional[HttpClient] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the scheduler.

        Args:
            store: Page store holding the crawl state.
            config: Crawler configuration. If None, defaults are used.
            http: Shared HTTP client. If None, one is created from the config
                and closed together with the scheduler.
            clock: Source of timestamps written to the store.
        """
        self.store = store
        self.config = config or CrawlerConfig()
        self._owns_http = http is None
        self.http = http or HttpClient.from_config(self.config)
        self.clock = clock
        self.updater = SitemapUpdater(store, SitemapFetcher(self.http), clock=clock)
        self.extractor = PageContentExtractor.from_config(self.http, self.config)
        self._stop = asyncio.Event()
        self.last_report: Optional[CycleReport] = None

    @property
    def stopping(self) -> bool:
        """Whether a stop was requested."""
        return self._stop.is_set()

    def stop(self) -> None:
        """Request the loop to exit at the next unit boundary or sleep."""
        self._stop.set()

    async def run(self) -> None:
        """Run crawl cycles until :meth:`stop` is called or the task is cancelled."""
        logger.info(f"Crawl scheduler started (poll interval {self.config.poll_interval}s)")
        try:
            while not self.stopping:
                try:
                    self.last_report = await self.run_cycle()
                except Exception as e:
                    # Store outages end the cycle, not the loop.
                    logger.error(f"Crawl cycle failed: {e}", exc_info=True)
                await self._sleep(self.config.poll_interval)
        finally:
            logger.info("Crawl scheduler stopped")

    async def run_cycle(self) -> CycleReport:
        """Process every site and page currently flagged for refresh."""
        report = CycleReport(started_at=self.clock())

        sites = await self.store.get_sites_requiring_refresh()
        if not sites:
            logger.debug("No sites need to be updated")
        for site in sites:
            if self.stopping:
                report.interrupted = True
                return report
            report.sites.append(await self.refresh_site(site))

        pages = await self.store.get_stale_pages()
        if not pages:
            logger.debug("No pages need to be updated")
        for i, (page, site) in enumerate(pages):
            if self.stopping:
                report.interrupted = True
                return report
            report.pages.append(await self.refresh_page(page, site))
            if i + 1 < len(pages) and self.config.page_request_delay > 0:
                await self._sleep(self.config.page_request_delay)

        if report.sites or report.pages:
            logger.info(
                f"Crawl cycle finished: {report.count('site', UnitStatus.SUCCESS)}/{len(report.sites)} sites, "
                f"{report.count('page', UnitStatus.SUCCESS)}/{len(report.pages)} pages updated"
            )
        return report

    async def refresh_site(self, site: Site) -> UnitResult:
        """Diff one site's sitemap against its stored pages."""
        try:
            diff = await self.updater.update(site)
        except SitemapParseError as e:
            logger.warning(f"Invalid sitemap for site {site.id} ({site.name}): {e.message}")
            return UnitResult("site", site.id, site.sitemap_url, UnitStatus.FAILED, str(e))
        except SitemapFetchError as e:
            logger.warning(f"Cannot load sitemap for site {site.id} ({site.name}): {e.message}")
            return UnitResult("site", site.id, site.sitemap_url, UnitStatus.SKIPPED, str(e))
        except Exception as e:
            logger.error(f"Error while processing sitemap for site {site.id} ({site.name}): {e}", exc_info=True)
            return UnitResult("site", site.id, site.sitemap_url, UnitStatus.FAILED, str(e))

        status = UnitStatus.SKIPPED if diff is None else UnitStatus.SUCCESS
        return UnitResult("site", site.id, site.sitemap_url, status)

    async def refresh_page(self, page: Page, site: Site) -> UnitResult:
        """Extract one page's content and persist it."""
        try:
            content = await self.extractor.extract(page, site.content_xpath)
        except PageFetchError as e:
            logger.warning(f"Cannot download HTML from page {page.id} ({page.url}): {e.message}")
            return UnitResult("page", page.id, page.url, UnitStatus.SKIPPED, str(e))
        except Exception as e:
            logger.error(f"Error while processing page {page.id} ({page.url}): {e}", exc_info=True)
            return UnitResult("page", page.id, page.url, UnitStatus.FAILED, str(e))

        try:
            await asyncio.shield(
                self.store.update_page_content(
                    page.id,
                    title=content.title,
                    description=content.description,
                    text=content.text,
                    updated_at=self.clock(),
                )
            )
        except Exception as e:
            logger.error(f"Error while saving page {page.id} ({page.url}): {e}", exc_info=True)
            return UnitResult("page", page.id, page.url, UnitStatus.FAILED, str(e))

        logger.info(f"Updated text of page {page.id} ({page.url})")
        return UnitResult("page", page.id, page.url, UnitStatus.SUCCESS)

    async def _sleep(self, seconds: float) -> None:
        """Sleep, waking up early when a stop is requested."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def close(self) -> None:
        """Stop the loop and close the HTTP client if the scheduler created it."""
        self.stop()
        if self._owns_http:
            await self.http.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
