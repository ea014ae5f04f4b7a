"""Pytest configuration and fixtures for SiteSift tests."""
import logging
import sys
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from aioresponses import aioresponses

# Add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sitesift.crawler.http import HttpClient
from sitesift.models.site import Site
from sitesift.storage import MemoryPageStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

# Reduce log noise for test output
logging.getLogger("aiohttp").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)

SITE_URL = "https://example.com"
SITEMAP_URL = f"{SITE_URL}/sitemap.xml"


@pytest.fixture
def mock_aioresponse():
    """Intercept aiohttp requests."""
    with aioresponses() as m:
        yield m


@pytest_asyncio.fixture
async def http_client() -> AsyncGenerator[HttpClient, None]:
    """Create a shared HTTP client for testing."""
    async with HttpClient(timeout=5.0) as client:
        yield client


@pytest_asyncio.fixture
async def store() -> AsyncGenerator[MemoryPageStore, None]:
    """Create an initialized in-memory page store."""
    async with MemoryPageStore() as page_store:
        yield page_store


@pytest_asyncio.fixture
async def site(store: MemoryPageStore) -> Site:
    """Register a site flagged for refresh."""
    return await store.add_site(
        Site(name="Example", url=SITE_URL, sitemap_url=SITEMAP_URL, refresh_required=True)
    )
