"""FastAPI server for SiteSift."""
from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import (
    Depends,
    FastAPI,
    HTTPException,
    Query,
    Request,
    status,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..config import ENV_PREFIX, CrawlerConfig
from ..core import CrawlScheduler, InvalidQueryError, translate_query
from ..models.search import SearchResponse
from ..models.site import MAX_URL_LENGTH, Site
from ..storage import (
    InvalidPredicateError,
    PageStore,
    PageStoreFactory,
    SiteNotFoundError,
    StoreConfig,
)

logger = logging.getLogger(__name__)

# Global application state
app_state: Dict[str, Any] = {}

# API version
API_VERSION = "0.1.0"


def get_store() -> PageStore:
    """Get the page store instance.

    Returns:
        PageStore instance.
    """
    if "store" not in app_state:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Page store not initialized",
        )
    return app_state["store"]


class ServerSettings(BaseSettings):
    """Server settings read from ``SITESIFT_*`` environment variables.

    The store is given as JSON, e.g. ``SITESIFT_STORE='{"type": "memory"}'``.
    """

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, env_ignore_empty=True, extra="ignore")

    store: StoreConfig = Field(default_factory=StoreConfig, description="Page store configuration")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Creates the page store and runs the crawl scheduler in the background
    for as long as the application is up.

    Args:
        app: FastAPI application instance.
    """
    scheduler_task: Optional[asyncio.Task] = None
    try:
        logger.info("Initializing services...")

        store = PageStoreFactory.create(ServerSettings().store)
        await store.initialize()
        app_state["store"] = store

        scheduler = CrawlScheduler(store, CrawlerConfig())
        app_state["scheduler"] = scheduler
        scheduler_task = asyncio.create_task(scheduler.run(), name="crawl-scheduler")

        logger.info("Services initialized successfully")
        yield

    except Exception as e:
        logger.error(f"Failed to initialize services: {e}")
        raise

    finally:
        logger.info("Shutting down services...")
        scheduler = app_state.pop("scheduler", None)
        if scheduler is not None:
            scheduler.stop()
        if scheduler_task is not None:
            scheduler_task.cancel()
            try:
                await scheduler_task
            except asyncio.CancelledError:
                pass
        if scheduler is not None:
            await scheduler.close()
        store = app_state.pop("store", None)
        if store is not None:
            await store.close()
        logger.info("Services shut down successfully")


# Create FastAPI application
app = FastAPI(
    title="SiteSift",
    description="Sitemap-driven site crawler with full-text search",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions.

    Args:
        request: The request that caused the exception.
        exc: The HTTP exception.

    Returns:
        JSON response with error details.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other exceptions.

    Args:
        request: The request that caused the exception.
        exc: The exception.

    Returns:
        JSON response with error details.
    """
    logger.exception("Unhandled exception")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# API endpoints
@app.get("/health")
async def health_check() -> Dict[str, str]:
    """Health check endpoint.

    Returns:
        Status message.
    """
    return {"status": "ok"}


@app.get("/version")
async def get_version() -> Dict[str, str]:
    """Get the API version.

    Returns:
        API version information.
    """
    return {"version": API_VERSION}


@app.get("/api/search/{site_id}", response_model=SearchResponse)
async def search_site(
    site_id: uuid.UUID,
    query: str = Query("", description="Search query"),
    store: PageStore = Depends(get_store),
) -> SearchResponse:
    """Run a full-text search over the pages of a site.

    Args:
        site_id: Site to search in.
        query: Query in the SiteSift query language.
        store: Page store instance.

    Returns:
        Ranked search results.
    """
    try:
        predicate = translate_query(query)
    except InvalidQueryError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not predicate:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Query does not contain any search term",
        )

    if await store.get_site(site_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Site {site_id} not found")

    logger.info(f"Searching site {site_id} for {predicate}")
    try:
        results = await store.search_pages(site_id, predicate)
    except InvalidPredicateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SiteNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Site {site_id} not found")

    return SearchResponse(query=query, predicate=predicate, results=results, total=len(results))


@app.get("/api/update/{update_key}", status_code=status.HTTP_202_ACCEPTED)
async def request_update(update_key: str, store: PageStore = Depends(get_store)) -> Dict[str, str]:
    """Ask for a site to be crawled again.

    The response does not tell whether the key belongs to a site.

    Args:
        update_key: Update key of the site.
        store: Page store instance.
    """
    if not await store.request_site_refresh(update_key):
        logger.warning("Refresh requested with an unknown update key")
    return {"status": "accepted"}


class SiteCreate(BaseModel):
    """Request model for registering a site."""

    name: str = Field(..., min_length=1, max_length=1000)
    url: str = Field(..., min_length=1, max_length=MAX_URL_LENGTH)
    sitemap_url: str = Field(..., min_length=1, max_length=MAX_URL_LENGTH)
    content_xpath: Optional[str] = Field(None, max_length=1000)


@app.post("/api/sites", response_model=Site, status_code=status.HTTP_201_CREATED)
async def create_site(request: SiteCreate, store: PageStore = Depends(get_store)) -> Site:
    """Register a site; its sitemap is crawled on the next scheduler cycle.

    Args:
        request: Site to register.
        store: Page store instance.

    Returns:
        The registered site, including its update key.
    """
    site = Site(
        name=request.name,
        url=request.url,
        sitemap_url=request.sitemap_url,
        content_xpath=request.content_xpath or None,
        refresh_required=True,
    )
    return await store.add_site(site)


@app.get("/api/sites", response_model=List[Site])
async def list_sites(store: PageStore = Depends(get_store)) -> List[Site]:
    """List registered sites ordered by name."""
    return await store.get_sites()


@app.get("/api/sites/{site_id}", response_model=Site)
async def get_site(site_id: uuid.UUID, store: PageStore = Depends(get_store)) -> Site:
    """Get a site by ID.

    Args:
        site_id: Site ID.
        store: Page store instance.

    Returns:
        Site if found.
    """
    site = await store.get_site(site_id)
    if site is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Site {site_id} not found")
    return site


# Main entry point for running the server directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("sitesift.api.server:app", host="0.0.0.0", port=8000, reload=True)
