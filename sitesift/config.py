"""Crawler configuration for SiteSift."""
from __future__ import annotations

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TITLE_SELECTORS = [
    "/html/head/meta[@name='title']",
    "/html/head/meta[@name='dc:title']",
    "/html/head/meta[@name='dcterms:title']",
    "/html/head/meta[@name='twitter:title']",
    "/html/head/meta[@property='og:title']",
    "/html/head/title",
]

DEFAULT_DESCRIPTION_SELECTORS = [
    "/html/head/meta[@name='description']",
    "/html/head/meta[@name='dc:abstract']",
    "/html/head/meta[@name='dcterms:abstract']",
    "/html/head/meta[@name='twitter:description']",
    "/html/head/meta[@property='og:description']",
]

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; SiteSift/0.1)"

ENV_PREFIX = "SITESIFT_"


class CrawlerConfig(BaseSettings):
    """Configuration of the crawl scheduler and its HTTP client.

    Unset fields are read from ``SITESIFT_*`` environment variables, e.g.
    ``SITESIFT_POLL_INTERVAL=30``. Selector lists are given as JSON arrays
    (``SITESIFT_TITLE_SELECTORS='["//h1"]'``). Empty variables are
    ignored. Durations are expressed in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        extra="forbid",
        frozen=True,
    )

    poll_interval: float = Field(60.0, description="Pause between crawl cycles", gt=0)
    request_timeout: float = Field(10.0, description="Timeout of a single HTTP request", gt=0)
    pooled_connection_lifetime: float = Field(
        900.0,
        description="Maximum lifetime of pooled HTTP connections",
        gt=0,
    )
    page_request_delay: float = Field(
        0.0,
        description="Politeness delay between consecutive page requests",
        ge=0,
    )
    max_connections: int = Field(10, description="Size of the HTTP connection pool", gt=0)
    user_agent: str = Field(DEFAULT_USER_AGENT, description="User-Agent header", min_length=1)
    title_selectors: List[str] = Field(
        default_factory=lambda: list(DEFAULT_TITLE_SELECTORS),
        description="Ordered XPath expressions tried for the page title",
    )
    description_selectors: List[str] = Field(
        default_factory=lambda: list(DEFAULT_DESCRIPTION_SELECTORS),
        description="Ordered XPath expressions tried for the page description",
    )

    @field_validator("title_selectors", "description_selectors")
    @classmethod
    def _check_selectors(cls, v: List[str]) -> List[str]:
        selectors = [s.strip() for s in v if s and s.strip()]
        if not selectors:
            raise ValueError("At least one selector is required")
        return selectors
