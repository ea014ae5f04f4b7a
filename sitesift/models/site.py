"""Site and page models for SiteSift."""
from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CONTENT_XPATH = "//main"
MAX_TITLE_LENGTH = 1000
MAX_DESCRIPTION_LENGTH = 1000
MAX_URL_LENGTH = 1000

UPDATE_KEY_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
UPDATE_KEY_LENGTH = 30


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def create_update_key() -> str:
    """Generate a random site update key."""
    return "".join(secrets.choice(UPDATE_KEY_ALPHABET) for _ in range(UPDATE_KEY_LENGTH))


class Site(BaseModel):
    """A registered site whose sitemap is crawled."""

    model_config = ConfigDict(validate_assignment=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, description="Unique identifier of the site")
    name: str = Field(..., description="Human readable site name", max_length=1000)
    url: str = Field(..., description="Canonical URL of the site", max_length=MAX_URL_LENGTH)
    sitemap_url: str = Field(..., description="URL of the site's sitemap.xml", max_length=MAX_URL_LENGTH)
    content_xpath: Optional[str] = Field(
        None,
        description="XPath locating the main body node; defaults to //main",
        max_length=1000,
    )
    update_key: str = Field(
        default_factory=create_update_key,
        description="Secret key allowing an anonymous refresh request",
        min_length=UPDATE_KEY_LENGTH,
        max_length=UPDATE_KEY_LENGTH,
    )
    refresh_required: bool = Field(True, description="Whether the sitemap must be diffed again")
    created_at: datetime = Field(default_factory=utcnow, description="When the site was registered")
    updated_at: Optional[datetime] = Field(None, description="When the last sitemap pass completed")

    @property
    def effective_content_xpath(self) -> str:
        """XPath used to locate the page body."""
        return self.content_xpath or DEFAULT_CONTENT_XPATH


class Page(BaseModel):
    """A page listed in a site's sitemap."""

    model_config = ConfigDict(validate_assignment=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, description="Unique identifier of the page")
    site_id: uuid.UUID = Field(..., description="ID of the owning site")
    url: str = Field(..., description="Page URL, unique within the site", max_length=MAX_URL_LENGTH)
    title: str = Field("", description="Page title", max_length=MAX_TITLE_LENGTH)
    description: str = Field("", description="Page description", max_length=MAX_DESCRIPTION_LENGTH)
    text: str = Field("", description="Normalized body text")
    refresh_required: bool = Field(True, description="Whether the content must be extracted again")
    created_at: datetime = Field(default_factory=utcnow, description="When the page was discovered")
    updated_at: Optional[datetime] = Field(None, description="When the content was last extracted")

    def to_summary(self) -> PageSummary:
        """Project the page onto the fields used by the sitemap diff."""
        return PageSummary(
            id=self.id,
            url=self.url,
            updated_at=self.updated_at,
            refresh_required=self.refresh_required,
        )


class PageSummary(BaseModel):
    """The part of a page the sitemap diff looks at."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    url: str
    updated_at: Optional[datetime] = None
    refresh_required: bool = False
