"""Search models for SiteSift."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SearchResult(BaseModel):
    """A single row returned by the full-text search engine."""

    url: str = Field(..., description="URL of the matching page")
    title: str = Field(..., description="Title of the matching page")
    description: str = Field("", description="Description of the matching page")
    updated_at: Optional[datetime] = Field(None, description="When the page was last extracted")
    rank: int = Field(0, description="Relevance rank assigned by the search engine")


class SearchResponse(BaseModel):
    """Response of a search request."""

    query: str = Field(..., description="Query as entered by the user")
    predicate: str = Field(..., description="Full-text predicate sent to the search engine")
    results: List[SearchResult] = Field(default_factory=list, description="Matching pages")
    total: int = Field(..., description="Number of results")
