"""Core functionality for SiteSift."""

from .query import InvalidQueryError, parse_query_tokens, tokenize_query, translate_query
from .scheduler import CrawlScheduler, CycleReport, UnitResult, UnitStatus

__all__ = [
    "CrawlScheduler",
    "CycleReport",
    "InvalidQueryError",
    "UnitResult",
    "UnitStatus",
    "parse_query_tokens",
    "tokenize_query",
    "translate_query",
]
