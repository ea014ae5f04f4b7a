"""Shared pooled HTTP client for sitemap and page downloads."""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import aiohttp
from aiohttp import ClientSession, ClientTimeout, TCPConnector

from ..config import CrawlerConfig, DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)


class HttpClient:
    """aiohttp session wrapper with bounded timeouts and connection recycling.

    aiohttp keeps idle connections alive but never retires busy ones, so the
    whole session (and its connection pool) is replaced once it gets older
    than ``connection_lifetime`` seconds.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        connection_lifetime: float = 900.0,
        max_connections: int = 10,
        user_agent: str = DEFAULT_USER_AGENT,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the HTTP client.

        Args:
            timeout: Total timeout of a single request in seconds.
            connection_lifetime: Seconds after which the pooled connections are recycled.
            max_connections: Maximum number of pooled connections.
            user_agent: User-Agent header sent with every request.
            clock: Monotonic clock used to age the session.
        """
        self.timeout = timeout
        self.connection_lifetime = connection_lifetime
        self.max_connections = max_connections
        self.user_agent = user_agent
        self._clock = clock
        self._session: Optional[ClientSession] = None
        self._session_created: float = 0.0

    @classmethod
    def from_config(cls, config: CrawlerConfig) -> HttpClient:
        """Create a client from crawler configuration."""
        return cls(
            timeout=config.request_timeout,
            connection_lifetime=config.pooled_connection_lifetime,
            max_connections=config.max_connections,
            user_agent=config.user_agent,
        )

    async def _get_session(self) -> ClientSession:
        """Get the current session, creating or recycling it as needed."""
        if self._session is not None and not self._session.closed:
            age = self._clock() - self._session_created
            if age < self.connection_lifetime:
                return self._session
            logger.debug(f"Recycling HTTP connection pool after {age:.0f}s")
            await self._session.close()

        self._session = ClientSession(
            connector=TCPConnector(limit=self.max_connections),
            timeout=ClientTimeout(total=self.timeout),
            headers={"User-Agent": self.user_agent},
        )
        self._session_created = self._clock()
        return self._session

    async def get_bytes(self, url: str) -> bytes:
        """GET ``url`` and return the raw body.

        Raises:
            aiohttp.ClientError: On connection errors or non-2xx status.
            asyncio.TimeoutError: When the request times out.
        """
        session = await self._get_session()
        async with session.get(url) as response:
            response.raise_for_status()
            return await response.read()

    async def get_text(self, url: str) -> str:
        """GET ``url`` and return the body decoded as text.

        Undecodable bytes are replaced rather than rejected.

        Raises:
            aiohttp.ClientError: On connection errors or non-2xx status.
            asyncio.TimeoutError: When the request times out.
        """
        session = await self._get_session()
        async with session.get(url) as response:
            response.raise_for_status()
            return await response.text(errors="replace")

    @property
    def closed(self) -> bool:
        """Whether the client has no open session."""
        return self._session is None or self._session.closed

    async def close(self) -> None:
        """Close the underlying session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


# Errors raised by HttpClient requests that count as transient fetch failures.
FETCH_ERRORS = (aiohttp.ClientError, TimeoutError)
