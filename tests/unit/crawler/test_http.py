"""Unit tests for the pooled HTTP client."""
import sys
from pathlib import Path

import aiohttp
import pytest

# Add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from sitesift.config import CrawlerConfig
from sitesift.crawler.http import HttpClient

URL = "https://example.com/resource"


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_get_text_and_bytes(mock_aioresponse, http_client):
    """Test reading a response body."""
    mock_aioresponse.get(URL, status=200, body="hello")
    mock_aioresponse.get(URL, status=200, body=b"raw")

    assert await http_client.get_text(URL) == "hello"
    assert await http_client.get_bytes(URL) == b"raw"


@pytest.mark.asyncio
async def test_error_status_raises(mock_aioresponse, http_client):
    """Test that non-2xx responses are errors."""
    mock_aioresponse.get(URL, status=500)

    with pytest.raises(aiohttp.ClientResponseError):
        await http_client.get_text(URL)


@pytest.mark.asyncio
async def test_session_is_reused_within_lifetime(mock_aioresponse):
    """Test that requests share one connection pool."""
    clock = FakeClock()
    mock_aioresponse.get(URL, status=200, body="a", repeat=True)

    async with HttpClient(connection_lifetime=60.0, clock=clock) as client:
        await client.get_text(URL)
        first = client._session
        clock.now = 59.0
        await client.get_text(URL)
        assert client._session is first


@pytest.mark.asyncio
async def test_session_is_recycled_after_lifetime(mock_aioresponse):
    """Test that old connection pools are replaced."""
    clock = FakeClock()
    mock_aioresponse.get(URL, status=200, body="a", repeat=True)

    async with HttpClient(connection_lifetime=60.0, clock=clock) as client:
        await client.get_text(URL)
        first = client._session
        clock.now = 61.0
        await client.get_text(URL)

        assert client._session is not first
        assert first.closed

    assert client.closed


def test_from_config():
    """Test building a client from crawler configuration."""
    config = CrawlerConfig(request_timeout=3.0, pooled_connection_lifetime=30.0, max_connections=2, user_agent="bot/1.0")

    client = HttpClient.from_config(config)

    assert client.timeout == 3.0
    assert client.connection_lifetime == 30.0
    assert client.max_connections == 2
    assert client.user_agent == "bot/1.0"
    assert client.closed
