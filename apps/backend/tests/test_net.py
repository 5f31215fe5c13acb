"""
Unit tests for the HTTP fetcher.
"""
import time

import httpx
import pytest

from core.errors import FetchError
from core.net import HTTPClient, PolitenessLimiter, DEFAULT_UA
from fakes import make_http_client


class TestFetchHtml:
    """Test HTTPClient.fetch_html retries and error surfacing."""

    @pytest.mark.asyncio
    async def test_returns_body_on_success(self):
        client = make_http_client({'https://example.org/jobs': '<html>ok</html>'})
        html = await client.fetch_html('https://example.org/jobs', backoff_ms=0)
        assert html == '<html>ok</html>'

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        calls = []

        def flaky(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503, text='busy')
            return httpx.Response(200, text='<html>third time</html>')

        client = make_http_client({'https://example.org/jobs': flaky})
        html = await client.fetch_html('https://example.org/jobs', retries=3, backoff_ms=0)

        assert html == '<html>third time</html>'
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_last_error_propagates_after_retries(self):
        requests = []
        client = make_http_client({'https://example.org/jobs': 503}, requests)

        with pytest.raises(FetchError) as exc_info:
            await client.fetch_html('https://example.org/jobs', retries=2, backoff_ms=0)

        assert exc_info.value.status_code == 503
        assert str(exc_info.value).startswith('HTTP 503')
        assert len(requests) == 2

    @pytest.mark.asyncio
    async def test_single_attempt_when_retries_is_one(self):
        requests = []
        client = make_http_client({}, requests)

        with pytest.raises(FetchError) as exc_info:
            await client.fetch_html('https://example.org/missing', retries=1, backoff_ms=0)

        assert exc_info.value.status_code == 404
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_timeout_becomes_fetch_error(self):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_http_client({'https://example.org/slow': slow})

        with pytest.raises(FetchError) as exc_info:
            await client.get_html('https://example.org/slow')

        assert exc_info.value.status_code is None
        assert 'Timeout' in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_sends_browser_headers_and_source_overrides(self):
        requests = []
        client = make_http_client({'https://example.org/jobs': '<html></html>'}, requests)

        await client.get_html('https://example.org/jobs', headers={'Accept-Language': 'fr-FR'})

        sent = requests[0].headers
        assert sent['user-agent'] == DEFAULT_UA
        assert 'text/html' in sent['accept']
        assert sent['accept-language'] == 'fr-FR'


class TestHead:
    @pytest.mark.asyncio
    async def test_returns_status_code(self):
        client = make_http_client({'https://example.org/': 204})
        assert await client.head('https://example.org/') == 204

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def refused(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_http_client({'https://down.example.org/': refused})
        with pytest.raises(FetchError):
            await client.head('https://down.example.org/')


class TestPolitenessLimiter:
    @pytest.mark.asyncio
    async def test_first_request_is_not_delayed(self):
        limiter = PolitenessLimiter(5000)
        start = time.monotonic()
        await limiter.wait()
        assert time.monotonic() - start < 1

    @pytest.mark.asyncio
    async def test_spaces_consecutive_requests(self):
        limiter = PolitenessLimiter(50)
        await limiter.wait()
        start = time.monotonic()
        await limiter.wait()
        assert time.monotonic() - start >= 0.04

    def test_user_agent_from_env(self, monkeypatch):
        monkeypatch.setenv('SCRAPER_USER_AGENT', 'TestAgent/1.0')
        assert HTTPClient().user_agent == 'TestAgent/1.0'
