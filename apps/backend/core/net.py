"""
HTTP client with browser-like headers, hard timeouts, linear-backoff retries
and per-source politeness spacing.
"""
import os
import time
import asyncio
import logging
from typing import Optional, Dict

import httpx
from tenacity import AsyncRetrying, stop_after_attempt, wait_incrementing, retry_if_exception_type

from core.errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_TIMEOUT = 30.0
DETAIL_TIMEOUT = 15.0
DEFAULT_BACKOFF_MS = 1000
MAX_BODY_KB = 4096


class PolitenessLimiter:
    """
    Enforces a minimum gap between consecutive requests to one source.

    One instance is created per source run and handed to everything that
    talks to that site (listing pages and detail pages alike).
    """

    def __init__(self, delay_ms: int):
        self.delay = max(0, delay_ms) / 1000.0
        self._last_request: Optional[float] = None
        self._lock = asyncio.Lock()

    async def wait(self):
        """Wait until the source may be hit again"""
        async with self._lock:
            if self._last_request is not None and self.delay > 0:
                remaining = self.delay - (time.monotonic() - self._last_request)
                if remaining > 0:
                    logger.debug(f"[net] Politeness wait {remaining:.2f}s")
                    await asyncio.sleep(remaining)
            self._last_request = time.monotonic()


class HTTPClient:
    """HTTP client used by the fetcher, the enricher and the health check"""

    def __init__(
        self,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.user_agent = user_agent or os.getenv("SCRAPER_USER_AGENT", DEFAULT_UA)
        self.timeout = timeout or float(os.getenv("SCRAPER_FETCH_TIMEOUT", DEFAULT_TIMEOUT))
        # Injected in tests (httpx.MockTransport)
        self._transport = transport

    def _get_headers(self, custom_headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Build realistic browser headers; source-specific headers override defaults"""
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
        }
        if custom_headers:
            headers.update(custom_headers)
        return headers

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            transport=self._transport
        )

    async def get_html(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None
    ) -> str:
        """
        Single GET attempt.

        Raises:
            FetchError: on non-2xx status, timeout or transport failure
        """
        request_headers = self._get_headers(headers)
        start_time = time.time()

        async with self._client(timeout or self.timeout) as client:
            try:
                response = await client.get(url, headers=request_headers)
            except httpx.TimeoutException as e:
                logger.error(f"[net] Timeout fetching {url}: {e}")
                raise FetchError(url, reason=f"Timeout: {e}") from e
            except httpx.HTTPError as e:
                logger.error(f"[net] Connection error fetching {url}: {e}")
                raise FetchError(url, reason=str(e) or e.__class__.__name__) from e

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(f"[net] GET {response.status_code} {url} ({len(response.content)} bytes, {elapsed_ms}ms)")

        if not response.is_success:
            raise FetchError(url, status_code=response.status_code, reason=response.reason_phrase)

        if len(response.content) > MAX_BODY_KB * 1024:
            logger.warning(f"[net] Content too large: {len(response.content)} bytes - truncating {url}")
            return response.content[:MAX_BODY_KB * 1024].decode(response.encoding or "utf-8", errors="replace")

        return response.text

    async def fetch_html(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        retries: int = 3,
        backoff_ms: int = DEFAULT_BACKOFF_MS,
        timeout: Optional[float] = None
    ) -> str:
        """
        GET with up to `retries` attempts and linear backoff (backoff * attempt).

        The last attempt's FetchError propagates to the caller.
        """
        backoff = max(0, backoff_ms) / 1000.0
        html = ""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max(1, retries)),
            wait=wait_incrementing(start=backoff, increment=backoff),
            retry=retry_if_exception_type(FetchError),
            reraise=True,
            before_sleep=lambda state: logger.warning(
                f"[net] Attempt {state.attempt_number} failed for {url}: {state.outcome.exception()}"
            )
        ):
            with attempt:
                html = await self.get_html(url, headers=headers, timeout=timeout)
        return html

    async def head(self, url: str, headers: Optional[Dict[str, str]] = None, timeout: Optional[float] = None) -> int:
        """Send HEAD request and return the status code"""
        async with self._client(timeout or DETAIL_TIMEOUT) as client:
            try:
                response = await client.head(url, headers=self._get_headers(headers))
            except httpx.HTTPError as e:
                logger.error(f"[net] HEAD request failed for {url}: {e}")
                raise FetchError(url, reason=str(e) or e.__class__.__name__) from e

        logger.info(f"[net] HEAD {response.status_code} {url}")
        return response.status_code
