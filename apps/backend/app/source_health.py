"""
Source health: HEAD pre-flight checks and the rolling success rate.

The success rate is a 0-100 indicator moved up ~10% of range after a good
run and down 20% after a failed one, so chronically failing sources sink to
the bottom of the schedule.
"""
import logging
from typing import Dict, Optional
from datetime import datetime, timedelta, timezone

from core.errors import FetchError, HealthCheckError
from core.net import HTTPClient

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS_HOURS = 24


def next_success_rate(current: Optional[float], succeeded: bool) -> float:
    """
    Update the rolling success rate.

    success: min(100, rate * 0.9 + 10)
    failure: max(0, rate * 0.8)
    """
    rate = float(current if current is not None else 100.0)
    if succeeded:
        return min(100.0, rate * 0.9 + 10)
    return max(0.0, rate * 0.8)


def due_cutoff(freshness_hours: int = DEFAULT_FRESHNESS_HOURS, now: Optional[datetime] = None) -> datetime:
    """Sources never scraped or last scraped before this time are due"""
    now = now or datetime.now(timezone.utc)
    return now - timedelta(hours=freshness_hours)


class SourceHealthChecker:
    """HEAD-based reachability check run before committing to a full scrape"""

    def __init__(self, http_client: Optional[HTTPClient] = None):
        self.http = http_client or HTTPClient()

    async def check(self, url: str, headers: Optional[Dict[str, str]] = None) -> Dict:
        """
        Returns:
            {'healthy': bool, 'status_code': int | None, 'error': str | None}
        """
        try:
            status_code = await self.http.head(url, headers=headers)
        except FetchError as e:
            return {'healthy': False, 'status_code': None, 'error': str(e)}

        if not 200 <= status_code < 300:
            return {'healthy': False, 'status_code': status_code, 'error': f"HTTP {status_code}"}
        return {'healthy': True, 'status_code': status_code, 'error': None}

    async def ensure_healthy(self, url: str, headers: Optional[Dict[str, str]] = None):
        """
        Raises:
            HealthCheckError: if the source is unreachable or answers non-2xx
        """
        result = await self.check(url, headers)
        if not result['healthy']:
            logger.warning(f"[health] {url} unhealthy: {result['error']}")
            raise HealthCheckError(url, result['error'])
        logger.debug(f"[health] {url} healthy ({result['status_code']})")
