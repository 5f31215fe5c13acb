"""
Exception taxonomy for the scraping pipeline.

Only FetchError and HealthCheckError are expected to reach the orchestrator;
extraction and enrichment failures degrade to the next fallback tier.
"""
from typing import Optional


class ScraperError(Exception):
    """Base class for all pipeline errors"""


class FetchError(ScraperError):
    """HTTP fetch failed (non-2xx, timeout, DNS) after retries were exhausted"""

    def __init__(self, url: str, status_code: Optional[int] = None, reason: Optional[str] = None):
        self.url = url
        self.status_code = status_code
        self.reason = reason
        if status_code is not None:
            message = f"HTTP {status_code}: {reason or 'request failed'}"
        else:
            message = reason or "request failed"
        super().__init__(message)


class HealthCheckError(ScraperError):
    """Source failed its HEAD pre-flight"""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Source health check failed: {reason}")


class ExtractionError(ScraperError):
    """An extractor could not produce usable output"""


class PublishError(ScraperError):
    """Persisting one candidate opportunity failed"""
