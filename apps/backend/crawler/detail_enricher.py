"""
Detail-page enrichment.

Listing pages usually carry a one-line summary. The enricher follows each
listing's own URL and tries to recover the full description, replacing the
summary only when the recovered text is longer. Enrichment never shrinks a
description and never raises.
"""
import os
import logging
from typing import Dict, List, Optional, Sequence

from core.errors import FetchError
from core.html import make_soup, node_text, remove_nodes, safe_select, safe_select_one
from core.net import HTTPClient, PolitenessLimiter, DETAIL_TIMEOUT
from core.normalize import clean_description_text, url_host
from pipeline.models import ScrapedOpportunity

logger = logging.getLogger(__name__)

MIN_SELECTOR_LENGTH = 200
MIN_CONTAINER_LENGTH = 300
MIN_PARAGRAPH_LENGTH = 20
MAX_DESCRIPTION_LENGTH = 10000

UNWANTED_SELECTOR = 'script, style, nav, header, footer, aside, .advertisement, .ads, .sidebar'

FALLBACK_CONTAINERS = [
    'main',
    'article',
    '.main-content',
    '.content-wrapper',
    '.job-page',
    '.job-detail',
    '.posting-content',
]

GENERIC_SELECTORS = [
    '.description',
    '.markdown',
    '[itemprop="description"]',
    'article',
    '.job-description',
    '.content',
    '#content',
    'main',
    '.job-details',
    '.job-content',
    '.company-description',
]

# Sites whose detail pages need their own ranked selector list
DETAIL_SELECTORS: Dict[str, List[str]] = {
    'remoteok': [
        '.description[itemprop="description"]',
        '.description',
        '[itemprop="description"]',
        '.markdown',
        '.job-description',
        '.content',
        'article',
        '.job-details',
        '.job-content',
        '[data-testid="job-description"]',
        '.description-content',
        'main .description',
        'main .markdown',
        '.job-listing .description',
        '.job-listing .markdown',
    ],
    'weworkremotely': [
        '.company-card',
        '.job-description',
        '.description',
        '.content',
        'article',
        '.job-details',
        '.company-description',
    ],
    'un-careers': [
        '#jd-content',
        '.job-description',
        '.jobdescription',
        '#ctl00_MainContent_lblJobDescription',
        '.description',
        'article',
        'main',
    ],
}

# Hostnames mapped onto DETAIL_SELECTORS keys, for URLs with no known source id
HOST_STRATEGIES = {
    'remoteok.com': 'remoteok',
    'remoteok.io': 'remoteok',
    'weworkremotely.com': 'weworkremotely',
    'careers.un.org': 'un-careers',
}


def selectors_for(
    source_key: Optional[str] = None,
    url: Optional[str] = None,
    overrides: Optional[Sequence[str]] = None
) -> List[str]:
    """
    Ranked selector list for a detail page.

    Operator overrides come first, then the site strategy picked by source
    key (or by hostname), else the generic list.
    """
    strategy = None
    if source_key:
        strategy = DETAIL_SELECTORS.get(source_key.lower())
    if strategy is None and url:
        key = HOST_STRATEGIES.get(url_host(url))
        strategy = DETAIL_SELECTORS.get(key) if key else None

    selectors = list(overrides or [])
    selectors.extend(strategy or GENERIC_SELECTORS)
    return selectors


def extract_description(html: str, selectors: Sequence[str]) -> Optional[str]:
    """
    Pull the longest-looking description out of a detail page.

    Tiers, first hit wins:
    1. first selector whose cleaned text exceeds MIN_SELECTOR_LENGTH
    2. a main content container, boilerplate stripped, over MIN_CONTAINER_LENGTH
    3. all paragraphs over MIN_PARAGRAPH_LENGTH, joined by blank lines
    """
    soup = make_soup(html)

    for selector in selectors:
        element = safe_select_one(soup, selector)
        if element is None:
            continue
        text = clean_description_text(element.get_text(separator='\n'))
        if len(text) > MIN_SELECTOR_LENGTH:
            logger.debug(f"[enrich] Found description with selector '{selector}': {len(text)} characters")
            return text[:MAX_DESCRIPTION_LENGTH]

    for selector in FALLBACK_CONTAINERS:
        container = safe_select_one(soup, selector)
        if container is None:
            continue
        remove_nodes(container, UNWANTED_SELECTOR)
        text = clean_description_text(container.get_text(separator='\n'))
        if len(text) > MIN_CONTAINER_LENGTH:
            logger.debug(f"[enrich] Found fallback description with selector '{selector}': {len(text)} characters")
            return text[:MAX_DESCRIPTION_LENGTH]

    paragraphs = [node_text(p) for p in safe_select(soup, 'p')]
    paragraphs = [p for p in paragraphs if len(p) > MIN_PARAGRAPH_LENGTH]
    if paragraphs:
        text = clean_description_text('\n\n'.join(paragraphs))
        if len(text) > MIN_SELECTOR_LENGTH:
            logger.debug(f"[enrich] Found description from paragraphs: {len(text)} characters")
            return text[:MAX_DESCRIPTION_LENGTH]

    return None


class DetailPageEnricher:
    """Follows listing links to recover full descriptions"""

    def __init__(
        self,
        http_client: Optional[HTTPClient] = None,
        limiter: Optional[PolitenessLimiter] = None,
        timeout: Optional[float] = None,
        retries: int = 2,
        backoff_ms: int = 1000
    ):
        self.http = http_client or HTTPClient()
        self.limiter = limiter
        self.timeout = timeout or float(os.getenv('SCRAPER_DETAIL_TIMEOUT', DETAIL_TIMEOUT))
        self.retries = retries
        self.backoff_ms = backoff_ms

    async def fetch_description(
        self,
        url: Optional[str],
        source_key: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        overrides: Optional[Sequence[str]] = None
    ) -> Optional[str]:
        """
        Fetch a detail page and extract its description.

        Returns None on any fetch or parse problem.
        """
        if not url:
            return None

        if self.limiter:
            await self.limiter.wait()

        try:
            html = await self.http.fetch_html(
                url,
                headers=headers,
                retries=self.retries,
                backoff_ms=self.backoff_ms,
                timeout=self.timeout
            )
        except FetchError as e:
            logger.warning(f"[enrich] Failed to fetch {url}: {e}")
            return None
        except Exception as e:
            logger.warning(f"[enrich] Error fetching {url!r}: {e.__class__.__name__}: {e}")
            return None

        try:
            description = extract_description(html, selectors_for(source_key, url, overrides))
        except Exception as e:
            logger.warning(f"[enrich] Error parsing detail page {url}: {e}")
            return None

        if not description:
            logger.info(f"[enrich] No substantial description found for {url}")
        return description

    async def enrich(
        self,
        opportunity: ScrapedOpportunity,
        source_key: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        overrides: Optional[Sequence[str]] = None
    ) -> ScrapedOpportunity:
        """
        Replace the listing description with the detail-page one if it is longer.

        The opportunity is updated in place and returned.
        """
        full_description = await self.fetch_description(
            opportunity.application_url, source_key, headers, overrides
        )
        if full_description and len(full_description) > len(opportunity.description or ''):
            logger.info(
                f"[enrich] Enhanced description for {opportunity.title[:60]}: "
                f"{len(opportunity.description or '')} -> {len(full_description)} characters"
            )
            opportunity.description = full_description
        return opportunity
