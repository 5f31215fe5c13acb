"""
Bulk job-board scraper.

A bulk config lists job boards, each with a selector recipe for its listing
cards ({container, title, company, location, date, url, description, tags,
detailDescription}). Cards need a title and a company; descriptions are
then enriched from each job's own page.
"""
import logging
from typing import Any, Dict, List, Optional

from core.html import make_soup, node_text, safe_select, safe_select_one
from core.net import HTTPClient, PolitenessLimiter, DEFAULT_BACKOFF_MS
from core.normalize import collapse_whitespace, resolve_url
from crawler.detail_enricher import DetailPageEnricher
from pipeline.models import ScrapedOpportunity

logger = logging.getLogger(__name__)

MAX_LISTING_DESCRIPTION = 1000
DETAIL_DELAY_MS = 500

# Website names that map onto a detail-page selector strategy
WEBSITE_STRATEGIES = {
    'remoteok': 'remoteok',
    'we work remotely': 'weworkremotely',
    'weworkremotely': 'weworkremotely',
}


def website_strategy(website: Dict[str, Any]) -> Optional[str]:
    """Detail selector strategy key for a bulk website entry"""
    for key in (website.get('type'), website.get('name')):
        if key and str(key).lower() in WEBSITE_STRATEGIES:
            return WEBSITE_STRATEGIES[str(key).lower()]
    return None


def detail_overrides(website: Dict[str, Any]) -> List[str]:
    """Operator-provided detail description selectors, first in line"""
    value = (website.get('selectors') or {}).get('detailDescription')
    if not value:
        return []
    return list(value) if isinstance(value, (list, tuple)) else [value]


class BulkScraper:
    """Scrapes the websites listed in a bulk scraping config"""

    def __init__(
        self,
        http_client: Optional[HTTPClient] = None,
        enrich_details: bool = True,
        detail_delay_ms: int = DETAIL_DELAY_MS,
        backoff_ms: int = DEFAULT_BACKOFF_MS,
        detail_timeout: Optional[float] = None
    ):
        self.http = http_client or HTTPClient()
        self.enrich_details = enrich_details
        self.detail_timeout = detail_timeout
        self.detail_delay_ms = detail_delay_ms
        self.backoff_ms = backoff_ms

    def extract_listings(self, html: str, website: Dict[str, Any]) -> List[ScrapedOpportunity]:
        """Read job cards off a listing page; cards without title or company are skipped"""
        selectors = website.get('selectors') or {}
        website_url = website.get('url') or ''
        soup = make_soup(html)

        listings = []
        for container in safe_select(soup, selectors.get('container')):
            title = collapse_whitespace(node_text(safe_select_one(container, selectors.get('title'))))
            company = collapse_whitespace(node_text(safe_select_one(container, selectors.get('company'))))
            if not title or not company:
                continue

            tags = [node_text(tag) for tag in safe_select(container, selectors.get('tags'))]
            url_node = safe_select_one(container, selectors.get('url'))
            job_url = resolve_url(url_node.get('href'), website_url) if url_node is not None else None
            description = collapse_whitespace(node_text(safe_select_one(container, selectors.get('description'))))
            location = collapse_whitespace(node_text(safe_select_one(container, selectors.get('location'))))
            posted = collapse_whitespace(node_text(safe_select_one(container, selectors.get('date'))))

            listings.append(ScrapedOpportunity(
                title=title,
                description=description[:MAX_LISTING_DESCRIPTION],
                organization=company,
                source_url=job_url or website_url,
                application_url=job_url or website_url,
                location=location or None,
                posted_date=posted or 'Just posted',
                tags=[tag for tag in tags if tag],
            ))

        return listings

    async def scrape_website(self, website: Dict[str, Any]) -> List[ScrapedOpportunity]:
        """
        Fetch, extract and enrich one website.

        Raises:
            FetchError: if the listing page cannot be fetched
        """
        name = website.get('name') or website.get('url')
        html = await self.http.fetch_html(
            website['url'],
            headers=website.get('headers'),
            backoff_ms=self.backoff_ms
        )
        listings = self.extract_listings(html, website)
        logger.info(f"[bulk] {name}: {len(listings)} listings extracted")

        if self.enrich_details and listings:
            enricher = DetailPageEnricher(
                self.http,
                limiter=PolitenessLimiter(self.detail_delay_ms),
                timeout=self.detail_timeout,
                backoff_ms=self.backoff_ms
            )
            strategy = website_strategy(website)
            overrides = detail_overrides(website)
            for listing in listings:
                await enricher.enrich(listing, source_key=strategy, overrides=overrides)

        return listings
