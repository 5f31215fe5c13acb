"""
Per-source scraper.

Walks a source's listing pages, runs the extraction chain on each page,
enriches listings from their detail pages and applies the source's keyword
filters. One PolitenessLimiter per run spaces out every request to the site.
"""
import os
import logging
from typing import List, Optional

from core.net import HTTPClient, PolitenessLimiter
from crawler.detail_enricher import DetailPageEnricher
from crawler.plugins import ExtractionContext, PluginRegistry, get_plugin_registry
from crawler.source_configs import SourceConfig
from pipeline.models import ScrapedOpportunity

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str = 'true') -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class SourceScraper:
    """Scrapes every listing page of one source"""

    def __init__(
        self,
        config: SourceConfig,
        http_client: Optional[HTTPClient] = None,
        registry: Optional[PluginRegistry] = None,
        enricher: Optional[DetailPageEnricher] = None,
        limiter: Optional[PolitenessLimiter] = None,
        enrich_details: Optional[bool] = None,
        detail_timeout: Optional[float] = None
    ):
        self.config = config
        self.http = http_client or HTTPClient()
        self.registry = registry or get_plugin_registry()
        self.limiter = limiter or PolitenessLimiter(config.request_config.delay)
        self.enricher = enricher or DetailPageEnricher(self.http, limiter=self.limiter, timeout=detail_timeout)
        self.enrich_details = enrich_details if enrich_details is not None else _env_flag('SCRAPER_ENRICH_DETAILS')

    async def fetch_page(self, url: str) -> str:
        """Fetch one listing page; FetchError propagates after retries"""
        await self.limiter.wait()
        return await self.http.fetch_html(
            url,
            headers=self.config.request_config.headers,
            retries=self.config.request_config.retries
        )

    async def scrape_page(self, url: str, page: int = 1) -> List[ScrapedOpportunity]:
        html = await self.fetch_page(url)
        context = ExtractionContext(source=self.config, page_url=url)
        # Fallback extractors only look at the first page; later pages of a
        # fallback-extracted source would repeat the same guesses
        result = await self.registry.extract(html, context, allow_fallback=(page == 1))
        return result.opportunities

    async def scrape(self) -> List[ScrapedOpportunity]:
        """
        Scrape all pages, enrich and filter.

        Stops at the first page that yields nothing. A FetchError on any page
        aborts the run and propagates to the orchestrator.

        Returns:
            Opportunities that passed the source's keyword filters
        """
        logger.info(f"[scrape] Starting scrape for {self.config.name} ({self.config.max_pages} page(s))")
        opportunities: List[ScrapedOpportunity] = []

        for page in range(1, self.config.max_pages + 1):
            url = self.config.page_url(page)
            logger.info(f"[scrape] Scraping page {page} for {self.config.name}: {url}")

            page_opportunities = await self.scrape_page(url, page)
            if not page_opportunities:
                logger.info(f"[scrape] No opportunities found on page {page}, stopping")
                break
            opportunities.extend(page_opportunities)

        if self.enrich_details:
            for opportunity in opportunities:
                await self.enricher.enrich(
                    opportunity,
                    source_key=self.config.id,
                    headers=self.config.request_config.headers
                )

        accepted = [opp for opp in opportunities if self.config.filters.allows(opp.combined_text)]
        rejected = len(opportunities) - len(accepted)
        if rejected:
            logger.debug(f"[scrape] {rejected} opportunities rejected by keyword filters for {self.config.name}")

        logger.info(f"[scrape] Completed scraping {self.config.name}: {len(accepted)} opportunities found")
        return accepted
