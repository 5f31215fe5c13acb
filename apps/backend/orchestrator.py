"""
Scrape orchestrator with job bookkeeping and scheduling.

Runs sources one at a time: health check, multi-page scrape, enrichment,
dedup and publication, then writes the terminal job row, the source's
rolling success rate and the daily analytics aggregate. A failing source is
recorded and never stops the next one.
"""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Any

from app.config import ScraperSettings, get_settings
from app.source_health import SourceHealthChecker, next_success_rate, due_cutoff
from core.net import HTTPClient
from core.task_queue import BackgroundTaskQueue, get_task_queue
from crawler.bulk_scraper import BulkScraper
from crawler.plugins import PluginRegistry, get_plugin_registry
from crawler.source_configs import SourceConfig, ScrapingSource, get_all_source_configs
from crawler.source_scraper import SourceScraper
from pipeline.db_insert import PublicationWriter, SOURCE_SCRAPED, SOURCE_SPECIFIC
from pipeline.description_refresh import DescriptionRefresher
from pipeline.models import PublishCounts
from pipeline.storage import ScrapeStore

logger = logging.getLogger(__name__)

SCRAPING_JOBS = 'scraping_jobs'
BULK_SCRAPING_JOBS = 'bulk_scraping_jobs'
SCHEDULED_TASK = 'scheduled-dynamic-sources'


def _elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


class ScrapeOrchestrator:
    """Runs scrapes for static, dynamic and bulk sources"""

    def __init__(
        self,
        store,
        http_client: Optional[HTTPClient] = None,
        registry: Optional[PluginRegistry] = None,
        settings: Optional[ScraperSettings] = None,
        task_queue: Optional[BackgroundTaskQueue] = None
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.http = http_client or HTTPClient(timeout=self.settings.fetch_timeout)
        self.registry = registry or get_plugin_registry()
        self.health = SourceHealthChecker(self.http)
        self.task_queue = task_queue or get_task_queue()
        self.running = False
        self._scheduler_task: Optional[asyncio.Task] = None

    def _scraper(self, config: SourceConfig) -> SourceScraper:
        return SourceScraper(
            config,
            http_client=self.http,
            registry=self.registry,
            enrich_details=self.settings.enrich_details,
            detail_timeout=self.settings.detail_timeout
        )

    def _finish_job(self, table: str, job_id: Optional[str], fields: Dict[str, Any]):
        if not job_id:
            return
        try:
            self.store.finish_job(table, job_id, fields)
        except Exception as e:
            # Job row stays "running"; the run result is still returned
            logger.error(f"[orchestrator] Failed to update job {job_id}: {e}", exc_info=True)

    def _record_analytics(self, source_name: str, scraped: int, counts: PublishCounts, errors: int, elapsed_ms: int):
        try:
            self.store.record_analytics(
                source_name, scraped, counts.published, counts.duplicates, errors, elapsed_ms
            )
        except Exception as e:
            logger.error(f"[orchestrator] Failed to record analytics for {source_name}: {e}")

    # Static (curated) sources

    def create_specific_job(self, config: SourceConfig) -> str:
        return self.store.create_job(SCRAPING_JOBS, {'source_id': f"specific_{config.id}"})

    async def run_specific_source(self, config: SourceConfig, job_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Scrape one curated source end to end.

        Args:
            config: Static source config
            job_id: Existing scraping_jobs row (created here when omitted)

        Returns:
            Result summary; failures are reported in the summary, not raised
        """
        start_time = time.time()
        logger.info(f"[orchestrator] Starting specific scrape for: {config.name}")

        if job_id is None:
            job_id = self.create_specific_job(config)

        try:
            await self.health.ensure_healthy(config.listing_url, config.request_config.headers)
            opportunities = await self._scraper(config).scrape()
            writer = PublicationWriter(self.store)
            counts = writer.publish_all(opportunities, SOURCE_SPECIFIC, source_id=config.id)
        except Exception as e:
            elapsed = _elapsed_ms(start_time)
            logger.error(f"[orchestrator] Error scraping {config.name}: {e}")
            self._finish_job(SCRAPING_JOBS, job_id, {
                'status': 'failed',
                'error_message': str(e),
                'execution_time_ms': elapsed,
            })
            self._record_analytics(config.name, 0, PublishCounts(), 1, elapsed)
            return {
                'source': config.name,
                'job_id': job_id,
                'error': str(e),
                'scraped': 0,
                'published': 0,
                'health_status': 'unhealthy',
            }

        elapsed = _elapsed_ms(start_time)
        self._finish_job(SCRAPING_JOBS, job_id, {
            'status': 'completed',
            'opportunities_found': len(opportunities),
            'opportunities_published': counts.published,
            'duplicates_found': counts.duplicates,
            'errors_count': counts.errors,
            'execution_time_ms': elapsed,
        })
        self._record_analytics(config.name, len(opportunities), counts, counts.errors, elapsed)

        logger.info(
            f"[orchestrator] Specific scrape completed for {config.name}: "
            f"{len(opportunities)} found, {counts.published} published, {counts.duplicates} duplicates"
        )
        return {
            'source': config.name,
            'job_id': job_id,
            'scraped': len(opportunities),
            'published': counts.published,
            'duplicates': counts.duplicates,
            'unclassified': counts.unclassified,
            'errors': counts.errors,
            'execution_time': elapsed,
            'health_status': 'healthy',
        }

    async def run_all_specific(self, configs: Optional[List[SourceConfig]] = None) -> Dict[str, Any]:
        """Scrape every curated source sequentially, pausing between sources"""
        configs = configs if configs is not None else get_all_source_configs()
        results = []

        for index, config in enumerate(configs):
            try:
                results.append(await self.run_specific_source(config))
            except Exception as e:
                # Job creation itself failed
                logger.error(f"[orchestrator] Error scraping {config.name}: {e}", exc_info=True)
                results.append({'source': config.name, 'error': str(e), 'scraped': 0, 'published': 0})

            if index < len(configs) - 1 and self.settings.source_delay_ms > 0:
                await asyncio.sleep(self.settings.source_delay_ms / 1000.0)

        return {
            'message': 'Specific source scraping completed',
            'sources_processed': len(configs),
            'results': results,
        }

    # Dynamic (operator-managed) sources

    async def run_dynamic_source(self, source: ScrapingSource) -> Dict[str, Any]:
        """Scrape one database-configured source and update its success rate"""
        start_time = time.time()
        logger.info(f"[orchestrator] Starting scrape for: {source.name}")

        try:
            job_id = self.store.create_job(SCRAPING_JOBS, {'source_id': source.id})
        except Exception as e:
            logger.error(f"[orchestrator] Error creating job for {source.name}: {e}")
            return {'source': source.name, 'error': f"Could not create job: {e}", 'scraped': 0, 'published': 0}

        try:
            await self.health.ensure_healthy(source.url)
            opportunities = await self._scraper(source.to_source_config()).scrape()
            writer = PublicationWriter(self.store)
            counts = writer.publish_all(
                opportunities, SOURCE_SCRAPED, category_mapping=source.category_mapping
            )
        except Exception as e:
            elapsed = _elapsed_ms(start_time)
            logger.error(f"[orchestrator] Error scraping {source.name}: {e}")
            self._finish_job(SCRAPING_JOBS, job_id, {
                'status': 'failed',
                'error_message': str(e),
                'execution_time_ms': elapsed,
            })
            self._update_source(source, succeeded=False)
            self._record_analytics(source.name, 0, PublishCounts(), 1, elapsed)
            return {
                'source': source.name,
                'job_id': job_id,
                'error': str(e),
                'scraped': 0,
                'published': 0,
                'health_status': 'unhealthy',
            }

        elapsed = _elapsed_ms(start_time)
        self._finish_job(SCRAPING_JOBS, job_id, {
            'status': 'completed',
            'opportunities_found': len(opportunities),
            'opportunities_published': counts.published,
            'duplicates_found': counts.duplicates,
            'errors_count': counts.errors,
            'execution_time_ms': elapsed,
        })
        self._update_source(source, succeeded=True)
        self._record_analytics(source.name, len(opportunities), counts, counts.errors, elapsed)

        logger.info(
            f"[orchestrator] Scrape completed for {source.name}: "
            f"{len(opportunities)} found, {counts.published} published"
        )
        return {
            'source': source.name,
            'job_id': job_id,
            'scraped': len(opportunities),
            'published': counts.published,
            'duplicates': counts.duplicates,
            'execution_time': elapsed,
            'health_status': 'healthy',
        }

    def _update_source(self, source: ScrapingSource, succeeded: bool):
        new_rate = next_success_rate(source.success_rate, succeeded)
        fields: Dict[str, Any] = {'success_rate': new_rate}
        if succeeded:
            fields['last_scraped_at'] = datetime.now(timezone.utc)
        try:
            self.store.update_source(source.id, fields)
            source.success_rate = new_rate
        except Exception as e:
            logger.error(f"[orchestrator] Failed to update source {source.name}: {e}")

    async def run_dynamic_sources(self, source_id: Optional[str] = None, manual_trigger: bool = False) -> Dict[str, Any]:
        """
        Scrape database-configured sources.

        Args:
            source_id: Only this source
            manual_trigger: Ignore the freshness window and scrape every active source
        """
        due_before = None
        if not source_id and not manual_trigger:
            due_before = due_cutoff(self.settings.freshness_hours)

        rows = self.store.list_sources(source_id=source_id, due_before=due_before)
        if not rows:
            logger.info("[orchestrator] No sources to scrape")
            return {'message': 'No sources to scrape', 'sources_processed': 0, 'results': []}

        sources = [ScrapingSource.from_row(row) for row in rows]
        logger.info(f"[orchestrator] Processing {len(sources)} scraping sources")

        results = []
        for source in sources:
            results.append(await self.run_dynamic_source(source))

        return {
            'message': 'Scraping completed',
            'sources_processed': len(sources),
            'results': results,
        }

    # Bulk job boards

    def create_bulk_job(self, config_id: str) -> str:
        return self.store.create_job(BULK_SCRAPING_JOBS, {'config_id': config_id})

    async def run_bulk_config(self, config: Dict[str, Any], job_id: str) -> Dict[str, Any]:
        """Scrape every website of a bulk config and publish through the near-duplicate path"""
        total_found = 0
        total_published = 0
        total_errors = 0
        results: Dict[str, Any] = {}

        logger.info(f"[orchestrator] Starting bulk scraping for config: {config.get('name')}")
        try:
            bulk = BulkScraper(
                self.http,
                enrich_details=self.settings.enrich_details,
                detail_timeout=self.settings.detail_timeout
            )
            writer = PublicationWriter(self.store)
            category_id = self.store.ensure_default_category('jobs')

            for website in config.get('websites') or []:
                name = website.get('name') or website.get('url')
                try:
                    listings = await bulk.scrape_website(website)
                    counts = PublishCounts()
                    for listing in listings:
                        counts.record(writer.publish_or_refresh(listing, category_id, name))

                    total_found += len(listings)
                    total_published += counts.published
                    results[name] = {
                        'found': len(listings),
                        'published': counts.published,
                        'updated': counts.updated,
                        'status': 'completed',
                    }
                    logger.info(f"[orchestrator] {name}: Found {len(listings)}, Published {counts.published}")
                except Exception as e:
                    total_errors += 1
                    logger.error(f"[orchestrator] Error scraping {name}: {e}")
                    results[name] = {'found': 0, 'published': 0, 'status': 'failed', 'error': str(e)}

        except Exception as e:
            logger.error(f"[orchestrator] Bulk scraping failed: {e}", exc_info=True)
            self._finish_job(BULK_SCRAPING_JOBS, job_id, {
                'status': 'failed',
                'error_message': str(e),
                'results': results,
            })
            return {'job_id': job_id, 'status': 'failed', 'error': str(e), 'results': results}

        self._finish_job(BULK_SCRAPING_JOBS, job_id, {
            'status': 'completed',
            'total_jobs_found': total_found,
            'total_jobs_published': total_published,
            'errors_count': total_errors,
            'results': results,
        })
        logger.info(f"[orchestrator] Bulk scraping completed: {total_found} found, {total_published} published")
        return {
            'job_id': job_id,
            'status': 'completed',
            'total_jobs_found': total_found,
            'total_jobs_published': total_published,
            'errors_count': total_errors,
            'results': results,
        }

    async def refresh_descriptions(self, update_all: bool = False, limit: Optional[int] = None) -> Dict[str, Any]:
        refresher = DescriptionRefresher(self.store, detail_timeout=self.settings.detail_timeout)
        return await refresher.refresh(update_all=update_all, limit=limit)

    # Scheduler

    async def scheduler_loop(self):
        """Queue a due-sources run every interval"""
        logger.info("[orchestrator] Scheduler started")
        while self.running:
            if self.task_queue.has_pending(SCHEDULED_TASK):
                logger.info("[orchestrator] Previous scheduled run still pending, skipping this tick")
            else:
                self.task_queue.submit(SCHEDULED_TASK, lambda: self.run_dynamic_sources())
            await asyncio.sleep(self.settings.scheduler_interval)
        logger.info("[orchestrator] Scheduler stopped")

    async def start(self):
        """Start the scheduler"""
        if self.settings.scheduler_disabled:
            logger.info("[orchestrator] Scheduler disabled by SCRAPER_DISABLE_SCHEDULER")
            return
        if self.running:
            return
        self.running = True
        self._scheduler_task = asyncio.create_task(self.scheduler_loop())
        logger.info("[orchestrator] Scheduler task created")

    async def stop(self):
        """Stop the scheduler"""
        self.running = False
        if self._scheduler_task:
            self._scheduler_task.cancel()
            try:
                await self._scheduler_task
            except asyncio.CancelledError:
                pass
            self._scheduler_task = None
        logger.info("[orchestrator] Scheduler stopping...")


# Global instance
_orchestrator: Optional[ScrapeOrchestrator] = None


def get_orchestrator() -> ScrapeOrchestrator:
    """Get or create orchestrator instance"""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ScrapeOrchestrator(ScrapeStore())
    return _orchestrator


async def start_scheduler():
    """Start the scrape scheduler (call from FastAPI startup)"""
    orchestrator = get_orchestrator()
    await orchestrator.start()


async def stop_scheduler():
    """Stop the scrape scheduler (call from FastAPI shutdown)"""
    if _orchestrator:
        await _orchestrator.stop()
