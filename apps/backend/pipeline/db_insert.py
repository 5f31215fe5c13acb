"""
Publication writer.

Turns scraped opportunities into catalog rows: dedup check, category
mapping, deadline normalization, then an insert of the opportunity and its
content hash in one transaction. Automated sources are trusted, so rows go
in approved and published.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Any, Iterable

from core.job_categorizer import OpportunityCategorizer
from core.normalize import parse_deadline
from pipeline.dedup import DedupEngine, REFRESH_MARGIN, compute_content_hash, should_replace_description
from pipeline.models import ScrapedOpportunity, PublishOutcome, PublishCounts

logger = logging.getLogger(__name__)

# Source tags written to opportunities.source
SOURCE_SCRAPED = 'scraped'
SOURCE_SPECIFIC = 'scraped_specific'
SOURCE_BULK = 'bulk_scraped'


class PublicationWriter:
    """Writes scraped opportunities to the catalog."""

    def __init__(self, store, categorizer: Optional[OpportunityCategorizer] = None):
        """
        Args:
            store: ScrapeStore (or any object with the same methods)
            categorizer: Preloaded categorizer; loaded from the store on first use otherwise
        """
        self.store = store
        self.dedup = DedupEngine(store)
        self._categorizer = categorizer

    @property
    def categorizer(self) -> OpportunityCategorizer:
        if self._categorizer is None:
            self._categorizer = OpportunityCategorizer(self.store.list_categories())
        return self._categorizer

    def build_row(self, opportunity: ScrapedOpportunity, category_id: str, source_tag: str) -> Dict[str, Any]:
        """Map an opportunity onto opportunities table columns"""
        return {
            'title': opportunity.title,
            'description': opportunity.description,
            'organization': opportunity.organization,
            'location': opportunity.location,
            'category_id': category_id,
            'application_url': opportunity.application_url,
            'application_deadline': parse_deadline(opportunity.deadline),
            'source_url': opportunity.source_url,
            'source': source_tag,
            'status': 'approved',
            'is_published': True,
            'published_at': datetime.now(timezone.utc),
        }

    def publish(
        self,
        opportunity: ScrapedOpportunity,
        source_tag: str = SOURCE_SCRAPED,
        source_id: Optional[str] = None,
        category_mapping: Optional[Dict] = None
    ) -> PublishOutcome:
        """
        Publish one opportunity.

        Never raises: database problems are logged and reported as FAILED so
        the caller can move on to the next candidate.
        """
        try:
            content_hash, is_duplicate = self.dedup.check(opportunity)
            if is_duplicate:
                return PublishOutcome.DUPLICATE

            category_id = self.categorizer.categorize(
                opportunity.title,
                opportunity.description,
                source_id=source_id,
                category_mapping=category_mapping
            )
            if not category_id:
                logger.warning(f"[publish] No category found for opportunity: {opportunity.title[:80]}")
                return PublishOutcome.UNCLASSIFIED

            row = self.build_row(opportunity, category_id, source_tag)
            opportunity_id = self.store.insert_opportunity_with_hash(row, content_hash)
            if opportunity_id is None:
                logger.info(f"[publish] Duplicate (concurrent insert): {opportunity.title[:80]}")
                return PublishOutcome.DUPLICATE

            logger.info(f"[publish] Published: {opportunity.title[:80]} ({opportunity_id})")
            return PublishOutcome.INSERTED

        except Exception as e:
            logger.error(f"[publish] Error processing opportunity: {opportunity.title[:80]}: {e}", exc_info=True)
            return PublishOutcome.FAILED

    def publish_all(
        self,
        opportunities: Iterable[ScrapedOpportunity],
        source_tag: str = SOURCE_SCRAPED,
        source_id: Optional[str] = None,
        category_mapping: Optional[Dict] = None
    ) -> PublishCounts:
        counts = PublishCounts()
        for opportunity in opportunities:
            counts.record(self.publish(opportunity, source_tag, source_id, category_mapping))
        return counts

    def compose_description(self, opportunity: ScrapedOpportunity) -> str:
        """Listing description, or a synthesized one for listings without text"""
        if opportunity.description:
            return opportunity.description
        return (
            f"{opportunity.title} position at {opportunity.organization}. "
            f"Location: {opportunity.location or 'Remote/Not specified'}. "
            f"Tags: {', '.join(opportunity.tags) or 'None specified'}."
        )

    def publish_or_refresh(self, opportunity: ScrapedOpportunity, category_id: str, website_name: str) -> PublishOutcome:
        """
        Bulk-import path.

        An existing row with a matching title/organization prefix is updated
        only when the new description is longer by more than REFRESH_MARGIN
        chars; otherwise a new row is inserted under `category_id`.
        """
        description = self.compose_description(opportunity)
        now = datetime.now(timezone.utc)
        try:
            existing = self.dedup.find_near_duplicate(opportunity)
            if existing:
                if not should_replace_description(existing.get('description'), description, REFRESH_MARGIN):
                    logger.debug(f"[publish] Skipping update; existing description is similar/longer: {opportunity.title[:80]}")
                    return PublishOutcome.SKIPPED

                metadata = dict(existing.get('metadata') or {})
                metadata.update({
                    'source_website': website_name,
                    'posted_date': opportunity.posted_date,
                    'last_rescraped_at': now.isoformat(),
                })
                self.store.update_opportunity(existing['id'], {
                    'description': description,
                    'location': opportunity.location or 'Remote',
                    'source_url': opportunity.application_url,
                    'application_url': opportunity.application_url,
                    'tags': opportunity.tags or None,
                    'metadata': metadata,
                })
                logger.info(f"[publish] Updated description for existing opportunity: {opportunity.title[:80]}")
                return PublishOutcome.UPDATED

            row = {
                'title': opportunity.title,
                'description': description,
                'organization': opportunity.organization,
                'location': opportunity.location or 'Remote',
                'category_id': category_id,
                'application_url': opportunity.application_url,
                'source_url': opportunity.application_url,
                'source': SOURCE_BULK,
                'status': 'approved',
                'is_published': True,
                'published_at': now,
                'tags': opportunity.tags or None,
                'metadata': {
                    'source_website': website_name,
                    'posted_date': opportunity.posted_date,
                    'scraped_at': now.isoformat(),
                },
            }
            content_hash = compute_content_hash(opportunity.title, description)
            opportunity_id = self.store.insert_opportunity_with_hash(row, content_hash)
            if opportunity_id is None:
                return PublishOutcome.DUPLICATE

            logger.info(f"[publish] Published: {opportunity.title[:80]} at {opportunity.organization} ({opportunity_id})")
            return PublishOutcome.INSERTED

        except Exception as e:
            logger.error(f"[publish] Error publishing {opportunity.title[:80]}: {e}", exc_info=True)
            return PublishOutcome.FAILED
