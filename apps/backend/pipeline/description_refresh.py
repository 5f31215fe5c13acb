"""
Refresh descriptions of already-published scraped opportunities.

Re-fetches each opportunity's source (or application) page through the
detail-page enricher and overwrites the stored description only when the
fetched text is longer.
"""
import logging
from typing import Any, Dict, Optional

from core.net import PolitenessLimiter
from crawler.detail_enricher import DetailPageEnricher
from pipeline.dedup import should_replace_description

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
REFRESH_DELAY_MS = 500


class DescriptionRefresher:
    def __init__(
        self,
        store,
        enricher: Optional[DetailPageEnricher] = None,
        detail_timeout: Optional[float] = None
    ):
        self.store = store
        self.enricher = enricher or DetailPageEnricher(
            limiter=PolitenessLimiter(REFRESH_DELAY_MS),
            timeout=detail_timeout
        )

    async def refresh(self, update_all: bool = False, limit: Optional[int] = None) -> Dict[str, Any]:
        """
        Args:
            update_all: Refresh every scraped opportunity, not just short descriptions
            limit: Max opportunities to process (default 10)

        Returns:
            {message, total, updated, errors, results}
        """
        limit = limit or DEFAULT_LIMIT
        logger.info(f"[refresh] Starting description refresh (update_all={update_all}, limit={limit})")

        opportunities = self.store.list_opportunities_for_refresh(update_all=update_all, limit=limit)
        if not opportunities:
            return {'message': 'No opportunities to update', 'total': 0, 'updated': 0, 'errors': 0, 'results': []}

        updated = 0
        error_count = 0
        results = []

        for opp in opportunities:
            opp_id = str(opp['id'])
            url = opp.get('source_url') or opp.get('application_url')
            current = opp.get('description') or ''
            try:
                description = await self.enricher.fetch_description(url)
                if description and should_replace_description(current, description):
                    self.store.update_opportunity(opp_id, {'description': description})
                    updated += 1
                    results.append({'id': opp_id, 'title': opp.get('title'), 'status': 'updated',
                                    'old_length': len(current), 'new_length': len(description)})
                    logger.info(f"[refresh] Updated description for opportunity {opp_id}")
                else:
                    results.append({'id': opp_id, 'title': opp.get('title'), 'status': 'unchanged'})
            except Exception as e:
                error_count += 1
                results.append({'id': opp_id, 'title': opp.get('title'), 'status': 'error', 'error': str(e)})
                logger.error(f"[refresh] Error processing opportunity {opp_id}: {e}")

        return {
            'message': 'Update completed',
            'total': len(opportunities),
            'updated': updated,
            'errors': error_count,
            'results': results,
        }
