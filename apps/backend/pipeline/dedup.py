"""
Content deduplication.

Opportunities are fingerprinted with SHA-256 over their normalized title and
description. Matching is exact: two listings collide only when their text is
identical after whitespace normalization.
"""
import hashlib
import logging
from typing import Optional, Tuple

from core.normalize import collapse_whitespace
from pipeline.models import ScrapedOpportunity

logger = logging.getLogger(__name__)

# Near-duplicate refreshes only overwrite when the new text is this much longer
REFRESH_MARGIN = 50


def compute_content_hash(title: Optional[str], description: Optional[str]) -> str:
    """SHA-256 hex digest of normalized title + description"""
    content = collapse_whitespace(title) + collapse_whitespace(description)
    return hashlib.sha256(content.encode('utf-8')).hexdigest()


def should_replace_description(current: Optional[str], candidate: Optional[str], margin: int = 0) -> bool:
    """True when candidate is longer than current by more than `margin` chars"""
    return len(candidate or '') > len(current or '') + margin


class DedupEngine:
    """Exact-hash duplicate check against the stored hash index"""

    def __init__(self, store):
        self.store = store

    def check(self, opportunity: ScrapedOpportunity) -> Tuple[str, bool]:
        """
        Fingerprint an opportunity and look it up.

        Returns:
            (content_hash, is_duplicate)
        """
        content_hash = compute_content_hash(opportunity.title, opportunity.description)
        is_duplicate = self.store.hash_exists(content_hash)
        if is_duplicate:
            logger.info(f"[dedup] Duplicate found: {opportunity.title[:80]}")
        return content_hash, is_duplicate

    def find_near_duplicate(self, opportunity: ScrapedOpportunity) -> Optional[dict]:
        """Existing row with the same title/organization prefix, if any"""
        return self.store.find_similar_opportunity(opportunity.title, opportunity.organization)
