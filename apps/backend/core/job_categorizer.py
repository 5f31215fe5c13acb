"""
Opportunity categorization.

Maps a scraped opportunity onto one of the catalog categories
(jobs, scholarships, fellowships, internships, ...) using, in order:
- a per-source override table for the curated sources
- the source's own `category_mapping.keywords` dictionary
- generic keyword rules over title + description
- the source's `category_mapping.default_category`
- "jobs", then any existing category
"""
import logging
from typing import Optional, Dict, List, Tuple

logger = logging.getLogger(__name__)


class OpportunityCategorizer:
    """
    Keyword-based categorizer over the catalog's category table.

    The categorizer only returns ids that exist in `categories`; a rule whose
    category is missing from the catalog falls through to the next rule.
    """

    # Curated sources whose listings all belong to one category
    SOURCE_CATEGORIES: Dict[str, str] = {
        'un-careers': 'jobs',
        'unicef-careers': 'jobs',
        'world-bank': 'fellowships',
        'african-union': 'jobs',
        'unesco': 'fellowships',
        'daad': 'scholarships',
        'mastercard-foundation': 'scholarships',
        'commonwealth': 'scholarships',
    }

    # Generic rules: (keywords, category name); first match wins
    KEYWORD_RULES: List[Tuple[List[str], str]] = [
        (['scholarship', 'study'], 'scholarships'),
        (['fellowship', 'research'], 'fellowships'),
        (['internship'], 'internships'),
        (['job', 'position', 'officer'], 'jobs'),
    ]

    DEFAULT_CATEGORY = 'jobs'

    def __init__(self, categories: Dict[str, str]):
        """
        Args:
            categories: lower-cased category name -> category id
        """
        self.categories = {name.lower(): cat_id for name, cat_id in (categories or {}).items()}

    def _lookup(self, name: Optional[str]) -> Optional[str]:
        if not name:
            return None
        return self.categories.get(str(name).lower())

    def categorize(
        self,
        title: str,
        description: str,
        source_id: Optional[str] = None,
        category_mapping: Optional[Dict] = None
    ) -> Optional[str]:
        """
        Pick a category id for an opportunity.

        Args:
            title: Opportunity title
            description: Opportunity description
            source_id: Static source config id (for the override table)
            category_mapping: Dynamic source mapping {"keywords": {...}, "default_category": "..."}

        Returns:
            Category id, or None only when the catalog has no categories
        """
        if not self.categories:
            logger.warning("[categorize] Category catalog is empty")
            return None

        text = f"{title or ''} {description or ''}".lower()
        mapping = category_mapping or {}

        # (a) source override
        if source_id and source_id in self.SOURCE_CATEGORIES:
            category_id = self._lookup(self.SOURCE_CATEGORIES[source_id])
            if category_id:
                return category_id

        # (b) source keyword dictionary
        keywords = mapping.get('keywords') or {}
        if isinstance(keywords, dict):
            for keyword, category_name in keywords.items():
                if keyword and str(keyword).lower() in text:
                    category_id = self._lookup(category_name)
                    if category_id:
                        return category_id

        # (c) generic rules
        for rule_keywords, category_name in self.KEYWORD_RULES:
            if any(keyword in text for keyword in rule_keywords):
                category_id = self._lookup(category_name)
                if category_id:
                    return category_id
                break

        # (d) configured default
        category_id = self._lookup(mapping.get('default_category'))
        if category_id:
            return category_id

        category_id = self._lookup(self.DEFAULT_CATEGORY)
        if category_id:
            return category_id

        # Catalog has categories but none of the expected ones
        fallback = next(iter(self.categories.values()))
        logger.debug(f"[categorize] No rule matched '{(title or '')[:50]}', using first category")
        return fallback
