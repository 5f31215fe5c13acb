"""
Heuristic extraction plugin.

Last-resort extraction using common opportunity class-name patterns.
This is the default plugin when no selectors are configured and the AI
plugin is unavailable or failed.
"""
from .base import ExtractionPlugin, ExtractionContext, PluginResult
from core.html import safe_select, safe_select_one

# Candidate container groups, tried in order; the first group that yields
# anything wins
OPPORTUNITY_SELECTORS = [
    '.job, .opportunity, .position, .vacancy, .career',
    'article, .article',
    '.listing, .item',
    '[class*="job"], [class*="career"], [class*="opportunity"]',
]

TITLE_SELECTOR = 'h1, h2, h3, h4, .title, [class*="title"]'
DESCRIPTION_SELECTOR = 'p, .description, .summary, [class*="desc"]'

MIN_DESCRIPTION_LENGTH = 30
MAX_RESULTS = 15


class HeuristicPlugin(ExtractionPlugin):
    """Generic fallback plugin for opportunity extraction"""

    fallback = True

    def __init__(self):
        super().__init__(name="heuristic", priority=10)  # Low priority - fallback only

    def can_handle(self, context: ExtractionContext) -> bool:
        """Heuristic plugin can always handle (as fallback)"""
        return True

    async def extract(self, html: str, context: ExtractionContext) -> PluginResult:
        """
        Extract opportunities using generic patterns.

        Returns:
            PluginResult with at most MAX_RESULTS opportunities
        """
        soup = self.get_soup(html)
        opportunities = []

        for selector in OPPORTUNITY_SELECTORS:
            for element in safe_select(soup, selector):
                opportunity = self.build_opportunity(
                    safe_select_one(element, TITLE_SELECTOR),
                    safe_select_one(element, DESCRIPTION_SELECTOR),
                    safe_select_one(element, 'a'),
                    context,
                    MIN_DESCRIPTION_LENGTH
                )
                if opportunity:
                    opportunities.append(opportunity)

            if opportunities:
                self.logger.debug(f"[extract] Heuristic group '{selector}' matched {len(opportunities)}")
                break

        return PluginResult(opportunities[:MAX_RESULTS], plugin=self.name)
