"""
AI extraction plugin.

Wraps AIOpportunityExtractor as one more extraction strategy. Only tried
when an LLM key is configured; failures raise ExtractionError so the
registry moves on to the heuristic plugin.
"""
from typing import Optional

from core.ai_extractor import AIOpportunityExtractor
from pipeline.models import ScrapedOpportunity
from .base import ExtractionPlugin, ExtractionContext, PluginResult


class AIExtractionPlugin(ExtractionPlugin):
    """LLM-backed extraction for pages without usable selectors"""

    fallback = True

    def __init__(self, extractor: Optional[AIOpportunityExtractor] = None):
        super().__init__(name="ai", priority=50)
        self.extractor = extractor or AIOpportunityExtractor()

    def can_handle(self, context: ExtractionContext) -> bool:
        return self.extractor.enabled

    async def extract(self, html: str, context: ExtractionContext) -> PluginResult:
        items = await self.extractor.extract_opportunities(html, context.source.name, context.page_url)
        opportunities = [
            ScrapedOpportunity.from_dict(item, context.source.name, context.page_url)
            for item in items
        ]
        return PluginResult(opportunities, plugin=self.name)
