"""
Structured extraction plugin.

Walks the "card" containers named by a source's selector recipe and reads
title, description, deadline, location and link out of each card.
"""
from typing import List

from core.html import node_text, safe_select, safe_select_one
from core.normalize import collapse_whitespace
from pipeline.models import ScrapedOpportunity
from .base import ExtractionPlugin, ExtractionContext, PluginResult


class StructuredSelectorPlugin(ExtractionPlugin):
    """Selector-driven extraction for sources with a recipe"""

    def __init__(self):
        super().__init__(name="selectors", priority=100)

    def can_handle(self, context: ExtractionContext) -> bool:
        return context.source.selectors is not None

    async def extract(self, html: str, context: ExtractionContext) -> PluginResult:
        return PluginResult(self.extract_sync(html, context), plugin=self.name)

    def extract_sync(self, html: str, context: ExtractionContext) -> List[ScrapedOpportunity]:
        """
        Extract opportunities from every matching container.

        Containers missing a title or description node, or whose text is too
        short, are skipped. Never raises for markup problems.
        """
        source = context.source
        selectors = source.selectors
        soup = self.get_soup(html)

        containers = safe_select(soup, selectors.container)
        self.logger.debug(f"[extract] {len(containers)} containers matched '{selectors.container}' on {context.page_url}")

        opportunities = []
        for container in containers:
            opportunity = self.build_opportunity(
                safe_select_one(container, selectors.title),
                safe_select_one(container, selectors.description),
                safe_select_one(container, selectors.link),
                context,
                source.min_description_length
            )
            if opportunity is None:
                continue

            if selectors.deadline:
                deadline = collapse_whitespace(node_text(safe_select_one(container, selectors.deadline)))
                opportunity.deadline = deadline or None
            if selectors.location:
                location = collapse_whitespace(node_text(safe_select_one(container, selectors.location)))
                opportunity.location = location or None

            opportunities.append(opportunity)

        if source.max_results_per_page:
            opportunities = opportunities[:source.max_results_per_page]

        self.logger.info(f"[extract] Extracted {len(opportunities)} opportunities using selectors for {source.name}")
        return opportunities
