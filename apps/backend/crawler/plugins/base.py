"""
Base plugin interface for opportunity extraction.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Dict, Optional

from bs4 import BeautifulSoup

from core.html import make_soup, node_text
from core.normalize import collapse_whitespace, resolve_url
from crawler.source_configs import SourceConfig
from pipeline.models import ScrapedOpportunity

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 10


@dataclass
class ExtractionContext:
    """What an extractor knows about the page it is looking at"""
    source: SourceConfig
    page_url: str


class PluginResult:
    """Result from plugin extraction"""
    def __init__(
        self,
        opportunities: List[ScrapedOpportunity],
        plugin: Optional[str] = None,
        message: Optional[str] = None,
        metadata: Optional[Dict] = None
    ):
        self.opportunities = opportunities
        self.plugin = plugin
        self.message = message
        self.metadata = metadata or {}

    def is_success(self) -> bool:
        """Check if extraction was successful"""
        return len(self.opportunities) > 0

    def __repr__(self):
        return f"PluginResult(opportunities={len(self.opportunities)}, plugin={self.plugin})"


class ExtractionPlugin(ABC):
    """
    Base class for extraction plugins.

    Plugins are interchangeable strategies for turning a listing page into
    ScrapedOpportunity records. Each plugin should:
    1. Determine if it can handle a given source/page
    2. Extract opportunities, returning an empty result when nothing is found

    Fallback plugins only run on the first page of a source; later pages are
    read with the source's own selectors.
    """

    fallback = False

    def __init__(self, name: str, priority: int = 50):
        """
        Initialize plugin.

        Args:
            name: Plugin name (e.g., 'selectors', 'ai', 'heuristic')
            priority: Priority (higher = tried first, default 50)
        """
        self.name = name
        self.priority = priority
        self.logger = logging.getLogger(f"{__name__}.{name}")

    @abstractmethod
    def can_handle(self, context: ExtractionContext) -> bool:
        """Check if this plugin should be tried for this source"""
        pass

    @abstractmethod
    async def extract(self, html: str, context: ExtractionContext) -> PluginResult:
        """
        Extract opportunities from HTML.

        Args:
            html: HTML content
            context: Source config and the URL the HTML came from

        Returns:
            PluginResult with extracted opportunities
        """
        pass

    def get_soup(self, html: str) -> BeautifulSoup:
        """Helper to create BeautifulSoup instance"""
        return make_soup(html)

    def build_opportunity(
        self,
        title_node,
        description_node,
        link_node,
        context: ExtractionContext,
        min_description_length: int
    ) -> Optional[ScrapedOpportunity]:
        """
        Turn matched nodes into an opportunity, or None if the text is too short.

        Title must be longer than MIN_TITLE_LENGTH chars and description longer
        than min_description_length chars after trimming.
        """
        if title_node is None or description_node is None:
            return None

        title = collapse_whitespace(node_text(title_node))
        description = collapse_whitespace(node_text(description_node))
        if len(title) <= MIN_TITLE_LENGTH or len(description) <= min_description_length:
            self.logger.debug(f"Rejected container: title={len(title)} chars, description={len(description)} chars")
            return None

        application_url = None
        if link_node is not None:
            application_url = resolve_url(link_node.get('href'), context.page_url)

        return ScrapedOpportunity(
            title=title,
            description=description,
            organization=context.source.name,
            source_url=context.source.listing_url,
            application_url=application_url,
        )

    def __repr__(self):
        return f"<{self.__class__.__name__}(name={self.name}, priority={self.priority})>"
