"""
DOM helpers shared by the extractors and the detail-page enricher.

Selectors come from operator-maintained configuration, so a malformed
selector must never abort a scrape; it simply matches nothing.
"""
import logging
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)


def make_soup(html: str) -> BeautifulSoup:
    """Parse HTML with lxml"""
    return BeautifulSoup(html or '', 'lxml')


def safe_select(node, selector: Optional[str]) -> List[Tag]:
    """node.select() that returns [] for empty or invalid selectors"""
    if not selector:
        return []
    try:
        return node.select(selector)
    except Exception as e:
        # soupsieve raises SelectorSyntaxError (a ValueError) but also
        # NotImplementedError for unsupported pseudo-classes
        logger.debug(f"[html] Invalid selector {selector!r}: {e}")
        return []


def safe_select_one(node, selector: Optional[str]) -> Optional[Tag]:
    matches = safe_select(node, selector)
    return matches[0] if matches else None


def node_text(node: Optional[Tag], separator: str = ' ') -> str:
    """Stripped text of a node, '' for None"""
    if node is None:
        return ''
    return node.get_text(separator=separator, strip=True)


def remove_nodes(node, selector: str) -> None:
    """Drop every descendant matching selector, in place"""
    for element in safe_select(node, selector):
        element.decompose()
