"""
Text, URL and date normalization for scraped opportunities.

Everything in here is total: bad input yields an empty string or None,
never an exception.
"""

import re
import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urljoin, urlparse

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)


# Deadline patterns, tried in order; the first one that both matches and
# parses wins.
DEADLINE_PATTERNS = [
    re.compile(r'\d{4}-\d{2}-\d{2}'),
    re.compile(r'\d{2}/\d{2}/\d{4}'),
    re.compile(
        r'\d{1,2}\s+(?:January|February|March|April|May|June|July|August|'
        r'September|October|November|December)\s+\d{4}',
        re.IGNORECASE
    ),
]

_TYPOGRAPHY = {
    '\u00a0': ' ',
    '\u2018': "'",
    '\u2019': "'",
    '\u201c': '"',
    '\u201d': '"',
    '\u2013': '-',
    '\u2014': '--',
}


def collapse_whitespace(text: Optional[str]) -> str:
    """Trim and collapse every whitespace run to one space."""
    if not text:
        return ''
    return re.sub(r'\s+', ' ', text).strip()


def clean_description_text(text: Optional[str]) -> str:
    """
    Clean description text pulled from a detail page.

    Normalizes smart quotes, dashes and non-breaking spaces, collapses
    repeated spaces, keeps at most one blank line between paragraphs and
    rewrites list markers as "• ".
    """
    if not text:
        return ''

    for src, dst in _TYPOGRAPHY.items():
        text = text.replace(src, dst)

    text = re.sub(r'[ \t\r\f\v]+', ' ', text)
    text = re.sub(r'^ +| +$', '', text, flags=re.MULTILINE)
    text = re.sub(r'\n{3,}', '\n\n', text)
    # "* " is a bullet, "**bold**" is not
    text = re.sub(r'^(?:[-•] *|\* +)', '• ', text, flags=re.MULTILINE)

    return text.strip()


def parse_deadline(value: Optional[str]) -> Optional[str]:
    """
    Parse a raw deadline string into an ISO-8601 UTC timestamp.

    Args:
        value: Raw deadline text from a listing (e.g. "Closes 15 March 2025")

    Returns:
        ISO timestamp string, or None when nothing recognizable is found
    """
    if not value or not isinstance(value, str):
        return None

    for pattern in DEADLINE_PATTERNS:
        match = pattern.search(value)
        if not match:
            continue
        parsed = _parse_date(match.group(0))
        if parsed:
            return parsed.isoformat()

    return None


def _parse_date(text: str) -> Optional[datetime]:
    # Slash dates are month-first like most job boards; day-first is the
    # fallback when the month would be out of range (e.g. 25/12/2025).
    for dayfirst in (False, True):
        try:
            parsed = date_parser.parse(text, dayfirst=dayfirst)
        except (ValueError, OverflowError):
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    return None


def resolve_url(href: Optional[str], base_url: str) -> Optional[str]:
    """
    Resolve a link href against the page it was found on.

    Returns None for empty hrefs, fragments and javascript:/mailto: links.
    """
    if not href:
        return None
    href = href.strip()
    if not href or href.startswith('#'):
        return None
    if href.lower().startswith(('javascript:', 'mailto:', 'tel:')):
        return None
    try:
        resolved = urljoin(base_url, href)
    except ValueError:
        logger.debug(f"[normalize] Could not resolve {href!r} against {base_url}")
        return None
    if urlparse(resolved).scheme not in ('http', 'https'):
        return None
    return resolved


def url_host(url: Optional[str]) -> str:
    """Lower-cased hostname without a leading www."""
    if not url:
        return ''
    try:
        host = urlparse(url).hostname or ''
    except ValueError:
        return ''
    host = host.lower()
    return host[4:] if host.startswith('www.') else host
