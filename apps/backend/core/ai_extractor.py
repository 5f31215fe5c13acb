"""
AI-powered opportunity extraction using an LLM.

Listing pages without usable selectors are flattened to text and handed to
a chat-completion model (OpenRouter or OpenAI) that returns a JSON array of
opportunities. The model is treated as unreliable: every failure surfaces
as ExtractionError so the caller can move on to the heuristic pass.
"""

import os
import re
import json
import logging
from typing import Dict, List, Optional

import httpx

from core.errors import ExtractionError
from core.html import make_soup, remove_nodes, safe_select_one
from core.normalize import resolve_url

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"

MAX_CONTENT_CHARS = 8000
MIN_TITLE_LENGTH = 10
MIN_DESCRIPTION_LENGTH = 50

UNWANTED_SELECTOR = 'script, style, nav, header, footer, aside, advertisement'
MAIN_CONTENT_SELECTOR = 'main, .main, .content, #content, .jobs, .opportunities, .careers'

SYSTEM_PROMPT = """You are an expert at extracting job opportunities, scholarships, fellowships, and internships from website content.

IMPORTANT: You must respond with ONLY a valid JSON array, no markdown formatting, no code blocks, no explanations.

Extract opportunities with this exact structure:
[
  {{
    "title": "opportunity title",
    "description": "detailed description (minimum 50 characters)",
    "deadline": "application deadline in YYYY-MM-DD format if available, otherwise null",
    "application_url": "application link if available, otherwise null",
    "organization": "{organization}",
    "source_url": "{source_url}"
  }}
]

Only include real opportunities with clear titles and descriptions. Skip navigation items, general information, or promotional content."""


def preprocess_html_for_ai(html: str) -> str:
    """
    Reduce a listing page to the text the model should see.

    Boilerplate regions are dropped, the main content region is preferred
    over the whole body, whitespace is collapsed and the result is capped
    at MAX_CONTENT_CHARS.
    """
    soup = make_soup(html)
    remove_nodes(soup, UNWANTED_SELECTOR)

    main = safe_select_one(soup, MAIN_CONTENT_SELECTOR)
    root = main if main is not None else (soup.body or soup)
    text = root.get_text(separator=' ')

    return re.sub(r'\s+', ' ', text).strip()[:MAX_CONTENT_CHARS]


def _text_or_none(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _strip_code_fences(content: str) -> str:
    content = re.sub(r'```json\s*', '', content)
    content = re.sub(r'```\s*', '', content)
    return content.strip()


class AIOpportunityExtractor:
    """Extract opportunities from listing HTML with a chat-completion model"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize AI extractor.

        Args:
            api_key: OpenRouter/OpenAI key (defaults to OPENROUTER_API_KEY, then OPENAI_API_KEY)
            model: Model to use (default: gpt-4o-mini for cost-effectiveness)
            base_url: Chat-completions endpoint override
        """
        openrouter_key = os.getenv('OPENROUTER_API_KEY')
        if api_key:
            self.api_key = api_key
            default_url, default_model = OPENROUTER_URL, "openai/gpt-4o-mini"
        elif openrouter_key:
            self.api_key = openrouter_key
            default_url, default_model = OPENROUTER_URL, "openai/gpt-4o-mini"
        else:
            self.api_key = os.getenv('OPENAI_API_KEY')
            default_url, default_model = OPENAI_URL, "gpt-4o-mini"

        self.model = model or os.getenv('SCRAPER_LLM_MODEL', default_model)
        self.base_url = base_url or os.getenv('SCRAPER_LLM_BASE_URL', default_url)
        self.timeout = timeout
        self._transport = transport

        if not self.api_key:
            logger.warning("[ai] No LLM API key set - AI extraction will be disabled")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def extract_opportunities(self, html: str, organization: str, source_url: str) -> List[Dict]:
        """
        Extract opportunities from a listing page.

        Returns:
            Validated opportunity dicts (possibly empty)

        Raises:
            ExtractionError: if the model is unavailable, the call fails or
                the response is not parseable JSON
        """
        if not self.enabled:
            raise ExtractionError("AI extraction disabled - no API key")

        content = preprocess_html_for_ai(html)
        if not content:
            logger.info(f"[ai] No text content to analyze for {organization}")
            return []

        response_text = await self._call_llm(
            SYSTEM_PROMPT.format(organization=organization, source_url=source_url),
            f"Extract opportunities from this {organization} content:\n\n{content}"
        )
        opportunities = self.parse_response(response_text, organization, source_url)
        logger.info(f"[ai] Extracted {len(opportunities)} valid opportunities for {organization}")
        return opportunities

    def parse_response(self, content: str, organization: str, source_url: str) -> List[Dict]:
        """
        Parse the model output into opportunity dicts.

        Code fences are stripped, a single object is wrapped into a list and
        items that are too short are dropped.
        """
        try:
            parsed = json.loads(_strip_code_fences(content))
        except json.JSONDecodeError as e:
            logger.warning(f"[ai] Failed to parse AI response: {e}")
            logger.debug(f"[ai] Raw AI response: {content[:500]}")
            raise ExtractionError(f"Unparseable AI response: {e}") from e

        if not isinstance(parsed, list):
            logger.warning("[ai] AI response is not an array, wrapping in array")
            parsed = [parsed]

        opportunities = []
        for item in parsed:
            if not isinstance(item, dict):
                continue
            title = item.get('title')
            description = item.get('description')
            if not isinstance(title, str) or len(title.strip()) <= MIN_TITLE_LENGTH:
                continue
            if not isinstance(description, str) or len(description.strip()) <= MIN_DESCRIPTION_LENGTH:
                continue
            opportunities.append({
                'title': title.strip(),
                'description': description.strip(),
                'deadline': _text_or_none(item.get('deadline')),
                'application_url': resolve_url(_text_or_none(item.get('application_url')), source_url),
                'organization': _text_or_none(item.get('organization')) or organization,
                'source_url': resolve_url(_text_or_none(item.get('source_url')), source_url) or source_url,
            })

        logger.debug(f"[ai] {len(opportunities)} of {len(parsed)} AI items passed validation")
        return opportunities

    async def _call_llm(self, system_prompt: str, user_prompt: str) -> str:
        """Call the chat-completions API."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.base_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                        "X-Title": "Opportunity Scraper"
                    },
                    json={
                        "model": self.model,
                        "messages": [
                            {"role": "system", "content": system_prompt},
                            {"role": "user", "content": user_prompt}
                        ],
                        "temperature": 0.1,
                        "max_tokens": 2000
                    }
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[ai] LLM API call failed: {e}")
            raise ExtractionError(f"LLM API call failed: {e}") from e

        try:
            content = data['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError) as e:
            raise ExtractionError("No content returned from LLM") from e
        if not content:
            raise ExtractionError("No content returned from LLM")
        return content.strip()
