"""
Unit tests for the LLM-backed extractor.
"""
import json

import httpx
import pytest

from core.ai_extractor import (
    AIOpportunityExtractor, preprocess_html_for_ai, MAX_CONTENT_CHARS, OPENAI_URL, OPENROUTER_URL
)
from core.errors import ExtractionError

GOOD_ITEM = {
    "title": "Climate Resilience Fellowship 2026",
    "description": "A twelve month fellowship for early-career researchers working on adaptation.",
    "deadline": "2026-01-31",
    "application_url": "https://example.org/apply",
}


@pytest.fixture(autouse=True)
def clear_llm_env(monkeypatch):
    for var in ("OPENROUTER_API_KEY", "OPENAI_API_KEY", "SCRAPER_LLM_MODEL", "SCRAPER_LLM_BASE_URL"):
        monkeypatch.delenv(var, raising=False)


def llm_transport(content=None, status_code=200, captured=None):
    def handler(request):
        if captured is not None:
            captured.append(request)
        if status_code != 200:
            return httpx.Response(status_code, json={"error": "quota exceeded"})
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})
    return httpx.MockTransport(handler)


class TestPreprocess:
    def test_strips_boilerplate_and_prefers_main(self):
        html = """
        <html><head><script>var x = 1;</script><style>.a{}</style></head>
        <body>
          <nav>Home About</nav>
          <header>Site header</header>
          <main><h2>Fellowship</h2><p>Open to all</p></main>
          <footer>Copyright</footer>
        </body></html>
        """
        text = preprocess_html_for_ai(html)
        assert text == "Fellowship Open to all"

    def test_truncates_long_pages(self):
        html = "<html><body><p>" + ("word " * 5000) + "</p></body></html>"
        assert len(preprocess_html_for_ai(html)) == MAX_CONTENT_CHARS


class TestParseResponse:
    def setup_method(self):
        self.extractor = AIOpportunityExtractor(api_key="test-key")

    def test_strips_code_fences(self):
        content = "```json\n" + json.dumps([GOOD_ITEM]) + "\n```"
        items = self.extractor.parse_response(content, "Example Org", "https://example.org/jobs")

        assert len(items) == 1
        assert items[0]["title"] == GOOD_ITEM["title"]
        assert items[0]["organization"] == "Example Org"
        assert items[0]["source_url"] == "https://example.org/jobs"

    def test_single_object_is_wrapped(self):
        items = self.extractor.parse_response(json.dumps(GOOD_ITEM), "Example Org", "https://example.org/jobs")
        assert len(items) == 1

    def test_short_items_are_filtered(self):
        content = json.dumps([
            GOOD_ITEM,
            {"title": "Too short", "description": GOOD_ITEM["description"]},
            {"title": GOOD_ITEM["title"], "description": "Brief"},
            {"title": None, "description": None},
            "not an object",
        ])
        items = self.extractor.parse_response(content, "Example Org", "https://example.org/jobs")
        assert [item["title"] for item in items] == [GOOD_ITEM["title"]]

    def test_non_string_application_url_dropped(self):
        item = dict(GOOD_ITEM, application_url=12345, deadline=20260131, organization=["Org"])
        items = self.extractor.parse_response(json.dumps([item]), "Example Org", "https://example.org/jobs")

        assert items[0]["application_url"] is None
        assert items[0]["deadline"] is None
        assert items[0]["organization"] == "Example Org"

    def test_relative_application_url_resolved(self):
        item = dict(GOOD_ITEM, application_url="/apply/42")
        items = self.extractor.parse_response(json.dumps([item]), "Example Org", "https://example.org/jobs")

        assert items[0]["application_url"] == "https://example.org/apply/42"

    def test_malformed_json_raises(self):
        with pytest.raises(ExtractionError):
            self.extractor.parse_response("Here are the jobs: [", "Example Org", "https://example.org/jobs")


class TestKeySelection:
    def test_disabled_without_keys(self):
        assert AIOpportunityExtractor().enabled is False

    def test_openrouter_preferred(self, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "or-key")
        monkeypatch.setenv("OPENAI_API_KEY", "oa-key")
        extractor = AIOpportunityExtractor()
        assert extractor.api_key == "or-key"
        assert extractor.base_url == OPENROUTER_URL
        assert extractor.model == "openai/gpt-4o-mini"

    def test_openai_fallback(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "oa-key")
        extractor = AIOpportunityExtractor()
        assert extractor.api_key == "oa-key"
        assert extractor.base_url == OPENAI_URL
        assert extractor.model == "gpt-4o-mini"


class TestExtractOpportunities:

    @pytest.mark.asyncio
    async def test_disabled_extractor_raises(self):
        with pytest.raises(ExtractionError):
            await AIOpportunityExtractor().extract_opportunities("<p>x</p>", "Org", "https://example.org")

    @pytest.mark.asyncio
    async def test_calls_completion_endpoint(self):
        captured = []
        extractor = AIOpportunityExtractor(
            api_key="test-key",
            transport=llm_transport(json.dumps([GOOD_ITEM]), captured=captured)
        )

        items = await extractor.extract_opportunities(
            "<html><body><main><p>Fellowship listings</p></main></body></html>",
            "Example Org",
            "https://example.org/jobs"
        )

        assert len(items) == 1
        request = captured[0]
        assert str(request.url) == OPENROUTER_URL
        assert request.headers["authorization"] == "Bearer test-key"
        body = json.loads(request.content)
        assert body["temperature"] == 0.1
        assert body["messages"][0]["role"] == "system"
        assert "Example Org" in body["messages"][0]["content"]
        assert "Fellowship listings" in body["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_http_error_raises_extraction_error(self):
        extractor = AIOpportunityExtractor(api_key="test-key", transport=llm_transport(status_code=429))
        with pytest.raises(ExtractionError):
            await extractor.extract_opportunities("<main><p>Listings</p></main>", "Org", "https://example.org")

    @pytest.mark.asyncio
    async def test_empty_page_skips_model_call(self):
        captured = []
        extractor = AIOpportunityExtractor(api_key="test-key", transport=llm_transport("[]", captured=captured))
        assert await extractor.extract_opportunities("<html><body></body></html>", "Org", "https://example.org") == []
        assert captured == []
