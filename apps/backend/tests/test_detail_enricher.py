"""
Unit tests for detail-page enrichment.
"""
import pytest

from crawler.detail_enricher import (
    DetailPageEnricher, extract_description, selectors_for,
    DETAIL_SELECTORS, GENERIC_SELECTORS, MAX_DESCRIPTION_LENGTH
)
from pipeline.models import ScrapedOpportunity
from fakes import make_http_client

DETAIL_URL = 'https://jobs.example.org/jobs/1'
LONG_TEXT = ("The successful candidate will coordinate field teams, manage budgets and report "
             "to donors on programme outcomes. ") * 4


def opportunity(description="Short listing summary", application_url=DETAIL_URL):
    return ScrapedOpportunity(
        title="Field coordinator, emergency response",
        description=description,
        organization="Test Board",
        source_url="https://jobs.example.org/openings",
        application_url=application_url,
    )


def enricher_for(routes, requests=None):
    return DetailPageEnricher(make_http_client(routes, requests), retries=2, backoff_ms=0)


class TestEnrich:

    @pytest.mark.asyncio
    async def test_detail_page_404_keeps_original(self):
        opp = opportunity()
        await enricher_for({}).enrich(opp)
        assert opp.description == "Short listing summary"

    @pytest.mark.asyncio
    async def test_longer_description_replaces_summary(self):
        html = f'<html><body><div class="description">{LONG_TEXT}</div></body></html>'
        opp = opportunity()

        await enricher_for({DETAIL_URL: html}).enrich(opp)

        assert opp.description == LONG_TEXT.strip()

    @pytest.mark.asyncio
    async def test_never_shrinks_description(self):
        original = LONG_TEXT * 3
        html = f'<html><body><div class="description">{LONG_TEXT}</div></body></html>'
        opp = opportunity(description=original)

        await enricher_for({DETAIL_URL: html}).enrich(opp)

        assert opp.description == original

    @pytest.mark.asyncio
    async def test_page_without_description_keeps_original(self):
        opp = opportunity()
        await enricher_for({DETAIL_URL: '<html><body><p>Apply now</p></body></html>'}).enrich(opp)
        assert opp.description == "Short listing summary"

    @pytest.mark.asyncio
    async def test_missing_url_skips_fetch(self):
        requests = []
        opp = opportunity(application_url=None)

        await enricher_for({}, requests).enrich(opp)

        assert requests == []
        assert opp.description == "Short listing summary"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_url", [12345, "https://", "not a url"])
    async def test_malformed_url_keeps_original(self, bad_url):
        opp = opportunity(application_url=bad_url)

        await enricher_for({}).enrich(opp)

        assert opp.description == "Short listing summary"

    @pytest.mark.asyncio
    async def test_site_specific_selector_used_for_known_source(self):
        html = (
            '<html><body><div class="description">Generic block that is not the job text.</div>'
            f'<div id="jd-content">{LONG_TEXT}</div></body></html>'
        )
        description = await enricher_for({DETAIL_URL: html}).fetch_description(DETAIL_URL, source_key='un-careers')
        assert description == LONG_TEXT.strip()


class TestSelectorsFor:
    def test_source_key_strategy(self):
        assert selectors_for('remoteok') == DETAIL_SELECTORS['remoteok']

    def test_host_strategy_when_source_unknown(self):
        assert selectors_for(None, 'https://weworkremotely.com/remote-jobs/1') == DETAIL_SELECTORS['weworkremotely']

    def test_generic_fallback(self):
        assert selectors_for('daad', 'https://www.daad.de/en/x') == GENERIC_SELECTORS

    def test_overrides_come_first(self):
        selectors = selectors_for('remoteok', overrides=['.custom-body'])
        assert selectors[0] == '.custom-body'
        assert selectors[1:] == DETAIL_SELECTORS['remoteok']


class TestExtractDescription:
    def test_short_selector_match_falls_through_to_container(self):
        body = "Role overview. " * 30
        html = f'<html><body><div class="description">Too short</div><main><nav>Menu</nav><p>{body}</p></main></body></html>'

        text = extract_description(html, ['.description'])

        assert text is not None
        assert 'Menu' not in text
        assert text.startswith('Role overview.')

    def test_paragraph_aggregation(self):
        paragraphs = "".join(f"<p>Responsibility number {i} covers partner coordination tasks.</p>" for i in range(8))
        html = f"<html><body><div>{paragraphs}<p>tiny</p></div></body></html>"

        text = extract_description(html, ['.description'])

        assert text.count("\n\n") == 7
        assert "tiny" not in text

    def test_capped_length(self):
        html = f'<html><body><div class="description">{"x" * (MAX_DESCRIPTION_LENGTH + 500)}</div></body></html>'
        assert len(extract_description(html, ['.description'])) == MAX_DESCRIPTION_LENGTH

    def test_nothing_found(self):
        assert extract_description("<html><body><span>Apply</span></body></html>", GENERIC_SELECTORS) is None
