"""
Unit tests for selector-driven extraction.
"""
import dataclasses

import pytest

from crawler.plugins.base import ExtractionContext
from crawler.plugins.selector import StructuredSelectorPlugin
from crawler.source_configs import MAX_RESULTS_PER_PAGE, ScrapingSource
from fakes import card, listing_page

PAGE_URL = 'https://jobs.example.org/openings?page=1'


@pytest.fixture
def plugin():
    return StructuredSelectorPlugin()


def extract(plugin, config, html):
    return plugin.extract_sync(html, ExtractionContext(source=config, page_url=PAGE_URL))


class TestStructuredSelectorPlugin:

    def test_passes_listing_over_thresholds(self, plugin, source_config):
        title = "Senior backend engineer wanted now"
        description = "Build and run our data platform services"  # 40 chars
        html = listing_page(card(title, description, deadline="15 March 2026", location="Nairobi"))

        opportunities = extract(plugin, source_config, html)

        assert len(opportunities) == 1
        opp = opportunities[0]
        assert opp.title == title
        assert opp.description == description
        assert opp.organization == "Test Board"
        assert opp.source_url == "https://jobs.example.org/openings"
        assert opp.application_url == "https://jobs.example.org/jobs/1"
        assert opp.deadline == "15 March 2026"
        assert opp.location == "Nairobi"

    def test_length_thresholds_are_strict(self, plugin, source_config):
        html = listing_page(
            card("A" * 10, "d" * 40),                      # title too short
            card("Title long enough", "d" * 30),           # description too short
            card("B" * 11, "e" * 31, href="/jobs/ok"),     # just over both
        )

        opportunities = extract(plugin, source_config, html)

        assert [o.title for o in opportunities] == ["B" * 11]
        for opp in opportunities:
            assert len(opp.title) > 10
            assert len(opp.description) > 30

    def test_container_without_description_node_is_skipped(self, plugin, source_config):
        html = listing_page(
            '<div class="card"><h3 class="title">Programme Officer, Education</h3></div>'
        )
        assert extract(plugin, source_config, html) == []

    def test_optional_fields_missing(self, plugin, source_config):
        html = listing_page(
            '<div class="card"><h3 class="title">Programme Officer, Education</h3>'
            '<p class="summary">Lead education programmes across the region.</p></div>'
        )

        opportunities = extract(plugin, source_config, html)

        assert len(opportunities) == 1
        assert opportunities[0].deadline is None
        assert opportunities[0].location is None
        assert opportunities[0].application_url is None

    def test_javascript_links_are_dropped(self, plugin, source_config):
        html = listing_page(card("Programme Officer, Education", "x" * 45, href="javascript:void(0)"))
        assert extract(plugin, source_config, html)[0].application_url is None

    def test_no_matches_returns_empty_list(self, plugin, source_config):
        assert extract(plugin, source_config, "<html><body><p>Nothing here</p></body></html>") == []

    def test_invalid_selector_returns_empty_list(self, plugin, source_config):
        selectors = dataclasses.replace(source_config.selectors, container='div[[[')
        config = dataclasses.replace(source_config, selectors=selectors)
        html = listing_page(card("Programme Officer, Education", "x" * 45))
        assert extract(plugin, config, html) == []

    def test_results_capped_per_page(self, plugin, source_config):
        config = dataclasses.replace(source_config, max_results_per_page=3)
        html = listing_page(*[card(f"Field coordinator number {i}", "y" * 40, href=f"/jobs/{i}") for i in range(6)])

        assert len(extract(plugin, config, html)) == 3

    def test_static_sources_capped_by_default(self, plugin, source_config):
        html = listing_page(*[card(f"Field coordinator number {i}", "y" * 40, href=f"/jobs/{i}") for i in range(60)])

        assert source_config.max_results_per_page == MAX_RESULTS_PER_PAGE
        assert len(extract(plugin, source_config, html)) == MAX_RESULTS_PER_PAGE

    def test_dynamic_sources_require_longer_descriptions(self, plugin):
        source = ScrapingSource(
            id='src-1',
            name='Dynamic Board',
            url='https://board.example.org/jobs',
            selector_config={'container': '.card', 'title': '.title', 'description': '.summary'},
        )
        config = source.to_source_config()
        html = listing_page(
            card("Monitoring and evaluation lead", "z" * 45),
            card("Grants and partnerships manager", "w" * 51, href="/jobs/2"),
        )

        opportunities = extract(plugin, config, html)

        assert [o.title for o in opportunities] == ["Grants and partnerships manager"]

    def test_can_handle_requires_selectors(self, plugin, source_config):
        no_selectors = dataclasses.replace(source_config, selectors=None)
        assert plugin.can_handle(ExtractionContext(source=source_config, page_url=PAGE_URL))
        assert not plugin.can_handle(ExtractionContext(source=no_selectors, page_url=PAGE_URL))
