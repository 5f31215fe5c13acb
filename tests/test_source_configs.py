"""
Unit tests for the static source registry and operator-managed sources.
"""
import unittest
from pathlib import Path

# Add backend to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "apps" / "backend"))

from crawler.source_configs import (
    Filters, Pagination, SourceConfig, ScrapingSource,
    DYNAMIC_REQUEST_DELAY_MS, MAX_RESULTS_PER_PAGE, get_all_source_configs, get_source_config,
)


class TestSourceRegistry(unittest.TestCase):
    """Test the curated source configs."""

    def test_registry_ids(self):
        ids = [config.id for config in get_all_source_configs()]
        self.assertEqual(len(ids), 9)
        self.assertEqual(len(set(ids)), 9)
        for source_id in ('un-careers', 'unicef-careers', 'world-bank', 'african-union',
                          'unesco', 'daad', 'mastercard-foundation', 'commonwealth', 'remoteok'):
            self.assertIsNotNone(get_source_config(source_id), source_id)

    def test_unknown_source(self):
        self.assertIsNone(get_source_config('not-a-source'))

    def test_every_config_has_selectors(self):
        for config in get_all_source_configs():
            self.assertIsNotNone(config.selectors, config.id)
            self.assertTrue(config.selectors.container)
            self.assertTrue(config.listing_url.startswith('https://'), config.id)

    def test_click_pagination_fetches_one_page(self):
        config = get_source_config('un-careers')
        self.assertEqual(config.pagination.type, 'click')
        self.assertEqual(config.max_pages, 1)
        self.assertEqual(config.page_url(1), 'https://careers.un.org/lbw/Home.aspx')

    def test_url_pagination(self):
        config = get_source_config('remoteok')
        self.assertEqual(config.max_pages, 10)
        self.assertEqual(config.page_url(2), 'https://remoteok.com/remote-dev-jobs?page=2')

    def test_page_url_with_existing_query(self):
        config = SourceConfig(id='q', name='Q', base_url='https://example.org', listing_path='/jobs?lang=en',
                              pagination=Pagination(type='url', max_pages=3))
        self.assertEqual(config.page_url(3), 'https://example.org/jobs?lang=en&page=3')


class TestFilters(unittest.TestCase):
    """Test keyword include/exclude gating."""

    def test_no_keywords_allows_everything(self):
        self.assertTrue(Filters().allows('Anything at all'))

    def test_exclude_wins(self):
        filters = Filters(keywords=('engineer',), exclude_keywords=('expired',))
        self.assertFalse(filters.allows('Engineer role - EXPIRED'))

    def test_include_requires_match(self):
        filters = Filters(keywords=('remote', 'developer'))
        self.assertTrue(filters.allows('Senior Developer'))
        self.assertFalse(filters.allows('Office manager'))


class TestScrapingSource(unittest.TestCase):
    """Test operator-managed source rows."""

    def test_from_row_defaults(self):
        source = ScrapingSource.from_row({'id': 7, 'name': 'Board', 'url': 'https://board.example.org',
                                          'success_rate': None, 'selector_config': None})
        self.assertEqual(source.id, '7')
        self.assertEqual(source.scraping_frequency, 24)
        self.assertEqual(source.success_rate, 100.0)
        self.assertEqual(source.selector_config, {})

    def test_to_source_config_without_selectors(self):
        config = ScrapingSource(id='s1', name='Board', url='https://board.example.org/jobs').to_source_config()
        self.assertIsNone(config.selectors)
        self.assertEqual(config.listing_url, 'https://board.example.org/jobs')
        self.assertEqual(config.max_pages, 1)
        self.assertEqual(config.min_description_length, 50)
        self.assertEqual(config.max_results_per_page, 20)
        self.assertEqual(config.request_config.delay, DYNAMIC_REQUEST_DELAY_MS)

    def test_to_source_config_merges_selector_defaults(self):
        source = ScrapingSource(id='s2', name='Board', url='https://board.example.org',
                                selector_config={'container': '.post', 'title': '', 'deadline': '.due'})
        selectors = source.to_source_config().selectors
        self.assertEqual(selectors.container, '.post')
        self.assertEqual(selectors.title, 'h1, h2, h3, .title')
        self.assertEqual(selectors.deadline, '.due')
        self.assertIsNone(selectors.location)

    def test_request_delay_override(self):
        source = ScrapingSource(id='s3', name='Board', url='https://board.example.org',
                                selector_config={'delay': 3000})
        config = source.to_source_config()
        self.assertEqual(config.request_config.delay, 3000)
        self.assertIsNone(config.selectors)

    def test_invalid_request_delay_falls_back(self):
        source = ScrapingSource(id='s4', name='Board', url='https://board.example.org',
                                selector_config={'delay': 'fast'})
        self.assertEqual(source.request_delay_ms, DYNAMIC_REQUEST_DELAY_MS)

    def test_static_configs_capped_per_page(self):
        for config in get_all_source_configs():
            self.assertEqual(config.max_results_per_page, MAX_RESULTS_PER_PAGE, config.id)


if __name__ == '__main__':
    unittest.main()
