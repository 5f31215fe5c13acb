import pytest

from app.config import ScraperSettings
from crawler.source_configs import SourceConfig, Selectors, Pagination, Filters, RequestConfig
from fakes import InMemoryStore


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def settings():
    return ScraperSettings(
        db_url=None,
        env='test',
        fetch_timeout=5,
        detail_timeout=5,
        freshness_hours=24,
        enrich_details=False,
        source_delay_ms=0,
        scheduler_disabled=True,
        scheduler_interval=3600,
    )


@pytest.fixture
def source_config():
    """Single-page test source with card selectors and no politeness delay"""
    return SourceConfig(
        id='test-board',
        name='Test Board',
        base_url='https://jobs.example.org',
        listing_path='/openings',
        selectors=Selectors(
            container='.card',
            title='.title',
            description='.summary',
            link='a',
            deadline='.deadline',
            location='.location',
        ),
        pagination=Pagination(type='url', max_pages=1),
        filters=Filters(exclude_keywords=('expired',)),
        request_config=RequestConfig(headers={}, delay=0, retries=1),
    )
