"""
Source configuration registry.

Static, per-site scraping recipes for the curated opportunity sources, plus
the `ScrapingSource` record used for operator-managed (database) sources.
Configs are plain data: adding a site means adding an entry here, not code.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Any

logger = logging.getLogger(__name__)

BROWSER_UA = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36'

# Every result costs a detail-page fetch, so each listing page is capped
MAX_RESULTS_PER_PAGE = 20


@dataclass(frozen=True)
class Selectors:
    container: str
    title: str
    description: str
    link: str = 'a'
    deadline: Optional[str] = None
    location: Optional[str] = None
    next_page: Optional[str] = None


@dataclass(frozen=True)
class Pagination:
    type: str = 'url'
    max_pages: int = 5
    wait_time: int = 0  # ms


@dataclass(frozen=True)
class Filters:
    keywords: Tuple[str, ...] = ()
    exclude_keywords: Tuple[str, ...] = ()
    language: Tuple[str, ...] = ()

    def allows(self, text: str) -> bool:
        """
        Keyword gate over title + description.

        An exclude match always rejects; a non-empty include list requires
        at least one match.
        """
        text = (text or '').lower()
        if any(keyword.lower() in text for keyword in self.exclude_keywords):
            return False
        if self.keywords:
            return any(keyword.lower() in text for keyword in self.keywords)
        return True


@dataclass(frozen=True)
class RequestConfig:
    headers: Dict[str, str] = field(default_factory=dict)
    delay: int = 2000  # ms between requests to the same site
    retries: int = 3


@dataclass(frozen=True)
class SourceConfig:
    id: str
    name: str
    base_url: str
    listing_path: str = ''
    selectors: Optional[Selectors] = None
    pagination: Pagination = field(default_factory=Pagination)
    filters: Filters = field(default_factory=Filters)
    request_config: RequestConfig = field(default_factory=RequestConfig)
    min_description_length: int = 30
    max_results_per_page: int = MAX_RESULTS_PER_PAGE
    category_mapping: Optional[Dict[str, Any]] = None

    @property
    def listing_url(self) -> str:
        return f"{self.base_url}{self.listing_path}"

    def page_url(self, page: int) -> str:
        """URL of listing page `page` (1-based)"""
        if self.pagination.type == 'url':
            separator = '&' if '?' in self.listing_url else '?'
            return f"{self.listing_url}{separator}page={page}"
        return self.listing_url

    @property
    def max_pages(self) -> int:
        # click/scroll pagination needs a browser; only the first page is
        # reachable with plain HTTP
        if self.pagination.type != 'url':
            return 1
        return max(1, self.pagination.max_pages or 5)


def _headers(**extra) -> Dict[str, str]:
    headers = {'User-Agent': BROWSER_UA}
    headers.update(extra)
    return headers


SOURCE_CONFIGS: List[SourceConfig] = [
    SourceConfig(
        id='un-careers',
        name='UN Careers',
        base_url='https://careers.un.org',
        listing_path='/lbw/Home.aspx',
        selectors=Selectors(
            container='.job-listing, .vacancy-item',
            title='h3 a, .job-title a',
            description='.job-summary, .vacancy-summary',
            deadline='.deadline, .closing-date',
            location='.location, .duty-station',
            link='h3 a, .job-title a',
        ),
        pagination=Pagination(type='click', max_pages=10, wait_time=2000),
        filters=Filters(language=('english',), exclude_keywords=('expired', 'closed')),
        request_config=RequestConfig(
            headers=_headers(Accept='text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8'),
            delay=3000,
            retries=3,
        ),
    ),
    SourceConfig(
        id='unicef-careers',
        name='UNICEF Careers',
        base_url='https://www.unicef.org',
        listing_path='/careers/search',
        selectors=Selectors(
            container='.job-card, .vacancy-listing',
            title='.job-title, h3',
            description='.job-description, .summary',
            deadline='.application-deadline, .closes',
            location='.job-location, .location',
        ),
        pagination=Pagination(type='url', max_pages=15, wait_time=1500),
        filters=Filters(
            language=('english',),
            keywords=('fellowship', 'internship', 'programme', 'officer'),
        ),
        request_config=RequestConfig(headers=_headers(), delay=2000, retries=2),
    ),
    SourceConfig(
        id='world-bank',
        name='World Bank Group',
        base_url='https://www.worldbank.org',
        listing_path='/en/about/careers',
        selectors=Selectors(
            container='.opportunity-item, .job-posting',
            title='.opportunity-title, h4',
            description='.opportunity-summary, .description',
            deadline='.deadline, .expires',
            location='.location, .office',
        ),
        pagination=Pagination(type='scroll', max_pages=8, wait_time=2500),
        filters=Filters(
            keywords=('young professionals', 'fellowship', 'graduate', 'internship'),
            exclude_keywords=('senior', 'director', 'manager'),
        ),
        request_config=RequestConfig(headers=_headers(), delay=2500, retries=3),
    ),
    SourceConfig(
        id='african-union',
        name='African Union',
        base_url='https://au.int',
        listing_path='/en/careers',
        selectors=Selectors(
            container='.career-item, .vacancy',
            title='.career-title, h3',
            description='.career-summary, .description',
            deadline='.closing-date, .deadline',
            location='.location, .duty-station',
        ),
        pagination=Pagination(type='url', max_pages=5, wait_time=3000),
        filters=Filters(
            language=('english',),
            keywords=('internship', 'fellowship', 'programme'),
        ),
        request_config=RequestConfig(headers=_headers(), delay=3000, retries=2),
    ),
    SourceConfig(
        id='unesco',
        name='UNESCO',
        base_url='https://en.unesco.org',
        listing_path='/careers',
        selectors=Selectors(
            container='.job-item, .opportunity',
            title='.job-title, h4',
            description='.job-summary, .excerpt',
            deadline='.deadline, .expires',
            location='.location, .office',
        ),
        pagination=Pagination(type='click', max_pages=12, wait_time=2000),
        filters=Filters(
            keywords=('fellowship', 'internship', 'young professionals'),
            exclude_keywords=('senior', 'chief'),
        ),
        request_config=RequestConfig(headers=_headers(), delay=2000, retries=3),
    ),
    SourceConfig(
        id='daad',
        name='DAAD',
        base_url='https://www.daad.de',
        listing_path='/en/find-funding/',
        selectors=Selectors(
            container='.funding-item, .scholarship-item',
            title='.funding-title, h3',
            description='.funding-description, .summary',
            deadline='.application-deadline, .deadline',
            location='.country, .location',
        ),
        pagination=Pagination(type='url', max_pages=20, wait_time=1500),
        filters=Filters(
            language=('english',),
            keywords=('scholarship', 'fellowship', 'research', 'study'),
        ),
        request_config=RequestConfig(headers=_headers(), delay=2000, retries=2),
    ),
    SourceConfig(
        id='mastercard-foundation',
        name='MasterCard Foundation',
        base_url='https://mastercardfdn.org',
        listing_path='/all-programs/',
        selectors=Selectors(
            container='.program-item, .opportunity',
            title='.program-title, h3',
            description='.program-summary, .description',
            deadline='.application-deadline, .deadline',
            location='.location, .region',
        ),
        pagination=Pagination(type='scroll', max_pages=6, wait_time=2500),
        filters=Filters(
            keywords=('scholarship', 'fellowship', 'young leaders', 'education'),
            exclude_keywords=('closed', 'ended'),
        ),
        request_config=RequestConfig(headers=_headers(), delay=2500, retries=3),
    ),
    SourceConfig(
        id='commonwealth',
        name='Commonwealth Scholarships',
        base_url='https://cscuk.fcdo.gov.uk',
        listing_path='/scholarships/',
        selectors=Selectors(
            container='.scholarship-item, .funding-opportunity',
            title='.scholarship-title, h3',
            description='.scholarship-summary, .description',
            deadline='.application-deadline, .closes',
            location='.country, .location',
        ),
        pagination=Pagination(type='url', max_pages=8, wait_time=2000),
        filters=Filters(
            language=('english',),
            keywords=('scholarship', 'fellowship', 'commonwealth', 'study'),
        ),
        request_config=RequestConfig(headers=_headers(), delay=2000, retries=2),
    ),
    SourceConfig(
        id='remoteok',
        name='RemoteOK',
        base_url='https://remoteok.com',
        listing_path='/remote-dev-jobs',
        selectors=Selectors(
            container='.job',
            title='.position',
            description='.description[itemprop="description"], .description, .markdown',
            deadline='.time',
            location='.location',
        ),
        pagination=Pagination(type='url', max_pages=10, wait_time=1500),
        filters=Filters(
            language=('english',),
            keywords=('remote', 'developer', 'engineer', 'programmer', 'software'),
        ),
        request_config=RequestConfig(
            headers={
                'User-Agent': (
                    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
                    '(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36'
                ),
                'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
                'Accept-Language': 'en-US,en;q=0.5',
                'Accept-Encoding': 'gzip, deflate',
                'Connection': 'keep-alive',
                'Upgrade-Insecure-Requests': '1',
            },
            delay=2000,
            retries=3,
        ),
    ),
]

_CONFIGS_BY_ID: Dict[str, SourceConfig] = {config.id: config for config in SOURCE_CONFIGS}


def get_source_config(source_id: str) -> Optional[SourceConfig]:
    """Look up a static source config by id"""
    return _CONFIGS_BY_ID.get(source_id)


def get_all_source_configs() -> List[SourceConfig]:
    return list(SOURCE_CONFIGS)


# Defaults for operator-managed sources whose selector_config omits a field
DYNAMIC_SELECTOR_DEFAULTS = {
    'container': 'body',
    'title': 'h1, h2, h3, .title',
    'description': 'p, .description, .summary',
    'link': 'a',
}

# Gap between requests to an operator-managed site, unless its
# selector_config sets `delay` (ms)
DYNAMIC_REQUEST_DELAY_MS = 2000

SELECTOR_KEYS = ('container', 'title', 'description', 'link', 'deadline', 'location')


@dataclass
class ScrapingSource:
    """
    Operator-managed source stored in the `scraping_sources` table.

    These carry an optional `selector_config`; sources without one go
    straight to the AI/heuristic extractors.
    """
    id: str
    name: str
    url: str
    selector_config: Dict[str, Any] = field(default_factory=dict)
    category_mapping: Dict[str, Any] = field(default_factory=dict)
    scraping_frequency: int = 24
    success_rate: float = 100.0
    last_scraped_at: Optional[datetime] = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'ScrapingSource':
        return cls(
            id=str(row['id']),
            name=row.get('name') or '',
            url=row.get('url') or '',
            selector_config=row.get('selector_config') or {},
            category_mapping=row.get('category_mapping') or {},
            scraping_frequency=row.get('scraping_frequency') or 24,
            success_rate=float(row['success_rate']) if row.get('success_rate') is not None else 100.0,
            last_scraped_at=row.get('last_scraped_at'),
            is_active=row.get('is_active', True),
        )

    @property
    def request_delay_ms(self) -> int:
        delay = self.selector_config.get('delay')
        if isinstance(delay, int) and not isinstance(delay, bool) and delay >= 0:
            return delay
        return DYNAMIC_REQUEST_DELAY_MS

    def to_source_config(self) -> SourceConfig:
        """
        View this source through the same recipe type as the static configs.

        Dynamic selector extraction uses stricter description validation (> 50)
        and caps each page at 20 results. Requests to the site are spaced by
        request_delay_ms.
        """
        configured = {k: v for k, v in self.selector_config.items() if k in SELECTOR_KEYS and v}
        selectors = None
        if configured:
            merged = dict(DYNAMIC_SELECTOR_DEFAULTS)
            merged.update(configured)
            selectors = Selectors(
                container=merged['container'],
                title=merged['title'],
                description=merged['description'],
                link=merged['link'],
                deadline=merged.get('deadline'),
                location=merged.get('location'),
            )
        return SourceConfig(
            id=self.id,
            name=self.name,
            base_url=self.url,
            listing_path='',
            selectors=selectors,
            pagination=Pagination(type='click', max_pages=1),
            request_config=RequestConfig(headers={}, delay=self.request_delay_ms, retries=3),
            min_description_length=50,
            max_results_per_page=MAX_RESULTS_PER_PAGE,
            category_mapping=self.category_mapping,
        )
