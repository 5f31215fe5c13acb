"""
Tests for refreshing descriptions of published opportunities.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from pipeline.description_refresh import DescriptionRefresher


def _seed(store, opp_id, description, source_url='https://jobs.example.org/1', status='approved'):
    store.opportunities[opp_id] = {
        'id': opp_id,
        'title': f'Opportunity {opp_id}',
        'description': description,
        'source_url': source_url,
        'application_url': None,
        'status': status,
    }


def _enricher(side_effect):
    enricher = MagicMock()
    enricher.fetch_description = AsyncMock(side_effect=side_effect)
    return enricher


class TestDescriptionRefresher:

    @pytest.mark.asyncio
    async def test_nothing_to_update(self, store):
        result = await DescriptionRefresher(store, enricher=_enricher([])).refresh()

        assert result == {'message': 'No opportunities to update', 'total': 0, 'updated': 0, 'errors': 0, 'results': []}

    @pytest.mark.asyncio
    async def test_only_longer_descriptions_replace(self, store):
        _seed(store, 'a', 'Short one')
        _seed(store, 'b', 'A somewhat longer stored description')
        longer = 'Full description recovered from the detail page. ' * 5
        enricher = _enricher([longer, 'Tiny'])

        result = await DescriptionRefresher(store, enricher=enricher).refresh()

        assert result['message'] == 'Update completed'
        assert result['total'] == 2
        assert result['updated'] == 1
        assert store.opportunities['a']['description'] == longer
        assert store.opportunities['b']['description'] == 'A somewhat longer stored description'
        assert [r['status'] for r in result['results']] == ['updated', 'unchanged']

    @pytest.mark.asyncio
    async def test_errors_are_counted_and_processing_continues(self, store):
        _seed(store, 'a', 'Short one')
        _seed(store, 'b', 'Short two')
        enricher = _enricher([RuntimeError('parser exploded'), 'Recovered text that is long enough to win'])

        result = await DescriptionRefresher(store, enricher=enricher).refresh()

        assert result['errors'] == 1
        assert result['updated'] == 1
        assert result['results'][0]['status'] == 'error'
        assert 'parser exploded' in result['results'][0]['error']

    @pytest.mark.asyncio
    async def test_update_all_and_limit(self, store):
        _seed(store, 'a', 'x' * 500)
        _seed(store, 'b', 'Short')
        _seed(store, 'c', 'Short', status='pending')

        short_only = await DescriptionRefresher(store, enricher=_enricher([None])).refresh()
        assert short_only['total'] == 1

        limited = await DescriptionRefresher(store, enricher=_enricher([None])).refresh(update_all=True, limit=1)
        assert limited['total'] == 1

    @pytest.mark.asyncio
    async def test_falls_back_to_application_url(self, store):
        _seed(store, 'a', 'Short', source_url=None)
        store.opportunities['a']['application_url'] = 'https://apply.example.org/a'
        enricher = _enricher([None])

        await DescriptionRefresher(store, enricher=enricher).refresh()

        enricher.fetch_description.assert_awaited_once_with('https://apply.example.org/a')
