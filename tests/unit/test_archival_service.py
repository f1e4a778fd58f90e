"""
Unit tests for the archival pipeline and its entry points.
"""

import json

import pytest
from pack_archive.exceptions import InvalidPayloadError, StoreUnavailableError
from pack_archive.services.archival_service import (
    ArchivalPipeline,
    DateResult,
    DateState,
    SOURCE_CACHE,
    SOURCE_CACHE_MISS,
    SOURCE_DATABASE,
    list_historical_dates,
    read_date,
    run_cache_warmup,
    run_history_backfill,
    run_scheduled_archival,
)
from pack_archive.store.base import Collection
from pack_archive.store.memory import MemoryDocumentStore


class FlakyRecordsStore(MemoryDocumentStore):
    """Fails every records read for one packaging date."""

    def __init__(self, failing_date, **kwargs):
        super().__init__(**kwargs)
        self.failing_date = failing_date

    def list(self, collection, filters=None, sort=None, limit=None, offset=0):
        if collection == Collection.PACKAGING_RECORDS and (filters or {}).get('packaging_date') == self.failing_date:
            raise StoreUnavailableError('records backend timed out')
        return super().list(collection, filters, sort, limit, offset)


@pytest.fixture
def catalog(factory):
    soap = factory.product('111', 'Soap')
    rice = factory.product('222', 'Rice')
    kit = factory.product('900', 'Starter Kit', type='bundle')
    factory.component(kit, soap, quantity=2)
    factory.component(kit, rice, quantity=1)
    return {'soap': soap, 'rice': rice, 'kit': kit}


def fill_day(factory, day, waybills=1):
    for n in range(waybills):
        record = factory.record(day, f'WB-{day}-{n}')
        factory.item(record, '111', f'{day}T08:00:00+00:00')
        factory.item(record, '900', f'{day}T09:00:00+00:00')


def cached_snapshots(store, day):
    rows = store.list(Collection.PACKAGING_CACHE, filters={'cache_date': day})
    return [json.loads(row['data']) for row in rows]


class TestArchiveDate:
    """Tests for ArchivalPipeline.archive_date."""

    def test_writes_enriched_snapshot(self, store, factory, catalog, pipeline):
        fill_day(factory, '2024-01-02')

        result = pipeline.archive_date('2024-01-02')

        assert result.success and result.cached
        assert result.state == DateState.CACHED
        assert (result.records, result.items) == (1, 2)

        [snapshot] = cached_snapshots(store, '2024-01-02')
        items = snapshot[0]['items']
        assert [i['product_barcode'] for i in items] == ['900', '111']
        assert items[0]['is_bundle'] is True
        assert items[0]['bundle_components'] == [
            {'barcode': '111', 'product_name': 'Soap', 'quantity': 2},
            {'barcode': '222', 'product_name': 'Rice', 'quantity': 1},
        ]
        assert items[1] == {**items[1], 'product_name': 'Soap', 'is_bundle': False}
        assert 'bundle_components' not in items[1]

    def test_running_twice_keeps_one_identical_row(self, store, factory, catalog, pipeline):
        fill_day(factory, '2024-01-02', waybills=2)

        pipeline.archive_date('2024-01-02')
        first = cached_snapshots(store, '2024-01-02')
        pipeline.archive_date('2024-01-02')

        assert cached_snapshots(store, '2024-01-02') == first
        assert len(store.list(Collection.PACKAGING_CACHE)) == 1

    def test_empty_date_is_skipped_without_writing(self, store, catalog, pipeline):
        result = pipeline.archive_date('2024-01-02')

        assert result.to_dict() == {
            'date': '2024-01-02', 'success': True, 'records': 0, 'items': 0, 'cached': False,
        }
        assert result.state == DateState.SKIPPED
        assert store.count_calls('create', Collection.PACKAGING_CACHE) == 0
        assert store.count_calls('list', Collection.PACKAGING_ITEMS) == 0

    def test_only_the_requested_date_is_read(self, store, factory, catalog, pipeline):
        fill_day(factory, '2024-01-01')
        fill_day(factory, '2024-01-02')

        result = pipeline.archive_date('2024-01-02')

        assert result.records == 1
        assert cached_snapshots(store, '2024-01-01') == []

    def test_failure_leaves_no_cache_row(self, clock):
        store = FlakyRecordsStore('2024-01-02', clock=clock)
        pipeline = ArchivalPipeline(store, pause=lambda: None, clock=clock)
        result = DateResult(date='2024-01-02')

        with pytest.raises(StoreUnavailableError):
            pipeline.archive_date('2024-01-02', result)

        assert result.state == DateState.PENDING
        assert store.list(Collection.PACKAGING_CACHE) == []


class TestScheduledArchival:

    def test_archives_yesterday(self, store, factory, catalog, pipeline):
        fill_day(factory, '2024-01-03')
        fill_day(factory, '2024-01-04')

        assert run_scheduled_archival(pipeline) == {
            'date': '2024-01-03', 'success': True, 'records': 1, 'items': 2, 'cached': True,
        }
        assert [r['cache_date'] for r in store.list(Collection.PACKAGING_CACHE)] == ['2024-01-03']

    def test_failure_is_reraised(self, clock):
        store = FlakyRecordsStore('2024-01-03', clock=clock)
        pipeline = ArchivalPipeline(store, pause=lambda: None, clock=clock)

        with pytest.raises(StoreUnavailableError):
            run_scheduled_archival(pipeline)


class TestCacheWarmup:

    def test_range_processes_each_date_in_order(self, factory, catalog, pipeline):
        fill_day(factory, '2024-01-01')
        fill_day(factory, '2024-01-03', waybills=2)

        summary = run_cache_warmup(pipeline, {'startDate': '2024-01-01', 'endDate': '2024-01-03'}).to_dict()

        assert [r['date'] for r in summary['results']] == ['2024-01-01', '2024-01-02', '2024-01-03']
        assert summary['totalDates'] == 3
        assert summary['successfulDates'] == 3
        assert summary['cachedDates'] == 2
        assert summary['totalRecords'] == 3
        assert summary['totalItems'] == 6

    def test_one_failing_date_does_not_stop_the_rest(self, clock):
        store = FlakyRecordsStore('2024-01-02', clock=clock)
        pipeline = ArchivalPipeline(store, pause=lambda: None, clock=clock)
        for day in ('2024-01-01', '2024-01-03'):
            record = store.create(Collection.PACKAGING_RECORDS, {'packaging_date': day, 'waybill_number': day})
            store.create(Collection.PACKAGING_ITEMS, {
                'packaging_record_id': record['id'], 'product_barcode': 'x', 'scanned_at': f'{day}T10:00:00Z',
            })

        summary = run_cache_warmup(pipeline, {'startDate': '2024-01-01', 'endDate': '2024-01-03'})

        assert summary.successful_dates == 2
        failed = summary.results[1].to_dict()
        assert failed == {
            'date': '2024-01-02', 'success': False, 'records': 0, 'items': 0, 'cached': False,
            'error': 'records backend timed out',
        }
        cached = sorted(r['cache_date'] for r in store.list(Collection.PACKAGING_CACHE))
        assert cached == ['2024-01-01', '2024-01-03']

    def test_single_date_wins_over_range(self, factory, catalog, pipeline):
        summary = run_cache_warmup(pipeline, {
            'date': '2024-01-02', 'startDate': '2023-12-01', 'endDate': '2023-12-31',
        })

        assert [r.date for r in summary.results] == ['2024-01-02']

    def test_defaults_to_yesterday(self, pipeline):
        summary = run_cache_warmup(pipeline, {})

        assert [r.date for r in summary.results] == ['2024-01-03']

    @pytest.mark.parametrize('payload', [
        {'startDate': '2024-01-01'},
        {'endDate': '2024-01-01'},
        {'startDate': '2024-01-05', 'endDate': '2024-01-01'},
        {'date': '2024-02-30'},
        ['2024-01-01'],
    ])
    def test_invalid_payloads(self, store, pipeline, payload):
        with pytest.raises(InvalidPayloadError):
            run_cache_warmup(pipeline, payload)
        assert store.calls == []


class TestHistoryBackfill:

    def test_lists_distinct_past_dates(self, factory, pipeline):
        for day in ('2024-01-02', '2023-12-31', '2024-01-02', '2024-01-04', '2024-01-05'):
            factory.record(day)

        assert [d.isoformat() for d in list_historical_dates(pipeline)] == ['2023-12-31', '2024-01-02']

    def test_skip_cached(self, store, factory, catalog, pipeline):
        fill_day(factory, '2024-01-01')
        fill_day(factory, '2024-01-02')
        pipeline.archive_date('2024-01-01')

        summary = run_history_backfill(pipeline, skip_cached=True)

        assert [r.date for r in summary.results] == ['2024-01-02']
        assert summary.cached_dates == 1


class TestReadDate:
    """Cache-aside reads used by the HTTP API."""

    def test_miss_builds_and_caches_past_date(self, store, factory, catalog, pipeline):
        fill_day(factory, '2024-01-02')

        records, source = read_date(pipeline, '2024-01-02')

        assert source == SOURCE_CACHE_MISS
        assert [i['product_barcode'] for i in records[0]['items']] == ['900', '111']
        assert cached_snapshots(store, '2024-01-02') == [records]

        again, source = read_date(pipeline, '2024-01-02')
        assert source == SOURCE_CACHE
        assert again == records

    def test_empty_past_date_is_not_cached(self, store, pipeline):
        assert read_date(pipeline, '2024-01-01') == ([], SOURCE_CACHE_MISS)
        assert store.count_calls('create', Collection.PACKAGING_CACHE) == 0

    def test_today_is_built_live(self, store, factory, catalog, pipeline):
        fill_day(factory, '2024-01-04')

        records, source = read_date(pipeline, '2024-01-04')

        assert source == SOURCE_DATABASE
        assert len(records) == 1
        assert store.list(Collection.PACKAGING_CACHE) == []
        assert store.count_calls('list', Collection.PACKAGING_CACHE) == 0


def test_items_pause_only_between_records(store, factory, clock):
    pauses = []
    pipeline = ArchivalPipeline(store, pause=lambda: pauses.append(1), clock=clock)
    records = [factory.record('2024-01-02') for _ in range(3)]

    pipeline.fetch_items(records)

    assert len(pauses) == 2
