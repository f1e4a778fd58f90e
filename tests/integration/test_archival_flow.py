"""
End-to-end archival through the CLI, read back over HTTP.
"""

import json

from pack_archive.services.packaging_cache_service import PackagingCacheService
from pack_archive.store.base import Collection
from pack_archive.utils.dates import format_date, utc_now


def _seed(factory, day='2024-01-02'):
    soap = factory.product('111', 'Soap')
    rice = factory.product('222', 'Rice')
    kit = factory.product('900', 'Starter Kit', type='bundle')
    factory.component(kit, soap, quantity=2)
    factory.component(kit, rice)

    record = factory.record(day, 'WB-0001')
    factory.item(record, '111', f'{day}T08:00:00+00:00')
    factory.item(record, '900', f'{day}T09:00:00+00:00')
    factory.item(record, '555', f'{day}T07:00:00+00:00')


def _warmup(app, *args):
    return app.test_cli_runner().invoke(args=['packaging', 'warmup', *args])


class TestArchivalFlow:

    def test_warmup_cli_writes_cache(self, app, sql_factory, sql_store):
        _seed(sql_factory)

        result = _warmup(app, '--date', '2024-01-02')

        assert result.exit_code == 0, result.output
        summary = json.loads(result.output[:result.output.rindex('}') + 1])
        assert summary['cachedDates'] == 1
        assert summary['totalItems'] == 3

        records = PackagingCacheService(sql_store).get('2024-01-02')
        items = records[0]['items']
        assert [i['product_name'] for i in items] == ['Starter Kit', 'Soap', 'Unknown Product']
        assert sorted(items[0]['bundle_components'], key=lambda c: c['barcode']) == [
            {'barcode': '111', 'product_name': 'Soap', 'quantity': 2},
            {'barcode': '222', 'product_name': 'Rice', 'quantity': 1},
        ]

    def test_warmup_twice_keeps_one_entry(self, app, sql_factory, sql_store):
        _seed(sql_factory)

        _warmup(app, '--date', '2024-01-02')
        _warmup(app, '--date', '2024-01-02')

        assert PackagingCacheService(sql_store).list_cached_dates() == ['2024-01-02']

    def test_warmup_rejects_bad_dates(self, app, sql_store):
        result = _warmup(app, '--date', '2024-02-30')
        assert result.exit_code != 0
        assert 'date' in result.output

        result = _warmup(app, '--start-date', '2024-01-05', '--end-date', '2024-01-01')
        assert result.exit_code != 0
        assert 'after endDate' in result.output

    def test_archive_cli_uses_reference_date(self, app, sql_factory, sql_store):
        _seed(sql_factory)

        result = app.test_cli_runner().invoke(args=['packaging', 'archive', '--today', '2024-01-03'])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)['date'] == '2024-01-02'

    def test_show_and_invalidate(self, app, sql_factory, sql_store):
        _seed(sql_factory)
        _warmup(app, '--date', '2024-01-02')
        runner = app.test_cli_runner()

        shown = runner.invoke(args=['packaging', 'show', '2024-01-02'])
        assert shown.exit_code == 0
        assert json.loads(shown.output)[0]['waybill_number'] == 'WB-0001'

        assert 'deleted' in runner.invoke(args=['packaging', 'invalidate', '2024-01-02']).output
        assert runner.invoke(args=['packaging', 'show', '2024-01-02']).exit_code != 0

    def test_crontab_prints_schedule(self, app):
        result = app.test_cli_runner().invoke(args=['packaging', 'crontab', '--workdir', '/srv/app'])

        assert 'CRON_TZ=UTC' in result.output.splitlines()
        assert '0 0 * * * cd /srv/app && flask packaging archive' in result.output

    def test_crontab_follows_archival_timezone(self, app):
        app.config['ARCHIVAL_TIMEZONE'] = 'Asia/Bangkok'
        try:
            result = app.test_cli_runner().invoke(args=['packaging', 'crontab'])
        finally:
            app.config['ARCHIVAL_TIMEZONE'] = 'UTC'

        assert result.output.splitlines()[0] == 'CRON_TZ=Asia/Bangkok'
        assert '(times in Asia/Bangkok)' in result.output
        assert 'UTC' not in result.output


class TestCacheApi:

    def test_get_archived_date(self, app, client, sql_factory, sql_store):
        _seed(sql_factory)
        _warmup(app, '--date', '2024-01-02')

        response = client.get('/api/packaging/cache/2024-01-02')

        assert response.status_code == 200
        body = response.get_json()
        assert body['date'] == '2024-01-02'
        assert body['source'] == 'cache'
        assert body['records'][0]['items'][0]['is_bundle'] is True

        listed = client.get('/api/packaging/cache').get_json()
        assert listed['dates'] == ['2024-01-02']

    def test_unarchived_past_date_is_built_and_cached(self, client, sql_factory, sql_store):
        _seed(sql_factory)

        response = client.get('/api/packaging/cache/2024-01-02')

        assert response.status_code == 200
        body = response.get_json()
        assert body['source'] == 'database_cache_miss'
        assert [i['product_name'] for i in body['records'][0]['items']] == [
            'Starter Kit', 'Soap', 'Unknown Product',
        ]
        assert PackagingCacheService(sql_store).get('2024-01-02') == body['records']

        again = client.get('/api/packaging/cache/2024-01-02').get_json()
        assert again['source'] == 'cache'
        assert again['records'] == body['records']

    def test_past_date_without_records_is_empty_and_not_cached(self, client, sql_store):
        response = client.get('/api/packaging/cache/2023-06-01')

        assert response.status_code == 200
        assert response.get_json()['records'] == []
        assert sql_store.list(Collection.PACKAGING_CACHE) == []

    def test_today_is_read_live_without_caching(self, client, sql_factory, sql_store):
        today = format_date(utc_now().date())
        _seed(sql_factory, today)

        body = client.get(f'/api/packaging/cache/{today}').get_json()

        assert body['source'] == 'database'
        assert len(body['records'][0]['items']) == 3
        assert sql_store.list(Collection.PACKAGING_CACHE) == []

    def test_malformed_date_is_400(self, client, sql_store):
        assert client.get('/api/packaging/cache/june').status_code == 400

    def test_metrics_endpoint(self, app, client, sql_store):
        _warmup(app, '--date', '2024-01-02')

        response = client.get('/metrics')

        assert response.status_code == 200
        assert b'packaging_job_runs_total' in response.data
