"""
Flask CLI commands for packaging archival.

Commands:
- flask packaging archive: Archive yesterday (the daily cron entry point)
- flask packaging warmup: Archive a date or an inclusive date range
- flask packaging backfill: Archive every historical date
- flask packaging show / invalidate: Inspect or drop one cache entry
- flask packaging crontab: Print the crontab line for scheduled jobs
- flask packaging init-db: Create the SQL tables
"""

import json
from datetime import datetime, time

import click
from flask import current_app
from flask.cli import AppGroup

from pack_archive.exceptions import InvalidPayloadError, PackagingError
from pack_archive.services.archival_service import run_history_backfill
from pack_archive.services.job_service import (
    ARCHIVAL_JOB_ID,
    WARMUP_JOB_ID,
    build_job_runner,
    default_jobs,
)
from pack_archive.services.packaging_cache_service import PackagingCacheService
from pack_archive.utils.dates import format_date, parse_iso_date, resolve_timezone

packaging_cli = AppGroup('packaging', help='Packaging cache archival.')


def _echo_json(data):
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _validate_date(ctx, param, value):
    if value is None:
        return None
    try:
        return format_date(parse_iso_date(value, param.name))
    except InvalidPayloadError as e:
        raise click.BadParameter(e.message)


def _fixed_clock(day_string):
    """Clock pinned to noon of the given day in the archival timezone."""
    day = parse_iso_date(day_string, 'today')
    tz = resolve_timezone(current_app.config.get('ARCHIVAL_TIMEZONE', 'UTC'))
    pinned = datetime.combine(day, time(12, 0), tzinfo=tz)
    return lambda: pinned


def _cache_service():
    return PackagingCacheService(
        current_app.extensions['document_store'], cache=current_app.extensions.get('cache')
    )


@packaging_cli.command('archive')
@click.option('--today', 'today', default=None, callback=_validate_date, help='Reference date (YYYY-MM-DD); archives the day before')
def archive(today):
    """Archive yesterday's packaging data (scheduled job)."""
    clock = _fixed_clock(today) if today else None
    runner = build_job_runner(current_app, clock=clock)
    try:
        result = runner.run(ARCHIVAL_JOB_ID)
    except PackagingError as e:
        raise click.ClickException(e.message)
    _echo_json(result)


@packaging_cli.command('warmup')
@click.option('--date', 'date_', default=None, callback=_validate_date, help='Single date to archive (YYYY-MM-DD)')
@click.option('--start-date', default=None, callback=_validate_date, help='First date of an inclusive range')
@click.option('--end-date', default=None, callback=_validate_date, help='Last date of an inclusive range')
def warmup(date_, start_date, end_date):
    """Archive a date, a date range, or yesterday by default."""
    payload = {}
    if date_:
        payload['date'] = date_
    if start_date:
        payload['startDate'] = start_date
    if end_date:
        payload['endDate'] = end_date

    runner = build_job_runner(current_app)
    try:
        summary = runner.run(WARMUP_JOB_ID, payload)
    except PackagingError as e:
        raise click.ClickException(e.message)

    _echo_json(summary)
    color = 'green' if summary['successfulDates'] == summary['totalDates'] else 'yellow'
    click.echo(click.style(
        f"Dates cached: {summary['cachedDates']}/{summary['totalDates']} "
        f"({summary['totalRecords']} records, {summary['totalItems']} items)",
        fg=color,
    ))


@packaging_cli.command('backfill')
@click.option('--skip-cached', is_flag=True, help='Leave dates that already have a cache entry alone')
def backfill(skip_cached):
    """Archive every historical packaging date (today excluded)."""
    runner = build_job_runner(current_app)
    summary = run_history_backfill(runner.pipeline, skip_cached=skip_cached)

    for index, result in enumerate(summary.results, start=1):
        prefix = f"[{index}/{summary.total_dates}] {result.date}"
        if result.success:
            click.echo(f"{prefix} ✓ {result.records} records, {result.items} items")
        else:
            click.echo(click.style(f"{prefix} ✗ Error: {result.error}", fg='red'))

    click.echo(click.style(
        f"\nDates cached: {summary.cached_dates}/{summary.total_dates}"
        f" | Total records: {summary.total_records} | Total items: {summary.total_items}",
        fg='green' if summary.successful_dates == summary.total_dates else 'yellow',
        bold=True,
    ))


@packaging_cli.command('show')
@click.argument('cache_date', callback=_validate_date)
def show(cache_date):
    """Print the archived records for a date."""
    records = _cache_service().get(cache_date)
    if records is None:
        raise click.ClickException(f"No cached packaging data for {cache_date}")
    _echo_json(records)


@packaging_cli.command('invalidate')
@click.argument('cache_date', callback=_validate_date)
def invalidate(cache_date):
    """Delete the cache entry for a date."""
    if _cache_service().invalidate(cache_date):
        click.echo(click.style(f"Cache for {cache_date} deleted", fg='green'))
    else:
        click.echo(click.style(f"No cache entry for {cache_date}", fg='yellow'))


@packaging_cli.command('crontab')
@click.option('--workdir', default='.', help='Directory the command runs from')
def crontab(workdir):
    """Print crontab lines for the recurring jobs."""
    jobs = [job for job in default_jobs(current_app.config.get('ARCHIVAL_CRON', '0 0 * * *')) if job.cron]
    tz_name = current_app.config.get('ARCHIVAL_TIMEZONE', 'UTC')
    # Cron fields are read in the archival timezone, not the host one
    click.echo(f"CRON_TZ={tz_name}")
    for job in jobs:
        click.echo(f"# {job.id}: {job.description} (times in {tz_name})")
        click.echo(f"{job.cron} cd {workdir} && flask packaging archive")


@packaging_cli.command('init-db')
def init_db_command():
    """Create database tables for the SQL store."""
    if current_app.config.get('DOCUMENT_STORE') != 'sql':
        raise click.ClickException('init-db only applies to the sql document store')
    from pack_archive.database import create_all
    create_all()
    click.echo(click.style('Tables created', fg='green'))


def init_cli_commands(app):
    """Register CLI commands with Flask app."""
    app.cli.add_command(packaging_cli)
