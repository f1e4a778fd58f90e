"""
Packaging archival pipeline and its two entry points.

For one date the pipeline runs strictly in sequence:

    records -> items -> products -> bundle recipes -> assemble -> upsert

and moves through ``pending -> fetched -> enriched -> cached`` (or
``skipped`` when the date has no records, or ``failed``). The cache write
is the last step, so an interrupted run leaves nothing behind for that
date and re-running it is safe.

Entry points:
    - run_scheduled_archival: yesterday, all-or-nothing (errors re-raised)
    - run_cache_warmup: one date, an inclusive range, or yesterday; each
      date's failure is recorded and the remaining dates still run
    - run_history_backfill: every historical date found in the records
    - read_date: cache-aside read used by the HTTP API
"""
import enum
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pack_archive.exceptions import InvalidPayloadError
from pack_archive.services.batch_lookup import DEFAULT_BATCH_SIZE, resolve_in_batches
from pack_archive.services.bundle_service import resolve_bundle_components
from pack_archive.services.collection_reader import (
    DEFAULT_DELAY_MS,
    DEFAULT_PAGE_SIZE,
    Pause,
    make_pause,
    read_all,
)
from pack_archive.services.enrichment_service import assemble_records, count_items
from pack_archive.services.packaging_cache_service import PackagingCacheService
from pack_archive.store.base import ASC, DESC, Collection, DocumentStore
from pack_archive.utils.dates import (
    date_range,
    format_date,
    local_today,
    parse_iso_date,
    previous_day,
    resolve_timezone,
    utc_now,
)

logger = logging.getLogger(__name__)


class DateState(str, enum.Enum):
    PENDING = 'pending'
    FETCHED = 'fetched'
    ENRICHED = 'enriched'
    CACHED = 'cached'
    SKIPPED = 'skipped'
    FAILED = 'failed'


@dataclass
class DateResult:
    """Outcome of archiving one date."""
    date: str
    success: bool = False
    records: int = 0
    items: int = 0
    cached: bool = False
    state: DateState = DateState.PENDING
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        rv = {
            'date': self.date,
            'success': self.success,
            'records': self.records,
            'items': self.items,
            'cached': self.cached,
        }
        if self.error is not None:
            rv['error'] = self.error
        return rv


@dataclass
class WarmupSummary:
    """Aggregate over every date a warmup attempted."""
    results: List[DateResult] = field(default_factory=list)

    @property
    def total_dates(self) -> int:
        return len(self.results)

    @property
    def successful_dates(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def cached_dates(self) -> int:
        return sum(1 for r in self.results if r.cached)

    @property
    def total_records(self) -> int:
        return sum(r.records for r in self.results)

    @property
    def total_items(self) -> int:
        return sum(r.items for r in self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalDates': self.total_dates,
            'successfulDates': self.successful_dates,
            'cachedDates': self.cached_dates,
            'totalRecords': self.total_records,
            'totalItems': self.total_items,
            'results': [r.to_dict() for r in self.results],
        }


class ArchivalPipeline:
    """Builds and stores the enriched snapshot of a packaging date."""

    def __init__(
        self,
        store: DocumentStore,
        cache_service: Optional[PackagingCacheService] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        batch_size: int = DEFAULT_BATCH_SIZE,
        pause: Optional[Pause] = None,
        clock=utc_now,
        timezone_name: str = 'UTC',
    ):
        self.store = store
        self.clock = clock
        self.cache_service = cache_service or PackagingCacheService(store, clock=clock)
        self.page_size = page_size
        self.batch_size = batch_size
        self.pause = pause if pause is not None else make_pause(DEFAULT_DELAY_MS)
        self.timezone = resolve_timezone(timezone_name)

    @classmethod
    def from_config(cls, config, store: DocumentStore, cache=None, clock=utc_now):
        """Pipeline wired from a Flask config mapping."""
        return cls(
            store,
            cache_service=PackagingCacheService(store, cache=cache, clock=clock),
            page_size=config.get('PACKAGING_PAGE_SIZE', DEFAULT_PAGE_SIZE),
            batch_size=config.get('PACKAGING_BATCH_SIZE', DEFAULT_BATCH_SIZE),
            pause=make_pause(config.get('PACKAGING_API_DELAY_MS', DEFAULT_DELAY_MS)),
            clock=clock,
            timezone_name=config.get('ARCHIVAL_TIMEZONE', 'UTC'),
        )

    # Reference dates

    def today(self) -> date:
        return local_today(self.clock, self.timezone)

    def yesterday(self) -> date:
        return previous_day(self.today())

    # Fetch steps

    def fetch_records(self, date_string: str) -> List[dict]:
        records = read_all(
            self.store,
            Collection.PACKAGING_RECORDS,
            filters={'packaging_date': date_string},
            sort=[('created_at', DESC)],
            page_size=self.page_size,
            pause=self.pause,
        )
        logger.info(f"[ARCHIVE] Fetched {len(records)} packaging records for {date_string}")
        return records

    def fetch_items(self, records: Sequence[dict]) -> List[dict]:
        items = []
        for index, record in enumerate(records):
            if index:
                self.pause()
            items.extend(read_all(
                self.store,
                Collection.PACKAGING_ITEMS,
                filters={'packaging_record_id': record['id']},
                sort=[('scanned_at', DESC)],
                page_size=self.page_size,
                pause=self.pause,
            ))
        return items

    def resolve_products(self, items: Sequence[dict]) -> Dict[str, dict]:
        return resolve_in_batches(
            self.store,
            Collection.PRODUCTS,
            'barcode',
            (item.get('product_barcode') for item in items),
            batch_size=self.batch_size,
            pause=self.pause,
        )

    def build_snapshot(self, date_string: str, result: Optional[DateResult] = None) -> List[dict]:
        """Fetch and enrich every record of a date (no writes)."""
        result = result or DateResult(date=date_string)

        records = self.fetch_records(date_string)
        items = self.fetch_items(records) if records else []
        result.state = DateState.FETCHED

        product_map = self.resolve_products(items)
        bundle_map = resolve_bundle_components(self.store, product_map, pause=self.pause)
        snapshot = assemble_records(records, items, product_map, bundle_map)
        result.state = DateState.ENRICHED
        return snapshot

    def archive_date(self, day, result: Optional[DateResult] = None) -> DateResult:
        """
        Archive one date.

        Raises on any failure; ``result`` (when passed in) keeps the last
        state reached, so callers can tell how far the date got.
        """
        date_string = format_date(parse_iso_date(day))
        result = result or DateResult(date=date_string)

        snapshot = self.build_snapshot(date_string, result)
        result.records = len(snapshot)
        result.items = count_items(snapshot)

        if not snapshot:
            logger.info(f"[ARCHIVE] No packaging records found for {date_string}, skipping cache")
            result.state = DateState.SKIPPED
            result.success = True
            return result

        self.cache_service.upsert(date_string, snapshot)
        result.state = DateState.CACHED
        result.cached = True
        result.success = True
        logger.info(
            f"[ARCHIVE] Archived {result.records} records with {result.items} items for {date_string}"
        )
        return result


SOURCE_CACHE = 'cache'
SOURCE_DATABASE = 'database'
SOURCE_CACHE_MISS = 'database_cache_miss'


def read_date(pipeline: ArchivalPipeline, day) -> Tuple[List[dict], str]:
    """
    Enriched records for a date and where they came from.

    Today (and any later date) is built live and never cached while scans
    are still coming in. Earlier dates are served from the cache; a miss
    builds the snapshot and stores it when the date has records.
    """
    day = parse_iso_date(day)
    date_string = format_date(day)

    if day >= pipeline.today():
        logger.info(f"[ARCHIVE] Reading {date_string} live (no cache)")
        return pipeline.build_snapshot(date_string), SOURCE_DATABASE

    cached = pipeline.cache_service.get(date_string)
    if cached is not None:
        return cached, SOURCE_CACHE

    snapshot = pipeline.build_snapshot(date_string)
    if snapshot:
        pipeline.cache_service.upsert(date_string, snapshot)
    logger.info(f"[ARCHIVE] Built {len(snapshot)} records for {date_string} on cache miss")
    return snapshot, SOURCE_CACHE_MISS


def run_scheduled_archival(pipeline: ArchivalPipeline) -> Dict[str, Any]:
    """Daily job: archive yesterday. Any failure propagates to the job runtime."""
    target = format_date(pipeline.yesterday())
    logger.info(f"[ARCHIVE] Starting packaging archival for {target}")

    result = DateResult(date=target)
    try:
        pipeline.archive_date(target, result)
    except Exception:
        result.state = DateState.FAILED
        logger.exception(f"[ARCHIVE] Packaging archival failed for {target}")
        raise
    return result.to_dict()


@dataclass
class WarmupPayload:
    """Warmup job input: a date, an inclusive range, or nothing."""
    date: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Optional[Dict[str, Any]]) -> "WarmupPayload":
        payload = payload or {}
        if not isinstance(payload, dict):
            raise InvalidPayloadError("Warmup payload must be an object")
        return cls(
            date=payload.get('date'),
            start_date=payload.get('startDate', payload.get('start_date')),
            end_date=payload.get('endDate', payload.get('end_date')),
        )

    def resolve_dates(self, default_date: date) -> List[date]:
        """Dates to process, ascending."""
        if self.date:
            return [parse_iso_date(self.date, 'date')]

        if self.start_date or self.end_date:
            if not (self.start_date and self.end_date):
                raise InvalidPayloadError("startDate and endDate must be given together")
            start = parse_iso_date(self.start_date, 'startDate')
            end = parse_iso_date(self.end_date, 'endDate')
            if start > end:
                raise InvalidPayloadError(
                    f"startDate {format_date(start)} is after endDate {format_date(end)}"
                )
            return date_range(start, end)

        return [default_date]


def warm_dates(pipeline: ArchivalPipeline, days: Sequence[date]) -> WarmupSummary:
    """Archive each date in turn, recording failures instead of stopping."""
    summary = WarmupSummary()
    for day in days:
        date_string = format_date(day)
        result = DateResult(date=date_string)
        logger.info(f"[ARCHIVE] Processing date: {date_string}")
        try:
            pipeline.archive_date(day, result)
        except Exception as e:
            logger.exception(f"[ARCHIVE] Failed to cache {date_string}")
            result = DateResult(
                date=date_string,
                success=False,
                state=DateState.FAILED,
                error=str(e) or e.__class__.__name__,
            )
        summary.results.append(result)
    return summary


def run_cache_warmup(pipeline: ArchivalPipeline, payload: Optional[Dict[str, Any]] = None) -> WarmupSummary:
    """On-demand archival for a date, a range, or yesterday by default."""
    days = WarmupPayload.from_dict(payload).resolve_dates(pipeline.yesterday())
    logger.info(
        f"[ARCHIVE] Starting cache warmup for {len(days)} date(s): "
        f"{', '.join(format_date(d) for d in days)}"
    )

    summary = warm_dates(pipeline, days)
    logger.info(
        f"[ARCHIVE] Cache warmup completed: {summary.successful_dates}/{summary.total_dates} "
        f"succeeded, {summary.cached_dates} cached"
    )
    return summary


def list_historical_dates(pipeline: ArchivalPipeline) -> List[date]:
    """Distinct packaging dates strictly before today, ascending."""
    records = read_all(
        pipeline.store,
        Collection.PACKAGING_RECORDS,
        sort=[('packaging_date', ASC)],
        page_size=pipeline.page_size,
        pause=pipeline.pause,
    )
    today = pipeline.today()
    days = set()
    for record in records:
        try:
            day = parse_iso_date(record.get('packaging_date'), 'packaging_date')
        except InvalidPayloadError:
            logger.warning(f"[ARCHIVE] Ignoring record {record['id']} with bad packaging_date")
            continue
        if day < today:
            days.add(day)
    return sorted(days)


def run_history_backfill(pipeline: ArchivalPipeline, skip_cached: bool = False) -> WarmupSummary:
    """Archive every historical date present in the records collection."""
    days = list_historical_dates(pipeline)
    if skip_cached:
        cached = set(pipeline.cache_service.list_cached_dates(pipeline.page_size))
        days = [d for d in days if format_date(d) not in cached]

    logger.info(f"[ARCHIVE] Backfilling {len(days)} historical date(s)")
    return warm_dates(pipeline, days)
