"""
Packaging cache persistence.

One PackagingCache document per calendar date holds the serialized
enriched records. Writes are upserts keyed by ``cache_date``: the row is
looked up first and updated when present, created otherwise, so archiving
the same date twice never produces a second row. The lookup and the write
are not atomic; two concurrent runs for one date can both try to create,
and the unique constraint turns the loser into a DocumentConflictError.
"""
import json
import logging
from dataclasses import dataclass
from typing import List, Optional

from pack_archive.services.cache_service import CacheService
from pack_archive.services.collection_reader import read_all
from pack_archive.store.base import ASC, Collection, Document, DocumentStore
from pack_archive.utils.dates import isoformat_timestamp, utc_now

logger = logging.getLogger(__name__)

CACHE_MODULE = 'packaging_cache'


@dataclass
class CacheWriteResult:
    cache_date: str
    created: bool
    document: Document


def serialize_records(records: List[dict]) -> str:
    return json.dumps(records, ensure_ascii=False)


class PackagingCacheService:
    """Upsert and read access to the packaging cache collection."""

    def __init__(self, store: DocumentStore, cache: Optional[CacheService] = None, clock=utc_now):
        self.store = store
        self.cache = cache
        self.clock = clock

    def find_entry(self, cache_date: str) -> Optional[Document]:
        """The cache row for a date, or None."""
        found = self.store.list(
            Collection.PACKAGING_CACHE,
            filters={'cache_date': cache_date},
            limit=1,
        )
        return found[0] if found else None

    def upsert(self, cache_date: str, records: List[dict]) -> CacheWriteResult:
        """Write the snapshot for cache_date, replacing any previous one."""
        fields = {
            'cache_date': cache_date,
            'data': serialize_records(records),
            'cached_at': isoformat_timestamp(self.clock()),
        }

        existing = self.find_entry(cache_date)
        if existing:
            document = self.store.update(Collection.PACKAGING_CACHE, existing['id'], fields)
            logger.info(f"[CACHE] Updated existing cache for {cache_date}")
            created = False
        else:
            document = self.store.create(Collection.PACKAGING_CACHE, fields)
            logger.info(f"[CACHE] Created new cache for {cache_date}")
            created = True

        if self.cache:
            self.cache.delete(CACHE_MODULE, cache_date)
        return CacheWriteResult(cache_date=cache_date, created=created, document=document)

    def get(self, cache_date: str) -> Optional[List[dict]]:
        """
        Cached records for a date, or None on a miss.

        Snapshots written before items carried ``is_bundle`` read back with
        ``is_bundle`` False; ``bundle_components`` stays optional.
        """
        if self.cache:
            hit = self.cache.get(CACHE_MODULE, cache_date)
            if hit is not None:
                logger.debug(f"[CACHE] HIT (redis) {cache_date}")
                return hit

        entry = self.find_entry(cache_date)
        if entry is None:
            logger.info(f"[CACHE] MISS - No cache found for {cache_date}")
            return None

        try:
            records = json.loads(entry['data'])
        except (TypeError, ValueError) as e:
            logger.error(f"[CACHE] Corrupt cache entry for {cache_date}: {e}")
            return None

        for record in records:
            for item in record.get('items', ()):
                item.setdefault('is_bundle', False)

        logger.info(f"[CACHE] HIT - Found {len(records)} records for {cache_date}")
        if self.cache:
            self.cache.set(CACHE_MODULE, cache_date, records)
        return records

    def exists(self, cache_date: str) -> bool:
        return self.find_entry(cache_date) is not None

    def invalidate(self, cache_date: str) -> bool:
        """Delete the cache row for a date. Returns False if there was none."""
        entry = self.find_entry(cache_date)
        if self.cache:
            self.cache.delete(CACHE_MODULE, cache_date)
        if entry is None:
            return False
        self.store.delete(Collection.PACKAGING_CACHE, entry['id'])
        logger.info(f"[CACHE] Invalidated cache for {cache_date}")
        return True

    def list_cached_dates(self, page_size: int = 100) -> List[str]:
        entries = read_all(
            self.store,
            Collection.PACKAGING_CACHE,
            sort=[('cache_date', ASC)],
            page_size=page_size,
        )
        return [entry['cache_date'] for entry in entries]
