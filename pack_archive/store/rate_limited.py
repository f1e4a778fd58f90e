"""Token-bucket rate limiting in front of a document store."""
import logging
from typing import List, Optional

from pyrate_limiter import Duration, Limiter, Rate

from pack_archive.exceptions import StoreUnavailableError
from pack_archive.store.base import Document, DocumentStore, Filters, SortSpec

logger = logging.getLogger(__name__)


class RateLimitedStore(DocumentStore):
    """
    Delegating store that bounds the request rate to the backend.

    Each call takes one token; when the bucket is empty the call blocks up
    to ``max_delay_ms`` and then fails with StoreUnavailableError, which the
    job runtime treats as transient.
    """

    BUCKET = 'document-store'

    def __init__(self, inner: DocumentStore, requests_per_second: int, max_delay_ms: int = 2000):
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        self.inner = inner
        self.requests_per_second = requests_per_second
        self._limiter = Limiter(
            Rate(requests_per_second, Duration.SECOND),
            raise_when_fail=False,
            max_delay=max_delay_ms,
        )

    def _acquire(self, operation: str, collection: str):
        if not self._limiter.try_acquire(self.BUCKET, weight=1):
            logger.warning(f"[STORE] Rate limit exhausted for {operation} on {collection}")
            raise StoreUnavailableError(
                f"Rate limit of {self.requests_per_second}/s exceeded ({operation} {collection})"
            )

    def list(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Document]:
        self._acquire('list', collection)
        return self.inner.list(collection, filters=filters, sort=sort, limit=limit, offset=offset)

    def get(self, collection: str, document_id: str) -> Document:
        self._acquire('get', collection)
        return self.inner.get(collection, document_id)

    def create(self, collection: str, fields: Document, document_id: Optional[str] = None) -> Document:
        self._acquire('create', collection)
        return self.inner.create(collection, fields, document_id=document_id)

    def update(self, collection: str, document_id: str, fields: Document) -> Document:
        self._acquire('update', collection)
        return self.inner.update(collection, document_id, fields)

    def delete(self, collection: str, document_id: str) -> None:
        self._acquire('delete', collection)
        self.inner.delete(collection, document_id)
