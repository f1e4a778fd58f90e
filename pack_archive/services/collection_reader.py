"""
Paginated collection reads.

The backing store caps how many documents a single request may return, so
full reads walk the collection page by page. A page shorter than the page
size is the end-of-data signal; no "has more" flag is assumed.
"""
import logging
import time
from typing import Callable, List, Optional

from pack_archive.store.base import Document, DocumentStore, Filters, SortSpec

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
DEFAULT_DELAY_MS = 50

Pause = Callable[[], None]


def make_pause(delay_ms: int) -> Pause:
    """Courtesy pause between store calls; a no-op when delay_ms is 0."""
    if delay_ms <= 0:
        return lambda: None
    seconds = delay_ms / 1000.0
    return lambda: time.sleep(seconds)


def read_all(
    store: DocumentStore,
    collection: str,
    filters: Optional[Filters] = None,
    sort: Optional[SortSpec] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    pause: Optional[Pause] = None,
) -> List[Document]:
    """
    Fetch every document matching ``filters`` in ``sort`` order.

    Store errors propagate unchanged; nothing is retried here.
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    documents: List[Document] = []
    offset = 0
    pages = 0
    while True:
        page = store.list(collection, filters=filters, sort=sort, limit=page_size, offset=offset)
        pages += 1
        documents.extend(page)
        if len(page) < page_size:
            break
        offset += page_size
        if pause:
            pause()

    logger.debug(f"[READER] {collection}: {len(documents)} documents in {pages} page(s)")
    return documents
