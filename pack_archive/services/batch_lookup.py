"""Key -> document resolution in bounded IN-query batches."""
import logging
from typing import Dict, Iterable, List, Optional

from pack_archive.services.collection_reader import Pause
from pack_archive.store.base import Document, DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


def unique_keys(keys: Iterable) -> List:
    """Drop duplicates and empty keys, keeping first-seen order."""
    seen = set()
    ordered = []
    for key in keys:
        if key is None or key == '' or key in seen:
            continue
        seen.add(key)
        ordered.append(key)
    return ordered


def chunked(values: List, size: int) -> List[List]:
    if size <= 0:
        raise ValueError("batch size must be positive")
    return [values[i:i + size] for i in range(0, len(values), size)]


def resolve_in_batches(
    store: DocumentStore,
    collection: str,
    field: str,
    keys: Iterable,
    batch_size: int = DEFAULT_BATCH_SIZE,
    pause: Optional[Pause] = None,
) -> Dict[object, Document]:
    """
    Map each key to the document whose ``field`` equals it.

    Keys without a match are absent from the result; callers handle the
    miss themselves.
    """
    batches = chunked(unique_keys(keys), batch_size)
    resolved: Dict[object, Document] = {}

    for index, batch in enumerate(batches):
        if index and pause:
            pause()
        for document in store.list(collection, filters={field: batch}, limit=batch_size):
            resolved[document[field]] = document

    logger.debug(
        f"[LOOKUP] {collection}.{field}: {len(resolved)} resolved in {len(batches)} batch(es)"
    )
    return resolved
