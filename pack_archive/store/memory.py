"""In-memory document store used for tests and local dry runs."""
import copy
import uuid
from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

from pack_archive.exceptions import DocumentConflictError, DocumentNotFoundError
from pack_archive.store.base import (
    DESC,
    Collection,
    Document,
    DocumentStore,
    Filters,
    SortSpec,
    is_set_filter,
    normalize_sort,
)
from pack_archive.utils.dates import isoformat_timestamp, utc_now

# Same unique keys as the SQL schema
DEFAULT_UNIQUE_FIELDS = {
    Collection.PACKAGING_CACHE: ('cache_date',),
    Collection.PRODUCTS: ('barcode',),
}


def _sort_key(value):
    # None sorts before everything else in ascending order
    return (value is not None, value)


class MemoryDocumentStore(DocumentStore):
    """
    Dict-backed store honouring the same contract as the SQL store.

    Documents keep insertion order, which is also the tie-breaker for
    sorting. ``calls`` records every operation as
    ``(operation, collection, details)`` so tests can count round trips.
    """

    def __init__(self, unique_fields: Optional[Dict[str, Tuple[str, ...]]] = None, clock=utc_now):
        self._collections: Dict[str, "OrderedDict[str, Document]"] = {}
        self._unique_fields = DEFAULT_UNIQUE_FIELDS if unique_fields is None else unique_fields
        self._clock = clock
        self.calls: List[tuple] = []

    def _documents(self, collection: str) -> "OrderedDict[str, Document]":
        return self._collections.setdefault(collection, OrderedDict())

    def _check_unique(self, collection: str, document: Document, ignore_id: Optional[str] = None):
        for field in self._unique_fields.get(collection, ()):
            if field not in document:
                continue
            for other in self._documents(collection).values():
                if other['id'] != ignore_id and other.get(field) == document[field]:
                    raise DocumentConflictError(
                        collection, f"Duplicate value for {collection}.{field}: {document[field]}"
                    )

    def count_calls(self, operation: str, collection: Optional[str] = None) -> int:
        return sum(
            1 for op, name, _ in self.calls
            if op == operation and (collection is None or name == collection)
        )

    def list(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Document]:
        self.calls.append(('list', collection, {
            'filters': copy.deepcopy(filters), 'limit': limit, 'offset': offset,
        }))

        matches = []
        for document in self._documents(collection).values():
            matched = True
            for field, value in (filters or {}).items():
                if is_set_filter(value):
                    matched = document.get(field) in value
                else:
                    matched = document.get(field) == value
                if not matched:
                    break
            if matched:
                matches.append(document)

        # Stable sorts applied from the least significant key
        for field, direction in reversed(normalize_sort(sort)):
            matches = sorted(
                matches,
                key=lambda doc: _sort_key(doc.get(field)),
                reverse=direction == DESC,
            )

        end = None if limit is None else offset + limit
        return copy.deepcopy(matches[offset:end])

    def get(self, collection: str, document_id: str) -> Document:
        self.calls.append(('get', collection, {'id': document_id}))
        document = self._documents(collection).get(document_id)
        if document is None:
            raise DocumentNotFoundError(collection, document_id)
        return copy.deepcopy(document)

    def create(self, collection: str, fields: Document, document_id: Optional[str] = None) -> Document:
        self.calls.append(('create', collection, {'id': document_id}))
        timestamp = isoformat_timestamp(self._clock())
        document = {'id': document_id or uuid.uuid4().hex, 'created_at': timestamp, 'updated_at': timestamp}
        document.update(copy.deepcopy(fields))
        if document['id'] in self._documents(collection):
            raise DocumentConflictError(collection, f"Duplicate id {document['id']} in {collection}")
        self._check_unique(collection, document)
        self._documents(collection)[document['id']] = document
        return copy.deepcopy(document)

    def update(self, collection: str, document_id: str, fields: Document) -> Document:
        self.calls.append(('update', collection, {'id': document_id}))
        current = self._documents(collection).get(document_id)
        if current is None:
            raise DocumentNotFoundError(collection, document_id)
        updated = dict(current)
        updated.update(copy.deepcopy(fields))
        updated['id'] = document_id
        updated['updated_at'] = isoformat_timestamp(self._clock())
        self._check_unique(collection, updated, ignore_id=document_id)
        self._documents(collection)[document_id] = updated
        return copy.deepcopy(updated)

    def delete(self, collection: str, document_id: str) -> None:
        self.calls.append(('delete', collection, {'id': document_id}))
        if document_id not in self._documents(collection):
            raise DocumentNotFoundError(collection, document_id)
        del self._documents(collection)[document_id]
