"""
Document store interface.

The archive only needs a handful of capabilities from its database: list
with equality filters, get by id, create, update and delete. Everything
above this layer talks to a :class:`DocumentStore`, so the pipeline runs
the same against PostgreSQL or the in-memory fake.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

Document = Dict[str, Any]
Filters = Dict[str, Any]
SortSpec = Sequence[Tuple[str, str]]

ASC = 'asc'
DESC = 'desc'


class Collection:
    """Collection identifiers."""
    PACKAGING_RECORDS = 'packaging_records'
    PACKAGING_ITEMS = 'packaging_items'
    PACKAGING_CACHE = 'packaging_cache'
    PRODUCTS = 'products'
    PRODUCT_COMPONENTS = 'product_components'


def is_set_filter(value) -> bool:
    """A list/tuple/set filter value means "field IN value"."""
    return isinstance(value, (list, tuple, set, frozenset))


def normalize_sort(sort: Optional[Iterable]) -> List[Tuple[str, str]]:
    """Accept ``[("field", "desc")]`` or bare field names (ascending)."""
    normalized = []
    for entry in sort or ():
        if isinstance(entry, str):
            field, direction = entry, ASC
        else:
            field, direction = entry
        direction = direction.lower()
        if direction not in (ASC, DESC):
            raise ValueError(f"Invalid sort direction: {direction}")
        normalized.append((field, direction))
    return normalized


class DocumentStore(ABC):
    """Capability contract for the backing document database."""

    @abstractmethod
    def list(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Document]:
        """Return documents matching every filter, in sort order."""

    @abstractmethod
    def get(self, collection: str, document_id: str) -> Document:
        """Return one document; raises DocumentNotFoundError on miss."""

    @abstractmethod
    def create(self, collection: str, fields: Document, document_id: Optional[str] = None) -> Document:
        """Insert a document; raises DocumentConflictError on a unique violation."""

    @abstractmethod
    def update(self, collection: str, document_id: str, fields: Document) -> Document:
        """Overwrite the given fields of an existing document."""

    @abstractmethod
    def delete(self, collection: str, document_id: str) -> None:
        """Remove a document; raises DocumentNotFoundError on miss."""
