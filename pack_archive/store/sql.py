"""SQLAlchemy-backed document store."""
import logging
from datetime import timezone
from typing import List, Optional

from sqlalchemy import DateTime
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from pack_archive.exceptions import (
    DocumentConflictError,
    DocumentNotFoundError,
    StoreError,
    StoreUnavailableError,
)
from pack_archive.models import (
    PackagingCache,
    PackagingItem,
    PackagingRecord,
    Product,
    ProductComponent,
)
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
from pack_archive.utils.dates import parse_timestamp

logger = logging.getLogger(__name__)

MODELS = {
    Collection.PACKAGING_RECORDS: PackagingRecord,
    Collection.PACKAGING_ITEMS: PackagingItem,
    Collection.PACKAGING_CACHE: PackagingCache,
    Collection.PRODUCTS: Product,
    Collection.PRODUCT_COMPONENTS: ProductComponent,
}


class SqlDocumentStore(DocumentStore):
    """
    Document store over the SQLAlchemy models.

    Every write commits immediately; failures roll the session back and are
    re-raised as store errors (IntegrityError -> DocumentConflictError,
    anything else -> StoreUnavailableError).
    """

    def __init__(self, session):
        self.session = session

    def _model(self, collection: str):
        model = MODELS.get(collection)
        if model is None:
            raise StoreError(f"Unknown collection: {collection}", status_code=500)
        return model

    def _column(self, model, field: str):
        column = model.__table__.columns.get(field)
        if column is None:
            raise StoreError(f"Unknown field '{field}' on {model.__tablename__}", status_code=500)
        return getattr(model, field)

    def _coerce(self, model, fields: Document) -> Document:
        """Turn ISO strings into datetimes for DateTime columns, normalized to UTC."""
        values = {}
        for field, value in fields.items():
            if field in ('id', 'created_at', 'updated_at'):
                continue
            column = model.__table__.columns.get(field)
            if column is None:
                raise StoreError(f"Unknown field '{field}' on {model.__tablename__}", status_code=500)
            if isinstance(column.type, DateTime) and value is not None:
                # SQLite keeps no offset; naive values are read back as UTC
                parsed = parse_timestamp(value)
                value = parsed.astimezone(timezone.utc) if parsed else None
            values[field] = value
        return values

    def _fail(self, collection: str, error: SQLAlchemyError):
        self.session.rollback()
        if isinstance(error, IntegrityError):
            logger.warning(f"[STORE] Unique constraint violated in {collection}: {error.orig}")
            raise DocumentConflictError(collection, str(error.orig)) from error
        logger.error(f"[STORE] {collection} operation failed: {error}")
        raise StoreUnavailableError(str(error)) from error

    def list(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Document]:
        model = self._model(collection)
        query = self.session.query(model)

        for field, value in (filters or {}).items():
            column = self._column(model, field)
            if is_set_filter(value):
                query = query.filter(column.in_(list(value)))
            else:
                query = query.filter(column == value)

        for field, direction in normalize_sort(sort):
            column = self._column(model, field)
            query = query.order_by(column.desc() if direction == DESC else column.asc())
        # Stable order across pages
        query = query.order_by(model.id.asc())

        if limit is not None:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)

        try:
            return [row.to_document() for row in query.all()]
        except SQLAlchemyError as e:
            self._fail(collection, e)

    def get(self, collection: str, document_id: str) -> Document:
        model = self._model(collection)
        try:
            row = self.session.get(model, document_id)
        except SQLAlchemyError as e:
            self._fail(collection, e)
        if row is None:
            raise DocumentNotFoundError(collection, document_id)
        return row.to_document()

    def create(self, collection: str, fields: Document, document_id: Optional[str] = None) -> Document:
        model = self._model(collection)
        row = model(**self._coerce(model, fields))
        if document_id:
            row.id = document_id
        try:
            self.session.add(row)
            self.session.commit()
        except SQLAlchemyError as e:
            self._fail(collection, e)
        return row.to_document()

    def update(self, collection: str, document_id: str, fields: Document) -> Document:
        model = self._model(collection)
        values = self._coerce(model, fields)
        try:
            row = self.session.get(model, document_id)
            if row is None:
                raise DocumentNotFoundError(collection, document_id)
            for field, value in values.items():
                setattr(row, field, value)
            self.session.commit()
        except SQLAlchemyError as e:
            self._fail(collection, e)
        return row.to_document()

    def delete(self, collection: str, document_id: str) -> None:
        model = self._model(collection)
        try:
            row = self.session.get(model, document_id)
            if row is None:
                raise DocumentNotFoundError(collection, document_id)
            self.session.delete(row)
            self.session.commit()
        except SQLAlchemyError as e:
            self._fail(collection, e)
