"""Shared columns and document conversion for collection models."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime

from pack_archive.utils.dates import isoformat_timestamp


def _new_id():
    return uuid.uuid4().hex


def _now():
    return datetime.now(timezone.utc)


class DocumentMixin:
    """
    Identity and timestamps carried by every collection document.

    Subclasses list their payload columns in ``__document_fields__``; the
    store exposes rows as plain dicts built by :meth:`to_document`.
    """

    __document_fields__ = ()

    id = Column(String(36), primary_key=True, default=_new_id)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    def to_document(self):
        document = {
            'id': self.id,
            'created_at': isoformat_timestamp(self.created_at),
            'updated_at': isoformat_timestamp(self.updated_at),
        }
        for field in self.__document_fields__:
            value = getattr(self, field)
            if isinstance(value, datetime):
                value = isoformat_timestamp(value)
            document[field] = value
        return document
