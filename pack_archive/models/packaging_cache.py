"""Packaging cache model."""
from sqlalchemy import Column, String, Text, DateTime
from pack_archive.database import Base
from pack_archive.models.document import DocumentMixin


class PackagingCache(DocumentMixin, Base):
    """
    Archived snapshot of one packaging date.

    ``data`` holds the JSON array of enriched records; exactly one row per
    ``cache_date``.
    """

    __tablename__ = 'packaging_cache'
    __document_fields__ = ('cache_date', 'data', 'cached_at')

    cache_date = Column(String(10), nullable=False, unique=True)  # YYYY-MM-DD
    data = Column(Text, nullable=False)
    cached_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<PackagingCache(date='{self.cache_date}', cached_at={self.cached_at})>"
