"""Packaging item model."""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from pack_archive.database import Base
from pack_archive.models.document import DocumentMixin


class PackagingItem(DocumentMixin, Base):
    """A single product scan within a packaging record."""

    __tablename__ = 'packaging_items'
    __document_fields__ = ('packaging_record_id', 'product_barcode', 'scanned_at')

    packaging_record_id = Column(String(36), ForeignKey('packaging_records.id'), nullable=False)
    product_barcode = Column(String(100), nullable=False)
    scanned_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index('ix_packaging_items_record', 'packaging_record_id'),
    )

    def __repr__(self):
        return f"<PackagingItem(id={self.id}, barcode='{self.product_barcode}')>"
