"""Packaging record model."""
from sqlalchemy import Column, String, Index
from pack_archive.database import Base
from pack_archive.models.document import DocumentMixin


class PackagingRecord(DocumentMixin, Base):
    """
    One waybill scanned on a packaging date.

    Created by the scanning feature; read-only to the archive.
    """

    __tablename__ = 'packaging_records'
    __document_fields__ = ('packaging_date', 'waybill_number')

    packaging_date = Column(String(10), nullable=False)  # YYYY-MM-DD
    waybill_number = Column(String(100), nullable=False)

    __table_args__ = (
        Index('ix_packaging_records_date', 'packaging_date'),
    )

    def __repr__(self):
        return f"<PackagingRecord(id={self.id}, date='{self.packaging_date}', waybill='{self.waybill_number}')>"
