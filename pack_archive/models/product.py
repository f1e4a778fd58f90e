"""Product model."""
import enum
from sqlalchemy import Column, String
from pack_archive.database import Base
from pack_archive.models.document import DocumentMixin


class ProductType(str, enum.Enum):
    """Product kinds; a bundle is composed of single products."""
    SINGLE = 'single'
    BUNDLE = 'bundle'


class Product(DocumentMixin, Base):
    """Product model."""

    __tablename__ = 'products'
    __document_fields__ = ('barcode', 'name', 'type')

    barcode = Column(String(100), nullable=False, unique=True)
    name = Column(String, nullable=False)
    type = Column(String(10), nullable=False, default=ProductType.SINGLE.value)

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', barcode='{self.barcode}')>"
