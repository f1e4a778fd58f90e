"""Models package - exports all SQLAlchemy models."""
from pack_archive.models.packaging_record import PackagingRecord
from pack_archive.models.packaging_item import PackagingItem
from pack_archive.models.product import Product, ProductType
from pack_archive.models.product_component import ProductComponent
from pack_archive.models.packaging_cache import PackagingCache

__all__ = [
    'PackagingRecord', 'PackagingItem',
    'Product', 'ProductType', 'ProductComponent',
    'PackagingCache',
]
