"""Product component model."""
from sqlalchemy import Column, String, Integer, CheckConstraint, Index
from pack_archive.database import Base
from pack_archive.models.document import DocumentMixin


class ProductComponent(DocumentMixin, Base):
    """
    Link from a bundle product to one of its children.

    Recipes are flat: children are expected to be single products.
    No foreign key on child_product_id, since historical bundles may
    still point at products deleted since.
    """

    __tablename__ = 'product_components'
    __document_fields__ = ('parent_product_id', 'child_product_id', 'quantity')

    parent_product_id = Column(String(36), nullable=False)
    child_product_id = Column(String(36), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_product_components_quantity_positive'),
        Index('ix_product_components_parent', 'parent_product_id'),
    )

    def __repr__(self):
        return f"<ProductComponent(parent={self.parent_product_id}, child={self.child_product_id}, qty={self.quantity})>"
