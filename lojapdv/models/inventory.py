"""Inventory model - one row per (store, product)."""
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lojapdv.database import Base, BigIntegerPK


class InventoryRecord(Base):
    """Current on-hand quantity of a product in a store."""

    __tablename__ = 'inventory'
    __table_args__ = (
        UniqueConstraint('store_id', 'product_id', name='uq_inventory_store_product'),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    store_id = Column(BigInteger, ForeignKey('store.id'), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False, default=0)
    unit = Column(String(20), nullable=False, default='un')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationship
    product = relationship('Product', back_populates='inventory')

    def __repr__(self):
        return f"<InventoryRecord(product_id={self.product_id}, quantity={self.quantity}, unit='{self.unit}')>"
