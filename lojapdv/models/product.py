"""Product model."""
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lojapdv.database import Base, BigIntegerPK

DEFAULT_BRAND = 'Outros'


class Product(Base):
    """Product model."""

    __tablename__ = 'product'
    __table_args__ = (
        UniqueConstraint('store_id', 'code', name='uq_product_store_code'),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    store_id = Column(BigInteger, ForeignKey('store.id'), nullable=False, index=True)
    code = Column(Integer, nullable=True)  # Sequential per store, shown as "12*"
    kind = Column(String(100), nullable=False)  # tipo
    description = Column(String(255), nullable=False)
    brand = Column(String(120), nullable=True, default=DEFAULT_BRAND)
    supplier = Column(String(200), nullable=True)
    unit_price = Column(Numeric(10, 2), nullable=False, default=0)
    min_stock = Column(Integer, nullable=True)  # NULL or <= 0 means no threshold tracking
    last_cost = Column(Numeric(10, 2), nullable=True)  # Updated by product purchases
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    store = relationship('Store')
    inventory = relationship('InventoryRecord', uselist=False, back_populates='product', cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Product(id={self.id}, code={self.code}, description='{self.description}')>"

    @property
    def on_hand_qty(self):
        """Get on hand quantity from inventory."""
        if self.inventory:
            return self.inventory.quantity
        return 0

    @property
    def unit(self):
        """Unit-of-measure label, 'un' when no record exists."""
        if self.inventory and (self.inventory.unit or '').strip():
            return self.inventory.unit.strip()
        return 'un'
