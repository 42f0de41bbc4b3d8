"""Cash-out model: product purchases and general expenses."""
from sqlalchemy import Column, BigInteger, String, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lojapdv.database import Base, BigIntegerPK
import enum


class CashOutKind(str, enum.Enum):
    """What the money went out for."""
    PRODUCT = 'product'
    EXPENSE = 'expense'


class CashOut(Base):
    """Compra ou despesa."""

    __tablename__ = 'cash_out'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    store_id = Column(BigInteger, ForeignKey('store.id'), nullable=False, index=True)
    kind = Column(String(10), nullable=False, default=CashOutKind.EXPENSE.value)
    out_date = Column(Date, nullable=False, index=True)
    description = Column(String(255), nullable=True)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=True)
    quantity = Column(Numeric(12, 3), nullable=False, default=1)
    unit_value = Column(Numeric(10, 2), nullable=False, default=0)
    total_value = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    product = relationship('Product')

    def __repr__(self):
        return f"<CashOut(id={self.id}, kind='{self.kind}', total={self.total_value})>"
