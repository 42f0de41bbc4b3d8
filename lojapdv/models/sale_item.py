"""Sale Item model."""
from sqlalchemy import Column, BigInteger, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from lojapdv.database import Base, BigIntegerPK


class SaleItem(Base):
    """Sale Item (detalhe da venda)."""

    __tablename__ = 'sale_item'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger, ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False)
    qty = Column(Numeric(12, 3), nullable=False)
    discount_pct = Column(Numeric(7, 4), nullable=False, default=0)
    total_final = Column(Numeric(10, 2), nullable=False)

    # Relationships
    sale = relationship('Sale', back_populates='items')
    product = relationship('Product')

    def __repr__(self):
        return f"<SaleItem(id={self.id}, product_id={self.product_id}, qty={self.qty})>"
