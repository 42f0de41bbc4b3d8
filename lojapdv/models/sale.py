"""Sale model."""
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lojapdv.database import Base, BigIntegerPK
import enum


class PaymentMethod(str, enum.Enum):
    """Payment methods accepted at the counter."""
    CASH = 'Dinheiro'
    CARD = 'Cartão'
    PIX = 'Pix'


PAYMENT_METHODS = [m.value for m in PaymentMethod]


def normalize_payment_method(value):
    """Map free text (any case, accents optional) to a PaymentMethod value, or None."""
    if value is None:
        return None
    raw = str(value).strip().lower()
    aliases = {
        'dinheiro': PaymentMethod.CASH,
        'cash': PaymentMethod.CASH,
        'cartão': PaymentMethod.CARD,
        'cartao': PaymentMethod.CARD,
        'card': PaymentMethod.CARD,
        'pix': PaymentMethod.PIX,
    }
    method = aliases.get(raw)
    return method.value if method else None


class Sale(Base):
    """Sale (venda finalizada)."""

    __tablename__ = 'sale'
    __table_args__ = (
        UniqueConstraint('store_id', 'sale_number', name='uq_sale_store_number'),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    store_id = Column(BigInteger, ForeignKey('store.id'), nullable=False, index=True)
    sale_number = Column(Integer, nullable=False)
    user_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=True)
    customer_id = Column(BigInteger, ForeignKey('customer.id'), nullable=True)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)
    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    discount_pct = Column(Numeric(5, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)
    received_total = Column(Numeric(10, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    # Relationships
    store = relationship('Store')
    customer = relationship('Customer', back_populates='sales')
    items = relationship('SaleItem', back_populates='sale', cascade='all, delete-orphan')

    @property
    def customer_name(self):
        """Customer display name ("Indefinido" when the sale has none)."""
        if self.customer:
            return self.customer.name
        return 'Indefinido'

    def __repr__(self):
        return f"<Sale(id={self.id}, number={self.sale_number}, total={self.total})>"
