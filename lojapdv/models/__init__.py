"""Models package - exports all SQLAlchemy models."""
from lojapdv.models.store import Store
from lojapdv.models.app_user import AppUser, UserRole
from lojapdv.models.product import Product, DEFAULT_BRAND
from lojapdv.models.inventory import InventoryRecord
from lojapdv.models.customer import Customer
from lojapdv.models.sale import Sale, PaymentMethod, PAYMENT_METHODS, normalize_payment_method
from lojapdv.models.sale_item import SaleItem
from lojapdv.models.cash_out import CashOut, CashOutKind

__all__ = [
    'Store', 'AppUser', 'UserRole',
    'Product', 'DEFAULT_BRAND', 'InventoryRecord', 'Customer',
    'Sale', 'PaymentMethod', 'PAYMENT_METHODS', 'normalize_payment_method', 'SaleItem',
    'CashOut', 'CashOutKind',
]
