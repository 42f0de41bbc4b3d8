"""Inventory service - on-hand quantities per (store, product)."""
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

from lojapdv.models import Product, InventoryRecord
from lojapdv.exceptions import BusinessLogicError, NotFoundError
from lojapdv.services import stock_alert_service
from lojapdv.services.product_service import search_products, product_to_dict
from lojapdv.utils.number_format import to_decimal, ZERO

logger = logging.getLogger(__name__)

DEFAULT_UNIT = 'un'

UNITS = ['un', 'kg', 'g', 'l', 'ml', 'saco', 'pacote', 'caixa', 'fardo', 'lata']


class InventorySnapshot:
    """
    Quantities of one store as last fetched.

    Used for local (pre-submission) stock checks; the sale ledger re-checks
    against locked rows when the sale is written.
    """

    def __init__(self, store_id: int, quantities: Optional[Dict[int, Decimal]] = None):
        self.store_id = store_id
        self._quantities = {int(k): to_decimal(v) for k, v in (quantities or {}).items()}

    @classmethod
    def for_store(cls, session, store_id: int) -> 'InventorySnapshot':
        rows = session.query(InventoryRecord.product_id, InventoryRecord.quantity).filter(
            InventoryRecord.store_id == store_id
        ).all()
        return cls(store_id, {row[0]: row[1] for row in rows})

    def get_quantity(self, store_id: int, product_id) -> Decimal:
        """Quantity on hand; 0 for unknown products or another store."""
        if store_id != self.store_id:
            return ZERO
        try:
            return self._quantities.get(int(product_id), ZERO)
        except (TypeError, ValueError):
            return ZERO

    def as_dict(self) -> Dict[int, Decimal]:
        return dict(self._quantities)


def _whole_quantity(value) -> int:
    """Typed stock quantity truncated to an integer >= 0."""
    text = str(value if value is not None else '0').strip() or '0'
    try:
        number = Decimal(text.replace(',', '.', 1))
    except InvalidOperation:
        raise BusinessLogicError('Quantidade inválida.')
    if not number.is_finite():
        raise BusinessLogicError('Quantidade inválida.')
    return max(0, int(number))


def _normalize_unit(unit) -> str:
    return (unit or DEFAULT_UNIT).strip() or DEFAULT_UNIT


def _get_store_product(session, store_id: int, product_id: int) -> Product:
    product = session.query(Product).filter(
        Product.id == product_id,
        Product.store_id == store_id
    ).first()
    if not product:
        raise NotFoundError('Produto não encontrado')
    return product


def _get_or_create_record(session, store_id: int, product_id: int, unit=None) -> InventoryRecord:
    record = session.query(InventoryRecord).filter(
        InventoryRecord.store_id == store_id,
        InventoryRecord.product_id == product_id
    ).with_for_update().first()

    if record is None:
        record = InventoryRecord(
            store_id=store_id,
            product_id=product_id,
            quantity=Decimal('0'),
            unit=_normalize_unit(unit),
        )
        session.add(record)
        session.flush()
    return record


def add_stock_entry(session, store_id: int, product_id: int, quantity, unit=None) -> InventoryRecord:
    """
    Stock entry: adds the truncated quantity to what is on hand.

    Args:
        quantity: typed quantity ("5", "5,9" -> 5)
        unit: unit label, "un" when blank

    Raises:
        NotFoundError: product not in this store
        BusinessLogicError: quantity not numeric
    """
    added = _whole_quantity(quantity)
    _get_store_product(session, store_id, product_id)

    try:
        record = _get_or_create_record(session, store_id, product_id, unit)
        old_qty = to_decimal(record.quantity)
        record.quantity = old_qty + added
        record.unit = _normalize_unit(unit)
        record.updated_at = datetime.now()
        session.commit()

        logger.info(
            f"Stock entry: store={store_id} product={product_id} "
            f"{old_qty} + {added} = {record.quantity}"
        )
        return record
    except Exception as e:
        session.rollback()
        raise BusinessLogicError(f'Erro ao inserir/atualizar estoque: {str(e)}')


def set_quantity(session, store_id: int, product_id: int, value) -> InventoryRecord:
    """Inline quantity edit: on hand becomes the truncated value, unit kept."""
    quantity = _whole_quantity(value)
    _get_store_product(session, store_id, product_id)

    try:
        record = _get_or_create_record(session, store_id, product_id)
        record.quantity = Decimal(quantity)
        record.updated_at = datetime.now()
        session.commit()
        return record
    except Exception as e:
        session.rollback()
        raise BusinessLogicError(f'Erro ao atualizar quantidade: {str(e)}')


def set_unit(session, store_id: int, product_id: int, unit) -> InventoryRecord:
    """Inline unit edit; quantity kept (0 when no record existed)."""
    _get_store_product(session, store_id, product_id)

    try:
        record = _get_or_create_record(session, store_id, product_id, unit)
        record.unit = _normalize_unit(unit)
        record.updated_at = datetime.now()
        session.commit()
        return record
    except Exception as e:
        session.rollback()
        raise BusinessLogicError(f'Erro ao atualizar unidade: {str(e)}')


def list_stock(session, store_id: int, search: str = '', brand_or_supplier: str = '') -> dict:
    """
    Stock screen rows: products with quantity, unit and alert status.

    Returns:
        dict with:
        - items: list of product dicts with quantity/unit/status
        - alerts: red/orange/total counts over the whole store
        - alert_items: alerting rows, most critical first
    """
    snapshot = InventorySnapshot.for_store(session, store_id)
    quantities = snapshot.as_dict()

    all_products = search_products(session, store_id)
    all_rows = stock_alert_service.product_stock_rows(all_products, quantities)
    alerts = stock_alert_service.count_alerts((r['quantity'], r['product'].min_stock) for r in all_rows)

    if (search or '').strip() or (brand_or_supplier or '').strip():
        products = search_products(session, store_id, search, brand_or_supplier)
        rows = stock_alert_service.product_stock_rows(products, quantities)
    else:
        rows = all_rows

    def _row_dict(row):
        product = row['product']
        data = product_to_dict(product, row['quantity'])
        data['unit'] = product.unit
        data['status'] = row['status'].to_dict()
        return data

    return {
        'items': [_row_dict(r) for r in rows],
        'alerts': alerts,
        'alert_items': [_row_dict(r) for r in stock_alert_service.alert_list(all_rows)],
        'units': UNITS,
    }
