"""
Bulk ("consolidada") sale entry.

Each row of the grid is one single-item cash sale, typically recorded
after the fact with its own date. Rows are validated all together; the
batch is only submitted when every row is valid, then written one sale at
a time in row order.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, date, time
from decimal import Decimal
from typing import List, Optional

from lojapdv.models import PaymentMethod
from lojapdv.exceptions import PdvError, CartValidationError, LineError, BulkEntryInterrupted
from lojapdv.services.cache_service import invalidate_statistics
from lojapdv.services.sale_ledger import SaleLedger, SaleRequest, SaleReceipt
from lojapdv.utils.number_format import to_decimal, to_qty, to_money, round2, round3, ZERO

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
SALE_TIME = time(12, 0)

EMPTY_BATCH_MESSAGE = 'Adicione pelo menos 1 linha.'
INVALID_ROWS_MESSAGE = 'Corrija as linhas marcadas em vermelho.'
INVALID_DATE_MESSAGE = 'Data inválida.'
NO_ITEM_MESSAGE = 'Selecione um item (ID* ou descrição).'
NO_STOCK_MESSAGE = 'Estoque insuficiente.'


@dataclass
class BulkRow:
    """One grid row as typed."""
    key: str
    date_text: str = ''
    customer_id: Optional[int] = None
    code: str = ''
    description: str = ''
    product_id: Optional[int] = None
    qty: str = '1'
    received: str = ''
    received_touched: bool = False

    @classmethod
    def from_dict(cls, data: dict, index: int) -> 'BulkRow':
        def _int_or_none(value):
            try:
                return int(value) if value not in (None, '') else None
            except (TypeError, ValueError):
                return None

        return cls(
            key=str(data.get('key') or index),
            date_text=str(data.get('date') or '').strip(),
            customer_id=_int_or_none(data.get('customer_id')),
            code=str(data.get('code') or ''),
            description=str(data.get('description') or ''),
            product_id=_int_or_none(data.get('product_id')),
            qty=str(data.get('qty') if data.get('qty') is not None else '1'),
            received=str(data.get('received') or ''),
            received_touched=bool(data.get('received_touched', False)),
        )

    def is_blank(self) -> bool:
        return not self.code.strip() and not self.description.strip() and not self.product_id


@dataclass
class PreparedRow:
    row: BulkRow
    product_id: int
    sale_date: date
    qty: Decimal
    total: Decimal
    received: Decimal


def parse_row_date(text: str) -> Optional[date]:
    """YYYY-MM-DD to a date; None when the text is not a real calendar date."""
    if not text or not DATE_PATTERN.match(text):
        return None
    try:
        return datetime.strptime(text, '%Y-%m-%d').date()
    except ValueError:
        return None


def row_total(unit_price, qty) -> Decimal:
    """Row value: unit price times quantity, no discount."""
    return round2(to_decimal(unit_price) * to_qty(qty))


def prepare_rows(rows: List[BulkRow], catalog, snapshot, store_id: int) -> List[PreparedRow]:
    """
    Validate every non-blank row.

    Stock is checked cumulatively: two rows of the same product must fit
    together in what is on hand.

    Raises:
        CartValidationError: no rows, or one LineError per invalid row
    """
    filled = [r for r in rows if not r.is_blank()]
    if not filled:
        raise CartValidationError(EMPTY_BATCH_MESSAGE)

    errors = []
    prepared = []
    consumed = {}

    for row in filled:
        sale_date = parse_row_date(row.date_text)
        if sale_date is None:
            errors.append(LineError(row.key, LineError.INVALID_DATE, INVALID_DATE_MESSAGE))
            continue

        product = catalog.resolve(row.product_id, row.code, row.description)
        if product is None:
            errors.append(LineError(row.key, LineError.ITEM_NOT_FOUND, NO_ITEM_MESSAGE))
            continue

        qty = to_qty(row.qty)
        available = to_decimal(snapshot.get_quantity(store_id, product.id))
        used = consumed.get(product.id, ZERO)
        if used + qty > available:
            errors.append(LineError(row.key, LineError.INSUFFICIENT_STOCK, NO_STOCK_MESSAGE))
            continue
        consumed[product.id] = used + qty

        total = row_total(product.unit_price, qty)
        if row.received_touched and row.received.strip():
            received = to_money(row.received)
        else:
            received = total

        prepared.append(PreparedRow(
            row=row,
            product_id=product.id,
            sale_date=sale_date,
            qty=qty,
            total=total,
            received=received,
        ))

    if errors:
        raise CartValidationError(INVALID_ROWS_MESSAGE, errors)
    return prepared


def submit_bulk_sales(rows: List[BulkRow], catalog, snapshot, ledger: SaleLedger,
                      store_id: int, user_id: Optional[int]) -> List[SaleReceipt]:
    """
    Validate and record every row as its own cash sale.

    Returns:
        receipts in row order

    Raises:
        CartValidationError: validation failed, nothing was written
        BulkEntryInterrupted: the ledger rejected a row; rows before it are
            saved, the rest were not attempted
    """
    prepared = prepare_rows(rows, catalog, snapshot, store_id)

    receipts = []
    try:
        for item in prepared:
            request = SaleRequest(
                store_id=store_id,
                user_id=user_id,
                payment_method=PaymentMethod.CASH.value,
                items=[{
                    'product_id': item.product_id,
                    'qty': round3(item.qty),
                    'discount_pct': ZERO,
                    'total_final': item.total,
                }],
                customer_id=item.row.customer_id,
                overall_discount_pct=ZERO,
                received_total=item.received,
                created_at=datetime.combine(item.sale_date, SALE_TIME),
            )
            try:
                receipts.append(ledger.create(request))
            except PdvError as e:
                logger.warning(
                    f"Bulk entry stopped: store={store_id} row={item.row.key} "
                    f"saved={len(receipts)} error={e.message}"
                )
                raise BulkEntryInterrupted(
                    len(receipts),
                    LineError(item.row.key, LineError.LEDGER_ERROR, e.message),
                    status_code=e.status_code,
                )
    finally:
        if receipts:
            invalidate_statistics(store_id)

    logger.info(f"Bulk entry saved: store={store_id} sales={len(receipts)}")
    return receipts
