"""
Sale ledger - atomic sale creation and reversal.

Everything that touches stock for a sale goes through a ``SaleLedger``:
``create`` decrements inventory for every item or fails entirely,
``reverse`` restores it and removes the sale. ``SqlSaleLedger`` does both
inside one database transaction with the inventory rows locked FOR UPDATE.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Dict

from sqlalchemy import func

from lojapdv.models import Store, Product, InventoryRecord, Customer, Sale, SaleItem, normalize_payment_method
from lojapdv.exceptions import (
    PdvError, BusinessLogicError, NotFoundError, SaleLedgerError, InsufficientStockError
)
from lojapdv.utils.formatters import code_br
from lojapdv.utils.number_format import to_decimal, round2, round3, clamp_pct, HUNDRED, ZERO

logger = logging.getLogger(__name__)


@dataclass
class SaleRequest:
    """Everything needed to write one sale."""
    store_id: int
    user_id: Optional[int]
    payment_method: str
    items: List[dict]
    customer_id: Optional[int] = None
    overall_discount_pct: Decimal = ZERO
    received_total: Optional[Decimal] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class SaleReceipt:
    sale_id: int
    sale_number: int
    subtotal: Decimal
    total: Decimal
    received_total: Decimal

    def to_dict(self) -> dict:
        return {
            'sale_id': self.sale_id,
            'sale_number': self.sale_number,
            'subtotal': str(self.subtotal),
            'total': str(self.total),
            'received': str(self.received_total),
        }


@dataclass(frozen=True)
class ReversalReceipt:
    sale_id: int
    sale_number: int
    restored: List[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'sale_id': self.sale_id,
            'sale_number': self.sale_number,
            'restored': [
                {'product_id': r['product_id'], 'qty': str(r['qty']), 'new_stock': str(r['new_stock'])}
                for r in self.restored
            ],
        }


class SaleLedger(ABC):
    """Atomic create/reverse of sales. Either everything is applied or nothing is."""

    @abstractmethod
    def create(self, request: SaleRequest) -> SaleReceipt:
        """Write the sale and decrement stock, or raise SaleLedgerError."""

    @abstractmethod
    def reverse(self, store_id: int, sale_id: int) -> ReversalReceipt:
        """Restore stock and delete the sale, or raise."""


def sale_totals(items: List[dict], overall_discount_pct) -> Dict[str, Decimal]:
    """Subtotal, clamped overall discount and final total for a list of items."""
    subtotal = round2(sum((to_decimal(i.get('total_final')) for i in items), ZERO))
    discount = round2(clamp_pct(overall_discount_pct))
    total = round2(subtotal * (1 - discount / HUNDRED))
    return {'subtotal': subtotal, 'discount_pct': discount, 'total': total}


class SqlSaleLedger(SaleLedger):
    """SaleLedger on the application database."""

    def __init__(self, session):
        self.session = session

    def create(self, request: SaleRequest) -> SaleReceipt:
        session = self.session

        if not request.items:
            raise BusinessLogicError('A venda precisa de pelo menos 1 item.')

        payment = normalize_payment_method(request.payment_method)
        if payment is None:
            raise BusinessLogicError(f'Forma de pagamento inválida: {request.payment_method}')

        try:
            # 1. Lock the store row: serializes sale numbering per store
            store = session.query(Store).filter(
                Store.id == request.store_id
            ).with_for_update().first()
            if not store:
                raise NotFoundError('Loja não encontrada')

            if request.customer_id:
                customer = session.query(Customer).filter(
                    Customer.id == request.customer_id,
                    Customer.store_id == request.store_id
                ).first()
                if not customer:
                    raise NotFoundError('Cliente não encontrado')

            # 2. Requested quantity per product
            required: Dict[int, Decimal] = {}
            for item in request.items:
                qty = round3(item.get('qty'))
                if qty <= 0:
                    raise BusinessLogicError('A quantidade deve ser maior que 0')
                pid = int(item['product_id'])
                required[pid] = required.get(pid, ZERO) + qty

            products = session.query(Product).filter(
                Product.id.in_(list(required.keys())),
                Product.store_id == request.store_id
            ).all()
            if len(products) != len(required):
                raise NotFoundError('Um ou mais produtos não foram encontrados nesta loja')
            products_by_id = {p.id: p for p in products}

            # 3. Lock inventory and check stock
            records = self._lock_inventory(request.store_id, list(required.keys()))
            for pid, qty in required.items():
                record = records.get(pid)
                available = to_decimal(record.quantity) if record else ZERO
                if available < qty:
                    product = products_by_id[pid]
                    raise InsufficientStockError(
                        f"{code_br(product.code)} {product.description}", qty, available
                    )

            # 4. Sale header
            totals = sale_totals(request.items, request.overall_discount_pct)
            received = (
                round2(request.received_total)
                if request.received_total is not None else totals['total']
            )
            sale_number = self._next_sale_number(request.store_id)

            sale = Sale(
                store_id=request.store_id,
                sale_number=sale_number,
                user_id=request.user_id,
                customer_id=request.customer_id or None,
                payment_method=payment,
                subtotal=totals['subtotal'],
                discount_pct=totals['discount_pct'],
                total=totals['total'],
                received_total=received,
                created_at=request.created_at or datetime.now(),
            )
            session.add(sale)
            session.flush()

            # 5. Items and stock decrement
            for item in request.items:
                pid = int(item['product_id'])
                qty = round3(item.get('qty'))
                session.add(SaleItem(
                    sale_id=sale.id,
                    product_id=pid,
                    qty=qty,
                    discount_pct=clamp_pct(item.get('discount_pct')),
                    total_final=round2(item.get('total_final')),
                ))
                record = records[pid]
                record.quantity = to_decimal(record.quantity) - qty
                record.updated_at = datetime.now()

            session.commit()

            logger.info(
                f"Sale created: store={request.store_id} number={sale_number} "
                f"items={len(request.items)} total={totals['total']}"
            )
            return SaleReceipt(
                sale_id=sale.id,
                sale_number=sale_number,
                subtotal=totals['subtotal'],
                total=totals['total'],
                received_total=received,
            )

        except PdvError:
            session.rollback()
            raise
        except Exception as e:
            session.rollback()
            logger.exception(f"Sale creation failed: store={request.store_id}")
            raise SaleLedgerError(f'Erro ao registrar venda: {str(e)}')

    def reverse(self, store_id: int, sale_id: int) -> ReversalReceipt:
        """
        Reverse a sale: add every item back to stock, then delete the sale.

        Raises:
            NotFoundError: sale not in this store
            SaleLedgerError: storage failure (nothing applied)
        """
        session = self.session

        try:
            sale = session.query(Sale).filter(
                Sale.id == sale_id,
                Sale.store_id == store_id
            ).with_for_update().first()

            if not sale:
                raise NotFoundError('Venda não encontrada')

            sale_number = sale.sale_number
            product_ids = sorted({item.product_id for item in sale.items})
            records = self._lock_inventory(store_id, product_ids)

            restored = []
            for item in sale.items:
                record = records.get(item.product_id)
                if record is None:
                    record = InventoryRecord(
                        store_id=store_id,
                        product_id=item.product_id,
                        quantity=Decimal('0'),
                    )
                    session.add(record)
                    records[item.product_id] = record

                record.quantity = to_decimal(record.quantity) + to_decimal(item.qty)
                record.updated_at = datetime.now()
                restored.append({
                    'product_id': item.product_id,
                    'qty': to_decimal(item.qty),
                    'new_stock': record.quantity,
                })

            session.delete(sale)
            session.commit()

            logger.info(f"Sale reversed: store={store_id} number={sale_number} items={len(restored)}")
            return ReversalReceipt(sale_id=sale_id, sale_number=sale_number, restored=restored)

        except PdvError:
            session.rollback()
            raise
        except Exception as e:
            session.rollback()
            logger.exception(f"Sale reversal failed: store={store_id} sale={sale_id}")
            raise SaleLedgerError(f'Erro ao estornar venda: {str(e)}')

    # =====================================================
    # PRIVATE HELPERS
    # =====================================================

    def _lock_inventory(self, store_id: int, product_ids: List[int]) -> Dict[int, InventoryRecord]:
        """Lock inventory rows FOR UPDATE (ordered by product to avoid deadlocks)."""
        if not product_ids:
            return {}
        rows = self.session.query(InventoryRecord).filter(
            InventoryRecord.store_id == store_id,
            InventoryRecord.product_id.in_(product_ids)
        ).order_by(InventoryRecord.product_id).with_for_update().all()
        return {row.product_id: row for row in rows}

    def _next_sale_number(self, store_id: int) -> int:
        current = self.session.query(func.max(Sale.sale_number)).filter(
            Sale.store_id == store_id
        ).scalar()
        return int(current or 0) + 1
