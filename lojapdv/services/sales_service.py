"""
Sales service - store-scoped.
Finalizes carts through the sale ledger and serves the sales history.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from lojapdv.models import Sale, SaleItem, Customer, normalize_payment_method
from lojapdv.exceptions import BusinessLogicError, NotFoundError, PdvError
from lojapdv.services.cache_service import invalidate_statistics
from lojapdv.services.cart import Cart
from lojapdv.services.sale_ledger import SaleLedger, SaleRequest, SaleReceipt, ReversalReceipt
from lojapdv.utils.formatters import code_br, datetime_br, money_br, safe_csv
from lojapdv.utils.number_format import to_money, round2

logger = logging.getLogger(__name__)

SALES_CSV_HEADER = ['Data', 'Venda', 'Cliente', 'Pagamento', 'Itens', 'Total', 'Recebido']


def finalize_sale(cart: Cart, catalog, snapshot, ledger: SaleLedger, store_id: int,
                  user_id: Optional[int], payment_method: str,
                  customer_id: Optional[int] = None) -> SaleReceipt:
    """
    Validate the cart locally and hand it to the ledger.

    The cart is cleared only when the ledger accepts the sale; on any
    error it is left exactly as it was and the error propagates unchanged.

    Raises:
        CartValidationError: local validation failed (nothing submitted)
        BusinessLogicError: invalid payment method
        SaleLedgerError: the ledger rejected the sale
    """
    if normalize_payment_method(payment_method) is None:
        raise BusinessLogicError(f'Forma de pagamento inválida: {payment_method}')

    cart.validate(catalog, snapshot, store_id)

    request = SaleRequest(
        store_id=store_id,
        user_id=user_id,
        payment_method=payment_method,
        items=cart.build_items(),
        customer_id=customer_id or None,
        overall_discount_pct=cart.overall_discount_pct,
        received_total=cart.received,
    )

    receipt = ledger.create(request)

    cart.clear()
    invalidate_statistics(store_id)
    return receipt


def reverse_sale(ledger: SaleLedger, store_id: int, sale_id: int) -> ReversalReceipt:
    """Reverse a sale (stock back, sale removed) through the ledger."""
    receipt = ledger.reverse(store_id, sale_id)
    invalidate_statistics(store_id)
    return receipt


def list_sales(session, store_id: int, limit: int = 300) -> List[dict]:
    """
    Sales history, newest first.

    Returns:
        list of dicts: id, sale_number, created_at, total, payment_method,
        received_total, customer_id, customer_name ("Indefinido" when
        missing), items_count
    """
    items_count = (
        session.query(SaleItem.sale_id, func.count(SaleItem.id).label('items_count'))
        .group_by(SaleItem.sale_id)
        .subquery()
    )

    rows = (
        session.query(Sale, Customer.name, items_count.c.items_count)
        .outerjoin(Customer, Customer.id == Sale.customer_id)
        .outerjoin(items_count, items_count.c.sale_id == Sale.id)
        .filter(Sale.store_id == store_id)
        .order_by(Sale.created_at.desc(), Sale.sale_number.desc())
        .limit(limit)
        .all()
    )

    history = []
    for sale, customer_name, count in rows:
        history.append({
            'id': sale.id,
            'sale_number': sale.sale_number,
            'created_at': sale.created_at,
            'total': round2(sale.total),
            'payment_method': sale.payment_method,
            'received_total': round2(sale.received_total) if sale.received_total is not None else None,
            'customer_id': sale.customer_id,
            'customer_name': customer_name or 'Indefinido',
            'items_count': int(count or 0),
        })
    return history


def _get_sale(session, store_id: int, sale_id: int) -> Sale:
    sale = session.query(Sale).options(
        joinedload(Sale.items).joinedload(SaleItem.product),
        joinedload(Sale.customer),
    ).filter(
        Sale.id == sale_id,
        Sale.store_id == store_id
    ).first()
    if not sale:
        raise NotFoundError('Venda não encontrada')
    return sale


def get_sale_detail(session, store_id: int, sale_id: int) -> dict:
    """Sale header plus its items with product code, description and brand."""
    sale = _get_sale(session, store_id, sale_id)

    items = []
    for item in sale.items:
        product = item.product
        items.append({
            'product_id': item.product_id,
            'code': code_br(product.code) if product else code_br(None),
            'description': product.description if product else '—',
            'brand': product.brand if product else None,
            'qty': item.qty,
            'discount_pct': round2(item.discount_pct),
            'total_final': round2(item.total_final),
        })

    return {
        'id': sale.id,
        'sale_number': sale.sale_number,
        'created_at': sale.created_at,
        'customer_id': sale.customer_id,
        'customer_name': sale.customer_name,
        'payment_method': sale.payment_method,
        'subtotal': round2(sale.subtotal),
        'discount_pct': round2(sale.discount_pct),
        'total': round2(sale.total),
        'received_total': round2(sale.received_total) if sale.received_total is not None else None,
        'items': items,
    }


_UNSET = object()


def update_sale(session, store_id: int, sale_id: int, customer_id=_UNSET,
                payment_method=_UNSET, received_total=_UNSET) -> Sale:
    """
    Inline edits on a recorded sale (customer, payment, received amount).

    Only the arguments passed are changed; ``customer_id=None`` and
    ``received_total=None`` clear the field.

    Raises:
        NotFoundError: sale or customer not in this store
        BusinessLogicError: invalid payment method
    """
    sale = _get_sale(session, store_id, sale_id)

    try:
        if customer_id is not _UNSET:
            if customer_id:
                customer = session.query(Customer).filter(
                    Customer.id == customer_id,
                    Customer.store_id == store_id
                ).first()
                if not customer:
                    raise NotFoundError('Cliente não encontrado')
                sale.customer_id = customer.id
            else:
                sale.customer_id = None

        if payment_method is not _UNSET:
            method = normalize_payment_method(payment_method)
            if method is None:
                raise BusinessLogicError(f'Forma de pagamento inválida: {payment_method}')
            sale.payment_method = method

        if received_total is not _UNSET:
            if received_total is None or str(received_total).strip() == '':
                sale.received_total = None
            else:
                sale.received_total = to_money(received_total)

        session.commit()
        logger.info(f"Sale updated: store={store_id} number={sale.sale_number}")
        return sale

    except PdvError:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        raise BusinessLogicError(f'Erro ao atualizar: {str(e)}')


def export_sales_csv(rows: List[dict]) -> str:
    """
    History rows as ';'-separated CSV, oldest first.

    Columns: Data;Venda;Cliente;Pagamento;Itens;Total;Recebido
    """
    ordered = sorted(rows, key=lambda r: (r['created_at'] is None, r['created_at'], r['sale_number']))

    lines = [';'.join(SALES_CSV_HEADER)]
    for row in ordered:
        received = row.get('received_total')
        lines.append(';'.join([
            datetime_br(row['created_at']),
            str(row['sale_number']),
            safe_csv(row.get('customer_name')),
            safe_csv(row.get('payment_method')),
            str(row.get('items_count', 0)),
            money_br(row.get('total')),
            '' if received is None else money_br(received),
        ]))
    return '\n'.join(lines) + '\n'


def sale_row_to_dict(row: dict) -> dict:
    """JSON-safe history row."""
    data = dict(row)
    data['created_at'] = row['created_at'].isoformat() if row.get('created_at') else None
    for key in ('total', 'received_total', 'subtotal', 'discount_pct'):
        if isinstance(data.get(key), Decimal):
            data[key] = str(data[key])
    return data
