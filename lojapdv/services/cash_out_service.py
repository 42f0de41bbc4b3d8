"""
Cash-out service - product purchases and general expenses.

Total is automatic but editable: when quantity or unit value changes the
total follows (qty * unit); when the total is typed the unit value is
derived from it (total / qty).
"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import joinedload

from lojapdv.models import CashOut, CashOutKind, Product
from lojapdv.exceptions import BusinessLogicError, NotFoundError, PdvError
from lojapdv.services.product_service import product_label
from lojapdv.utils.formatters import code_br
from lojapdv.utils.number_format import to_number_br, to_money, round2, round3, ZERO

logger = logging.getLogger(__name__)

RANGES = {'7d': 7, '30d': 30, '90d': 90}
DEFAULT_RANGE = '30d'


def range_start(range_key: str, today: Optional[date] = None) -> date:
    """First day included in a "7d"/"30d"/"90d" window ending today."""
    days = RANGES.get(range_key, RANGES[DEFAULT_RANGE])
    today = today or date.today()
    return today - timedelta(days=days - 1)


def compute_amounts(quantity, unit_value=None, total_value=None) -> dict:
    """
    Quantity, unit value and total for a cash-out entry.

    A typed total wins and the unit value is derived from it; otherwise
    the total is qty * unit.

    Returns:
        dict with quantity (3 places), unit_value and total_value (2 places)
    """
    qty = round3(max(ZERO, to_number_br(quantity)))

    total_typed = total_value is not None and str(total_value).strip() != ''
    if total_typed:
        total = to_money(total_value)
        unit = round2(total / qty) if qty > 0 else to_money(unit_value)
    else:
        unit = to_money(unit_value)
        total = round2(qty * unit)

    return {'quantity': qty, 'unit_value': unit, 'total_value': total}


def _parse_out_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = (value or '').strip()
    if not text:
        raise BusinessLogicError('Selecione a data.')
    try:
        return datetime.strptime(text, '%Y-%m-%d').date()
    except ValueError:
        raise BusinessLogicError('Data inválida.')


def create_cash_out(session, store_id: int, kind, out_date, quantity, unit_value=None,
                    total_value=None, description=None, product_id=None) -> CashOut:
    """
    Record an expense or a product purchase.

    Expenses need a description; purchases need a product of the store,
    get "Compra: <product>" as description and update the product's
    last cost with the unit value.

    Raises:
        BusinessLogicError: missing/invalid fields
        NotFoundError: product not in this store
    """
    try:
        kind = CashOutKind(kind).value
    except ValueError:
        raise BusinessLogicError(f'Tipo de lançamento inválido: {kind}')

    day = _parse_out_date(out_date)
    amounts = compute_amounts(quantity, unit_value, total_value)
    if amounts['quantity'] <= 0:
        raise BusinessLogicError('Quantidade inválida.')

    product = None
    if kind == CashOutKind.EXPENSE.value:
        description = (description or '').strip()
        if not description:
            raise BusinessLogicError('Digite a descrição da despesa.')
    else:
        if not product_id:
            raise BusinessLogicError('Selecione o produto (por ID ou descrição).')
        product = session.query(Product).filter(
            Product.id == product_id,
            Product.store_id == store_id
        ).first()
        if not product:
            raise NotFoundError('Produto inválido.')
        brand = f" • {product.brand}" if product.brand else ""
        description = f"Compra: {product.description}{brand}"

    try:
        entry = CashOut(
            store_id=store_id,
            kind=kind,
            out_date=day,
            description=description,
            product_id=product.id if product else None,
            quantity=amounts['quantity'],
            unit_value=amounts['unit_value'],
            total_value=amounts['total_value'],
        )
        session.add(entry)

        if product is not None:
            product.last_cost = amounts['unit_value']

        session.commit()
        logger.info(
            f"Cash out recorded: store={store_id} kind={kind} total={amounts['total_value']}"
        )
        return entry
    except PdvError:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        raise BusinessLogicError(f'Erro ao salvar: {str(e)}')


def delete_cash_out(session, store_id: int, cash_out_id: int) -> None:
    entry = session.query(CashOut).filter(
        CashOut.id == cash_out_id,
        CashOut.store_id == store_id
    ).first()
    if not entry:
        raise NotFoundError('Lançamento não encontrado')

    try:
        session.delete(entry)
        session.commit()
    except Exception as e:
        session.rollback()
        raise BusinessLogicError(f'Erro ao remover: {str(e)}')


def _matches(entry: CashOut, term: str) -> bool:
    parts = [entry.out_date.isoformat() if entry.out_date else '', entry.description or '']
    product = entry.product
    if product is not None:
        parts.extend([
            product.description or '',
            product.brand or '',
            product.supplier or '',
            str(product.code) if product.code is not None else '',
        ])
    return term in ' '.join(parts).lower()


def list_cash_out(session, store_id: int, range_key: str = DEFAULT_RANGE, term: str = '',
                  today: Optional[date] = None) -> dict:
    """
    Entries in the window, newest first, optionally filtered by text.

    Returns:
        dict with entries, total (sum of total_value), count and the
        expense descriptions already used (for suggestions)
    """
    start = range_start(range_key, today)

    entries = (
        session.query(CashOut)
        .options(joinedload(CashOut.product))
        .filter(CashOut.store_id == store_id, CashOut.out_date >= start)
        .order_by(CashOut.out_date.desc(), CashOut.created_at.desc(), CashOut.id.desc())
        .all()
    )

    expense_descriptions = sorted({
        (e.description or '').strip() for e in entries
        if e.kind == CashOutKind.EXPENSE.value and (e.description or '').strip()
    })

    term = (term or '').strip().lower()
    if term:
        entries = [e for e in entries if _matches(e, term)]

    total = round2(sum((Decimal(str(e.total_value or 0)) for e in entries), ZERO))

    return {
        'entries': entries,
        'total': total,
        'count': len(entries),
        'by_kind': cash_out_totals(entries),
        'range': range_key if range_key in RANGES else DEFAULT_RANGE,
        'start': start,
        'expense_descriptions': expense_descriptions,
    }


def cash_out_to_dict(entry: CashOut) -> dict:
    product = entry.product
    return {
        'id': entry.id,
        'kind': entry.kind,
        'out_date': entry.out_date.isoformat() if entry.out_date else None,
        'description': entry.description,
        'product_id': entry.product_id,
        'product_code': code_br(product.code) if product else None,
        'product_label': product_label(product) if product else None,
        'quantity': str(entry.quantity),
        'unit_value': str(round2(entry.unit_value)),
        'total_value': str(round2(entry.total_value)),
    }


def cash_out_totals(entries: List[CashOut]) -> dict:
    """Totals split by kind."""
    products = sum((Decimal(str(e.total_value or 0)) for e in entries if e.kind == CashOutKind.PRODUCT.value), ZERO)
    expenses = sum((Decimal(str(e.total_value or 0)) for e in entries if e.kind == CashOutKind.EXPENSE.value), ZERO)
    return {
        'products': round2(products),
        'expenses': round2(expenses),
        'total': round2(products + expenses),
    }
