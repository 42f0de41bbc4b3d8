"""
Platform admin overview.
Aggregates sales and cash-out per store for one day, and a per-store detail.
"""
from datetime import date, datetime, time, timedelta

from sqlalchemy import func

from lojapdv.models import Store, Product, InventoryRecord, Sale, CashOut, Customer
from lojapdv.exceptions import NotFoundError
from lojapdv.services import stock_alert_service
from lojapdv.services.product_service import product_to_dict
from lojapdv.utils.number_format import round2, ZERO

RECENT_SALES_LIMIT = 20


def get_overview(session, day: date, term: str = '') -> dict:
    """
    Sales and cash-out per store for one day.

    Args:
        day: the day to aggregate (server local time)
        term: optional filter on the store name

    Returns:
        dict with stores (one row per store, alphabetical) and totals
    """
    start_dt = datetime.combine(day, time.min)
    end_dt = start_dt + timedelta(days=1)

    sales_rows = session.query(
        Sale.store_id,
        func.count(Sale.id).label('n'),
        func.coalesce(func.sum(Sale.total), 0).label('total')
    ).filter(
        Sale.created_at >= start_dt,
        Sale.created_at < end_dt
    ).group_by(Sale.store_id).all()

    cash_rows = session.query(
        CashOut.store_id,
        func.count(CashOut.id).label('n'),
        func.coalesce(func.sum(CashOut.total_value), 0).label('total')
    ).filter(
        CashOut.out_date == day
    ).group_by(CashOut.store_id).all()

    sales_by_store = {r.store_id: (int(r.n), round2(r.total)) for r in sales_rows}
    cash_by_store = {r.store_id: (int(r.n), round2(r.total)) for r in cash_rows}

    query = session.query(Store)
    term = (term or '').strip()
    if term:
        query = query.filter(Store.name.ilike(f"%{term}%"))
    stores = query.order_by(Store.name.asc()).all()

    rows = []
    totals = {'sales_count': 0, 'sales_total': ZERO, 'cash_out_count': 0, 'cash_out_total': ZERO}
    for store in stores:
        sales_n, sales_total = sales_by_store.get(store.id, (0, round2(ZERO)))
        cash_n, cash_total = cash_by_store.get(store.id, (0, round2(ZERO)))
        rows.append({
            'store_id': store.id,
            'name': store.name,
            'slug': store.slug,
            'active': store.active,
            'sales_count': sales_n,
            'sales_total': sales_total,
            'cash_out_count': cash_n,
            'cash_out_total': cash_total,
            'net': round2(sales_total - cash_total),
        })
        totals['sales_count'] += sales_n
        totals['sales_total'] += sales_total
        totals['cash_out_count'] += cash_n
        totals['cash_out_total'] += cash_total

    totals['sales_total'] = round2(totals['sales_total'])
    totals['cash_out_total'] = round2(totals['cash_out_total'])
    totals['net'] = round2(totals['sales_total'] - totals['cash_out_total'])

    return {'date': day, 'stores': rows, 'totals': totals}


def get_store_detail(session, store_id: int) -> dict:
    """
    Products with stock status and the last sales of one store.

    Raises:
        NotFoundError: unknown store
    """
    store = session.query(Store).filter(Store.id == store_id).first()
    if not store:
        raise NotFoundError('Loja não encontrada')

    products = session.query(Product).filter(
        Product.store_id == store_id
    ).order_by(Product.code.is_(None), Product.code.asc()).all()

    quantities = dict(session.query(InventoryRecord.product_id, InventoryRecord.quantity).filter(
        InventoryRecord.store_id == store_id
    ).all())

    stock_rows = stock_alert_service.product_stock_rows(products, quantities)
    alerts = stock_alert_service.count_alerts((r['quantity'], r['product'].min_stock) for r in stock_rows)

    sales = session.query(Sale, Customer.name).outerjoin(
        Customer, Customer.id == Sale.customer_id
    ).filter(
        Sale.store_id == store_id
    ).order_by(Sale.created_at.desc(), Sale.sale_number.desc()).limit(RECENT_SALES_LIMIT).all()

    product_rows = []
    for row in stock_rows:
        data = product_to_dict(row['product'], row['quantity'])
        data['status'] = row['status'].to_dict()
        product_rows.append(data)

    return {
        'store': {'id': store.id, 'name': store.name, 'slug': store.slug, 'active': store.active},
        'products': product_rows,
        'stock_alerts': alerts,
        'recent_sales': [
            {
                'id': sale.id,
                'sale_number': sale.sale_number,
                'created_at': sale.created_at,
                'customer_name': customer_name or 'Indefinido',
                'payment_method': sale.payment_method,
                'total': round2(sale.total),
            }
            for sale, customer_name in sales
        ],
    }
