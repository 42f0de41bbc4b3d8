"""
Statistics service - store dashboard numbers.

Everything is computed from the last six months of sales plus the current
catalog and inventory. Results are cached per store and dropped whenever a
sale is created or reversed.
"""
import calendar
import logging
from datetime import datetime, date, time, timedelta
from typing import List, Optional

from sqlalchemy import func

from lojapdv.models import Sale, Customer, Product, InventoryRecord
from lojapdv.services import stock_alert_service
from lojapdv.services.cache_service import get_cache, STATISTICS_MODULE
from lojapdv.utils.formatters import month_label_br, local_naive
from lojapdv.utils.number_format import to_decimal, round2, ZERO

logger = logging.getLogger(__name__)

DAILY_RANGES = {'7d': 7, '14d': 14, '30d': 30}
DEFAULT_DAILY_RANGE = '14d'
MONTHS_BACK = 6


def add_months(day: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the target month length."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def _best(series: List[dict]) -> Optional[dict]:
    """Bucket with the highest value (first one wins on ties)."""
    if not series:
        return None
    best = series[0]
    for bucket in series:
        if bucket['value'] > best['value']:
            best = bucket
    return best


def daily_series(sales: List[tuple], today: date, days: int) -> List[dict]:
    """
    One bucket per day for the last ``days`` days (today included).

    Args:
        sales: (created_at, total) pairs
    """
    start = today - timedelta(days=days - 1)
    buckets = []
    for i in range(days):
        day = start + timedelta(days=i)
        buckets.append({
            'key': day.isoformat(),
            'label': day.strftime('%d/%m'),
            'count': 0,
            'value': ZERO,
        })
    by_key = {b['key']: b for b in buckets}

    for created_at, total in sales:
        bucket = by_key.get(created_at.date().isoformat())
        if bucket is None:
            continue
        bucket['count'] += 1
        bucket['value'] += round2(total)

    return buckets


def monthly_series(sales: List[tuple], today: date, months: int = MONTHS_BACK) -> List[dict]:
    """One bucket per month, current month last."""
    first = add_months(today.replace(day=1), -(months - 1))
    buckets = []
    for i in range(months):
        month_start = add_months(first, i)
        buckets.append({
            'key': f"{month_start.year}-{month_start.month:02d}",
            'label': month_label_br(month_start),
            'count': 0,
            'value': ZERO,
        })
    by_key = {b['key']: b for b in buckets}

    for created_at, total in sales:
        bucket = by_key.get(f"{created_at.year}-{created_at.month:02d}")
        if bucket is None:
            continue
        bucket['count'] += 1
        bucket['value'] += round2(total)

    return buckets


def payment_breakdown(sales: List[tuple]) -> List[dict]:
    """
    Count and value per payment method, highest value first.

    Args:
        sales: (payment_method, total) pairs
    """
    by_method = {}
    for method, total in sales:
        name = (method or '').strip() or '—'
        entry = by_method.setdefault(name, {'method': name, 'count': 0, 'value': ZERO})
        entry['count'] += 1
        entry['value'] += round2(total)
    return sorted(by_method.values(), key=lambda e: e['value'], reverse=True)


def compute_statistics(session, store_id: int, range_key: str = DEFAULT_DAILY_RANGE,
                       now: Optional[datetime] = None) -> dict:
    """
    Dashboard numbers for a store.

    Returns:
        dict with:
        - sales_today, revenue_today
        - sales_month, revenue_month, average_ticket_month
        - customers_count, products_count
        - daily: buckets for the chosen range, best_day
        - monthly: last 6 months, best_month
        - payments: current month breakdown
        - stock_alerts: red/orange/total
    """
    now = now or datetime.now()
    today = now.date()
    days = DAILY_RANGES.get(range_key, DAILY_RANGES[DEFAULT_DAILY_RANGE])

    since = datetime.combine(add_months(today, -MONTHS_BACK), time.min)
    rows = [
        (local_naive(created_at), to_decimal(total), payment_method)
        for created_at, total, payment_method in session.query(
            Sale.created_at, Sale.total, Sale.payment_method
        ).filter(
            Sale.store_id == store_id,
            Sale.created_at >= since
        ).order_by(Sale.created_at.asc()).all()
    ]

    day_start = datetime.combine(today, time.min)
    day_end = day_start + timedelta(days=1)
    month_start = datetime.combine(today.replace(day=1), time.min)
    month_end = datetime.combine(add_months(today.replace(day=1), 1), time.min)

    today_rows = [r for r in rows if day_start <= r[0] < day_end]
    month_rows = [r for r in rows if month_start <= r[0] < month_end]

    revenue_today = round2(sum((r[1] for r in today_rows), ZERO))
    revenue_month = round2(sum((r[1] for r in month_rows), ZERO))
    average_ticket = round2(revenue_month / len(month_rows)) if month_rows else round2(ZERO)

    customers_count = session.query(func.count(Customer.id)).filter(
        Customer.store_id == store_id
    ).scalar() or 0

    products = session.query(Product.id, Product.min_stock).filter(
        Product.store_id == store_id
    ).all()
    quantities = dict(session.query(InventoryRecord.product_id, InventoryRecord.quantity).filter(
        InventoryRecord.store_id == store_id
    ).all())
    alerts = stock_alert_service.count_alerts(
        (quantities.get(p.id, 0), p.min_stock) for p in products
    )

    pairs = [(r[0], r[1]) for r in rows]
    daily = daily_series(pairs, today, days)
    monthly = monthly_series(pairs, today)

    return {
        'range': range_key if range_key in DAILY_RANGES else DEFAULT_DAILY_RANGE,
        'generated_at': now.isoformat(timespec='seconds'),
        'sales_today': len(today_rows),
        'revenue_today': revenue_today,
        'sales_month': len(month_rows),
        'revenue_month': revenue_month,
        'average_ticket_month': average_ticket,
        'customers_count': int(customers_count),
        'products_count': len(products),
        'daily': daily,
        'best_day': _best(daily),
        'monthly': monthly,
        'best_month': _best(monthly),
        'payments': payment_breakdown((r[2], r[1]) for r in month_rows),
        'stock_alerts': alerts,
    }


def get_statistics(session, store_id: int, range_key: str = DEFAULT_DAILY_RANGE,
                   ttl: Optional[int] = None) -> dict:
    """Cached statistics (cache-aside, keyed by range and day)."""
    key = f"summary:{range_key}:{date.today().isoformat()}"
    try:
        cache = get_cache()
    except RuntimeError:
        logger.debug("[CACHE] Not initialized, computing statistics uncached")
        return compute_statistics(session, store_id, range_key)

    return cache.memoize(
        store_id,
        STATISTICS_MODULE,
        key,
        lambda: compute_statistics(session, store_id, range_key),
        ttl=ttl
    )
