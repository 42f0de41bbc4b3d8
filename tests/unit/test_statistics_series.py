"""
Unit tests for the statistics bucketing helpers.
"""
from datetime import date, datetime
from decimal import Decimal

from lojapdv.services.statistics_service import (
    add_months, daily_series, monthly_series, payment_breakdown,
)


def test_add_months_clamps_day():
    assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
    assert add_months(date(2026, 3, 15), -6) == date(2025, 9, 15)
    assert add_months(date(2025, 12, 1), 1) == date(2026, 1, 1)


def test_daily_series_buckets():
    today = date(2026, 3, 10)
    sales = [
        (datetime(2026, 3, 10, 9, 0), Decimal('10.00')),
        (datetime(2026, 3, 10, 18, 0), Decimal('5.50')),
        (datetime(2026, 3, 4, 12, 0), Decimal('20.00')),
        (datetime(2026, 3, 3, 12, 0), Decimal('99.00')),  # outside 7 days
    ]

    series = daily_series(sales, today, 7)

    assert len(series) == 7
    assert series[0]['key'] == '2026-03-04'
    assert series[0]['label'] == '04/03'
    assert series[0]['value'] == Decimal('20.00')
    assert series[-1]['count'] == 2
    assert series[-1]['value'] == Decimal('15.50')
    assert sum(b['count'] for b in series) == 3


def test_monthly_series_six_months():
    today = date(2026, 2, 15)
    sales = [
        (datetime(2026, 2, 1, 10, 0), Decimal('100.00')),
        (datetime(2025, 9, 30, 10, 0), Decimal('50.00')),
        (datetime(2025, 8, 31, 10, 0), Decimal('70.00')),  # outside window
    ]

    series = monthly_series(sales, today)

    assert [b['key'] for b in series] == [
        '2025-09', '2025-10', '2025-11', '2025-12', '2026-01', '2026-02'
    ]
    assert series[0]['label'] == 'set/25'
    assert series[0]['value'] == Decimal('50.00')
    assert series[-1]['value'] == Decimal('100.00')


def test_payment_breakdown_sorted_by_value():
    sales = [
        ('Dinheiro', Decimal('10.00')),
        ('Pix', Decimal('50.00')),
        ('Dinheiro', Decimal('15.00')),
        ('', Decimal('1.00')),
    ]

    breakdown = payment_breakdown(sales)

    assert [b['method'] for b in breakdown] == ['Pix', 'Dinheiro', '—']
    assert breakdown[1]['count'] == 2
    assert breakdown[1]['value'] == Decimal('25.00')
