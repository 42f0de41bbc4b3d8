"""
Stock alert classification.

One rule for every screen that shows or counts stock alerts (stock list,
statistics, admin store detail), so dashboards always agree with the
detail views.
"""
import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Tuple, Any

from lojapdv.utils.number_format import to_decimal, ZERO

ALERT_BUFFER_RATIO = Decimal('0.25')

LEVEL_NONE = 'none'
LEVEL_RED = 'red'
LEVEL_ORANGE = 'orange'
LEVEL_GREEN = 'green'

ALERT_LEVELS = (LEVEL_RED, LEVEL_ORANGE)

_SEVERITY = {LEVEL_RED: 0, LEVEL_ORANGE: 1, LEVEL_GREEN: 2, LEVEL_NONE: 3}


@dataclass(frozen=True)
class StockStatus:
    """Classification result: level plus a label for the screen."""
    level: str
    label: str
    minimum: Optional[Decimal] = None
    upper_bound: Optional[Decimal] = None

    @property
    def is_alert(self) -> bool:
        return self.level in ALERT_LEVELS

    def to_dict(self) -> dict:
        return {'level': self.level, 'label': self.label, 'is_alert': self.is_alert}


def _as_minimum(value) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else ZERO


def _fmt(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(int(value))
    return str(value.normalize()).replace('.', ',')


def classify_stock(quantity, minimum) -> StockStatus:
    """
    Classify a product's stock against its minimum threshold.

    - minimum missing -> none ("Sem mínimo")
    - minimum <= 0 or non-finite -> none ("Mínimo inválido")
    - quantity <= minimum -> red
    - quantity <= minimum + ceil(minimum * 0.25) -> orange
    - otherwise green

    Non-finite or missing quantities count as 0.
    """
    qty = to_decimal(quantity)
    min_value = _as_minimum(minimum)

    if min_value is None:
        return StockStatus(LEVEL_NONE, 'Sem mínimo')
    if min_value <= 0:
        return StockStatus(LEVEL_NONE, 'Mínimo inválido', minimum=min_value)

    buffer = Decimal(math.ceil(min_value * ALERT_BUFFER_RATIO))
    upper_bound = min_value + buffer

    if qty <= min_value:
        return StockStatus(LEVEL_RED, f'Crítico (≤ {_fmt(min_value)})', min_value, upper_bound)
    if qty <= upper_bound:
        return StockStatus(LEVEL_ORANGE, f'Atenção (≤ {_fmt(upper_bound)})', min_value, upper_bound)
    return StockStatus(LEVEL_GREEN, 'OK', min_value, upper_bound)


def count_alerts(pairs: Iterable[Tuple[Any, Any]]) -> dict:
    """
    Count red/orange statuses over (quantity, minimum) pairs.

    Returns:
        dict with keys red, orange, total
    """
    red = 0
    orange = 0
    for quantity, minimum in pairs:
        level = classify_stock(quantity, minimum).level
        if level == LEVEL_RED:
            red += 1
        elif level == LEVEL_ORANGE:
            orange += 1
    return {'red': red, 'orange': orange, 'total': red + orange}


def alert_sort_key(status: StockStatus, code: Optional[int]) -> tuple:
    """Severity first, then ascending display code; products without code last."""
    return (_SEVERITY.get(status.level, 99), code is None, code if code is not None else 0)


def product_stock_rows(products, quantities: dict) -> List[dict]:
    """
    Pair each product with its quantity and status.

    Args:
        products: Product models (or anything with id, code, min_stock)
        quantities: {product_id: quantity}
    """
    rows = []
    for product in products:
        qty = to_decimal(quantities.get(product.id, 0))
        rows.append({
            'product': product,
            'quantity': qty,
            'status': classify_stock(qty, product.min_stock),
        })
    return rows


def alert_list(rows: List[dict]) -> List[dict]:
    """Only alerting rows, most critical first."""
    alerts = [r for r in rows if r['status'].is_alert]
    alerts.sort(key=lambda r: alert_sort_key(r['status'], r['product'].code))
    return alerts
