"""
Sale cart reconciler.

Keeps quantity, per-line discount and line total consistent after every
edit, and the overall discount consistent with the amount received.
The cart is plain data: the web layer stores ``Cart.to_dict()`` in the
Flask session and rebuilds it on each request.

Line invariant after every edit (except a typed line total, which is
authoritative):

    line_total = round2(unit_price * quantity * (1 - discount_pct / 100))
"""
import enum
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from lojapdv.exceptions import CartValidationError, LineError
from lojapdv.utils.formatters import code_br
from lojapdv.utils.number_format import (
    to_decimal, to_number_br, round2, round3, clamp_pct,
    MIN_QTY, ZERO, HUNDRED,
)

logger = logging.getLogger(__name__)

EMPTY_CART_MESSAGE = 'Adicione pelo menos 1 item.'
ITEM_NOT_FOUND_MESSAGE = 'Item não encontrado.'

LINE_DISCOUNT_STEP = Decimal('0.0001')


class ReceivedTracking(str, enum.Enum):
    """Which cart-level field the cashier is steering."""
    NEUTRAL = 'neutral'                      # received follows the final total
    TRACKING_DISCOUNT = 'tracking_discount'  # discount typed, received still follows
    TRACKING_RECEIVED = 'tracking_received'  # received typed, discount derived from it


class TrackingEvent(str, enum.Enum):
    DISCOUNT_EDITED = 'discount_edited'
    RECEIVED_EDITED = 'received_edited'
    CLEARED = 'cleared'


def next_tracking(state: ReceivedTracking, event: TrackingEvent) -> ReceivedTracking:
    """
    Tracking transition: the last of the two cart-level fields touched wins.

    Typing the received amount makes it authoritative for later line edits;
    typing the overall discount afterwards hands control back to it, and the
    received amount follows the final total again.
    """
    if event == TrackingEvent.CLEARED:
        return ReceivedTracking.NEUTRAL
    if event == TrackingEvent.RECEIVED_EDITED:
        return ReceivedTracking.TRACKING_RECEIVED
    if event == TrackingEvent.DISCOUNT_EDITED:
        return ReceivedTracking.TRACKING_DISCOUNT
    raise ValueError(f'Evento desconhecido: {event}')


def _quantity(value) -> Decimal:
    return max(MIN_QTY, round3(max(MIN_QTY, to_number_br(value))))


@dataclass
class CartLine:
    """One product in the cart, with a snapshot of its price and labels."""
    product_id: int
    unit_price: Decimal
    quantity: Decimal
    code: Optional[int] = None
    description: str = ''
    brand: str = ''
    discount_pct: Decimal = ZERO
    line_total: Decimal = ZERO

    @classmethod
    def for_product(cls, product, quantity) -> 'CartLine':
        line = cls(
            product_id=product.id,
            unit_price=to_decimal(product.unit_price),
            quantity=_quantity(quantity),
            code=product.code,
            description=product.description or '',
            brand=product.brand or '',
        )
        line.recompute()
        return line

    @property
    def base(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def display_name(self) -> str:
        return f"{code_br(self.code)} {self.description}"

    def recompute(self):
        self.line_total = round2(self.base * (1 - self.discount_pct / HUNDRED))

    def set_quantity(self, value):
        self.quantity = _quantity(value)
        self.recompute()

    def set_discount_pct(self, value):
        self.discount_pct = clamp_pct(to_number_br(value))
        self.recompute()

    def set_line_total(self, value):
        """Typed total wins; the discount is back-computed from it."""
        total = round2(max(ZERO, to_number_br(value)))
        base = self.base
        if base > 0:
            self.discount_pct = clamp_pct(HUNDRED * (1 - total / base))
        else:
            self.discount_pct = ZERO
        self.line_total = total

    def to_item(self) -> dict:
        """Line as submitted to the sale ledger."""
        return {
            'product_id': self.product_id,
            'qty': round3(max(MIN_QTY, self.quantity)),
            'discount_pct': clamp_pct(self.discount_pct).quantize(LINE_DISCOUNT_STEP),
            'total_final': round2(self.line_total),
        }

    def to_dict(self) -> dict:
        return {
            'product_id': self.product_id,
            'code': self.code,
            'description': self.description,
            'brand': self.brand,
            'unit_price': str(self.unit_price),
            'quantity': str(self.quantity),
            'discount_pct': str(self.discount_pct),
            'line_total': str(self.line_total),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CartLine':
        return cls(
            product_id=int(data['product_id']),
            unit_price=to_decimal(data.get('unit_price')),
            quantity=_quantity(to_decimal(data.get('quantity'))),
            code=data.get('code'),
            description=data.get('description') or '',
            brand=data.get('brand') or '',
            discount_pct=clamp_pct(data.get('discount_pct')),
            line_total=round2(data.get('line_total')),
        )


class Cart:
    """
    Sale cart for one store.

    Lines are unique per product; adding a product already present sums
    the quantities. New lines go to the top.
    """

    def __init__(self):
        self.lines: List[CartLine] = []
        self.overall_discount_pct: Decimal = ZERO
        self.tracking: ReceivedTracking = ReceivedTracking.NEUTRAL
        self._received: Optional[Decimal] = None

    def __len__(self):
        return len(self.lines)

    def __repr__(self):
        return f"<Cart(lines={len(self.lines)}, subtotal={self.subtotal}, tracking={self.tracking.value})>"

    @property
    def is_empty(self) -> bool:
        return not self.lines

    # ---- lines ----

    def find_line(self, product_id) -> Optional[CartLine]:
        for line in self.lines:
            if line.product_id == int(product_id):
                return line
        return None

    def _get_line(self, product_id) -> CartLine:
        line = self.find_line(product_id)
        if line is None:
            raise KeyError(product_id)
        return line

    def add(self, product, quantity=1) -> CartLine:
        existing = self.find_line(product.id)
        if existing is None:
            line = CartLine.for_product(product, quantity)
            self.lines.insert(0, line)
        else:
            existing.quantity = _quantity(round3(existing.quantity + to_number_br(quantity)))
            existing.recompute()
            line = existing
        self._reconcile()
        return line

    def set_quantity(self, product_id, value) -> CartLine:
        line = self._get_line(product_id)
        line.set_quantity(value)
        self._reconcile()
        return line

    def set_discount_pct(self, product_id, value) -> CartLine:
        line = self._get_line(product_id)
        line.set_discount_pct(value)
        self._reconcile()
        return line

    def set_line_total(self, product_id, value) -> CartLine:
        line = self._get_line(product_id)
        line.set_line_total(value)
        self._reconcile()
        return line

    def remove(self, product_id) -> bool:
        line = self.find_line(product_id)
        if line is None:
            return False
        self.lines.remove(line)
        self._reconcile()
        return True

    def clear(self):
        self.lines = []
        self.overall_discount_pct = ZERO
        self._received = None
        self.tracking = next_tracking(self.tracking, TrackingEvent.CLEARED)

    # ---- totals ----

    @property
    def subtotal(self) -> Decimal:
        return round2(sum((line.line_total for line in self.lines), ZERO))

    @property
    def final_total(self) -> Decimal:
        return round2(self.subtotal * (1 - self.overall_discount_pct / HUNDRED))

    @property
    def received(self) -> Decimal:
        if self.tracking == ReceivedTracking.TRACKING_RECEIVED and self._received is not None:
            return self._received
        return self.final_total

    def set_overall_discount_pct(self, value):
        self.overall_discount_pct = clamp_pct(to_number_br(value))
        self._received = None
        self.tracking = next_tracking(self.tracking, TrackingEvent.DISCOUNT_EDITED)

    def set_received(self, value):
        self._received = round2(max(ZERO, to_number_br(value)))
        self.tracking = next_tracking(self.tracking, TrackingEvent.RECEIVED_EDITED)
        self._derive_discount_from_received()

    def _derive_discount_from_received(self):
        subtotal = self.subtotal
        if subtotal <= 0:
            self.overall_discount_pct = ZERO
            return
        self.overall_discount_pct = round2(clamp_pct(HUNDRED * (1 - self._received / subtotal)))

    def _reconcile(self):
        # Line edits move the subtotal; a typed received amount keeps steering the discount
        if self.tracking == ReceivedTracking.TRACKING_RECEIVED and self._received is not None:
            self._derive_discount_from_received()

    # ---- submission ----

    def validate(self, catalog, snapshot, store_id: int):
        """
        Check every line against the catalog and the stock snapshot.

        All lines are checked on every call; nothing is cached between
        attempts.

        Raises:
            CartValidationError: empty cart, unknown products or
                insufficient stock (one LineError per failing line)
        """
        if self.is_empty:
            raise CartValidationError(EMPTY_CART_MESSAGE)

        errors = []
        for line in self.lines:
            product = catalog.get_product(line.product_id)
            if product is None:
                errors.append(LineError(line.product_id, LineError.ITEM_NOT_FOUND, ITEM_NOT_FOUND_MESSAGE))
                continue

            available = to_decimal(snapshot.get_quantity(store_id, line.product_id))
            if line.quantity > available:
                errors.append(LineError(
                    line.product_id,
                    LineError.INSUFFICIENT_STOCK,
                    f"Estoque insuficiente em: {line.display_name}"
                ))

        if errors:
            logger.info(f"Cart rejected locally: store={store_id} errors={len(errors)}")
            raise CartValidationError(errors[0].message, errors)

    def build_items(self) -> List[dict]:
        return [line.to_item() for line in self.lines]

    # ---- session storage ----

    def to_dict(self) -> dict:
        return {
            'lines': [line.to_dict() for line in self.lines],
            'overall_discount_pct': str(self.overall_discount_pct),
            'tracking': self.tracking.value,
            'received': str(self._received) if self._received is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'Cart':
        cart = cls()
        if not data:
            return cart
        cart.lines = [CartLine.from_dict(item) for item in data.get('lines', [])]
        cart.overall_discount_pct = clamp_pct(data.get('overall_discount_pct'))
        try:
            cart.tracking = ReceivedTracking(data.get('tracking') or ReceivedTracking.NEUTRAL.value)
        except ValueError:
            cart.tracking = ReceivedTracking.NEUTRAL
        received = data.get('received')
        cart._received = round2(received) if received is not None else None
        return cart

    def summary(self) -> dict:
        """JSON view for the sales screen."""
        return {
            'lines': [
                {
                    'product_id': line.product_id,
                    'code': code_br(line.code),
                    'description': line.description,
                    'brand': line.brand,
                    'unit_price': str(round2(line.unit_price)),
                    'quantity': str(line.quantity),
                    'discount_pct': str(round2(line.discount_pct)),
                    'line_total': str(line.line_total),
                }
                for line in self.lines
            ],
            'subtotal': str(self.subtotal),
            'overall_discount_pct': str(round2(self.overall_discount_pct)),
            'final_total': str(self.final_total),
            'received': str(self.received),
            'tracking': self.tracking.value,
        }
