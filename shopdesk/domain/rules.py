"""Money rules shared by order creation, editing and courier dispatch."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple

from .models import PaymentStatus


def line_total(quantity: int, price: float) -> float:
    return round(quantity * price, 2)


def subtotal_of(lines: Iterable[Tuple[int, float]]) -> float:
    return round(sum(line_total(q, p) for q, p in lines), 2)


def total_amount(subtotal: float, courier_charge: float) -> float:
    return round(subtotal + (courier_charge or 0), 2)


def due_amount(total: float, paid: float, clamp: bool) -> float:
    """Outstanding balance.

    Creation stores the raw difference, which is negative for an overpaid
    order; edits clamp it at zero.
    """
    due = round(total - (paid or 0), 2)
    if clamp and due < 0:
        return 0.0
    return due


def payment_status(total: float, paid: float, due: float) -> str:
    paid = paid or 0
    if paid > 0 and due <= 0:
        return PaymentStatus.PAID.value
    if 0 < paid < total:
        return PaymentStatus.PARTIAL.value
    return PaymentStatus.DUE.value


def round_half_up(amount: float) -> int:
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
