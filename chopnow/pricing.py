import secrets
import string
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Tuple

from . import config

TAX_RATE = Decimal(config.TAX_RATE)
CENT = Decimal("0.01")

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def to_money(value) -> Decimal:
    """Round half-up to cents. Floats go through ``str`` to avoid binary noise."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    delivery_fee: Decimal
    tax: Decimal
    total: Decimal


def compute_subtotal(lines: Iterable[Tuple[float, int]]) -> Decimal:
    subtotal = sum((Decimal(str(price)) * quantity for price, quantity in lines), Decimal("0"))
    return to_money(subtotal)


def compute_totals(
    lines: Iterable[Tuple[float, int]],
    delivery_fee,
    tax_rate: Optional[Decimal] = None,
) -> OrderTotals:
    rate = TAX_RATE if tax_rate is None else Decimal(str(tax_rate))
    subtotal = compute_subtotal(lines)
    fee = to_money(delivery_fee)
    tax = to_money(subtotal * rate)
    return OrderTotals(subtotal=subtotal, delivery_fee=fee, tax=tax, total=to_money(subtotal + fee + tax))


def generate_order_number(now_ms: Optional[int] = None) -> str:
    # unlikely to collide, not guaranteed; the unique index has the final say
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(6))
    return f"ORD-{millis}-{suffix}"
