"""
Invoice totals calculation.

Amounts are Decimals rounded to cents. Each component is rounded on its own
and the total is built from the rounded components, so
total == subtotal - discount + tax holds exactly.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from core.models.invoice import DiscountType, LineItem

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value: Decimal | int | str) -> Decimal:
    """Round a value to cents, half up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Totals:
    """Result of a totals calculation."""

    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal

    @property
    def discounted_subtotal(self) -> Decimal:
        return self.subtotal - self.discount


def compute_totals(
    items: Iterable[LineItem],
    tax_rate: Decimal = ZERO,
    discount_amount: Decimal = ZERO,
    discount_type: DiscountType = DiscountType.FIXED,
) -> Totals:
    """
    Compute subtotal, discount, tax and total for a set of line items.

    The discount is applied before tax. A discount larger than the subtotal
    is not clamped; callers decide whether a negative result is acceptable.

    Args:
        items: Line items (quantity x rate each)
        tax_rate: Tax percentage applied to the discounted subtotal
        discount_amount: Fixed amount, or a percentage of the subtotal
        discount_type: How to read discount_amount

    Returns:
        Totals with every component rounded to cents
    """
    subtotal = to_money(sum((item.quantity * item.rate for item in items), ZERO))

    if discount_type == DiscountType.PERCENTAGE:
        discount = to_money(subtotal * Decimal(discount_amount) / HUNDRED)
    else:
        discount = to_money(discount_amount)

    tax = to_money((subtotal - discount) * Decimal(tax_rate) / HUNDRED)
    total = subtotal - discount + tax

    return Totals(subtotal=subtotal, discount=discount, tax=tax, total=total)
