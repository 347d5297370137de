"""
Ledger invariants.

Checked after every mutation and before anything is saved. A failure here
means the code computed a bad state, so it raises ConsistencyError and the
mutation is dropped.
"""

import logging
from decimal import Decimal, InvalidOperation

from core.errors import ConsistencyError, ValidationError
from core.models import CreditNote, Invoice

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def validate_amount(amount, label: str = "Amount") -> Decimal:
    """
    Normalize a monetary input and require it to be a positive cent amount.

    Raises:
        ValidationError: If the amount is not a number, not > 0, or has
            fractions of a cent
    """
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{label} must be a number", code="INVALID_AMOUNT")

    if not value.is_finite():
        raise ValidationError(f"{label} must be a number", code="INVALID_AMOUNT")
    if value <= ZERO:
        raise ValidationError(f"{label} must be greater than zero", code="INVALID_AMOUNT")
    if value != value.quantize(Decimal("0.01")):
        raise ValidationError(
            f"{label} cannot have fractions of a cent", code="INVALID_AMOUNT"
        )
    return value


def check_invoice(invoice: Invoice) -> None:
    """Balance invariant: amount_paid + balance_due == total, both never negative."""
    problems = []
    if invoice.amount_paid + invoice.balance_due != invoice.total:
        problems.append(
            f"amount_paid {invoice.amount_paid} + balance_due {invoice.balance_due} "
            f"!= total {invoice.total}"
        )
    if invoice.balance_due < ZERO:
        problems.append(f"balance_due {invoice.balance_due} is negative")
    if invoice.amount_paid < ZERO:
        problems.append(f"amount_paid {invoice.amount_paid} is negative")
    if invoice.amount_paid != invoice.ledger_total:
        problems.append(
            f"amount_paid {invoice.amount_paid} != ledger entries {invoice.ledger_total}"
        )

    if problems:
        logger.error(f"Invoice {invoice.id} failed invariant check: {'; '.join(problems)}")
        raise ConsistencyError(
            f"Invoice {invoice.invoice_number} would become inconsistent: {'; '.join(problems)}"
        )


def check_credit_note(credit_note: CreditNote) -> None:
    """Conservation: applied_amount + remaining_amount == amount, neither negative."""
    problems = []
    if credit_note.applied_amount + credit_note.remaining_amount != credit_note.amount:
        problems.append(
            f"applied {credit_note.applied_amount} + remaining {credit_note.remaining_amount} "
            f"!= amount {credit_note.amount}"
        )
    if credit_note.remaining_amount < ZERO:
        problems.append(f"remaining {credit_note.remaining_amount} is negative")
    if credit_note.applied_amount < ZERO:
        problems.append(f"applied {credit_note.applied_amount} is negative")

    if problems:
        logger.error(f"Credit note {credit_note.id} failed invariant check: {'; '.join(problems)}")
        raise ConsistencyError(
            f"Credit note {credit_note.credit_number} would become inconsistent: "
            f"{'; '.join(problems)}"
        )
