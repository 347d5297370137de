"""
Invoice lifecycle rules.

    draft -> sent -> viewed -> paid
               |                ^
               +-> overdue -----+
    any non-terminal -> cancelled

`paid` and `cancelled` are terminal. `sent`, `viewed` and `cancelled` only
happen through explicit operations; `overdue` and `paid` are derived from
dates and ledger fields by derive_status, which the invoice store runs on
every load.
"""

import logging
from datetime import date

from core.errors import ValidationError
from core.models import Invoice, InvoiceStatus

logger = logging.getLogger(__name__)

# Fields that change what is billed. Editable only while draft.
STRUCTURAL_FIELDS = frozenset({
    "client_id", "project_id", "currency", "payment_terms",
    "issue_date", "due_date", "items",
    "tax_rate", "discount_amount", "discount_type",
})

# Fields that recompute totals when patched.
FINANCIAL_FIELDS = frozenset({"items", "tax_rate", "discount_amount", "discount_type"})

# Presentation-only fields. Editable until cancelled.
MEMO_FIELDS = frozenset({"notes", "terms_and_conditions", "thank_you_message"})

# Fields a patch may clear by sending null.
NULLABLE_FIELDS = frozenset({"project_id"})


def derive_status(invoice: Invoice, as_of: date, paid_on: date | None = None) -> Invoice:
    """
    Recompute the derived status of an invoice.

    Pure and idempotent: returns the same invoice object when nothing
    changes, otherwise an updated copy.

    Args:
        invoice: Invoice to evaluate
        as_of: Date to evaluate overdue against
        paid_on: Date of the transaction being applied, used for paid_date
            when it crosses the paid threshold (defaults to as_of)

    Returns:
        Invoice with current status
    """
    if invoice.status.is_terminal:
        return invoice

    zero_total_draft = invoice.status == InvoiceStatus.DRAFT and invoice.total <= 0
    if invoice.amount_paid >= invoice.total and not zero_total_draft:
        return invoice.model_copy(update={
            "status": InvoiceStatus.PAID,
            "paid_date": invoice.paid_date or paid_on or as_of,
        })

    if invoice.status == InvoiceStatus.SENT and as_of > invoice.due_date:
        return invoice.model_copy(update={"status": InvoiceStatus.OVERDUE})

    return invoice


def check_sendable(invoice: Invoice) -> None:
    if invoice.status.is_terminal:
        raise ValidationError(
            f"Cannot send {invoice.status.value} invoice {invoice.invoice_number}",
            code="INVOICE_NOT_SENDABLE",
        )


def check_viewable(invoice: Invoice) -> None:
    if invoice.status != InvoiceStatus.SENT:
        raise ValidationError(
            f"Invoice {invoice.invoice_number} is {invoice.status.value}; "
            "only sent invoices can be marked viewed",
            code="INVALID_STATUS_TRANSITION",
        )


def check_cancellable(invoice: Invoice) -> None:
    if invoice.status == InvoiceStatus.PAID:
        raise ValidationError(
            f"Invoice {invoice.invoice_number} is paid and cannot be cancelled",
            code="INVOICE_ALREADY_PAID",
        )
    if invoice.status == InvoiceStatus.CANCELLED:
        raise ValidationError(
            f"Invoice {invoice.invoice_number} is already cancelled",
            code="INVOICE_CANCELLED",
        )


def check_deletable(invoice: Invoice) -> None:
    if invoice.status == InvoiceStatus.PAID:
        raise ValidationError(
            f"Cannot delete paid invoice {invoice.invoice_number}",
            code="INVOICE_ALREADY_PAID",
        )


def check_remindable(invoice: Invoice) -> None:
    if invoice.status.is_terminal:
        raise ValidationError(
            f"Cannot send reminder for {invoice.status.value} invoice {invoice.invoice_number}",
            code="INVOICE_NOT_REMINDABLE",
        )


def check_accepts_ledger_entry(invoice: Invoice) -> None:
    """Payments and credits are refused on cancelled invoices."""
    if invoice.status == InvoiceStatus.CANCELLED:
        raise ValidationError(
            f"Invoice {invoice.invoice_number} is cancelled",
            code="INVOICE_CANCELLED",
        )


def check_patch_allowed(invoice: Invoice, fields: set[str]) -> None:
    """
    Enforce which patch fields are mutable in the invoice's current status.

    Raises:
        ValidationError: If any field is not editable in this status
    """
    unknown = fields - STRUCTURAL_FIELDS - MEMO_FIELDS
    if unknown:
        raise ValidationError(
            f"Fields not editable on invoices: {', '.join(sorted(unknown))}",
            code="INVALID_REQUEST",
        )

    if invoice.status == InvoiceStatus.CANCELLED:
        raise ValidationError(
            f"Invoice {invoice.invoice_number} is cancelled and cannot be edited",
            code="INVOICE_IMMUTABLE",
        )

    structural = fields & STRUCTURAL_FIELDS
    if structural and invoice.status != InvoiceStatus.DRAFT:
        logger.warning(
            "Rejected edit of %s on %s invoice %s",
            sorted(structural), invoice.status.value, invoice.invoice_number,
        )
        raise ValidationError(
            f"Cannot edit {', '.join(sorted(structural))} on invoice "
            f"{invoice.invoice_number}: it has been {invoice.status.value}",
            code="INVOICE_IMMUTABLE",
        )
