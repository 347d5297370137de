"""Core domain models."""

from core.models.invoice import (
    Invoice, InvoiceCreate, InvoiceUpdate, InvoiceStatus,
    LineItem, DiscountType, Currency, PaymentTerms, PaymentMethod,
    PaymentRecord, PaymentCreate, CreditApplication,
    Reminder, ReminderCreate, ReminderType,
    SendInvoiceRequest, SendInvoiceResult, InvoiceDashboardStats,
)
from core.models.credit_note import (
    CreditNote, CreditNoteCreate, CreditNoteStatus,
    CreditApplyRequest, CreditApplicationResult,
)
from core.models.aging import AgingBucket, AgingBuckets, AgingTotals, AgingReport

__all__ = [
    # Invoice
    "Invoice", "InvoiceCreate", "InvoiceUpdate", "InvoiceStatus",
    "LineItem", "DiscountType", "Currency", "PaymentTerms", "PaymentMethod",
    # Ledger records
    "PaymentRecord", "PaymentCreate", "CreditApplication",
    "Reminder", "ReminderCreate", "ReminderType",
    "SendInvoiceRequest", "SendInvoiceResult", "InvoiceDashboardStats",
    # CreditNote
    "CreditNote", "CreditNoteCreate", "CreditNoteStatus",
    "CreditApplyRequest", "CreditApplicationResult",
    # Aging
    "AgingBucket", "AgingBuckets", "AgingTotals", "AgingReport",
]
