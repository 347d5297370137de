"""Invoice domain models.

Money is Decimal in the invoice's currency, rounded to cents. Tax rate and
percentage discounts are plain percentages (10 = 10%).
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from utils.timezone import now_utc


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    OVERDUE = "overdue"
    PAID = "paid"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED)


class DiscountType(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    CAD = "CAD"


class PaymentTerms(str, Enum):
    """Payment terms; each maps to a number of days until due."""

    DUE_ON_RECEIPT = "due_on_receipt"
    NET_15 = "net_15"
    NET_30 = "net_30"
    NET_60 = "net_60"

    @property
    def days(self) -> int:
        return {
            PaymentTerms.DUE_ON_RECEIPT: 0,
            PaymentTerms.NET_15: 15,
            PaymentTerms.NET_30: 30,
            PaymentTerms.NET_60: 60,
        }[self]


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    CASH = "cash"
    CARD = "card"
    PAYPAL = "paypal"
    STRIPE = "stripe"
    OTHER = "other"


class ReminderType(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


class LineItem(BaseModel):
    """A billable line: quantity x rate."""

    description: str = Field("", max_length=500)
    quantity: Decimal = Field(..., ge=0)
    rate: Decimal = Field(..., ge=0)

    model_config = {"frozen": True}

    @property
    def amount(self) -> Decimal:
        return self.quantity * self.rate


# =============================================================================
# LEDGER RECORDS (append-only)
# =============================================================================


class PaymentRecord(BaseModel):
    """A cash payment applied to an invoice. Never edited once recorded."""

    id: UUID = Field(default_factory=uuid4)
    amount: Decimal
    method: PaymentMethod
    reference: str = ""
    notes: str = ""
    payment_date: date
    created_at: datetime = Field(default_factory=now_utc)

    model_config = {"frozen": True}


class CreditApplication(BaseModel):
    """Part of a credit note applied to an invoice. Never edited once recorded."""

    id: UUID = Field(default_factory=uuid4)
    credit_note_id: int
    credit_number: str
    amount: Decimal
    applied_date: date
    created_at: datetime = Field(default_factory=now_utc)

    model_config = {"frozen": True}


class Reminder(BaseModel):
    """A payment reminder sent for an invoice."""

    id: UUID = Field(default_factory=uuid4)
    reminder_type: ReminderType
    message: str
    sent_date: date
    sent_by: str
    created_at: datetime = Field(default_factory=now_utc)

    model_config = {"frozen": True}


# =============================================================================
# INPUTS
# =============================================================================


class InvoiceCreate(BaseModel):
    """Data required to create a draft invoice."""

    client_id: int
    project_id: int | None = None
    currency: Currency | None = None
    payment_terms: PaymentTerms | None = None
    issue_date: date | None = None
    due_date: date | None = None
    items: list[LineItem] = Field(default_factory=list)
    tax_rate: Decimal = Field(Decimal("0"), ge=0)
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    discount_type: DiscountType = DiscountType.FIXED
    notes: str = Field("", max_length=2000)
    terms_and_conditions: str = Field("", max_length=5000)
    thank_you_message: str = Field("Thank you for your business!", max_length=500)


class InvoiceUpdate(BaseModel):
    """
    Patch for an invoice. All fields optional.

    Which fields may be applied in which status is decided by
    core.lifecycle.check_patch_allowed, not here.
    """

    client_id: int | None = None
    project_id: int | None = None
    currency: Currency | None = None
    payment_terms: PaymentTerms | None = None
    issue_date: date | None = None
    due_date: date | None = None
    items: list[LineItem] | None = None
    tax_rate: Decimal | None = Field(None, ge=0)
    discount_amount: Decimal | None = Field(None, ge=0)
    discount_type: DiscountType | None = None
    notes: str | None = Field(None, max_length=2000)
    terms_and_conditions: str | None = Field(None, max_length=5000)
    thank_you_message: str | None = Field(None, max_length=500)


class PaymentCreate(BaseModel):
    """A payment to record against an invoice. Amount rules are enforced by the ledger."""

    amount: Decimal
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    reference: str = Field("", max_length=200)
    notes: str = Field("", max_length=2000)
    payment_date: date | None = None


class SendInvoiceRequest(BaseModel):
    """Where and how to deliver an invoice."""

    to: str = Field(..., min_length=3, max_length=320)
    subject: str | None = Field(None, max_length=200)
    message: str | None = Field(None, max_length=5000)


class SendInvoiceResult(BaseModel):
    success: bool
    message: str
    sent_at: datetime


class ReminderCreate(BaseModel):
    reminder_type: ReminderType = ReminderType.MANUAL
    message: str = Field("Payment reminder", max_length=2000)
    sent_by: str = Field("System", max_length=200)


# =============================================================================
# ENTITY
# =============================================================================


class Invoice(BaseModel):
    """Full invoice entity as stored."""

    id: int
    invoice_number: str
    client_id: int
    project_id: int | None = None
    status: InvoiceStatus
    currency: Currency
    payment_terms: PaymentTerms
    issue_date: date
    due_date: date
    sent_date: date | None = None
    sent_to: str | None = None
    viewed_date: date | None = None
    paid_date: date | None = None
    cancelled_date: date | None = None
    last_reminder_date: date | None = None
    items: list[LineItem] = Field(default_factory=list)
    tax_rate: Decimal
    discount_amount: Decimal
    discount_type: DiscountType
    subtotal: Decimal
    discount_value: Decimal
    tax_amount: Decimal
    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    payments: list[PaymentRecord] = Field(default_factory=list)
    credit_applications: list[CreditApplication] = Field(default_factory=list)
    reminders: list[Reminder] = Field(default_factory=list)
    notes: str = ""
    terms_and_conditions: str = ""
    thank_you_message: str = ""
    version: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_paid(self) -> bool:
        """Whether invoice is fully paid."""
        return self.status == InvoiceStatus.PAID

    @property
    def ledger_total(self) -> Decimal:
        """Sum of every payment and credit application on the invoice."""
        paid = sum((p.amount for p in self.payments), Decimal("0"))
        credited = sum((c.amount for c in self.credit_applications), Decimal("0"))
        return paid + credited


class InvoiceDashboardStats(BaseModel):
    """Headline receivables figures."""

    total_invoices: int
    total_outstanding: Decimal
    total_paid: Decimal
    overdue_count: int
    recent_invoices: list[Invoice]
