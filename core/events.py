"""
Domain events for the invoice ledger.

Immutable event objects that represent state changes in the ledger.
A service publishes what happened, and handlers react without the publisher
knowing who's listening.

Event Categories:
- InvoiceEvent: Invoice lifecycle (send, paid, cancel)
- LedgerEvent: Money movement (payment recorded, credit applied)

Events carry the full domain objects as saved, so handlers don't need to
re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Base class for all ledger domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# INVOICE EVENTS
# =============================================================================


@dataclass(frozen=True)
class InvoiceEvent(DomainEvent):
    """Events related to invoice lifecycle."""
    invoice: Any = None  # Invoice


@dataclass(frozen=True)
class InvoiceSent(InvoiceEvent):
    """Invoice was sent to the client."""
    recipient: str = ""

    @classmethod
    def create(cls, invoice: Any, recipient: str) -> "InvoiceSent":
        return cls(invoice=invoice, recipient=recipient)


@dataclass(frozen=True)
class InvoicePaid(InvoiceEvent):
    """Invoice reached a zero balance."""

    @classmethod
    def create(cls, invoice: Any) -> "InvoicePaid":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class InvoiceCancelled(InvoiceEvent):
    """Invoice was cancelled."""

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceCancelled":
        return cls(invoice=invoice)


# =============================================================================
# LEDGER EVENTS
# =============================================================================


@dataclass(frozen=True)
class LedgerEvent(DomainEvent):
    """Money applied to an invoice."""
    invoice: Any = None
    amount: Decimal = Decimal("0")


@dataclass(frozen=True)
class PaymentRecorded(LedgerEvent):
    """A cash payment was recorded."""
    payment: Any = None  # PaymentRecord

    @classmethod
    def create(cls, invoice: Any, payment: Any) -> "PaymentRecorded":
        return cls(invoice=invoice, amount=payment.amount, payment=payment)


@dataclass(frozen=True)
class CreditNoteApplied(LedgerEvent):
    """Part of a credit note was applied to an invoice."""
    credit_note: Any = None

    @classmethod
    def create(cls, invoice: Any, credit_note: Any, amount: Decimal) -> "CreditNoteApplied":
        return cls(invoice=invoice, credit_note=credit_note, amount=amount)


EVENT_TYPES = frozenset(
    cls.__name__
    for cls in (InvoiceSent, InvoicePaid, InvoiceCancelled, PaymentRecorded, CreditNoteApplied)
)
