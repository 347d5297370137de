"""Credit note domain models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from core.models.invoice import Invoice


class CreditNoteStatus(str, Enum):
    """Credit note lifecycle status."""

    DRAFT = "draft"
    APPLIED = "applied"
    CANCELLED = "cancelled"


class CreditNoteCreate(BaseModel):
    """Data required to issue a credit note. Amount rules are enforced by the service."""

    client_id: int
    amount: Decimal
    invoice_id: int | None = None
    reason: str = Field("", max_length=500)
    notes: str = Field("", max_length=2000)
    issue_date: date | None = None


class CreditNote(BaseModel):
    """Full credit note entity as stored."""

    id: int
    credit_number: str
    client_id: int
    invoice_id: int | None = None
    amount: Decimal
    applied_amount: Decimal
    remaining_amount: Decimal
    status: CreditNoteStatus
    reason: str = ""
    notes: str = ""
    issue_date: date
    version: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_available(self) -> bool:
        """Whether any balance can still be applied."""
        return self.status == CreditNoteStatus.DRAFT and self.remaining_amount > 0


class CreditApplyRequest(BaseModel):
    credit_note_id: int
    invoice_id: int
    amount: Decimal


class CreditApplicationResult(BaseModel):
    """Both sides of a credit application, for rendering a combined receipt."""

    invoice: Invoice
    credit_note: CreditNote
    application_amount: Decimal
