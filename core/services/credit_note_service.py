"""
Credit note service.

Issues credit notes and answers which credit a client can still use.
Applying credit to an invoice is a ledger operation (LedgerService).
"""

import logging
from decimal import Decimal

from core import invariants
from core.audit import AuditLogger, AuditAction
from core.errors import ValidationError, credit_note_not_found
from core.locking import LockRegistry
from core.models import CreditNote, CreditNoteCreate, CreditNoteStatus
from core.repository import CreditNoteRepository, InvoiceStore
from core.sequence import DocumentNumberSequence
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


def _newest_first(notes: list[CreditNote]) -> list[CreditNote]:
    return sorted(notes, key=lambda cn: (cn.created_at, cn.id), reverse=True)


class CreditNoteService:
    """Service for credit note operations."""

    def __init__(
        self,
        repository: CreditNoteRepository,
        invoices: InvoiceStore,
        audit: AuditLogger,
        locks: LockRegistry,
        numbers: DocumentNumberSequence,
    ):
        self.repository = repository
        self.invoices = invoices
        self.audit = audit
        self.locks = locks
        self.numbers = numbers

    def create(self, data: CreditNoteCreate) -> CreditNote:
        """
        Issue a credit note to a client.

        Args:
            data: Client, face value and optional originating invoice

        Returns:
            Credit note in DRAFT status with its full amount remaining

        Raises:
            ValidationError: If amount is not positive, or the originating
                invoice belongs to another client
            NotFoundError: If the originating invoice does not exist
        """
        amount = invariants.validate_amount(data.amount, "Credit note amount")

        if data.invoice_id is not None:
            invoice = self.invoices.require(data.invoice_id)
            if invoice.client_id != data.client_id:
                raise ValidationError(
                    f"Invoice {invoice.invoice_number} belongs to client {invoice.client_id}, "
                    f"not {data.client_id}",
                    code="CLIENT_MISMATCH",
                )

        now = now_utc()
        credit_note = CreditNote(
            id=self.repository.next_id(),
            credit_number=self.numbers.next(),
            client_id=data.client_id,
            invoice_id=data.invoice_id,
            amount=amount,
            applied_amount=Decimal("0"),
            remaining_amount=amount,
            status=CreditNoteStatus.DRAFT,
            reason=data.reason,
            notes=data.notes,
            issue_date=data.issue_date or self.invoices.today(),
            created_at=now,
            updated_at=now,
        )
        invariants.check_credit_note(credit_note)

        saved = self.repository.save(credit_note)

        self.audit.log_change(
            entity_type="credit_note",
            entity_id=saved.id,
            action=AuditAction.CREATE,
            changes={"created": saved.model_dump(mode="json")}
        )
        logger.info(f"Issued credit note {saved.credit_number} for {amount} to client {saved.client_id}")

        return saved

    def get_by_id(self, credit_note_id: int) -> CreditNote | None:
        return self.repository.get(credit_note_id)

    def list_all(self) -> list[CreditNote]:
        """All credit notes, most recent first."""
        return _newest_first(self.repository.list())

    def available_for_client(self, client_id: int) -> list[CreditNote]:
        """
        Credit notes a client can still draw on.

        Returns:
            The client's non-cancelled notes with a remaining balance,
            most recent first
        """
        return _newest_first([
            cn for cn in self.repository.list()
            if cn.client_id == client_id and cn.is_available
        ])

    def cancel(self, credit_note_id: int) -> CreditNote:
        """
        Cancel a credit note so its remaining balance can no longer be used.

        Amounts already applied stay applied.

        Raises:
            NotFoundError: If credit note not found
            ValidationError: If the note is already cancelled or fully applied
        """
        with self.locks.hold(("credit_note", credit_note_id)):
            current = self.repository.get(credit_note_id)
            if current is None:
                raise credit_note_not_found(credit_note_id)

            if current.status != CreditNoteStatus.DRAFT:
                raise ValidationError(
                    f"Credit note {current.credit_number} is {current.status.value} "
                    "and cannot be cancelled",
                    code="INVALID_STATUS_TRANSITION",
                )

            saved = self.repository.save(current.model_copy(update={
                "status": CreditNoteStatus.CANCELLED,
                "updated_at": now_utc(),
            }))

        self.audit.log_change(
            entity_type="credit_note",
            entity_id=credit_note_id,
            action=AuditAction.UPDATE,
            changes={"status": {"old": current.status.value, "new": saved.status.value}}
        )
        logger.info(f"Cancelled credit note {saved.credit_number} ({saved.remaining_amount} unused)")

        return saved
