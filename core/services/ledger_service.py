"""
Ledger engine: payments and credit note applications.

Both operations are read-modify-write sequences on an invoice and run under
that invoice's lock. Applying a credit note also holds the credit note's
lock and writes both entities as a unit: if the invoice write fails after
the credit note write succeeded, the credit note is restored before the
error propagates.

Each call is a new economic event. Nothing here deduplicates retries.
"""

import logging
from decimal import Decimal

from core import invariants, lifecycle
from core.audit import AuditLogger, AuditAction
from core.errors import ConsistencyError, ValidationError, credit_note_not_found
from core.event_bus import EventBus
from core.events import CreditNoteApplied, InvoicePaid, PaymentRecorded
from core.locking import LockRegistry
from core.models import (
    CreditApplication, CreditApplicationResult, CreditNote, CreditNoteStatus,
    Invoice, InvoiceStatus, PaymentCreate, PaymentRecord,
)
from core.repository import CreditNoteRepository, InvoiceStore
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class LedgerService:
    """Applies money to invoices."""

    def __init__(
        self,
        store: InvoiceStore,
        credit_notes: CreditNoteRepository,
        audit: AuditLogger,
        event_bus: EventBus,
        locks: LockRegistry,
    ):
        self.store = store
        self.credit_notes = credit_notes
        self.audit = audit
        self.event_bus = event_bus
        self.locks = locks

    @staticmethod
    def _check_within_balance(invoice: Invoice, amount: Decimal, what: str) -> None:
        if amount > invoice.balance_due:
            logger.warning(
                f"Rejected {what} of {amount} on {invoice.invoice_number}: balance is {invoice.balance_due}"
            )
            raise ValidationError(
                f"{what.capitalize()} amount {amount} cannot exceed remaining balance "
                f"{invoice.balance_due} on invoice {invoice.invoice_number}",
                code="AMOUNT_EXCEEDS_BALANCE",
            )

    def record_payment(self, invoice_id: int, data: PaymentCreate) -> Invoice:
        """
        Record a cash payment on an invoice.

        Args:
            invoice_id: Invoice to pay
            data: Amount, method, reference and payment date (defaults to today)

        Returns:
            Updated invoice (status becomes PAID once the balance reaches zero)

        Raises:
            NotFoundError: If invoice not found
            ValidationError: If amount is not positive, exceeds the balance,
                or the invoice is cancelled
        """
        amount = invariants.validate_amount(data.amount, "Payment amount")

        with self.locks.hold(("invoice", invoice_id)):
            current = self.store.require(invoice_id)
            lifecycle.check_accepts_ledger_entry(current)
            self._check_within_balance(current, amount, "payment")

            today = self.store.today()
            payment = PaymentRecord(
                amount=amount,
                method=data.method,
                reference=data.reference,
                notes=data.notes,
                payment_date=data.payment_date or today,
            )
            amount_paid = current.amount_paid + amount
            updated = current.model_copy(update={
                "payments": [*current.payments, payment],
                "amount_paid": amount_paid,
                "balance_due": current.total - amount_paid,
                "updated_at": now_utc(),
            })
            updated = lifecycle.derive_status(updated, today, paid_on=payment.payment_date)
            invariants.check_invoice(updated)

            saved = self.store.save(updated)

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.UPDATE,
            changes={
                "amount_paid": {"old": str(current.amount_paid), "new": str(saved.amount_paid)},
                "status": {"old": current.status.value, "new": saved.status.value},
                "payment_recorded": payment.model_dump(mode="json"),
            }
        )
        logger.info(
            f"Payment of {amount} recorded on {saved.invoice_number}; balance {saved.balance_due}"
        )

        self.event_bus.publish(PaymentRecorded.create(invoice=saved, payment=payment))
        if saved.status == InvoiceStatus.PAID and current.status != InvoiceStatus.PAID:
            self.event_bus.publish(InvoicePaid.create(invoice=saved))

        return saved

    def apply_credit_note(
        self, credit_note_id: int, invoice_id: int, amount: Decimal
    ) -> CreditApplicationResult:
        """
        Apply part of a credit note to an invoice.

        Args:
            credit_note_id: Credit note to draw from
            invoice_id: Invoice to credit
            amount: Amount to move from the note to the invoice

        Returns:
            Both updated entities and the amount applied

        Raises:
            NotFoundError: If either entity is missing
            ValidationError: If amount is not positive, exceeds the note's
                remaining balance or the invoice's balance, the note is
                cancelled or used up, the invoice is cancelled, or the two
                belong to different clients
            ConsistencyError: If the invoice write fails and the credit note
                cannot be restored either
        """
        amount = invariants.validate_amount(amount, "Credit amount")

        with self.locks.hold(("credit_note", credit_note_id), ("invoice", invoice_id)):
            credit_note = self.credit_notes.get(credit_note_id)
            if credit_note is None:
                raise credit_note_not_found(credit_note_id)
            invoice = self.store.require(invoice_id)

            self._check_applicable(credit_note, invoice, amount)

            today = self.store.today()
            now = now_utc()

            remaining = credit_note.remaining_amount - amount
            new_credit_note = credit_note.model_copy(update={
                "applied_amount": credit_note.applied_amount + amount,
                "remaining_amount": remaining,
                "status": CreditNoteStatus.APPLIED if remaining == 0 else credit_note.status,
                "updated_at": now,
            })

            application = CreditApplication(
                credit_note_id=credit_note.id,
                credit_number=credit_note.credit_number,
                amount=amount,
                applied_date=today,
            )
            amount_paid = invoice.amount_paid + amount
            new_invoice = invoice.model_copy(update={
                "credit_applications": [*invoice.credit_applications, application],
                "amount_paid": amount_paid,
                "balance_due": invoice.total - amount_paid,
                "updated_at": now,
            })
            new_invoice = lifecycle.derive_status(new_invoice, today, paid_on=today)

            invariants.check_credit_note(new_credit_note)
            invariants.check_invoice(new_invoice)

            saved_credit_note = self.credit_notes.save(new_credit_note)
            try:
                saved_invoice = self.store.save(new_invoice)
            except Exception as write_error:
                logger.exception(
                    f"Invoice {invoice.invoice_number} write failed; restoring credit note "
                    f"{credit_note.credit_number}"
                )
                try:
                    self.credit_notes.save(credit_note.model_copy(update={
                        "version": saved_credit_note.version,
                    }))
                except Exception as restore_error:
                    logger.exception(
                        f"Restore of credit note {credit_note.credit_number} failed; "
                        f"it carries an application invoice {invoice.invoice_number} never received"
                    )
                    raise ConsistencyError(
                        f"Credit note {credit_note.credit_number} (id {credit_note_id}) was applied "
                        f"but invoice {invoice.invoice_number} (id {invoice_id}) was not updated: "
                        f"{write_error}; restore failed: {restore_error}",
                        code="CREDIT_RESTORE_FAILED",
                    ) from restore_error
                raise

        self.audit.log_change(
            entity_type="credit_note",
            entity_id=credit_note_id,
            action=AuditAction.UPDATE,
            changes={
                "applied_amount": {"old": str(credit_note.applied_amount), "new": str(saved_credit_note.applied_amount)},
                "remaining_amount": {"old": str(credit_note.remaining_amount), "new": str(saved_credit_note.remaining_amount)},
                "status": {"old": credit_note.status.value, "new": saved_credit_note.status.value},
                "applied_to_invoice": invoice_id,
            }
        )
        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.UPDATE,
            changes={
                "amount_paid": {"old": str(invoice.amount_paid), "new": str(saved_invoice.amount_paid)},
                "status": {"old": invoice.status.value, "new": saved_invoice.status.value},
                "credit_applied": application.model_dump(mode="json"),
            }
        )
        logger.info(
            f"Applied {amount} from {credit_note.credit_number} to {invoice.invoice_number}"
        )

        self.event_bus.publish(CreditNoteApplied.create(
            invoice=saved_invoice, credit_note=saved_credit_note, amount=amount
        ))
        if saved_invoice.status == InvoiceStatus.PAID and invoice.status != InvoiceStatus.PAID:
            self.event_bus.publish(InvoicePaid.create(invoice=saved_invoice))

        return CreditApplicationResult(
            invoice=saved_invoice,
            credit_note=saved_credit_note,
            application_amount=amount,
        )

    def _check_applicable(self, credit_note: CreditNote, invoice: Invoice, amount: Decimal) -> None:
        if credit_note.status == CreditNoteStatus.CANCELLED:
            raise ValidationError(
                f"Credit note {credit_note.credit_number} is cancelled",
                code="CREDIT_NOTE_CANCELLED",
            )
        if amount > credit_note.remaining_amount:
            logger.warning(
                f"Rejected credit of {amount} from {credit_note.credit_number}: "
                f"{credit_note.remaining_amount} remaining"
            )
            raise ValidationError(
                f"Amount {amount} cannot exceed remaining credit balance "
                f"{credit_note.remaining_amount} on {credit_note.credit_number}",
                code="AMOUNT_EXCEEDS_CREDIT",
            )
        if credit_note.client_id != invoice.client_id:
            raise ValidationError(
                f"Credit note {credit_note.credit_number} belongs to client {credit_note.client_id}, "
                f"invoice {invoice.invoice_number} to client {invoice.client_id}",
                code="CLIENT_MISMATCH",
            )
        lifecycle.check_accepts_ledger_entry(invoice)
        self._check_within_balance(invoice, amount, "credit")
