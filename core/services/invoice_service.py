"""
Invoice service: creation, editing, delivery and lifecycle actions.

Money movement (payments, credit notes) lives in LedgerService. Every
operation here that writes runs under the invoice's lock and goes through
the lifecycle checks in core.lifecycle.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal

from clients.email_client import EmailGatewayClient
from core import invariants, lifecycle
from core.audit import AuditLogger, AuditAction, compute_changes
from core.config import LedgerConfig
from core.errors import ValidationError
from core.event_bus import EventBus
from core.events import InvoiceSent, InvoicePaid, InvoiceCancelled
from core.locking import LockRegistry
from core.models import (
    Invoice, InvoiceCreate, InvoiceUpdate, InvoiceStatus, InvoiceDashboardStats,
    DiscountType, LineItem, Reminder, ReminderCreate,
    SendInvoiceRequest, SendInvoiceResult,
)
from core.repository import InvoiceStore
from core.sequence import DocumentNumberSequence
from core.totals import Totals, compute_totals
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class InvoiceService:
    """Service for invoice operations."""

    def __init__(
        self,
        store: InvoiceStore,
        audit: AuditLogger,
        event_bus: EventBus,
        locks: LockRegistry,
        numbers: DocumentNumberSequence,
        config: LedgerConfig,
        email: EmailGatewayClient | None = None,
    ):
        self.store = store
        self.audit = audit
        self.event_bus = event_bus
        self.locks = locks
        self.numbers = numbers
        self.config = config
        self.email = email

    def _compute_totals(
        self,
        items: list[LineItem],
        tax_rate: Decimal,
        discount_amount: Decimal,
        discount_type: DiscountType,
    ) -> Totals:
        totals = compute_totals(items, tax_rate, discount_amount, discount_type)
        if totals.discounted_subtotal < ZERO:
            raise ValidationError(
                f"Discount {totals.discount} exceeds subtotal {totals.subtotal}",
                code="DISCOUNT_EXCEEDS_SUBTOTAL",
            )
        return totals

    @staticmethod
    def _check_dates(issue_date: date, due_date: date) -> None:
        if due_date < issue_date:
            raise ValidationError(
                f"Due date {due_date} is before issue date {issue_date}",
                code="INVALID_DUE_DATE",
            )

    def _publish_if_paid(self, before: Invoice, after: Invoice) -> None:
        if after.status == InvoiceStatus.PAID and before.status != InvoiceStatus.PAID:
            self.event_bus.publish(InvoicePaid.create(invoice=after))

    def create(self, data: InvoiceCreate) -> Invoice:
        """
        Create a draft invoice.

        Args:
            data: Invoice contents. Missing currency and payment terms fall
                back to configured defaults; a missing due date is derived
                from the payment terms.

        Returns:
            Created invoice in DRAFT status

        Raises:
            ValidationError: If the discount exceeds the subtotal or the due
                date precedes the issue date
        """
        today = self.store.today()
        payment_terms = data.payment_terms or self.config.default_payment_terms
        issue_date = data.issue_date or today
        due_date = data.due_date or issue_date + timedelta(days=payment_terms.days)
        self._check_dates(issue_date, due_date)

        totals = self._compute_totals(
            data.items, data.tax_rate, data.discount_amount, data.discount_type
        )

        now = now_utc()
        invoice = Invoice(
            id=self.store.next_id(),
            invoice_number=self.numbers.next(),
            client_id=data.client_id,
            project_id=data.project_id,
            status=InvoiceStatus.DRAFT,
            currency=data.currency or self.config.default_currency,
            payment_terms=payment_terms,
            issue_date=issue_date,
            due_date=due_date,
            items=data.items,
            tax_rate=data.tax_rate,
            discount_amount=data.discount_amount,
            discount_type=data.discount_type,
            subtotal=totals.subtotal,
            discount_value=totals.discount,
            tax_amount=totals.tax,
            total=totals.total,
            amount_paid=ZERO,
            balance_due=totals.total,
            notes=data.notes,
            terms_and_conditions=data.terms_and_conditions,
            thank_you_message=data.thank_you_message,
            created_at=now,
            updated_at=now,
        )
        invariants.check_invoice(invoice)

        saved = self.store.save(invoice)

        self.audit.log_change(
            entity_type="invoice",
            entity_id=saved.id,
            action=AuditAction.CREATE,
            changes={"created": saved.model_dump(mode="json")}
        )
        logger.info(f"Created invoice {saved.invoice_number} for client {saved.client_id} ({saved.total})")

        return saved

    def get_by_id(self, invoice_id: int) -> Invoice | None:
        """
        Get invoice by ID with its status derived for today.

        Returns:
            Invoice if found, None otherwise.
        """
        return self.store.get(invoice_id)

    def list_all(self) -> list[Invoice]:
        """All invoices, newest issue date first."""
        invoices = self.store.list()
        return sorted(invoices, key=lambda inv: (inv.issue_date, inv.id), reverse=True)

    def list_outstanding(self) -> list[Invoice]:
        """
        Invoices awaiting payment (sent, viewed or overdue).

        Returns:
            Invoices ordered by due date, earliest first
        """
        outstanding = [
            inv for inv in self.store.list()
            if inv.status in (InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.OVERDUE)
        ]
        return sorted(outstanding, key=lambda inv: (inv.due_date, inv.id))

    def update(self, invoice_id: int, data: InvoiceUpdate) -> Invoice:
        """
        Apply a patch to an invoice.

        Financial fields may only change while the invoice is a draft; memo
        fields until it is cancelled. Totals are recomputed when items, tax
        or discount change.

        Raises:
            NotFoundError: If invoice not found
            ValidationError: If the patch clears a required field, is not
                allowed in the current status, or produces invalid totals
                or dates
        """
        updates = {name: getattr(data, name) for name in data.model_fields_set}
        cleared = sorted(
            name for name, value in updates.items()
            if value is None and name not in lifecycle.NULLABLE_FIELDS
        )
        if cleared:
            raise ValidationError(
                f"Fields cannot be cleared: {', '.join(cleared)}",
                code="INVALID_REQUEST",
            )

        with self.locks.hold(("invoice", invoice_id)):
            current = self.store.require(invoice_id)
            if not updates:
                return current

            lifecycle.check_patch_allowed(current, set(updates))

            merged = current.model_copy(update=updates)
            if lifecycle.FINANCIAL_FIELDS & set(updates):
                totals = self._compute_totals(
                    merged.items, merged.tax_rate, merged.discount_amount, merged.discount_type
                )
                if totals.total < current.amount_paid:
                    raise ValidationError(
                        f"New total {totals.total} is below the {current.amount_paid} already paid",
                        code="TOTAL_BELOW_AMOUNT_PAID",
                    )
                merged = merged.model_copy(update={
                    "subtotal": totals.subtotal,
                    "discount_value": totals.discount,
                    "tax_amount": totals.tax,
                    "total": totals.total,
                    "balance_due": totals.total - current.amount_paid,
                })

            if "payment_terms" in updates and "due_date" not in updates:
                merged = merged.model_copy(update={
                    "due_date": merged.issue_date + timedelta(days=merged.payment_terms.days)
                })
            self._check_dates(merged.issue_date, merged.due_date)

            merged = merged.model_copy(update={"updated_at": now_utc()})
            merged = lifecycle.derive_status(merged, self.store.today())
            invariants.check_invoice(merged)
            saved = self.store.save(merged)

        changes = compute_changes(
            current.model_dump(mode="json"),
            saved.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                entity_type="invoice",
                entity_id=invoice_id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        self._publish_if_paid(current, saved)

        return saved

    def delete(self, invoice_id: int) -> bool:
        """
        Delete an invoice. Its number is not reused.

        Returns:
            True if deleted, False if no such invoice

        Raises:
            ValidationError: If the invoice is paid
        """
        with self.locks.hold(("invoice", invoice_id)):
            current = self.store.get(invoice_id)
            if current is None:
                return False

            lifecycle.check_deletable(current)
            deleted = self.store.delete(invoice_id)

        if deleted:
            self.audit.log_change(
                entity_type="invoice",
                entity_id=invoice_id,
                action=AuditAction.DELETE,
                changes={"deleted": current.model_dump(mode="json")}
            )
            logger.info(f"Deleted invoice {current.invoice_number}")

        return deleted

    def send(self, invoice_id: int, request: SendInvoiceRequest) -> SendInvoiceResult:
        """
        Send an invoice to a recipient.

        The email goes out before the status changes; if delivery fails the
        invoice is left as it was.

        Raises:
            NotFoundError: If invoice not found
            ValidationError: If invoice is paid or cancelled
            EmailGatewayError: If delivery fails
        """
        with self.locks.hold(("invoice", invoice_id)):
            current = self.store.require(invoice_id)
            lifecycle.check_sendable(current)

            if self.email is not None:
                self.email.send_email(
                    to=request.to,
                    subject=request.subject or f"Invoice {current.invoice_number} from {self.config.app_name}",
                    body=self._invoice_email_body(current, request.message),
                    reference=current.invoice_number,
                )
            else:
                logger.info(f"Email delivery disabled; marking {current.invoice_number} sent without email")

            now = now_utc()
            today = self.store.today()
            updated = current.model_copy(update={
                "status": InvoiceStatus.SENT,
                "sent_date": today,
                "sent_to": request.to,
                "updated_at": now,
            })
            updated = lifecycle.derive_status(updated, today)
            saved = self.store.save(updated)

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.UPDATE,
            changes={
                "status": {"old": current.status.value, "new": saved.status.value},
                "sent_date": {"old": _iso(current.sent_date), "new": today.isoformat()},
                "sent_to": {"old": current.sent_to, "new": request.to},
            }
        )
        self.event_bus.publish(InvoiceSent.create(invoice=saved, recipient=request.to))
        self._publish_if_paid(current, saved)

        return SendInvoiceResult(
            success=True,
            message=f"Invoice {saved.invoice_number} sent successfully to {request.to}",
            sent_at=now,
        )

    def mark_viewed(self, invoice_id: int) -> Invoice:
        """
        Record that the client opened a sent invoice.

        Raises:
            NotFoundError: If invoice not found
            ValidationError: If invoice is not in SENT status
        """
        with self.locks.hold(("invoice", invoice_id)):
            current = self.store.require(invoice_id)
            lifecycle.check_viewable(current)

            today = self.store.today()
            saved = self.store.save(current.model_copy(update={
                "status": InvoiceStatus.VIEWED,
                "viewed_date": current.viewed_date or today,
                "updated_at": now_utc(),
            }))

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.UPDATE,
            changes={"status": {"old": current.status.value, "new": saved.status.value}}
        )
        return saved

    def cancel(self, invoice_id: int) -> Invoice:
        """
        Cancel an invoice.

        Raises:
            NotFoundError: If invoice not found
            ValidationError: If invoice is paid or already cancelled
        """
        with self.locks.hold(("invoice", invoice_id)):
            current = self.store.require(invoice_id)
            lifecycle.check_cancellable(current)

            today = self.store.today()
            saved = self.store.save(current.model_copy(update={
                "status": InvoiceStatus.CANCELLED,
                "cancelled_date": today,
                "updated_at": now_utc(),
            }))

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.UPDATE,
            changes={
                "status": {"old": current.status.value, "new": InvoiceStatus.CANCELLED.value},
                "cancelled_date": {"old": None, "new": today.isoformat()},
            }
        )
        self.event_bus.publish(InvoiceCancelled.create(invoice=saved))
        logger.info(f"Cancelled invoice {saved.invoice_number}")

        return saved

    def duplicate(self, invoice_id: int) -> Invoice:
        """
        Copy an invoice into a new draft.

        The copy gets a new number, today's issue date, a due date
        `duplicate_due_days` out, and no payments, credits or reminders.

        Raises:
            NotFoundError: If invoice not found
        """
        original = self.store.require(invoice_id)
        today = self.store.today()

        return self.create(InvoiceCreate(
            client_id=original.client_id,
            project_id=original.project_id,
            currency=original.currency,
            payment_terms=original.payment_terms,
            issue_date=today,
            due_date=today + timedelta(days=self.config.duplicate_due_days),
            items=original.items,
            tax_rate=original.tax_rate,
            discount_amount=original.discount_amount,
            discount_type=original.discount_type,
            notes=original.notes,
            terms_and_conditions=original.terms_and_conditions,
            thank_you_message=original.thank_you_message,
        ))

    def send_reminder(self, invoice_id: int, data: ReminderCreate) -> Invoice:
        """
        Send a payment reminder for an unpaid invoice.

        The reminder is emailed to the invoice's last recipient when email
        is enabled, and recorded on the invoice either way.

        Raises:
            NotFoundError: If invoice not found
            ValidationError: If invoice is paid or cancelled
            EmailGatewayError: If delivery fails
        """
        with self.locks.hold(("invoice", invoice_id)):
            current = self.store.require(invoice_id)
            lifecycle.check_remindable(current)

            if self.email is not None and current.sent_to:
                self.email.send_email(
                    to=current.sent_to,
                    subject=f"Reminder: invoice {current.invoice_number}",
                    body=self._invoice_email_body(current, data.message),
                    reference=current.invoice_number,
                )

            today = self.store.today()
            reminder = Reminder(
                reminder_type=data.reminder_type,
                message=data.message,
                sent_date=today,
                sent_by=data.sent_by,
            )
            saved = self.store.save(current.model_copy(update={
                "reminders": [*current.reminders, reminder],
                "last_reminder_date": today,
                "updated_at": now_utc(),
            }))

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.UPDATE,
            changes={"reminder_sent": reminder.model_dump(mode="json")}
        )
        logger.info(f"Reminder recorded for invoice {saved.invoice_number}")

        return saved

    def dashboard_stats(self) -> InvoiceDashboardStats:
        """Headline figures across all invoices."""
        invoices = self.store.list()

        unpaid = [
            inv for inv in invoices
            if inv.status not in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED)
        ]
        paid = [inv for inv in invoices if inv.status == InvoiceStatus.PAID]
        recent = sorted(invoices, key=lambda inv: (inv.created_at, inv.id), reverse=True)[:5]

        return InvoiceDashboardStats(
            total_invoices=len(invoices),
            total_outstanding=sum((inv.balance_due for inv in unpaid), ZERO),
            total_paid=sum((inv.total for inv in paid), ZERO),
            overdue_count=sum(1 for inv in invoices if inv.status == InvoiceStatus.OVERDUE),
            recent_invoices=recent,
        )

    def _invoice_email_body(self, invoice: Invoice, message: str | None) -> str:
        lines = []
        if message:
            lines += [message, ""]
        lines += [
            f"Invoice: {invoice.invoice_number}",
            f"Issued: {invoice.issue_date.isoformat()}",
            f"Due: {invoice.due_date.isoformat()}",
            f"Total: {invoice.total} {invoice.currency.value}",
            f"Balance due: {invoice.balance_due} {invoice.currency.value}",
        ]
        if invoice.thank_you_message:
            lines += ["", invoice.thank_you_message]
        return "\n".join(lines)


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None
