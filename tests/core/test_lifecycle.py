"""Tests for invoice lifecycle rules."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from core import lifecycle
from core.errors import ValidationError
from core.models import InvoiceStatus


@pytest.fixture
def invoice(make_invoice):
    """Draft invoice for 1000.00, due 30 days after 2026-03-15."""
    return make_invoice("1000.00")


def _with(invoice, **fields):
    return invoice.model_copy(update=fields)


def _paid(invoice, amount: str):
    amount = Decimal(amount)
    return _with(invoice, amount_paid=amount, balance_due=invoice.total - amount)


class TestDeriveStatus:
    """Tests for derive_status."""

    def test_draft_stays_draft(self, invoice):
        as_of = invoice.due_date + timedelta(days=10)

        assert lifecycle.derive_status(invoice, as_of).status == InvoiceStatus.DRAFT

    def test_sent_past_due_becomes_overdue(self, invoice):
        sent = _with(invoice, status=InvoiceStatus.SENT)

        derived = lifecycle.derive_status(sent, invoice.due_date + timedelta(days=1))

        assert derived.status == InvoiceStatus.OVERDUE

    def test_sent_on_due_date_is_not_overdue(self, invoice):
        sent = _with(invoice, status=InvoiceStatus.SENT)

        assert lifecycle.derive_status(sent, invoice.due_date).status == InvoiceStatus.SENT

    def test_viewed_is_never_derived_overdue(self, invoice):
        viewed = _with(invoice, status=InvoiceStatus.VIEWED)

        derived = lifecycle.derive_status(viewed, invoice.due_date + timedelta(days=90))

        assert derived.status == InvoiceStatus.VIEWED

    def test_fully_paid_becomes_paid(self, invoice):
        sent = _paid(_with(invoice, status=InvoiceStatus.SENT), "1000.00")

        derived = lifecycle.derive_status(sent, date(2026, 4, 1), paid_on=date(2026, 3, 20))

        assert derived.status == InvoiceStatus.PAID
        assert derived.paid_date == date(2026, 3, 20)

    def test_paid_date_defaults_to_as_of(self, invoice):
        overdue = _paid(_with(invoice, status=InvoiceStatus.OVERDUE), "1000.00")

        derived = lifecycle.derive_status(overdue, date(2026, 6, 1))

        assert derived.paid_date == date(2026, 6, 1)

    def test_draft_paid_in_full_becomes_paid(self, invoice):
        derived = lifecycle.derive_status(_paid(invoice, "1000.00"), invoice.issue_date)

        assert derived.status == InvoiceStatus.PAID

    def test_zero_total_draft_is_not_paid(self, make_invoice):
        empty = make_invoice("0")

        assert empty.total == 0
        assert lifecycle.derive_status(empty, empty.issue_date).status == InvoiceStatus.DRAFT

    def test_paid_is_sticky(self, invoice):
        """Paid invoices are returned unchanged, paid_date included."""
        paid = _with(
            _paid(invoice, "1000.00"),
            status=InvoiceStatus.PAID,
            paid_date=date(2026, 3, 16),
        )

        derived = lifecycle.derive_status(paid, date(2027, 1, 1), paid_on=date(2026, 12, 1))

        assert derived is paid

    def test_cancelled_is_terminal(self, invoice):
        cancelled = _paid(_with(invoice, status=InvoiceStatus.CANCELLED), "1000.00")

        assert lifecycle.derive_status(cancelled, date(2027, 1, 1)) is cancelled

    def test_idempotent(self, invoice):
        sent = _with(invoice, status=InvoiceStatus.SENT)
        as_of = invoice.due_date + timedelta(days=3)

        once = lifecycle.derive_status(sent, as_of)
        twice = lifecycle.derive_status(once, as_of)

        assert twice == once

    def test_unchanged_invoice_returned_as_is(self, invoice):
        assert lifecycle.derive_status(invoice, invoice.issue_date) is invoice


class TestTransitionChecks:
    """Guards for explicit lifecycle operations."""

    @pytest.mark.parametrize("status", [InvoiceStatus.PAID, InvoiceStatus.CANCELLED])
    def test_terminal_invoices_not_sendable(self, invoice, status):
        with pytest.raises(ValidationError) as exc:
            lifecycle.check_sendable(_with(invoice, status=status))
        assert exc.value.code == "INVOICE_NOT_SENDABLE"

    def test_only_sent_can_be_viewed(self, invoice):
        lifecycle.check_viewable(_with(invoice, status=InvoiceStatus.SENT))

        with pytest.raises(ValidationError, match="only sent invoices"):
            lifecycle.check_viewable(_with(invoice, status=InvoiceStatus.OVERDUE))

    def test_paid_cannot_be_cancelled(self, invoice):
        with pytest.raises(ValidationError) as exc:
            lifecycle.check_cancellable(_with(invoice, status=InvoiceStatus.PAID))
        assert exc.value.code == "INVOICE_ALREADY_PAID"

    def test_paid_cannot_be_deleted(self, invoice):
        with pytest.raises(ValidationError, match="paid"):
            lifecycle.check_deletable(_with(invoice, status=InvoiceStatus.PAID))

    def test_cancelled_rejects_ledger_entries(self, invoice):
        lifecycle.check_accepts_ledger_entry(invoice)

        with pytest.raises(ValidationError) as exc:
            lifecycle.check_accepts_ledger_entry(_with(invoice, status=InvoiceStatus.CANCELLED))
        assert exc.value.code == "INVOICE_CANCELLED"


class TestPatchAllowed:
    """Which fields may be patched in which status."""

    def test_draft_accepts_structural_and_memo(self, invoice):
        lifecycle.check_patch_allowed(invoice, {"items", "due_date", "notes"})

    @pytest.mark.parametrize("status", [
        InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.OVERDUE, InvoiceStatus.PAID,
    ])
    def test_structural_fields_frozen_after_draft(self, invoice, status):
        with pytest.raises(ValidationError) as exc:
            lifecycle.check_patch_allowed(_with(invoice, status=status), {"tax_rate"})
        assert exc.value.code == "INVOICE_IMMUTABLE"

    def test_memo_fields_editable_after_send(self, invoice):
        lifecycle.check_patch_allowed(
            _with(invoice, status=InvoiceStatus.SENT), {"notes", "thank_you_message"}
        )

    def test_cancelled_rejects_everything(self, invoice):
        with pytest.raises(ValidationError, match="cancelled"):
            lifecycle.check_patch_allowed(_with(invoice, status=InvoiceStatus.CANCELLED), {"notes"})

    def test_ledger_fields_never_patchable(self, invoice):
        with pytest.raises(ValidationError, match="amount_paid"):
            lifecycle.check_patch_allowed(invoice, {"amount_paid"})
