"""Tests for ledger invariant checks."""

from decimal import Decimal

import pytest

from core import invariants
from core.errors import ConsistencyError, ValidationError
from core.models import PaymentMethod, PaymentRecord


class TestValidateAmount:

    @pytest.mark.parametrize("raw,expected", [
        ("10", Decimal("10")),
        ("0.01", Decimal("0.01")),
        (Decimal("125.50"), Decimal("125.50")),
        (3, Decimal("3")),
    ])
    def test_accepts_positive_cent_amounts(self, raw, expected):
        assert invariants.validate_amount(raw) == expected

    @pytest.mark.parametrize("raw", ["0", "-5", Decimal("-0.01")])
    def test_rejects_non_positive(self, raw):
        with pytest.raises(ValidationError, match="greater than zero") as exc:
            invariants.validate_amount(raw)
        assert exc.value.code == "INVALID_AMOUNT"

    def test_rejects_fractions_of_a_cent(self):
        with pytest.raises(ValidationError, match="fractions of a cent"):
            invariants.validate_amount("10.005")

    @pytest.mark.parametrize("raw", ["ten", "NaN", "Infinity", None])
    def test_rejects_non_numbers(self, raw):
        with pytest.raises(ValidationError, match="must be a number"):
            invariants.validate_amount(raw, "Payment amount")

    def test_label_in_message(self):
        with pytest.raises(ValidationError, match="Credit amount"):
            invariants.validate_amount("0", "Credit amount")


class TestCheckInvoice:

    def test_fresh_invoice_passes(self, make_invoice):
        invariants.check_invoice(make_invoice("500.00"))

    def test_balance_mismatch_fails(self, make_invoice):
        invoice = make_invoice("500.00")
        broken = invoice.model_copy(update={"balance_due": Decimal("499.00")})

        with pytest.raises(ConsistencyError, match="balance_due"):
            invariants.check_invoice(broken)

    def test_overpayment_fails(self, make_invoice):
        invoice = make_invoice("500.00")
        payment = PaymentRecord(
            amount=Decimal("600.00"), method=PaymentMethod.CASH, payment_date=invoice.issue_date
        )
        broken = invoice.model_copy(update={
            "payments": [payment],
            "amount_paid": Decimal("600.00"),
            "balance_due": Decimal("-100.00"),
        })

        with pytest.raises(ConsistencyError, match="negative"):
            invariants.check_invoice(broken)

    def test_amount_paid_must_match_ledger(self, make_invoice):
        invoice = make_invoice("500.00")
        broken = invoice.model_copy(update={
            "amount_paid": Decimal("100.00"),
            "balance_due": Decimal("400.00"),
        })

        with pytest.raises(ConsistencyError, match="ledger entries"):
            invariants.check_invoice(broken)


class TestCheckCreditNote:

    def test_conservation_holds(self, credit_note_service):
        from core.models import CreditNoteCreate

        note = credit_note_service.create(CreditNoteCreate(client_id=1, amount=Decimal("200")))

        invariants.check_credit_note(note)

    def test_conservation_violation_fails(self, credit_note_service):
        from core.models import CreditNoteCreate

        note = credit_note_service.create(CreditNoteCreate(client_id=1, amount=Decimal("200")))
        broken = note.model_copy(update={"applied_amount": Decimal("50")})

        with pytest.raises(ConsistencyError, match="applied"):
            invariants.check_credit_note(broken)
