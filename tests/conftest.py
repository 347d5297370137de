"""Shared test fixtures for the ledger test suite. Everything runs in memory."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from core.audit import AuditLogger
from core.config import LedgerConfig
from core.event_bus import EventBus
from core.locking import LockRegistry
from core.models import InvoiceCreate, LineItem, SendInvoiceRequest
from core.repository import InMemoryRepository, InvoiceStore
from core.sequence import DocumentNumberSequence


# =============================================================================
# CLOCK
# =============================================================================

TODAY = date(2026, 3, 15)


class FixedClock:
    """Callable returning a settable 'today'. Stands in for today_utc."""

    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today

    def advance(self, days: int) -> date:
        self.today += timedelta(days=days)
        return self.today


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(TODAY)


# =============================================================================
# INFRASTRUCTURE FIXTURES
# =============================================================================


@pytest.fixture
def config() -> LedgerConfig:
    return LedgerConfig()


@pytest.fixture
def invoice_repo():
    return InMemoryRepository("invoice")


@pytest.fixture
def credit_note_repo():
    return InMemoryRepository("credit_note")


@pytest.fixture
def store(invoice_repo, clock):
    return InvoiceStore(invoice_repo, today=clock)


@pytest.fixture
def audit():
    return AuditLogger()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def published(event_bus):
    """Every event published on the bus, in order."""
    events = []
    for name in (
        "InvoiceSent", "InvoicePaid", "InvoiceCancelled",
        "PaymentRecorded", "CreditNoteApplied",
    ):
        event_bus.subscribe(name, events.append)
    return events


@pytest.fixture
def locks():
    return LockRegistry()


@pytest.fixture
def invoice_numbers(clock):
    return DocumentNumberSequence("INV", today=clock)


@pytest.fixture
def credit_numbers(clock):
    return DocumentNumberSequence("CN", today=clock)


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def invoice_service(store, audit, event_bus, locks, invoice_numbers, config):
    from core.services.invoice_service import InvoiceService
    return InvoiceService(store, audit, event_bus, locks, invoice_numbers, config)


@pytest.fixture
def ledger_service(store, credit_note_repo, audit, event_bus, locks):
    from core.services.ledger_service import LedgerService
    return LedgerService(store, credit_note_repo, audit, event_bus, locks)


@pytest.fixture
def credit_note_service(credit_note_repo, store, audit, locks, credit_numbers):
    from core.services.credit_note_service import CreditNoteService
    return CreditNoteService(credit_note_repo, store, audit, locks, credit_numbers)


@pytest.fixture
def aging_service(store):
    from core.services.aging_service import AgingService
    return AgingService(store)


# =============================================================================
# DATA FIXTURES
# =============================================================================


def line_items(*pairs) -> list[LineItem]:
    """LineItems from (quantity, rate) pairs."""
    return [
        LineItem(description=f"Item {i}", quantity=Decimal(str(q)), rate=Decimal(str(r)))
        for i, (q, r) in enumerate(pairs, start=1)
    ]


@pytest.fixture
def items():
    """The line_items helper, for tests outside this module."""
    return line_items


@pytest.fixture
def make_invoice(invoice_service):
    """
    Factory for invoices with a given total, optionally sent.

    The total is a single line item of quantity 1 with no tax or discount.
    """

    def factory(
        total: str = "1000.00",
        client_id: int = 1,
        sent: bool = False,
        **fields,
    ):
        invoice = invoice_service.create(InvoiceCreate(
            client_id=client_id,
            items=line_items((1, total)),
            **fields,
        ))
        if sent:
            invoice_service.send(invoice.id, SendInvoiceRequest(to="billing@client.test"))
            invoice = invoice_service.get_by_id(invoice.id)
        return invoice

    return factory
