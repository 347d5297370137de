"""
Application wiring.

build_services() assembles the service graph from configuration;
create_app() puts the HTTP layer on top of it.
"""

import logging

from fastapi import FastAPI

from api.actions import create_actions_router
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from core.audit import AuditLogger
from core.config import LedgerConfig, load_config
from core.event_bus import EventBus
from core.handlers.invoice_payment_handler import handle_invoice_paid
from core.locking import LockRegistry
from core.models import CreditNote, Invoice
from core.repository import InMemoryRepository, InvoiceStore, PostgresRepository
from core.sequence import DocumentNumberSequence
from core.services.aging_service import AgingService
from core.services.credit_note_service import CreditNoteService
from core.services.invoice_service import InvoiceService
from core.services.ledger_service import LedgerService
from utils.logging_setup import configure_logging

logger = logging.getLogger(__name__)


def build_services(config: LedgerConfig) -> dict:
    """
    Construct repositories, services and event subscriptions.

    Uses PostgreSQL when config.database_url is set (tables are created if
    missing), in-memory repositories otherwise. Document number sequences
    are seeded from the numbers already in storage.

    Returns:
        Dict of services keyed by name: invoice, ledger, credit_note, aging
    """
    if config.database_url:
        postgres = PostgresClient(config.database_url)
        invoice_repo = PostgresRepository(postgres, "invoices", Invoice)
        credit_note_repo = PostgresRepository(postgres, "credit_notes", CreditNote)
        invoice_repo.ensure_schema()
        credit_note_repo.ensure_schema()
    else:
        postgres = None
        invoice_repo = InMemoryRepository("invoice")
        credit_note_repo = InMemoryRepository("credit_note")

    audit = AuditLogger(postgres)
    audit.ensure_schema()

    invoice_numbers = DocumentNumberSequence(
        config.invoice_number_prefix, padding=config.sequence_padding
    )
    invoice_numbers.seed_from(inv.invoice_number for inv in invoice_repo.list())
    credit_numbers = DocumentNumberSequence(
        config.credit_note_prefix, padding=config.sequence_padding
    )
    credit_numbers.seed_from(cn.credit_number for cn in credit_note_repo.list())

    email = None
    if config.email_enabled:
        email = EmailGatewayClient(
            config.email_gateway_url, config.email_api_key, config.email_hmac_secret
        )

    event_bus = EventBus()
    if email is not None:
        event_bus.subscribe("InvoicePaid", handle_invoice_paid(email, config))

    locks = LockRegistry()
    store = InvoiceStore(invoice_repo)

    return {
        "invoice": InvoiceService(store, audit, event_bus, locks, invoice_numbers, config, email),
        "ledger": LedgerService(store, credit_note_repo, audit, event_bus, locks),
        "credit_note": CreditNoteService(credit_note_repo, store, audit, locks, credit_numbers),
        "aging": AgingService(store),
    }


def create_app(config: LedgerConfig | None = None, services: dict | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Configuration (loaded from the environment when omitted)
        services: Prebuilt services (built from config when omitted)
    """
    config = config or load_config()
    configure_logging(config.log_level)
    services = services or build_services(config)

    app = FastAPI(title=config.app_name)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    logger.info(f"{config.app_name} API ready")
    return app
