"""
Handler for InvoicePaid events.

On invoice payment, emails a receipt to the address the invoice was sent to.
"""

import logging
from typing import Callable

from core.events import InvoicePaid

logger = logging.getLogger(__name__)


def handle_invoice_paid(email_client, config) -> Callable:
    """
    Factory that returns an InvoicePaid handler.

    Args:
        email_client: EmailGatewayClient instance
        config: LedgerConfig (app name for the message)

    Returns:
        Handler callable that sends a payment receipt
    """

    def handler(event: InvoicePaid):
        invoice = event.invoice

        if not invoice.sent_to:
            logger.info(f"No recipient on {invoice.invoice_number}; receipt not sent")
            return

        email_client.send_email(
            to=invoice.sent_to,
            subject=f"Payment received for invoice {invoice.invoice_number}",
            body=(
                f"Thank you! We have received payment in full for invoice "
                f"{invoice.invoice_number} ({invoice.currency.value} {invoice.total}).\n\n"
                f"{config.app_name}"
            ),
            reference=invoice.invoice_number,
        )

    return handler
