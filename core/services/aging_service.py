"""Aging report service. Read-only over the invoice store."""

import logging
from datetime import date

from core.aging import build_aging_report
from core.models import AgingReport
from core.repository import InvoiceStore
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class AgingService:
    """Builds receivables aging reports on demand."""

    def __init__(self, store: InvoiceStore):
        self.store = store

    def get_aging_report(self, as_of: date | None = None) -> AgingReport:
        """
        Aging report for a date.

        Args:
            as_of: Report date (defaults to today, UTC)

        Returns:
            AgingReport over all outstanding invoices
        """
        as_of = as_of or self.store.today()
        report = build_aging_report(self.store.list_raw(), as_of, now_utc())

        logger.info(
            f"Aging report as of {as_of}: {report.total_receivables} receivable across "
            f"{len(report.client_breakdown)} clients"
        )
        return report
