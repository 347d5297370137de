"""
Receivables aging.

Groups outstanding invoices by how many days they are past due:

    current          <= 30 days (includes invoices not yet due)
    thirty_to_sixty  31-60
    sixty_to_ninety  61-90
    over_ninety      > 90

Only sent, viewed and overdue invoices count as outstanding. The grand
total is accumulated alongside the bucket totals and must equal both their
sum and the sum of balance_due over the bucketed invoices.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from core.errors import ConsistencyError
from core.lifecycle import derive_status
from core.models import (
    AgingBucket, AgingBuckets, AgingReport, AgingTotals, Invoice, InvoiceStatus,
)

OUTSTANDING_STATUSES = frozenset({
    InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.OVERDUE,
})


def days_past_due(invoice: Invoice, as_of: date) -> int:
    """Whole days between the due date and as_of; zero or negative when not yet due."""
    return (as_of - invoice.due_date).days


def build_aging_report(
    invoices: Iterable[Invoice],
    as_of: date,
    generated_at: datetime,
) -> AgingReport:
    """
    Build an aging report.

    Args:
        invoices: Every invoice in the store; status is re-derived at as_of
        as_of: Date the report is computed for
        generated_at: Timestamp stamped on the report

    Returns:
        Bucketed invoices, bucket totals, per-client totals and the total
        receivables figure

    Raises:
        ConsistencyError: If the totals fail to reconcile
    """
    buckets = AgingBuckets()
    totals = AgingTotals()
    by_client: dict[int, AgingTotals] = {}
    outstanding_sum = Decimal("0")

    for invoice in invoices:
        invoice = derive_status(invoice, as_of)
        if invoice.status not in OUTSTANDING_STATUSES:
            continue

        bucket = AgingBucket.for_days_past_due(days_past_due(invoice, as_of))
        buckets.get(bucket).append(invoice)
        totals.add(bucket, invoice.balance_due)
        by_client.setdefault(invoice.client_id, AgingTotals()).add(bucket, invoice.balance_due)
        outstanding_sum += invoice.balance_due

    for bucket in AgingBucket:
        buckets.get(bucket).sort(key=lambda inv: (inv.due_date, inv.id))

    if not (totals.total == totals.bucket_sum() == outstanding_sum):
        raise ConsistencyError(
            f"Aging totals do not reconcile: total {totals.total}, "
            f"buckets {totals.bucket_sum()}, invoices {outstanding_sum}"
        )

    return AgingReport(
        as_of=as_of,
        aging_buckets=buckets,
        totals=totals,
        client_breakdown=dict(sorted(by_client.items())),
        total_receivables=totals.total,
        generated_at=generated_at,
    )
