import logging
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings

from ..choices import InvoiceStatus
from ..store import resolve_store
from .money import ZERO, to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvoiceSummary:
    invoice_number: str
    status: str
    total_paid: Decimal
    remaining_amount: Decimal
    total_amount: Decimal


def sticky_statuses():
    return set(getattr(settings, "LEDGER_STICKY_STATUSES",
                       [InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED]))


def derive_status(total_amount, total_paid, current_status=None):
    """Status from the payment totals alone, honouring sticky statuses."""
    if total_paid >= total_amount:
        computed = InvoiceStatus.PAID
    elif total_paid > 0:
        computed = InvoiceStatus.PARTIAL
    else:
        computed = InvoiceStatus.PENDING

    if current_status and current_status in sticky_statuses():
        # a sticky status only gives way to full payment, never for Cancelled
        if computed == InvoiceStatus.PAID and current_status != InvoiceStatus.CANCELLED:
            return computed
        return InvoiceStatus(current_status)
    return computed


def calculate_status(invoice_number, invoice_total_amount, current_status=None,
                     *, store=None):
    """
    Read-only summary of an invoice from its payment history.

    Every payment row on the invoice counts, allocation rows included.
    """
    store = resolve_store(store)
    total = to_money(invoice_total_amount)
    paid = to_money(store.sum_payments(invoice_number))
    return InvoiceSummary(
        invoice_number=invoice_number,
        status=derive_status(total, paid, current_status),
        total_paid=paid,
        remaining_amount=max(ZERO, total - paid),
        total_amount=total,
    )


def refresh_invoice_status(invoice, store):
    """Recompute the cached status and write it back when it moved."""
    summary = calculate_status(invoice.invoice_number, invoice.total_amount,
                               invoice.status, store=store)
    if summary.status != invoice.status:
        logger.info(
            "Invoice %s status %s -> %s", invoice.invoice_number,
            invoice.status, summary.status,
            extra={"invoice": invoice.invoice_number},
        )
        store.set_invoice_status(invoice, summary.status)
    return summary
