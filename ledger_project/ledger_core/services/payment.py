import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from django.utils import timezone

from ..choices import Direction, EntityKind, JournalKind, PaymentType
from ..exceptions import DuplicatePayment, InvalidPayer, UnlinkedInvoice
from ..store import resolve_store
from .allocation import (AllocationResult, allocate_excess, lock_invoice,
                         payment_row)
from .balance import InvoiceSummary, refresh_invoice_status
from .journal import post_entry, strict_chart, validate_chart
from .ledger import append_transaction
from .money import ZERO, positive_money

logger = logging.getLogger(__name__)

# payment type → (payer kind, company ledger direction, journal kind)
PAYMENT_FLOWS = {
    PaymentType.CUSTOMER_PAYMENT: (
        EntityKind.CUSTOMER, Direction.CREDIT, JournalKind.CUSTOMER_CREDIT,
    ),
    PaymentType.VENDOR_PAYMENT: (
        EntityKind.VENDOR, Direction.DEBIT, JournalKind.VENDOR_CREDIT,
    ),
}


@dataclass
class PaymentResult:
    payment: Any
    invoice_summary: InvoiceSummary
    allocation: Optional[AllocationResult]
    amount_for_invoice: Decimal
    overpayment: Decimal
    remaining_before: Decimal


def _payment_flow(payment_type):
    try:
        return PAYMENT_FLOWS[PaymentType(payment_type)]
    except ValueError:
        raise InvalidPayer(f"Unknown payment type: {payment_type!r}")


def _next_reference(store, invoice_number):
    n = store.count_payments(invoice_number) + 1
    reference = f"{invoice_number}-P{n}"
    while store.has_payment(invoice_number, reference):
        n += 1
        reference = f"{invoice_number}-P{n}"
    return reference


def process_payment(invoice_number, amount, payment_type, method="CASH",
                    reference=None, description=None, payment_date=None, *,
                    store=None):
    """
    Record one payment against an invoice, end to end.

    The invoice is capped at its remaining balance; anything above that is
    allocated to the payer's other open invoices. The payer ledger gets a
    single CREDIT for the full amount and the company ledger the matching
    cash movement. Runs in one atomic block: on any error nothing is kept.
    """
    store = resolve_store(store)
    kind, company_direction, journal_kind = _payment_flow(payment_type)
    amount = positive_money(amount)
    payment_date = payment_date or timezone.localdate()

    if strict_chart():
        validate_chart(store=store)

    with store.atomic():
        # lock order: payer, invoice, payer's other invoices, company
        # account, journal sequence
        invoice = lock_invoice(store, invoice_number)
        payer_id = invoice.customer_id if kind == EntityKind.CUSTOMER else invoice.vendor_id
        if payer_id is None:
            raise UnlinkedInvoice(
                f"Invoice {invoice_number} has no {kind.label.lower()} to pay"
            )

        if reference:
            if store.has_payment(invoice_number, reference):
                raise DuplicatePayment(
                    f"Payment {reference} already recorded on {invoice_number}"
                )
        else:
            reference = _next_reference(store, invoice_number)

        remaining = max(ZERO, invoice.total_amount - store.sum_payments(invoice_number))
        amount_for_invoice = min(amount, remaining)
        overpayment = amount - amount_for_invoice

        allocation = None
        if overpayment > 0:
            allocation = allocate_excess(
                overpayment, invoice_number, reference,
                payment_date=payment_date, mode=method, store=store,
                **{f"{kind.value}_id": payer_id},
            )

        text = description or f"Payment {reference} for invoice {invoice_number}"
        ledger_text = text
        if allocation and allocation.allocations:
            ledger_text = f"{text} ({allocation.summary()})"

        append_transaction(kind, payer_id, Direction.CREDIT, amount, ledger_text,
                           reference=reference, invoice=invoice_number, store=store)
        append_transaction(EntityKind.COMPANY, None, company_direction, amount,
                           ledger_text, reference=reference,
                           invoice=invoice_number, store=store)
        post_entry(journal_kind, amount, ledger_text, reference,
                   entry_date=payment_date, store=store)

        payment = store.create_payment(**payment_row(
            kind, payer_id, invoice_number, amount, reference, payment_date,
            mode=method, description=text,
        ))
        summary = refresh_invoice_status(invoice, store)

    logger.info(
        "Processed %s %s on %s (invoice %s, excess %s)",
        payment_type, amount, invoice_number, amount_for_invoice, overpayment,
        extra={"invoice": invoice_number, "reference": reference,
               "payer_kind": kind.value, "payer_id": payer_id},
    )
    return PaymentResult(
        payment=payment,
        invoice_summary=summary,
        allocation=allocation,
        amount_for_invoice=amount_for_invoice,
        overpayment=overpayment,
        remaining_before=remaining,
    )
