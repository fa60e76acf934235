import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from django.conf import settings
from django.utils import timezone

from ..choices import (EntityKind, InvoiceStatus, PartyType, PaymentCategory,
                       TransactionType)
from ..exceptions import InvalidAmount, InvalidPayer, PayerChanged
from ..store import resolve_store
from .balance import calculate_status, refresh_invoice_status
from .money import ZERO, to_money

logger = logging.getLogger(__name__)

# Only these are eligible to soak up an overpayment
ALLOCATABLE_STATUSES = (InvoiceStatus.PENDING, InvoiceStatus.PARTIAL)


@dataclass(frozen=True)
class Allocation:
    invoice_number: str
    amount_applied: Decimal
    new_status: str


@dataclass
class AllocationResult:
    allocations: List[Allocation] = field(default_factory=list)
    unallocated_remainder: Decimal = ZERO

    @property
    def total_allocated(self):
        return sum((a.amount_applied for a in self.allocations), ZERO)

    def summary(self):
        """Human-readable text for the payer's ledger row."""
        if not self.allocations:
            return ""
        parts = ", ".join(
            f"{a.amount_applied} to {a.invoice_number}" for a in self.allocations
        )
        text = f"Excess allocated: {parts}"
        if self.unallocated_remainder > 0:
            text += f"; {self.unallocated_remainder} unallocated"
        return text


def resolve_payer(customer_id=None, vendor_id=None):
    """(EntityKind, id) for exactly one of the two ids."""
    if (customer_id is None) == (vendor_id is None):
        raise InvalidPayer("Exactly one of customer_id or vendor_id is required")
    if customer_id is not None:
        return EntityKind.CUSTOMER, customer_id
    return EntityKind.VENDOR, vendor_id


def lock_payers(payers, store):
    """Row-lock payer ledgers in (kind, id) order; `None` entries are skipped."""
    for kind, payer_id in sorted({(EntityKind(p[0]), p[1]) for p in payers if p}):
        store.get_entity(kind, payer_id, lock=True)


def lock_invoice(store, invoice_number=None, invoice_id=None, payers=()):
    """
    Lock an invoice together with its payer, payer rows first.

    Every flow that touches both takes payer ledgers before invoice rows,
    so the payer is read from an unlocked copy. If the locked row names a
    different payer, a concurrent edit reassigned it in between and
    PayerChanged is raised rather than locking out of order.
    """
    def fetch(lock):
        if invoice_id is not None:
            return store.get_invoice_by_id(invoice_id, lock=lock)
        return store.get_invoice(invoice_number, lock=lock)

    payer = fetch(False).payer
    lock_payers([payer, *payers], store)
    invoice = fetch(True)
    if invoice.payer != payer:
        raise PayerChanged(
            f"Invoice {invoice.invoice_number} was reassigned concurrently; retry"
        )
    return invoice


def payment_row(kind, payer_id, invoice_number, amount, reference, payment_date,
                mode="CASH", description="", is_allocation=False):
    """Payment fields for a receipt from a customer or a payout to a vendor."""
    row = {
        "date": payment_date,
        "amount": amount,
        "mode": mode,
        "reference": reference,
        "invoice_number": invoice_number,
        "description": description or "",
        "is_allocation": is_allocation,
        "currency": getattr(settings, "LEDGER_CURRENCY", "USD"),
    }
    if EntityKind(kind) == EntityKind.CUSTOMER:
        row.update(
            transaction_type=TransactionType.INCOME,
            category=PaymentCategory.CUSTOMER_PAYMENT,
            from_party_type=PartyType.CUSTOMER,
            from_customer_id=payer_id,
            to_party_type=PartyType.US,
            to_vendor_id=None,
        )
    else:
        row.update(
            transaction_type=TransactionType.EXPENSE,
            category=PaymentCategory.VENDOR_PAYMENT,
            from_party_type=PartyType.US,
            from_customer_id=None,
            to_party_type=PartyType.VENDOR,
            to_vendor_id=payer_id,
        )
    if is_allocation:
        row["category"] = PaymentCategory.ALLOCATION
    return row


def allocate_excess(excess_amount, exclude_invoice_number, reference,
                    customer_id=None, vendor_id=None, payment_date=None, *,
                    mode="CASH", store=None):
    """
    Spread an overpayment over the payer's other open invoices, oldest first.

    Each invoice reached gets a `{reference}-ALLOC` payment row and a
    refreshed status. Ledger balances are left alone: the processor books
    the whole payment as one movement.
    """
    kind, payer_id = resolve_payer(customer_id, vendor_id)
    store = resolve_store(store)
    excess = to_money(excess_amount)
    if excess < 0:
        raise InvalidAmount(f"Excess must be >= 0 (got {excess})")

    payment_date = payment_date or timezone.localdate()
    alloc_reference = f"{reference}-ALLOC"
    result = AllocationResult()

    with store.atomic():
        candidates = store.outstanding_invoices(
            kind, payer_id, ALLOCATABLE_STATUSES,
            exclude_invoice_number=exclude_invoice_number,
            lock=True,
        )
        for invoice in candidates:
            if excess <= 0:
                break
            remaining = calculate_status(
                invoice.invoice_number, invoice.total_amount, invoice.status,
                store=store,
            ).remaining_amount
            if remaining <= 0:
                continue

            applied = min(excess, remaining)
            store.create_payment(**payment_row(
                kind, payer_id, invoice.invoice_number, applied,
                alloc_reference, payment_date, mode=mode,
                description=f"Excess from payment {reference}",
                is_allocation=True,
            ))
            summary = refresh_invoice_status(invoice, store)
            result.allocations.append(
                Allocation(invoice.invoice_number, applied, summary.status)
            )
            excess -= applied

    result.unallocated_remainder = excess
    if result.allocations:
        logger.info(
            "Allocated %s of %s excess from %s",
            result.total_allocated, to_money(excess_amount), reference,
            extra={"reference": reference, "payer_kind": kind.value,
                   "payer_id": payer_id},
        )
    return result


def list_outstanding_invoices(customer_id=None, vendor_id=None, *, store=None):
    """The allocator's candidates with their remaining amounts, in order."""
    kind, payer_id = resolve_payer(customer_id, vendor_id)
    store = resolve_store(store)
    outstanding = []
    for invoice in store.outstanding_invoices(kind, payer_id, ALLOCATABLE_STATUSES):
        summary = calculate_status(invoice.invoice_number, invoice.total_amount,
                                   invoice.status, store=store)
        if summary.remaining_amount > 0:
            outstanding.append(summary)
    return outstanding
