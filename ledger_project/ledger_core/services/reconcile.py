import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from ..choices import Direction, EntityKind, JournalKind
from ..exceptions import (InvalidAmount, InvoiceAlreadyBooked,
                          InvoiceHasPayments, UnlinkedInvoice)
from ..store import resolve_store
from .allocation import lock_invoice, resolve_payer
from .balance import InvoiceSummary, refresh_invoice_status
from .journal import post_entry
from .ledger import append_transaction, correct_transaction
from .money import to_money

logger = logging.getLogger(__name__)

UNSET = object()


@dataclass
class ReconcileResult:
    changed: bool = False
    ledger_changes: List[Any] = field(default_factory=list)
    journal_entries: List[Any] = field(default_factory=list)
    invoice_summary: Optional[InvoiceSummary] = None

    def record(self, change=None, entry=None):
        if change is not None:
            self.ledger_changes.append(change)
        if entry is not None:
            self.journal_entries.append(entry)


# ----------------------------
# Amount-decrease policies
# ----------------------------
def _smaller_debit(kind, payer_id, invoice_number, old_amount, new_amount,
                   description, store, result):
    """Shrink the invoice's DEBIT row in place; journal the DEBIT pair reversed."""
    delta = old_amount - new_amount
    change = correct_transaction(kind, payer_id, invoice_number, old_amount,
                                 new_amount, description, store=store)
    entry = post_entry(JournalKind.for_entry(kind, Direction.DEBIT), delta,
                       description, invoice_number, reverse=True, store=store)
    result.record(change, entry)


def _credit_reversal(kind, payer_id, invoice_number, old_amount, new_amount,
                     description, store, result):
    """Book the decrease as its own CREDIT movement."""
    delta = old_amount - new_amount
    change = append_transaction(kind, payer_id, Direction.CREDIT, delta,
                                description, reference=invoice_number,
                                invoice=invoice_number, store=store)
    entry = post_entry(JournalKind.for_entry(kind, Direction.CREDIT), delta,
                       description, invoice_number, store=store)
    result.record(change, entry)


AMOUNT_DECREASE_POLICIES = {
    "smaller_debit": _smaller_debit,
    "credit_reversal": _credit_reversal,
}


def get_decrease_policy(name=None):
    name = name or getattr(settings, "LEDGER_AMOUNT_DECREASE_POLICY", "smaller_debit")
    try:
        return AMOUNT_DECREASE_POLICIES[name]
    except KeyError:
        raise ImproperlyConfigured(
            f"Unknown LEDGER_AMOUNT_DECREASE_POLICY {name!r}; "
            f"expected one of {sorted(AMOUNT_DECREASE_POLICIES)}"
        )


def _payer_or_none(customer_id, vendor_id):
    if customer_id is None and vendor_id is None:
        return None
    return resolve_payer(customer_id, vendor_id)


def _non_negative(value):
    amount = to_money(value)
    if amount < 0:
        raise InvalidAmount(f"Invoice amount must be >= 0 (got {amount})")
    return amount


# ----------------------------
# Reconciler
# ----------------------------
def reconcile(invoice_id, old_amount, new_amount, old_customer_id=None,
              new_customer_id=None, old_vendor_id=None, new_vendor_id=None, *,
              policy=None, store=None):
    """
    Bring the ledgers and journal in line with an edited invoice.

    A payer change reverses the old amount on the old payer (CREDIT) and
    books the new amount on the new payer (DEBIT). An amount-only change
    corrects the existing booking by the delta; decreases go through the
    configured decrease policy.
    """
    store = resolve_store(store)
    old_amount = _non_negative(old_amount)
    new_amount = _non_negative(new_amount)
    result = ReconcileResult()

    if (old_amount == new_amount and old_customer_id == new_customer_id
            and old_vendor_id == new_vendor_id):
        return result

    old_payer = _payer_or_none(old_customer_id, old_vendor_id)
    new_payer = _payer_or_none(new_customer_id, new_vendor_id)
    decrease_policy = get_decrease_policy(policy)
    result.changed = True

    with store.atomic():
        invoice = lock_invoice(store, invoice_id=invoice_id,
                               payers=[old_payer, new_payer])
        number = invoice.invoice_number

        if old_payer != new_payer:
            if old_payer and old_amount > 0:
                kind, payer_id = old_payer
                text = f"Invoice {number} reassigned: reversal of {old_amount}"
                change = append_transaction(kind, payer_id, Direction.CREDIT,
                                            old_amount, text, reference=number,
                                            invoice=number, store=store)
                entry = post_entry(JournalKind.for_entry(kind, Direction.CREDIT),
                                   old_amount, text, number, store=store)
                result.record(change, entry)
            if new_payer and new_amount > 0:
                kind, payer_id = new_payer
                text = f"Invoice {number} booked: {new_amount}"
                change = append_transaction(kind, payer_id, Direction.DEBIT,
                                            new_amount, text, reference=number,
                                            invoice=number, store=store)
                entry = post_entry(JournalKind.for_entry(kind, Direction.DEBIT),
                                   new_amount, text, number, store=store)
                result.record(change, entry)

        elif new_payer is not None:
            kind, payer_id = new_payer
            text = f"Invoice {number} amount {old_amount} -> {new_amount}"
            if new_amount > old_amount:
                change = correct_transaction(kind, payer_id, number, old_amount,
                                             new_amount, text, store=store)
                entry = post_entry(JournalKind.for_entry(kind, Direction.DEBIT),
                                   new_amount - old_amount, text, number,
                                   store=store)
                result.record(change, entry)
            else:
                decrease_policy(kind, payer_id, number, old_amount, new_amount,
                                text, store, result)

    logger.info(
        "Reconciled invoice %s: %s ledger change(s), %s journal entr(ies)",
        number, len(result.ledger_changes), len(result.journal_entries),
        extra={"invoice": number},
    )
    return result


# ----------------------------
# Invoice lifecycle around the reconciler
# ----------------------------
def book_invoice(invoice_number, *, store=None):
    """DEBIT the payer for a new invoice's total and journal it."""
    store = resolve_store(store)
    with store.atomic():
        invoice = lock_invoice(store, invoice_number)
        if invoice.payer is None:
            raise UnlinkedInvoice(f"Invoice {invoice_number} has no payer")
        kind, payer_id = invoice.payer
        payer = store.get_entity(kind, payer_id)
        if store.find_invoice_transaction(kind, payer, invoice_number) is not None:
            raise InvoiceAlreadyBooked(f"Invoice {invoice_number} is already booked")
        if invoice.total_amount <= 0:
            return None

        text = f"Invoice {invoice_number} booked: {invoice.total_amount}"
        change = append_transaction(kind, payer_id, Direction.DEBIT,
                                    invoice.total_amount, text,
                                    reference=invoice_number,
                                    invoice=invoice_number, store=store)
        post_entry(JournalKind.for_entry(kind, Direction.DEBIT),
                   invoice.total_amount, text, invoice_number,
                   entry_date=invoice.invoice_date, store=store)
    return change


def update_invoice(invoice_id, total_amount=UNSET, customer_id=UNSET,
                   vendor_id=UNSET, *, policy=None, store=None):
    """Apply an invoice edit, reconcile the ledgers, refresh the status."""
    store = resolve_store(store)
    new_payers = []
    if customer_id not in (UNSET, None):
        new_payers.append((EntityKind.CUSTOMER, customer_id))
    if vendor_id not in (UNSET, None):
        new_payers.append((EntityKind.VENDOR, vendor_id))

    with store.atomic():
        invoice = lock_invoice(store, invoice_id=invoice_id, payers=new_payers)
        old_amount = invoice.total_amount
        old_customer_id, old_vendor_id = invoice.customer_id, invoice.vendor_id

        new_amount = old_amount if total_amount is UNSET else _non_negative(total_amount)
        new_customer_id = old_customer_id if customer_id is UNSET else customer_id
        new_vendor_id = old_vendor_id if vendor_id is UNSET else vendor_id
        # both ids set is rejected before anything is written
        _payer_or_none(new_customer_id, new_vendor_id)

        store.update_invoice_fields(invoice, total_amount=new_amount,
                                    customer_id=new_customer_id,
                                    vendor_id=new_vendor_id)
        result = reconcile(
            invoice_id, old_amount, new_amount,
            old_customer_id=old_customer_id, new_customer_id=new_customer_id,
            old_vendor_id=old_vendor_id, new_vendor_id=new_vendor_id,
            policy=policy, store=store,
        )
        result.invoice_summary = refresh_invoice_status(invoice, store)
    return result


def delete_invoice(invoice_id, *, store=None):
    """Reverse an unpaid invoice's booking and remove it."""
    store = resolve_store(store)
    result = ReconcileResult(changed=True)
    with store.atomic():
        invoice = lock_invoice(store, invoice_id=invoice_id)
        number = invoice.invoice_number
        if store.count_payments(number, include_allocations=True):
            raise InvoiceHasPayments(
                f"Cannot delete invoice {number} with applied payments."
            )

        if invoice.payer is not None and invoice.total_amount > 0:
            kind, payer_id = invoice.payer
            payer = store.get_entity(kind, payer_id)
            if store.find_invoice_transaction(kind, payer, number) is not None:
                text = f"Invoice {number} deleted: reversal of {invoice.total_amount}"
                change = append_transaction(kind, payer_id, Direction.CREDIT,
                                            invoice.total_amount, text,
                                            reference=number, invoice=number,
                                            store=store)
                entry = post_entry(JournalKind.for_entry(kind, Direction.CREDIT),
                                   invoice.total_amount, text, number,
                                   store=store)
                result.record(change, entry)
        store.delete_invoice(invoice)

    logger.info("Deleted invoice %s", number, extra={"invoice": number})
    return result
