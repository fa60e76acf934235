import logging
from dataclasses import dataclass
from typing import Any, Optional

from django.utils import timezone

from ..choices import Direction, EntityKind, JournalKind, PaymentCategory
from ..exceptions import InvalidPayer
from ..store import resolve_store
from .allocation import lock_invoice, lock_payers, payment_row
from .balance import refresh_invoice_status
from .journal import post_entry
from .ledger import append_transaction
from .money import positive_money

logger = logging.getLogger(__name__)

CREDIT_NOTE_SEQUENCE = "credit_note"
DEBIT_NOTE_SEQUENCE = "debit_note"


@dataclass
class NoteResult:
    number: str
    ledger_change: Any
    journal_entry: Optional[Any]
    payment: Optional[Any] = None


def format_note_number(prefix, value):
    return f"#{prefix}{value:05d}"


def _lock_party(store, kind, party_id, invoice_number=None):
    """Lock the party's ledger, then the invoice it must be billed on."""
    if invoice_number is None:
        lock_payers([(kind, party_id)], store)
        return None
    invoice = lock_invoice(store, invoice_number, payers=[(kind, party_id)])
    if invoice.payer != (kind, party_id):
        raise InvalidPayer(
            f"Invoice {invoice_number} is not billed to {kind.label.lower()} {party_id}"
        )
    return invoice


def issue_credit_note(customer_id, amount, note_date=None, description=None,
                      invoice_number=None, *, store=None):
    """
    Credit a customer outside the payment flow.

    The customer ledger gets a CREDIT and the journal a Cash / Revenue
    entry. When the note is raised against one of the customer's invoices
    a "Customer Credit" payment row is recorded on it as well, so the
    invoice status counts the credit as paid.
    """
    store = resolve_store(store)
    amount = positive_money(amount)
    note_date = note_date or timezone.localdate()

    with store.atomic():
        invoice = _lock_party(store, EntityKind.CUSTOMER, customer_id, invoice_number)
        number = format_note_number(
            "CREDIT", store.next_sequence_value(CREDIT_NOTE_SEQUENCE)
        )
        text = f"Credit Note: {description or number}"

        change = append_transaction(EntityKind.CUSTOMER, customer_id,
                                    Direction.CREDIT, amount, text,
                                    reference=number, invoice=invoice_number,
                                    store=store)
        entry = post_entry(JournalKind.COMPANY_DEBIT, amount, text, number,
                           entry_date=note_date, store=store)
        result = NoteResult(number, change, entry)

        if invoice is not None:
            row = payment_row(EntityKind.CUSTOMER, customer_id, invoice_number,
                              amount, number, note_date, description=text)
            row["category"] = PaymentCategory.CUSTOMER_CREDIT
            result.payment = store.create_payment(**row)
            refresh_invoice_status(invoice, store)

    logger.info("Issued credit note %s for %s", number, amount,
                extra={"reference": number, "customer_id": customer_id,
                       "invoice": invoice_number})
    return result


def issue_debit_note(vendor_id, amount, note_date=None, description=None,
                     bill_number=None, *, store=None):
    """
    Debit a vendor: vendor ledger DEBIT plus an Expense / Cash entry.

    A referenced bill is only checked and named in the text. The ledger row
    is not tagged with it, so the bill's own booking row stays the one that
    invoice edits correct.
    """
    store = resolve_store(store)
    amount = positive_money(amount)
    note_date = note_date or timezone.localdate()

    with store.atomic():
        _lock_party(store, EntityKind.VENDOR, vendor_id, bill_number)
        number = format_note_number(
            "DEBIT", store.next_sequence_value(DEBIT_NOTE_SEQUENCE)
        )
        text = f"Debit Note: {description or number}"
        if bill_number:
            text = f"{text} (bill {bill_number})"

        change = append_transaction(EntityKind.VENDOR, vendor_id, Direction.DEBIT,
                                    amount, text, reference=number, store=store)
        entry = post_entry(JournalKind.COMPANY_CREDIT, amount, text, number,
                           entry_date=note_date, store=store)

    logger.info("Issued debit note %s for %s", number, amount,
                extra={"reference": number, "vendor_id": vendor_id,
                       "invoice": bill_number})
    return NoteResult(number, change, entry)
