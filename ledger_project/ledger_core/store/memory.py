import copy
import itertools
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.utils import timezone

from ..choices import (DEFAULT_CHART, Direction, EntityKind, InvoiceStatus)
from ..exceptions import NotFound
from ..models.journal import format_entry_number, parse_entry_number
from .base import LedgerStore

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


# ---------- records (mirror the model fields the services read) ----------
@dataclass
class InvoiceRecord:
    id: int
    invoice_number: str
    invoice_date: date
    total_amount: Decimal
    status: str = InvoiceStatus.PENDING
    customer_id: int = None
    vendor_id: int = None
    due_date: date = None
    description: str = ""

    @property
    def pk(self):
        return self.id

    @property
    def payer(self):
        if self.customer_id is not None:
            return EntityKind.CUSTOMER, self.customer_id
        if self.vendor_id is not None:
            return EntityKind.VENDOR, self.vendor_id
        return None


@dataclass
class PaymentRecord:
    id: int
    transaction_type: str
    category: str
    date: date
    amount: Decimal
    reference: str
    invoice_number: str
    from_party_type: str
    to_party_type: str
    mode: str = "CASH"
    currency: str = "USD"
    from_customer_id: int = None
    to_vendor_id: int = None
    description: str = ""
    is_allocation: bool = False

    @property
    def pk(self):
        return self.id

    @property
    def invoice_id(self):
        return self.invoice_number


@dataclass
class EntityRecord:
    id: int
    name: str
    current_balance: Decimal = ZERO

    @property
    def pk(self):
        return self.id


@dataclass
class TransactionRecord:
    id: int
    entity_id: int
    type: str
    amount: Decimal
    previous_balance: Decimal
    new_balance: Decimal
    description: str = ""
    reference: str = None
    invoice: str = None

    @property
    def pk(self):
        return self.id


@dataclass
class AccountRecord:
    id: int
    code: str
    account_name: str
    category: str
    type: str = ""
    is_active: bool = True

    @property
    def pk(self):
        return self.id


@dataclass
class JournalLineRecord:
    account: AccountRecord
    debit_amount: Decimal
    credit_amount: Decimal
    description: str = ""
    reference: str = None


@dataclass
class JournalEntryRecord:
    id: int
    entry_number: str
    date: date
    description: str
    reference: str
    total_debit: Decimal
    total_credit: Decimal
    is_posted: bool = False
    posted_at: object = None
    lines: list = field(default_factory=list)

    @property
    def pk(self):
        return self.id


def _check_transaction(txn):
    # same rules LedgerTransaction.clean() enforces on the model
    if txn.amount is None or txn.amount <= 0:
        raise ValidationError("Transaction amount must be > 0")
    if abs(txn.new_balance - txn.previous_balance) != txn.amount:
        raise ValidationError(
            "new_balance must differ from previous_balance by amount"
        )


class InMemoryLedgerStore(LedgerStore):
    """
    Dict-backed LedgerStore for tests and fakes.

    One re-entrant lock is held for the whole outermost `atomic()` block, so
    concurrent operations run one after another like row-locked database
    transactions. State is snapshotted when the outermost block opens and
    restored if it raises; nested blocks join the outer one.
    """

    def __init__(self, company_account_name="Company Account"):
        super().__init__()
        self.company_account_name = company_account_name
        self._lock = threading.RLock()
        self._depth = 0
        self._ids = itertools.count(1)
        self._data = {
            "invoices": {},  # invoice_number → InvoiceRecord
            "payments": [],
            "entities": {kind: {} for kind in EntityKind},
            "transactions": {kind: [] for kind in EntityKind},
            "accounts": [],
            "journal": [],
            "sequence": None,
            "counters": {},
        }

    def _next_id(self):
        return next(self._ids)

    @contextmanager
    def atomic(self):
        with self._lock:
            outermost = self._depth == 0
            snapshot = copy.deepcopy(self._data) if outermost else None
            self._depth += 1
            try:
                yield
            except BaseException:
                if outermost:
                    self._data = snapshot
                    logger.debug("In-memory ledger rolled back")
                raise
            finally:
                self._depth -= 1

    # ----------------------------
    # Seeding helpers
    # ----------------------------
    def add_customer(self, name="Customer", balance=ZERO):
        return self._add_entity(EntityKind.CUSTOMER, name, balance)

    def add_vendor(self, name="Vendor", balance=ZERO):
        return self._add_entity(EntityKind.VENDOR, name, balance)

    def _add_entity(self, kind, name, balance):
        record = EntityRecord(self._next_id(), name, Decimal(balance))
        self._data["entities"][kind][record.id] = record
        return record

    def add_invoice(self, invoice_number, total_amount, invoice_date,
                    customer_id=None, vendor_id=None,
                    status=InvoiceStatus.PENDING):
        record = InvoiceRecord(
            id=self._next_id(),
            invoice_number=invoice_number,
            invoice_date=invoice_date,
            total_amount=Decimal(total_amount),
            status=status,
            customer_id=customer_id,
            vendor_id=vendor_id,
        )
        self._data["invoices"][invoice_number] = record
        return record

    def add_account(self, code, account_name, category, type="", is_active=True):
        record = AccountRecord(self._next_id(), code, account_name,
                               category, type, is_active)
        self._data["accounts"].append(record)
        self.account_cache.clear()
        return record

    def seed_default_chart(self):
        return [
            self.add_account(code, name.value, name.category, sub_type)
            for code, name, sub_type in DEFAULT_CHART
        ]

    def payments(self, invoice_number=None):
        return [
            p for p in self._data["payments"]
            if invoice_number is None or p.invoice_number == invoice_number
        ]

    def journal_entries(self):
        return list(self._data["journal"])

    # ----------------------------
    # Invoices
    # ----------------------------
    def get_invoice(self, invoice_number, lock=False):
        try:
            return self._data["invoices"][invoice_number]
        except KeyError:
            raise NotFound(f"Invoice {invoice_number} not found")

    def get_invoice_by_id(self, invoice_id, lock=False):
        for invoice in self._data["invoices"].values():
            if invoice.id == invoice_id:
                return invoice
        raise NotFound(f"Invoice id={invoice_id} not found")

    def outstanding_invoices(self, kind, payer_id, statuses,
                             exclude_invoice_number=None, lock=False):
        attr = f"{EntityKind(kind).value}_id"
        statuses = set(statuses)
        found = [
            inv for inv in self._data["invoices"].values()
            if getattr(inv, attr) == payer_id
            and inv.status in statuses
            and inv.invoice_number != exclude_invoice_number
        ]
        return sorted(found, key=lambda inv: (inv.invoice_date, inv.invoice_number))

    def set_invoice_status(self, invoice, status):
        invoice.status = status

    def update_invoice_fields(self, invoice, **fields):
        for name, value in fields.items():
            setattr(invoice, name, value)
        if invoice.customer_id is not None and invoice.vendor_id is not None:
            raise ValidationError(
                "An invoice cannot belong to both a customer and a vendor."
            )

    def delete_invoice(self, invoice):
        if self.count_payments(invoice.invoice_number, include_allocations=True):
            raise ValidationError("Cannot delete invoice with applied payments.")
        del self._data["invoices"][invoice.invoice_number]

    # ----------------------------
    # Payments
    # ----------------------------
    def sum_payments(self, invoice_number):
        return sum((p.amount for p in self.payments(invoice_number)), ZERO)

    def count_payments(self, invoice_number, include_allocations=False):
        return len([
            p for p in self.payments(invoice_number)
            if include_allocations or not p.is_allocation
        ])

    def has_payment(self, invoice_number, reference):
        return any(
            p.reference == reference and not p.is_allocation
            for p in self.payments(invoice_number)
        )

    def create_payment(self, **fields):
        if fields["invoice_number"] not in self._data["invoices"]:
            raise NotFound(f"Invoice {fields['invoice_number']} not found")
        if fields["amount"] <= 0:
            raise ValidationError("Payment amount must be > 0")
        record = PaymentRecord(id=self._next_id(), **fields)
        self._data["payments"].append(record)
        return record

    # ----------------------------
    # Ledger entities
    # ----------------------------
    def get_entity(self, kind, entity_id, lock=False):
        kind = EntityKind(kind)
        if kind == EntityKind.COMPANY and entity_id is None:
            return self.get_company_account(lock=lock)
        try:
            return self._data["entities"][kind][entity_id]
        except KeyError:
            raise NotFound(f"{kind.label} id={entity_id} not found")

    def get_company_account(self, lock=False):
        companies = self._data["entities"][EntityKind.COMPANY]
        for account in companies.values():
            if account.name == self.company_account_name:
                return account
        return self._add_entity(EntityKind.COMPANY, self.company_account_name, ZERO)

    def set_balance(self, kind, entity, new_balance):
        entity.current_balance = new_balance

    def entity_ids(self, kind):
        return sorted(self._data["entities"][EntityKind(kind)])

    # ----------------------------
    # Ledger transaction log
    # ----------------------------
    def add_transaction(self, kind, entity, **fields):
        txn = TransactionRecord(id=self._next_id(), entity_id=entity.id, **fields)
        _check_transaction(txn)
        self._data["transactions"][EntityKind(kind)].append(txn)
        return txn

    def find_invoice_transaction(self, kind, entity, invoice_number,
                                 direction=Direction.DEBIT):
        for txn in reversed(self.transactions(kind, entity)):
            if txn.invoice == invoice_number and txn.type == direction:
                return txn
        return None

    def update_transaction(self, kind, txn, **fields):
        candidate = copy.copy(txn)
        for name, value in fields.items():
            setattr(candidate, name, value)
        _check_transaction(candidate)
        for name, value in fields.items():
            setattr(txn, name, value)

    def transactions(self, kind, entity):
        return [
            txn for txn in self._data["transactions"][EntityKind(kind)]
            if txn.entity_id == entity.id
        ]

    # ----------------------------
    # Chart of accounts / journal
    # ----------------------------
    def find_account(self, account_name, category):
        active = sorted(
            (a for a in self._data["accounts"]
             if a.category == category and a.is_active),
            key=lambda a: a.code,
        )
        wanted = account_name.lower()
        for account in active:
            if account.account_name.lower() == wanted:
                return account
        for account in active:
            if wanted in account.account_name.lower():
                return account
        return None

    def get_account_by_code(self, code):
        for account in self._data["accounts"]:
            if account.code == code:
                return account
        raise NotFound(f"Account {code} not found")

    def next_entry_number(self):
        with self._lock:
            if self._data["sequence"] is None:
                self._data["sequence"] = max(
                    (parse_entry_number(e.entry_number) for e in self._data["journal"]),
                    default=0,
                )
            self._data["sequence"] += 1
            return format_entry_number(self._data["sequence"])

    def create_journal_entry(self, entry_number, entry_date, description,
                             reference, lines, is_posted):
        total_debit = sum((line["debit"] for line in lines), ZERO)
        total_credit = sum((line["credit"] for line in lines), ZERO)
        if total_debit != total_credit:
            raise ValidationError("Journal totals must balance")
        entry = JournalEntryRecord(
            id=self._next_id(),
            entry_number=entry_number,
            date=entry_date,
            description=description or "",
            reference=reference,
            total_debit=total_debit,
            total_credit=total_credit,
            lines=[
                JournalLineRecord(
                    account=line["account"],
                    debit_amount=line["debit"],
                    credit_amount=line["credit"],
                    description=line.get("description") or "",
                    reference=reference,
                )
                for line in lines
            ],
        )
        self._data["journal"].append(entry)
        if is_posted:
            self.mark_journal_posted(entry)
        return entry

    def get_journal_entry(self, entry_number, lock=False):
        for entry in self._data["journal"]:
            if entry.entry_number == entry_number:
                return entry
        raise NotFound(f"Journal entry {entry_number} not found")

    def journal_lines(self, entry):
        return list(entry.lines)

    def mark_journal_posted(self, entry):
        entry.is_posted = True
        entry.posted_at = timezone.now()

    def next_sequence_value(self, name):
        with self._lock:
            counters = self._data["counters"]
            counters[name] = counters.get(name, 0) + 1
            return counters[name]

    def find_journal_entry(self, reference):
        for entry in self._data["journal"]:
            if entry.reference == reference:
                return entry
        return None

    def posted_account_totals(self, category, end_date):
        totals = []
        accounts = sorted(
            (a for a in self._data["accounts"] if a.category == category and a.is_active),
            key=lambda a: a.code,
        )
        for account in accounts:
            debit = credit = ZERO
            for entry in self._data["journal"]:
                if not entry.is_posted or entry.date > end_date:
                    continue
                for line in entry.lines:
                    if line.account.code == account.code:
                        debit += line.debit_amount
                        credit += line.credit_amount
            totals.append((account, debit, credit))
        return totals
