from abc import ABC, abstractmethod


class LedgerStore(ABC):
    """
    Persistence seam used by every ledger service.

    Services never touch the ORM directly: they receive a store (or fall back
    to the default Django-backed one) and go through these methods, so the
    same business rules run against the database or an in-memory fake.
    Entity kinds are `EntityKind` values; records returned are opaque to the
    caller apart from the attributes the models expose.
    """

    def __init__(self):
        # AccountName → chart-of-accounts row, filled by the journal builder
        self.account_cache = {}

    # ---------- transactions ----------
    @abstractmethod
    def atomic(self):
        """Context manager: everything inside commits or rolls back together."""

    # ---------- invoices ----------
    @abstractmethod
    def get_invoice(self, invoice_number, lock=False):
        """Invoice by number; raises NotFound."""

    @abstractmethod
    def get_invoice_by_id(self, invoice_id, lock=False):
        """Invoice by primary key; raises NotFound."""

    @abstractmethod
    def outstanding_invoices(self, kind, payer_id, statuses,
                             exclude_invoice_number=None, lock=False):
        """Payer's invoices in `statuses`, oldest first (date, then number).

        With `lock`, rows are locked in that same order.
        """

    @abstractmethod
    def set_invoice_status(self, invoice, status):
        pass

    @abstractmethod
    def update_invoice_fields(self, invoice, **fields):
        pass

    @abstractmethod
    def delete_invoice(self, invoice):
        pass

    # ---------- payments ----------
    @abstractmethod
    def sum_payments(self, invoice_number):
        """Sum of every payment row on the invoice, allocation rows included."""

    @abstractmethod
    def count_payments(self, invoice_number, include_allocations=False):
        pass

    @abstractmethod
    def has_payment(self, invoice_number, reference):
        """True when a primary payment with `reference` exists on the invoice."""

    @abstractmethod
    def create_payment(self, **fields):
        """
        Record a payment row. Fields: transaction_type, category, date, amount,
        mode, reference, invoice_number, from_party_type, from_customer_id,
        to_party_type, to_vendor_id, description, is_allocation, currency.
        """

    # ---------- ledger entities ----------
    @abstractmethod
    def get_entity(self, kind, entity_id, lock=False):
        """Customer / vendor / company row; raises NotFound."""

    @abstractmethod
    def get_company_account(self, lock=False):
        """The company ledger entity, created on first use."""

    @abstractmethod
    def set_balance(self, kind, entity, new_balance):
        pass

    @abstractmethod
    def entity_ids(self, kind):
        pass

    # ---------- ledger transaction log ----------
    @abstractmethod
    def add_transaction(self, kind, entity, **fields):
        """
        Append an audit row. Fields: type, amount, description, reference,
        invoice, previous_balance, new_balance.
        """

    @abstractmethod
    def find_invoice_transaction(self, kind, entity, invoice_number,
                                 direction="DEBIT"):
        """Latest row of `direction` tagged with the invoice, or None."""

    @abstractmethod
    def update_transaction(self, kind, txn, **fields):
        pass

    @abstractmethod
    def transactions(self, kind, entity):
        """Entity's audit rows in the order they were written."""

    # ---------- chart of accounts / journal ----------
    @abstractmethod
    def find_account(self, account_name, category):
        """Active account matching name (exact, then partial) and category."""

    @abstractmethod
    def get_account_by_code(self, code):
        """Chart-of-accounts row by code; raises NotFound."""

    @abstractmethod
    def next_entry_number(self):
        """Reserve the next `JE-NNNN` number. Numbers are never reused."""

    @abstractmethod
    def create_journal_entry(self, entry_number, entry_date, description,
                             reference, lines, is_posted):
        """
        Persist a header plus its lines. Each line is a dict with
        account, debit, credit and description.
        """

    @abstractmethod
    def get_journal_entry(self, entry_number, lock=False):
        """Journal entry by number; raises NotFound."""

    @abstractmethod
    def journal_lines(self, entry):
        pass

    @abstractmethod
    def mark_journal_posted(self, entry):
        pass

    @abstractmethod
    def next_sequence_value(self, name):
        """Next value of the named counter, starting at 1."""

    @abstractmethod
    def find_journal_entry(self, reference):
        """Earliest journal entry carrying `reference`, or None."""

    @abstractmethod
    def posted_account_totals(self, category, end_date):
        """
        (account, debit total, credit total) for every active account in
        `category`, over posted entries dated on or before `end_date`.
        """
