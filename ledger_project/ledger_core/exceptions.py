"""
Ledger engine errors.

Every service failure is a LedgerError subclass so callers (the API layer)
can map error kinds to responses without string matching.
"""


class LedgerError(Exception):
    """Base exception for all ledger engine failures."""


class NotFound(LedgerError):
    """Raised when an invoice, ledger entity or journal entry does not exist."""


class InvalidAmount(LedgerError):
    """Raised when an amount is missing, non-numeric or not positive."""


class UnlinkedInvoice(LedgerError):
    """Raised when an invoice has no payer of the kind the operation needs."""


class InvalidPayer(LedgerError):
    """Raised when the payer is ambiguous (both or neither ids supplied)."""


class MissingAccount(LedgerError):
    """Raised when the chart of accounts lacks an account the journal needs."""

    def __init__(self, message, missing=()):
        super().__init__(message)
        self.missing = list(missing)


class DuplicatePayment(LedgerError):
    """Raised when a payment reference was already recorded for an invoice."""


class InvoiceAlreadyBooked(LedgerError):
    """Raised when an invoice amount has already been booked to its payer."""


class InvoiceHasPayments(LedgerError):
    """Raised when deleting an invoice that payments were recorded against."""


class InvalidJournalEntry(LedgerError):
    """Raised when a manual journal entry is malformed."""


class UnbalancedJournalError(InvalidJournalEntry):
    """Raised when a JournalEntry fails double-entry balance check."""


class JournalAlreadyPosted(LedgerError):
    """Raised when posting a JournalEntry that is already posted."""


class PayerChanged(LedgerError):
    """Raised when an invoice moved to another payer while it was being locked."""
