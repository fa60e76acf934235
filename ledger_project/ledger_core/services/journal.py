import datetime
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date

from ..choices import AccountCategory, AccountName, JournalKind
from ..exceptions import (InvalidJournalEntry, JournalAlreadyPosted,
                          MissingAccount, UnbalancedJournalError)
from ..store import resolve_store
from .money import ZERO, to_money

logger = logging.getLogger(__name__)

# kind → (debit account, credit account)
JOURNAL_ACCOUNT_MAP = {
    JournalKind.CUSTOMER_DEBIT: (AccountName.ACCOUNTS_RECEIVABLE, AccountName.REVENUE),
    JournalKind.CUSTOMER_CREDIT: (AccountName.CASH, AccountName.ACCOUNTS_RECEIVABLE),
    JournalKind.VENDOR_DEBIT: (AccountName.EXPENSE, AccountName.ACCOUNTS_PAYABLE),
    JournalKind.VENDOR_CREDIT: (AccountName.ACCOUNTS_PAYABLE, AccountName.CASH),
    JournalKind.COMPANY_DEBIT: (AccountName.CASH, AccountName.REVENUE),
    JournalKind.COMPANY_CREDIT: (AccountName.EXPENSE, AccountName.CASH),
}


def strict_chart():
    return getattr(settings, "LEDGER_STRICT_CHART", False)


def resolve_account(name, *, store=None):
    """Chart row for an AccountName, cached on the store."""
    store = resolve_store(store)
    name = AccountName(name)
    account = store.account_cache.get(name)
    if account is None:
        account = store.find_account(name.value, name.category)
        if account is None:
            raise MissingAccount(
                f"Chart of accounts has no {name.category} account '{name.value}'",
                missing=[name],
            )
        store.account_cache[name] = account
    return account


def validate_chart(*, store=None):
    """Resolve every mapped account; MissingAccount lists all the gaps."""
    store = resolve_store(store)
    missing = []
    for name in AccountName:
        try:
            resolve_account(name, store=store)
        except MissingAccount:
            missing.append(name)
    if missing:
        raise MissingAccount(
            "Chart of accounts is missing: " + ", ".join(m.value for m in missing),
            missing=missing,
        )


def post_entry(kind, amount, description, reference=None, entry_date=None,
               reverse=False, *, store=None):
    """
    Post a balanced two-line journal entry for a ledger movement.

    `reverse` swaps the debit and credit sides. When the chart lacks one
    of the accounts the entry is skipped (logged, returns None) unless
    LEDGER_STRICT_CHART is on.
    """
    store = resolve_store(store)
    kind = JournalKind(kind)
    amount = to_money(amount)
    if amount <= 0:
        raise InvalidJournalEntry(f"Journal amount must be > 0 (got {amount})")

    debit_name, credit_name = JOURNAL_ACCOUNT_MAP[kind]
    try:
        debit_account = resolve_account(debit_name, store=store)
        credit_account = resolve_account(credit_name, store=store)
    except MissingAccount as exc:
        if strict_chart():
            raise
        logger.warning(
            "Journal entry skipped: %s", exc,
            extra={"journal_kind": kind.value, "reference": reference},
        )
        return None

    if reverse:
        debit_account, credit_account = credit_account, debit_account

    lines = [
        {"account": debit_account, "debit": amount, "credit": ZERO,
         "description": description},
        {"account": credit_account, "debit": ZERO, "credit": amount,
         "description": description},
    ]
    with store.atomic():
        entry_number = store.next_entry_number()
        entry = store.create_journal_entry(
            entry_number,
            entry_date or timezone.localdate(),
            description,
            reference,
            lines,
            is_posted=True,
        )

    logger.info(
        "Posted %s %s for %s", entry.entry_number, kind, amount,
        extra={"journal_kind": kind.value, "reference": reference},
    )
    return entry


# ----------------------------
# Manual entries
# ----------------------------
def create_manual_entry(entry_date, description, lines, reference=None, *,
                        store=None):
    """
    Create an unposted entry from caller-supplied lines.

    Each line is a dict: `account` (chart code), `debit` or `credit`, and an
    optional `description`. Exactly one side per line may be non-zero and
    the entry must balance.
    """
    store = resolve_store(store)
    lines = list(lines or [])
    if len(lines) < 2:
        raise InvalidJournalEntry("A journal entry needs at least two lines")

    prepared = []
    total_debit = total_credit = ZERO
    for index, line in enumerate(lines, start=1):
        if not line.get("account"):
            raise InvalidJournalEntry(f"Line {index} has no account")
        debit = to_money(line.get("debit") or 0)
        credit = to_money(line.get("credit") or 0)
        if debit < 0 or credit < 0:
            raise InvalidJournalEntry(f"Line {index} has a negative amount")
        if (debit > 0) == (credit > 0):
            raise InvalidJournalEntry(
                f"Line {index} needs exactly one of debit or credit"
            )
        prepared.append({"account": line["account"], "debit": debit,
                         "credit": credit,
                         "description": line.get("description") or ""})
        total_debit += debit
        total_credit += credit

    if abs(total_debit - total_credit) >= Decimal("0.01"):
        raise UnbalancedJournalError(
            f"Journal not balanced: debits={total_debit}, credits={total_credit}"
        )

    with store.atomic():
        for line in prepared:
            line["account"] = store.get_account_by_code(line["account"])
        entry = store.create_journal_entry(
            store.next_entry_number(),
            entry_date or timezone.localdate(),
            description,
            reference,
            prepared,
            is_posted=False,
        )
    logger.info("Created manual journal entry %s", entry.entry_number,
                extra={"reference": reference})
    return entry


def post_journal_entry(entry_number, *, store=None):
    store = resolve_store(store)
    with store.atomic():
        entry = store.get_journal_entry(entry_number, lock=True)
        if entry.is_posted:
            raise JournalAlreadyPosted(f"{entry_number} is already posted")

        lines = store.journal_lines(entry)
        if len(lines) < 2:
            raise InvalidJournalEntry(f"{entry_number} has fewer than two lines")
        total_debit = sum((line.debit_amount for line in lines), ZERO)
        total_credit = sum((line.credit_amount for line in lines), ZERO)
        if total_debit != total_credit:
            raise UnbalancedJournalError(
                f"Journal not balanced: debits={total_debit}, credits={total_credit}"
            )
        store.mark_journal_posted(entry)

    logger.info("Posted journal entry %s", entry_number)
    return entry


# ----------------------------
# Period close
# ----------------------------
CLOSE_SEQUENCE_NAME = "period_close"

# tried in order; "" matches any active equity account
EARNINGS_ACCOUNT_NAMES = ("Current Year Earnings", "Retained Earnings", "")


@dataclass
class ClosingResult:
    entry: Optional[Any]
    # None when the period was already closed
    net_income: Optional[Decimal] = None
    total_revenue: Optional[Decimal] = None
    total_expenses: Optional[Decimal] = None
    created: bool = False


def closing_reference(start, end):
    return f"CLOSE-{start.isoformat()}-{end.isoformat()}"


def _as_date(value):
    if isinstance(value, datetime.date):
        return value
    try:
        parsed = parse_date(str(value or ""))
    except ValueError:
        parsed = None
    if parsed is None:
        raise InvalidJournalEntry(f"Invalid date: {value!r}")
    return parsed


def _earnings_account(store):
    for name in EARNINGS_ACCOUNT_NAMES:
        account = store.find_account(name, AccountCategory.EQUITY)
        if account is not None:
            return account
    raise MissingAccount("No equity account found for closing entries",
                         missing=[AccountName.CURRENT_YEAR_EARNINGS])


def _category_total(store, category, end, debit_side):
    """Sum of the accounts' positive balances on their normal side."""
    total = ZERO
    for _, debit, credit in store.posted_account_totals(category, end):
        balance = debit - credit if debit_side else credit - debit
        if balance > 0:
            total += balance
    return total


def close_period(start_date, end_date, *, store=None):
    """
    Post the closing entry moving net income for a period into equity.

    Revenue and expense balances are cumulative over posted entries up to
    `end_date`, so earlier closings are already netted out. A profit is
    credited to the earnings account against Revenue, a loss debited
    against Expense. Running it again for the same period returns the
    existing entry.
    """
    store = resolve_store(store)
    start, end = _as_date(start_date), _as_date(end_date)
    if start > end:
        raise InvalidJournalEntry(f"Period start {start} is after its end {end}")
    reference = closing_reference(start, end)

    with store.atomic():
        # serializes closings so the existence check below cannot race
        store.next_sequence_value(CLOSE_SEQUENCE_NAME)
        existing = store.find_journal_entry(reference)
        if existing is not None:
            return ClosingResult(existing)

        total_revenue = _category_total(store, AccountCategory.REVENUE, end, False)
        total_expenses = _category_total(store, AccountCategory.EXPENSE, end, True)
        net_income = total_revenue - total_expenses
        result = ClosingResult(None, net_income, total_revenue, total_expenses)
        if net_income == 0:
            logger.info("Nothing to close for %s", reference,
                        extra={"reference": reference})
            return result

        earnings = _earnings_account(store)
        amount = abs(net_income)
        summary = f"Revenue: {total_revenue}, Expenses: {total_expenses}"
        if net_income > 0:
            lines = [
                {"account": resolve_account(AccountName.REVENUE, store=store),
                 "debit": amount, "credit": ZERO,
                 "description": "Close net income summary"},
                {"account": earnings, "debit": ZERO, "credit": amount,
                 "description": f"Close net income to earnings ({summary})"},
            ]
        else:
            lines = [
                {"account": earnings, "debit": amount, "credit": ZERO,
                 "description": f"Close net loss to earnings ({summary})"},
                {"account": resolve_account(AccountName.EXPENSE, store=store),
                 "debit": ZERO, "credit": amount,
                 "description": "Close net loss summary"},
            ]
        result.entry = store.create_journal_entry(
            store.next_entry_number(),
            end,
            f"Closing Entry: Transfer Net Income to Equity for period {start} to {end}",
            reference,
            lines,
            is_posted=True,
        )
        result.created = True

    logger.info(
        "Closed period %s with net income %s", reference, net_income,
        extra={"reference": reference, "entry_number": result.entry.entry_number},
    )
    return result
