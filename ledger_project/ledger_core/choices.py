from django.db import models


class InvoiceStatus(models.TextChoices):
    PENDING = "Pending", "Pending"
    PARTIAL = "Partial", "Partial"
    PAID = "Paid", "Paid"
    OVERDUE = "Overdue", "Overdue"  # set by due-date logic outside the engine
    CANCELLED = "Cancelled", "Cancelled"


class Direction(models.TextChoices):
    DEBIT = "DEBIT", "Debit"
    CREDIT = "CREDIT", "Credit"


class EntityKind(models.TextChoices):
    CUSTOMER = "customer", "Customer"
    VENDOR = "vendor", "Vendor"
    COMPANY = "company", "Company"


class TransactionType(models.TextChoices):
    INCOME = "INCOME", "Income"  # customer paying us
    EXPENSE = "EXPENSE", "Expense"  # us paying a vendor


class PaymentType(models.TextChoices):
    CUSTOMER_PAYMENT = "CUSTOMER_PAYMENT", "Customer payment"
    VENDOR_PAYMENT = "VENDOR_PAYMENT", "Vendor payment"


class PaymentCategory(models.TextChoices):
    CUSTOMER_PAYMENT = "Customer Payment", "Customer Payment"
    VENDOR_PAYMENT = "Vendor Payment", "Vendor Payment"
    ALLOCATION = "Payment Allocation", "Payment Allocation"
    CUSTOMER_CREDIT = "Customer Credit", "Customer Credit"


class PartyType(models.TextChoices):
    CUSTOMER = "CUSTOMER", "Customer"
    VENDOR = "VENDOR", "Vendor"
    US = "US", "Us"


class AccountCategory(models.TextChoices):
    ASSET = "Asset", "Asset"
    LIABILITY = "Liability", "Liability"
    REVENUE = "Revenue", "Revenue"
    EXPENSE = "Expense", "Expense"
    EQUITY = "Equity", "Equity"


class AccountName(models.TextChoices):
    """Chart-of-accounts names the journal builder posts to."""

    CASH = "Cash", "Cash"
    ACCOUNTS_RECEIVABLE = "Accounts Receivable", "Accounts Receivable"
    ACCOUNTS_PAYABLE = "Accounts Payable", "Accounts Payable"
    REVENUE = "Revenue", "Revenue"
    EXPENSE = "Expense", "Expense"
    CURRENT_YEAR_EARNINGS = "Current Year Earnings", "Current Year Earnings"

    @property
    def category(self):
        return ACCOUNT_NAME_CATEGORIES[self]


ACCOUNT_NAME_CATEGORIES = {
    AccountName.CASH: AccountCategory.ASSET,
    AccountName.ACCOUNTS_RECEIVABLE: AccountCategory.ASSET,
    AccountName.ACCOUNTS_PAYABLE: AccountCategory.LIABILITY,
    AccountName.REVENUE: AccountCategory.REVENUE,
    AccountName.EXPENSE: AccountCategory.EXPENSE,
    AccountName.CURRENT_YEAR_EARNINGS: AccountCategory.EQUITY,
}


class JournalKind(models.TextChoices):
    CUSTOMER_DEBIT = "CUSTOMER_DEBIT", "Customer debit"
    CUSTOMER_CREDIT = "CUSTOMER_CREDIT", "Customer credit"
    VENDOR_DEBIT = "VENDOR_DEBIT", "Vendor debit"
    VENDOR_CREDIT = "VENDOR_CREDIT", "Vendor credit"
    COMPANY_DEBIT = "COMPANY_DEBIT", "Company debit"
    COMPANY_CREDIT = "COMPANY_CREDIT", "Company credit"

    @classmethod
    def for_entry(cls, kind, direction):
        """Journal kind matching a ledger transaction on `kind` in `direction`."""
        return cls(f"{EntityKind(kind).value.upper()}_{Direction(direction).value}")


# code, name, sub-type: the accounts the journal builder and period close need
DEFAULT_CHART = [
    ("1000", AccountName.CASH, "Current Asset"),
    ("1100", AccountName.ACCOUNTS_RECEIVABLE, "Current Asset"),
    ("2000", AccountName.ACCOUNTS_PAYABLE, "Current Liability"),
    ("3100", AccountName.CURRENT_YEAR_EARNINGS, "Equity"),
    ("4000", AccountName.REVENUE, "Operating Revenue"),
    ("5000", AccountName.EXPENSE, "Operating Expense"),
]
