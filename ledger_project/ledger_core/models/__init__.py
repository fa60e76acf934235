from .account import ChartOfAccount
from .company import CompanyAccount, CompanyTransaction
from .customer import Customer, CustomerTransaction
from .invoice import Invoice
from .journal import (JournalEntry, JournalEntryLine, JournalSequence,
                      format_entry_number, parse_entry_number)
from .payment import Payment
from .transaction import LedgerTransaction
from .vendor import Vendor, VendorTransaction
