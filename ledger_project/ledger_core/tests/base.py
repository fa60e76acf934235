import datetime
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase, TransactionTestCase

from ledger_core.models import Customer, Invoice, Vendor


def lines_by_account(entry):
    return {
        line.account.account_name: (line.debit_amount, line.credit_amount)
        for line in entry.lines.select_related("account")
    }


class LedgerFixturesMixin:
    """Two customers, one vendor and a seeded chart of accounts."""

    seed_chart = True

    def setUp(self):
        self.customer = Customer.objects.create(name="Acme Freight")
        self.other_customer = Customer.objects.create(name="Blue Harbor")
        self.vendor = Vendor.objects.create(name="Trucking Co")
        if self.seed_chart:
            call_command("seed_chart_of_accounts", stdout=StringIO())

    def make_invoice(self, number, total, date=None, customer=None,
                     vendor=None, status="Pending"):
        """
        Helper to create an invoice billed to `customer` or `vendor`.
        """
        return Invoice.objects.create(
            invoice_number=number,
            invoice_date=date or datetime.date(2024, 1, 1),
            total_amount=Decimal(total),
            customer=customer,
            vendor=vendor,
            status=status,
        )

    def assertBalance(self, entity, expected):
        entity.refresh_from_db()
        self.assertEqual(entity.current_balance, Decimal(expected))


class LedgerTestCase(LedgerFixturesMixin, TestCase):
    pass


class LedgerTransactionTestCase(LedgerFixturesMixin, TransactionTestCase):
    """Service calls commit for real instead of nesting in a test transaction."""

