from decimal import Decimal
from unittest import mock

from django.db import connection
from django.test import override_settings

from ledger_core.choices import InvoiceStatus
from ledger_core.exceptions import (DuplicatePayment, InvalidAmount,
                                    InvalidPayer, MissingAccount, NotFound,
                                    UnlinkedInvoice)
from ledger_core.models import (CompanyTransaction, CustomerTransaction,
                                Invoice, JournalEntry, Payment)
from ledger_core.services import (book_invoice, get_company_account,
                                  process_payment)
from ledger_core.store.django_store import DjangoLedgerStore

from .base import LedgerTestCase, LedgerTransactionTestCase


class ProcessPaymentTests(LedgerTestCase):

    def test_overpayment_spills_onto_other_invoice(self):
        self.make_invoice("INV-100", "100.00", customer=self.customer)
        self.make_invoice("INV-40", "40.00", customer=self.customer)
        book_invoice("INV-100")
        book_invoice("INV-40")
        self.assertBalance(self.customer, "140.00")

        result = process_payment("INV-100", "150.00", "CUSTOMER_PAYMENT",
                                 reference="RCPT-1")

        self.assertEqual(result.amount_for_invoice, Decimal("100.00"))
        self.assertEqual(result.overpayment, Decimal("50.00"))
        self.assertEqual(result.invoice_summary.status, InvoiceStatus.PAID)
        self.assertEqual(
            [(a.invoice_number, a.amount_applied, a.new_status)
             for a in result.allocation.allocations],
            [("INV-40", Decimal("40.00"), InvoiceStatus.PAID)],
        )
        self.assertEqual(result.allocation.unallocated_remainder, Decimal("10.00"))
        self.assertEqual(Invoice.objects.get(invoice_number="INV-40").status,
                         InvoiceStatus.PAID)

        # one ledger row for the whole payment
        credits = CustomerTransaction.objects.filter(type="CREDIT")
        self.assertEqual(credits.count(), 1)
        self.assertEqual(credits.get().amount, Decimal("150.00"))
        self.assertIn("INV-40", credits.get().description)
        self.assertBalance(self.customer, "-10.00")

        company_row = CompanyTransaction.objects.get()
        self.assertEqual(company_row.type, "CREDIT")
        self.assertEqual(get_company_account().current_balance, Decimal("150.00"))

        # primary row for the full amount plus one allocation row
        primary = Payment.objects.get(reference="RCPT-1")
        self.assertEqual(primary.amount, Decimal("150.00"))
        self.assertEqual(primary.invoice_id, "INV-100")
        self.assertEqual(Payment.objects.filter(reference="RCPT-1-ALLOC").count(), 1)

        entry = JournalEntry.objects.get(reference="RCPT-1")
        self.assertEqual(entry.total_debit, Decimal("150.00"))
        self.assertEqual(entry.total_credit, Decimal("150.00"))

    def test_vendor_payment_flows(self):
        self.make_invoice("BILL-1", "80.00", vendor=self.vendor)
        book_invoice("BILL-1")

        result = process_payment("BILL-1", "80.00", "VENDOR_PAYMENT", method="BANK")

        self.assertEqual(result.invoice_summary.status, InvoiceStatus.PAID)
        self.assertIsNone(result.allocation)
        self.assertBalance(self.vendor, "0.00")
        self.assertEqual(get_company_account().current_balance, Decimal("-80.00"))

        payment = result.payment
        self.assertEqual(payment.transaction_type, "EXPENSE")
        self.assertEqual(payment.mode, "BANK")
        self.assertEqual(payment.to_vendor_id, self.vendor.pk)

        entry = JournalEntry.objects.get(reference=payment.reference)
        debit = entry.lines.get(debit_amount__gt=0)
        credit = entry.lines.get(credit_amount__gt=0)
        self.assertEqual(debit.account.account_name, "Accounts Payable")
        self.assertEqual(credit.account.account_name, "Cash")

    def test_sequential_payments_never_exceed_invoice(self):
        self.make_invoice("INV-1", "100.00", customer=self.customer)

        first = process_payment("INV-1", "60", "CUSTOMER_PAYMENT")
        second = process_payment("INV-1", "60", "CUSTOMER_PAYMENT")

        self.assertEqual(first.remaining_before, Decimal("100.00"))
        self.assertEqual(second.remaining_before, Decimal("40.00"))
        self.assertEqual(first.amount_for_invoice + second.amount_for_invoice,
                         Decimal("100.00"))
        self.assertEqual(second.allocation.allocations, [])
        self.assertEqual(Invoice.objects.get(invoice_number="INV-1").status,
                         InvoiceStatus.PAID)

    def test_generated_references_are_unique(self):
        self.make_invoice("INV-1", "100.00", customer=self.customer)
        first = process_payment("INV-1", "10", "CUSTOMER_PAYMENT")
        second = process_payment("INV-1", "10", "CUSTOMER_PAYMENT")
        self.assertEqual(first.payment.reference, "INV-1-P1")
        self.assertEqual(second.payment.reference, "INV-1-P2")

    def test_duplicate_reference_is_rejected(self):
        self.make_invoice("INV-1", "100.00", customer=self.customer)
        process_payment("INV-1", "10", "CUSTOMER_PAYMENT", reference="R-1")
        with self.assertRaises(DuplicatePayment):
            process_payment("INV-1", "10", "CUSTOMER_PAYMENT", reference="R-1")
        self.assertEqual(Payment.objects.count(), 1)
        self.assertBalance(self.customer, "-10.00")

    def test_overdue_invoice_becomes_paid(self):
        self.make_invoice("INV-1", "50.00", customer=self.customer,
                          status=InvoiceStatus.OVERDUE)
        partial = process_payment("INV-1", "20", "CUSTOMER_PAYMENT")
        self.assertEqual(partial.invoice_summary.status, InvoiceStatus.OVERDUE)
        paid = process_payment("INV-1", "30", "CUSTOMER_PAYMENT")
        self.assertEqual(paid.invoice_summary.status, InvoiceStatus.PAID)


class ProcessPaymentErrorTests(LedgerTestCase):

    def test_unknown_invoice(self):
        with self.assertRaises(NotFound):
            process_payment("NOPE", "10", "CUSTOMER_PAYMENT")

    def test_customer_payment_on_vendor_invoice(self):
        self.make_invoice("BILL-1", "10.00", vendor=self.vendor)
        with self.assertRaises(UnlinkedInvoice):
            process_payment("BILL-1", "10", "CUSTOMER_PAYMENT")

    def test_unknown_payment_type(self):
        self.make_invoice("INV-1", "10.00", customer=self.customer)
        with self.assertRaises(InvalidPayer):
            process_payment("INV-1", "10", "GIFT_CARD")

    def test_bad_amount(self):
        self.make_invoice("INV-1", "10.00", customer=self.customer)
        with self.assertRaises(InvalidAmount):
            process_payment("INV-1", "-1", "CUSTOMER_PAYMENT")

    def test_amount_beyond_column_precision(self):
        self.make_invoice("INV-1", "10.00", customer=self.customer)
        for huge in ("1e30", "10000000000000000"):
            with self.subTest(amount=huge):
                with self.assertRaises(InvalidAmount):
                    process_payment("INV-1", huge, "CUSTOMER_PAYMENT")
        self.assertFalse(Payment.objects.exists())

    def test_failure_rolls_everything_back(self):
        self.make_invoice("INV-1", "100.00", customer=self.customer)
        self.make_invoice("INV-2", "40.00", customer=self.customer)

        with mock.patch("ledger_core.services.payment.post_entry",
                        side_effect=RuntimeError("journal down")):
            with self.assertRaises(RuntimeError):
                process_payment("INV-1", "150", "CUSTOMER_PAYMENT")

        self.assertFalse(Payment.objects.exists())
        self.assertFalse(CustomerTransaction.objects.exists())
        self.assertFalse(CompanyTransaction.objects.exists())
        self.assertBalance(self.customer, "0.00")
        self.assertEqual(Invoice.objects.get(invoice_number="INV-2").status,
                         InvoiceStatus.PENDING)


class ChartOfAccountsGapTests(LedgerTestCase):
    seed_chart = False

    def test_missing_accounts_skip_the_journal_only(self):
        self.make_invoice("INV-1", "10.00", customer=self.customer)
        with self.assertLogs("ledger_core.services.journal", level="WARNING"):
            result = process_payment("INV-1", "10", "CUSTOMER_PAYMENT")
        self.assertEqual(result.invoice_summary.status, InvoiceStatus.PAID)
        self.assertBalance(self.customer, "-10.00")
        self.assertFalse(JournalEntry.objects.exists())

    @override_settings(LEDGER_STRICT_CHART=True)
    def test_strict_chart_refuses_to_process(self):
        self.make_invoice("INV-1", "10.00", customer=self.customer)
        with self.assertRaises(MissingAccount) as ctx:
            process_payment("INV-1", "10", "CUSTOMER_PAYMENT")
        self.assertIn("Cash", [m.value for m in ctx.exception.missing])
        self.assertFalse(Payment.objects.exists())


class CommittedPaymentTests(LedgerTransactionTestCase):

    def test_row_locked_payments_never_exceed_invoice(self):
        self.make_invoice("INV-1", "100.00", customer=self.customer)
        store = DjangoLedgerStore()

        with mock.patch.object(store, "get_invoice", wraps=store.get_invoice) as spy:
            first = process_payment("INV-1", "60", "CUSTOMER_PAYMENT", store=store)
            self.assertFalse(connection.in_atomic_block)
            second = process_payment("INV-1", "60", "CUSTOMER_PAYMENT", store=store)
        spy.assert_any_call("INV-1", lock=True)

        self.assertEqual(first.remaining_before, Decimal("100.00"))
        self.assertEqual(second.remaining_before, Decimal("40.00"))
        self.assertEqual(first.amount_for_invoice + second.amount_for_invoice,
                         Decimal("100.00"))
        self.assertEqual(second.overpayment, Decimal("20.00"))
        self.assertEqual(Invoice.objects.get(invoice_number="INV-1").status,
                         InvoiceStatus.PAID)
        self.assertBalance(self.customer, "-120.00")
        self.assertEqual(get_company_account().current_balance, Decimal("120.00"))

    def test_failed_payment_commits_nothing(self):
        self.make_invoice("INV-1", "100.00", customer=self.customer)
        with mock.patch("ledger_core.services.payment.post_entry",
                        side_effect=RuntimeError("journal down")):
            with self.assertRaises(RuntimeError):
                process_payment("INV-1", "60", "CUSTOMER_PAYMENT")
        self.assertFalse(Payment.objects.exists())
        self.assertFalse(CustomerTransaction.objects.exists())
        self.assertBalance(self.customer, "0.00")
