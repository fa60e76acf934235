from decimal import Decimal

from ledger_core.choices import InvoiceStatus, PaymentCategory
from ledger_core.exceptions import InvalidAmount, InvalidPayer, NotFound
from ledger_core.models import (CustomerTransaction, Invoice, JournalEntry,
                                Payment, VendorTransaction)
from ledger_core.services import (book_invoice, find_balance_mismatches,
                                  issue_credit_note, issue_debit_note,
                                  post_entry, update_invoice)

from .base import LedgerTestCase, lines_by_account


class CreditNoteTests(LedgerTestCase):

    def test_credit_note_lowers_customer_balance(self):
        self.make_invoice("INV-1", "200.00", customer=self.customer)
        book_invoice("INV-1")

        note = issue_credit_note(self.customer.pk, "50", description="Damaged pallet")

        self.assertEqual(note.number, "#CREDIT00001")
        self.assertBalance(self.customer, "150.00")
        row = CustomerTransaction.objects.get(type="CREDIT")
        self.assertEqual((row.amount, row.reference), (Decimal("50.00"), note.number))
        self.assertEqual(row.description, "Credit Note: Damaged pallet")

        self.assertEqual(note.journal_entry.reference, note.number)
        self.assertEqual(lines_by_account(note.journal_entry), {
            "Cash": (Decimal("50.00"), Decimal("0.00")),
            "Revenue": (Decimal("0.00"), Decimal("50.00")),
        })
        self.assertIsNone(note.payment)
        self.assertFalse(Payment.objects.exists())

    def test_credit_note_on_invoice_counts_as_paid(self):
        self.make_invoice("INV-1", "100.00", customer=self.customer)
        book_invoice("INV-1")

        note = issue_credit_note(self.customer.pk, "100", invoice_number="INV-1")

        payment = Payment.objects.get()
        self.assertEqual(payment.category, PaymentCategory.CUSTOMER_CREDIT)
        self.assertEqual(payment.reference, note.number)
        self.assertEqual(payment.invoice_id, "INV-1")
        self.assertEqual(payment.from_customer_id, self.customer.pk)
        self.assertEqual(Invoice.objects.get(invoice_number="INV-1").status,
                         InvoiceStatus.PAID)
        self.assertEqual(
            CustomerTransaction.objects.get(type="CREDIT").invoice, "INV-1"
        )
        self.assertBalance(self.customer, "0.00")

    def test_note_numbers_have_their_own_sequences(self):
        first = issue_credit_note(self.customer.pk, "1")
        second = issue_credit_note(self.other_customer.pk, "1")
        debit = issue_debit_note(self.vendor.pk, "1")

        self.assertEqual([first.number, second.number, debit.number],
                         ["#CREDIT00001", "#CREDIT00002", "#DEBIT00001"])
        self.assertEqual(post_entry("COMPANY_DEBIT", "1", "n").entry_number, "JE-0004")

    def test_invoice_of_another_customer_is_rejected(self):
        self.make_invoice("INV-1", "100.00", customer=self.other_customer)
        with self.assertRaises(InvalidPayer):
            issue_credit_note(self.customer.pk, "10", invoice_number="INV-1")
        self.assertFalse(CustomerTransaction.objects.exists())
        self.assertFalse(JournalEntry.objects.exists())
        self.assertFalse(Payment.objects.exists())

    def test_bad_input(self):
        with self.assertRaises(InvalidAmount):
            issue_credit_note(self.customer.pk, "0")
        with self.assertRaises(NotFound):
            issue_credit_note(99999, "10")
        with self.assertRaises(NotFound):
            issue_credit_note(self.customer.pk, "10", invoice_number="NOPE")
        self.assertFalse(JournalEntry.objects.exists())


class DebitNoteTests(LedgerTestCase):

    def setUp(self):
        super().setUp()
        self.bill = self.make_invoice("BILL-1", "75.00", vendor=self.vendor)
        book_invoice("BILL-1")

    def test_debit_note_raises_vendor_balance(self):
        note = issue_debit_note(self.vendor.pk, "30", bill_number="BILL-1")

        self.assertEqual(note.number, "#DEBIT00001")
        self.assertBalance(self.vendor, "105.00")
        row = VendorTransaction.objects.get(reference=note.number)
        self.assertEqual((row.type, row.amount), ("DEBIT", Decimal("30.00")))
        self.assertIsNone(row.invoice)
        self.assertIn("BILL-1", row.description)
        self.assertEqual(lines_by_account(note.journal_entry), {
            "Expense": (Decimal("30.00"), Decimal("0.00")),
            "Cash": (Decimal("0.00"), Decimal("30.00")),
        })

    def test_bill_edit_still_corrects_its_own_booking(self):
        note = issue_debit_note(self.vendor.pk, "30", bill_number="BILL-1")
        update_invoice(self.bill.pk, total_amount="80.00")

        self.assertBalance(self.vendor, "110.00")
        self.assertEqual(
            VendorTransaction.objects.get(reference=note.number).amount,
            Decimal("30.00"),
        )
        self.assertEqual(
            VendorTransaction.objects.get(invoice="BILL-1").amount, Decimal("80.00")
        )
        self.assertEqual(find_balance_mismatches(), [])

    def test_bill_of_a_customer_is_rejected(self):
        self.make_invoice("INV-1", "10.00", customer=self.customer)
        with self.assertRaises(InvalidPayer):
            issue_debit_note(self.vendor.pk, "10", bill_number="INV-1")
        self.assertBalance(self.vendor, "75.00")
