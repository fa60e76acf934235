import datetime
from decimal import Decimal

from django.test import SimpleTestCase, override_settings

from ledger_core.choices import InvoiceStatus
from ledger_core.models import Payment
from ledger_core.services import calculate_status, process_payment
from ledger_core.services.balance import derive_status

from .base import LedgerTestCase


def record_payment(invoice, amount, reference, is_allocation=False):
    return Payment.objects.create(
        transaction_type="INCOME",
        category="Payment Allocation" if is_allocation else "Customer Payment",
        date=datetime.date(2024, 3, 1),
        amount=Decimal(amount),
        reference=reference,
        invoice=invoice,
        from_party_type="CUSTOMER",
        from_customer=invoice.customer,
        to_party_type="US",
        is_allocation=is_allocation,
    )


class CalculateStatusTests(LedgerTestCase):

    def test_unpaid_invoice_is_pending(self):
        invoice = self.make_invoice("INV-1", "100.00", customer=self.customer)
        summary = calculate_status("INV-1", invoice.total_amount)
        self.assertEqual(summary.status, InvoiceStatus.PENDING)
        self.assertEqual(summary.total_paid, Decimal("0.00"))
        self.assertEqual(summary.remaining_amount, Decimal("100.00"))

    def test_allocation_rows_count_towards_total_paid(self):
        invoice = self.make_invoice("INV-1", "100.00", customer=self.customer)
        record_payment(invoice, "30.00", "P-1")
        record_payment(invoice, "45.50", "P-0-ALLOC", is_allocation=True)

        summary = calculate_status("INV-1", "100")
        self.assertEqual(summary.status, InvoiceStatus.PARTIAL)
        self.assertEqual(summary.total_paid, Decimal("75.50"))
        self.assertEqual(summary.remaining_amount, Decimal("24.50"))

    def test_cents_add_up_without_drift(self):
        invoice = self.make_invoice("INV-1", "0.30", customer=self.customer)
        record_payment(invoice, "0.10", "P-1")
        record_payment(invoice, "0.20", "P-2")
        summary = calculate_status("INV-1", "0.30")
        self.assertEqual(summary.status, InvoiceStatus.PAID)
        self.assertEqual(summary.remaining_amount, Decimal("0.00"))

    def test_remaining_never_goes_negative(self):
        invoice = self.make_invoice("INV-1", "50.00", customer=self.customer)
        record_payment(invoice, "80.00", "P-1")
        summary = calculate_status("INV-1", "50.00")
        self.assertEqual(summary.status, InvoiceStatus.PAID)
        self.assertEqual(summary.remaining_amount, Decimal("0.00"))
        self.assertEqual(summary.total_paid, Decimal("80.00"))

    def test_repeated_calls_are_identical(self):
        invoice = self.make_invoice("INV-1", "100.00", customer=self.customer)
        record_payment(invoice, "10.00", "P-1")
        first = calculate_status("INV-1", "100.00", invoice.status)
        second = calculate_status("INV-1", "100.00", invoice.status)
        self.assertEqual(first, second)
        # read-only: stored status untouched
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, InvoiceStatus.PENDING)

    def test_round_trip_partial_then_paid(self):
        self.make_invoice("INV-500", "500.00", customer=self.customer)

        result = process_payment("INV-500", "200.00", "CUSTOMER_PAYMENT")
        self.assertEqual(result.invoice_summary.status, InvoiceStatus.PARTIAL)
        self.assertEqual(result.invoice_summary.remaining_amount, Decimal("300.00"))

        result = process_payment("INV-500", "300.00", "CUSTOMER_PAYMENT")
        self.assertEqual(result.invoice_summary.status, InvoiceStatus.PAID)
        self.assertEqual(result.invoice_summary.remaining_amount, Decimal("0.00"))
        self.assertEqual(result.invoice_summary.total_paid, Decimal("500.00"))


class StickyStatusTests(SimpleTestCase):

    def test_overdue_unpaid_stays_overdue(self):
        self.assertEqual(
            derive_status(Decimal("100"), Decimal("0"), InvoiceStatus.OVERDUE),
            InvoiceStatus.OVERDUE,
        )
        self.assertEqual(
            derive_status(Decimal("100"), Decimal("40"), InvoiceStatus.OVERDUE),
            InvoiceStatus.OVERDUE,
        )

    def test_overdue_becomes_paid_once_covered(self):
        self.assertEqual(
            derive_status(Decimal("100"), Decimal("100"), InvoiceStatus.OVERDUE),
            InvoiceStatus.PAID,
        )

    def test_cancelled_never_changes(self):
        self.assertEqual(
            derive_status(Decimal("100"), Decimal("100"), InvoiceStatus.CANCELLED),
            InvoiceStatus.CANCELLED,
        )

    def test_non_sticky_statuses_are_recomputed(self):
        self.assertEqual(
            derive_status(Decimal("100"), Decimal("0"), InvoiceStatus.PAID),
            InvoiceStatus.PENDING,
        )

    @override_settings(LEDGER_STICKY_STATUSES=[])
    def test_sticky_statuses_are_configurable(self):
        self.assertEqual(
            derive_status(Decimal("100"), Decimal("0"), InvoiceStatus.OVERDUE),
            InvoiceStatus.PENDING,
        )
