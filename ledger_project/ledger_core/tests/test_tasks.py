from decimal import Decimal

import pytest

from ledger_core.models import Customer, Vendor
from ledger_core.services import append_transaction
from ledger_core.tasks import verify_ledger_balances


@pytest.mark.django_db
def test_verify_ledger_balances_reports_nothing_when_consistent():
    customer = Customer.objects.create(name="Acme Freight")
    append_transaction("customer", customer.pk, "DEBIT", "25", "booked")
    append_transaction("company", None, "CREDIT", "25", "received")

    assert verify_ledger_balances.apply().get() == []


@pytest.mark.django_db
def test_verify_ledger_balances_flags_drift():
    vendor = Vendor.objects.create(name="Trucking Co")
    append_transaction("vendor", vendor.pk, "DEBIT", "10", "bill")
    # bypass the ledger service on purpose
    Vendor.objects.filter(pk=vendor.pk).update(current_balance=Decimal("12.00"))

    mismatches = verify_ledger_balances()

    assert mismatches == [{
        "kind": "vendor",
        "entity_id": vendor.pk,
        "current_balance": "12.00",
        "replayed_balance": "10.00",
    }]
