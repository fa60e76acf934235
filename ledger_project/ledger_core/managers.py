from decimal import Decimal

from django.db import models
from django.db.models import Sum
from django.db.models.functions import Coalesce


# -----------------------------------------
# Invoice lookups shared by the allocator
# -----------------------------------------
class InvoiceQuerySet(models.QuerySet):
    def for_payer(self, kind, payer_id):
        # kind is "customer" or "vendor" → filter on customer_id / vendor_id
        return self.filter(**{f"{kind}_id": payer_id})

    def with_status(self, statuses):
        return self.filter(status__in=list(statuses))

    def oldest_first(self):
        # Pay down the oldest debt first; invoice number breaks date ties
        return self.order_by("invoice_date", "invoice_number")


# -----------------------------------------
# Payment aggregates
# -----------------------------------------
class PaymentQuerySet(models.QuerySet):
    def for_invoice(self, invoice_number):
        # Payment.invoice points at Invoice.invoice_number (to_field),
        # so invoice_id holds the number itself
        return self.filter(invoice_id=invoice_number)

    def primary(self):
        # Rows created for the invoice a payment named, not allocation rows
        return self.filter(is_allocation=False)

    def total_amount(self):
        return self.aggregate(
            total=Coalesce(Sum("amount"), Decimal("0.00"))
        )["total"]
