from decimal import Decimal

from django.db import models

from .transaction import LedgerTransaction


# ---------- Customer ----------
# Party that receives our invoices (receivable side)
class Customer(models.Model):
    name = models.CharField(max_length=200)
    contact_email = models.EmailField(null=True, blank=True)

    # Positive balance = amount the customer owes us
    current_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    credit_limit = models.DecimalField(
        max_digits=18, decimal_places=2, null=True, blank=True
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=["name"])]

    def __str__(self):
        return self.name


class CustomerTransaction(LedgerTransaction):
    customer = models.ForeignKey(
        Customer,
        # a customer with ledger history cannot be deleted
        on_delete=models.PROTECT,
        related_name="transactions",
    )

    class Meta(LedgerTransaction.Meta):
        pass
