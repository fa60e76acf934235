from decimal import Decimal

from django.db import models

from .transaction import LedgerTransaction


class Vendor(models.Model):  # Mirrors Customer but for the payable side

    name = models.CharField(max_length=200)
    contact_email = models.EmailField(null=True, blank=True)

    # Positive balance = amount we owe the vendor
    current_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=["name"])]

    def __str__(self):
        return self.name


class VendorTransaction(LedgerTransaction):
    vendor = models.ForeignKey(
        Vendor, on_delete=models.PROTECT, related_name="transactions"
    )

    class Meta(LedgerTransaction.Meta):
        pass
