from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..choices import Direction


# ---------- Append-only ledger audit row ----------
class LedgerTransaction(models.Model):
    """
    One balance movement on a ledger entity (customer, vendor, company).
    Rows are appended by the ledger service together with the balance update;
    only the invoice-amount correction path rewrites an existing row.
    """

    type = models.CharField(max_length=6, choices=Direction.choices)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    description = models.TextField(blank=True, default="")
    # Payment / invoice reference the movement came from
    reference = models.CharField(max_length=100, null=True, blank=True)
    # Invoice number the movement belongs to (if any)
    invoice = models.CharField(max_length=64, null=True, blank=True)

    # Entity balance around this movement
    previous_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    new_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["reference"], name="%(class)s_ref_idx"),
            models.Index(fields=["invoice"], name="%(class)s_inv_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="%(class)s_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.type} {self.amount} ({self.previous_balance} → {self.new_balance})"

    def clean(self):
        if self.amount is None or self.amount <= 0:
            raise ValidationError("Transaction amount must be > 0")
        # The sign depends on the entity kind; the magnitude never does
        moved = abs((self.new_balance or 0) - (self.previous_balance or 0))
        if moved != self.amount:
            raise ValidationError(
                "new_balance must differ from previous_balance by amount"
            )

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Ledger transactions are append-only.")
