from django.core.exceptions import ValidationError
from django.db import models

from ..choices import PartyType, PaymentCategory, TransactionType
from ..managers import PaymentQuerySet
from .customer import Customer
from .invoice import Invoice
from .vendor import Vendor


class Payment(models.Model):
    """
    Money received from a customer (INCOME) or paid to a vendor (EXPENSE)
    against one invoice. Immutable once recorded: a single logical payment
    that spills over onto other invoices is stored as its primary row plus
    one `{reference}-ALLOC` row per invoice it reached.
    """

    transaction_type = models.CharField(
        max_length=7, choices=TransactionType.choices
    )
    category = models.CharField(
        max_length=30, choices=PaymentCategory.choices
    )
    date = models.DateField()
    currency = models.CharField(max_length=10, default="USD")
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    # cash / bank / cheque ... opaque to the engine
    mode = models.CharField(max_length=30, default="CASH")
    reference = models.CharField(max_length=100)

    invoice = models.ForeignKey(
        Invoice,
        to_field="invoice_number",
        db_column="invoice_number",
        # an invoice with payments cannot be deleted
        on_delete=models.PROTECT,
        related_name="payments",
    )

    from_party_type = models.CharField(max_length=10, choices=PartyType.choices)
    from_customer = models.ForeignKey(
        Customer,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="payments_made",
    )
    to_party_type = models.CharField(max_length=10, choices=PartyType.choices)
    to_vendor = models.ForeignKey(
        Vendor,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="payments_received",
    )
    description = models.TextField(blank=True, default="")
    # True for rows created by the overpayment allocator
    is_allocation = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = PaymentQuerySet.as_manager()

    class Meta:
        ordering = ["date", "id"]
        indexes = [
            models.Index(fields=["invoice", "reference"]),
            models.Index(fields=["reference"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.transaction_type} {self.amount} → {self.invoice_id} ({self.reference})"

    def clean(self):
        if self.amount is None or self.amount <= 0:
            raise ValidationError("Payment amount must be > 0")

    def save(self, *args, **kwargs):
        # Payments are facts: once written they are never edited
        if self.pk:
            raise ValidationError("Payments are immutable once recorded.")
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Payments are immutable once recorded.")
