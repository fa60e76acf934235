from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..choices import EntityKind, InvoiceStatus
from ..managers import InvoiceQuerySet
from .customer import Customer
from .vendor import Vendor


class Invoice(models.Model):
    """
    Invoice billed to exactly one payer: a customer (receivable)
    or a vendor (payable). `status` is a cached projection of the
    payment history and is rewritten by the balance calculator.
    """

    # human-readable (e.g. "INV-2025-001"); payments point at it
    invoice_number = models.CharField(max_length=64, unique=True)
    invoice_date = models.DateField()
    due_date = models.DateField(null=True, blank=True)

    total_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    status = models.CharField(
        max_length=10,
        choices=InvoiceStatus.choices,
        default=InvoiceStatus.PENDING,
    )

    # customer XOR vendor (or neither, for an invoice not linked yet)
    customer = models.ForeignKey(
        Customer,
        null=True,
        blank=True,
        # prevent deleting a customer who has invoices
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    vendor = models.ForeignKey(
        Vendor,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    description = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = InvoiceQuerySet.as_manager()

    class Meta:
        ordering = ["invoice_date", "invoice_number"]
        indexes = [
            models.Index(fields=["customer", "status"]),
            models.Index(fields=["vendor", "status"]),
            models.Index(fields=["invoice_date"]),
        ]
        constraints = [
            # an invoice belongs to a single payer type
            models.CheckConstraint(
                condition=~(
                    models.Q(customer__isnull=False) &
                    models.Q(vendor__isnull=False)
                ),
                name="invoice_single_payer",
            ),
            models.CheckConstraint(
                condition=models.Q(total_amount__gte=0),
                name="invoice_total_non_negative",
            ),
        ]

    def __str__(self):
        return f"Inv {self.invoice_number}"

    @property
    def payer(self):
        """(EntityKind, id) of the payer, or None when unlinked."""
        if self.customer_id is not None:
            return EntityKind.CUSTOMER, self.customer_id
        if self.vendor_id is not None:
            return EntityKind.VENDOR, self.vendor_id
        return None

    def clean(self):
        if self.customer_id is not None and self.vendor_id is not None:
            raise ValidationError(
                "An invoice cannot belong to both a customer and a vendor."
            )
        if self.total_amount is not None and self.total_amount < 0:
            raise ValidationError("Invoice total must be >= 0")

    def save(self, *args, **kwargs):
        self.full_clean()  # will trigger clean()
        return super().save(*args, **kwargs)
