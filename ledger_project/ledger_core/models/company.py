from decimal import Decimal

from django.db import models

from .transaction import LedgerTransaction


# ---------- Company cash ledger ----------
class CompanyAccount(models.Model):
    """
    Running balance of the company itself.
    Opposite sign convention to customers/vendors:
    CREDIT = money received, DEBIT = money paid out.
    """

    name = models.CharField(max_length=200, unique=True)
    current_balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


class CompanyTransaction(LedgerTransaction):
    company_account = models.ForeignKey(
        CompanyAccount, on_delete=models.PROTECT, related_name="transactions"
    )

    class Meta(LedgerTransaction.Meta):
        pass
