from django.db import models

from ..choices import AccountCategory


# ---------- Chart of Accounts ----------
class ChartOfAccount(models.Model):
    """
    Ledger account in the chart of accounts.
    Populated by an initializer (see `seed_chart_of_accounts`);
    the engine only reads it.
    """

    # Lets you sort/group accounts consistently in reports
    code = models.CharField(max_length=32, unique=True)
    # Human-readable name → "Cash", "Accounts Receivable"
    account_name = models.CharField(max_length=200)
    category = models.CharField(max_length=10, choices=AccountCategory.choices)
    # Free-form sub-type (e.g. "Current Asset")
    type = models.CharField(max_length=50, blank=True, default="")
    # "soft deactivate" accounts without deleting history
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["code"]
        indexes = [models.Index(fields=["category", "account_name"])]

    def __str__(self):
        return f"{self.code} – {self.account_name}"
