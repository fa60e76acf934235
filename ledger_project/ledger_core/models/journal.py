from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone

from ..exceptions import JournalAlreadyPosted, UnbalancedJournalError
from .account import ChartOfAccount

ENTRY_NUMBER_PREFIX = "JE-"


def format_entry_number(value):
    # JE-0001, JE-0002, ... (widens past 9999)
    return f"{ENTRY_NUMBER_PREFIX}{value:04d}"


def parse_entry_number(entry_number):
    """Numeric part of a `JE-NNNN` number, or 0 when it does not parse."""
    prefix, _, digits = (entry_number or "").partition("-")
    if f"{prefix}-" != ENTRY_NUMBER_PREFIX or not digits.isdigit():
        return 0
    return int(digits)


# ---------- Journal (Header) & JournalEntryLine ----------
class JournalEntry(models.Model):  # Represents one accounting transaction
    # Sequential, never reused (see JournalSequence)
    entry_number = models.CharField(max_length=20, unique=True)
    date = models.DateField()
    description = models.TextField(blank=True, default="")
    reference = models.CharField(max_length=100, null=True, blank=True)

    # Cached totals; always equal for a stored entry
    total_debit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    total_credit = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    is_posted = models.BooleanField(default=False)
    posted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["date"]),
            models.Index(fields=["reference"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_debit=models.F("total_credit")),
                name="je_totals_balanced",
            ),
        ]

    def __str__(self):
        state = "posted" if self.is_posted else "draft"
        return f"{self.entry_number} {self.date} [{state}]"

    # Aggregate all debit and credit amounts across entry's lines
    def compute_totals(self):
        """Return debits, credits sums for lines"""
        aggs = self.lines.aggregate(
            total_debit=models.Sum("debit_amount"),
            total_credit=models.Sum("credit_amount"),
        )
        return (
            aggs["total_debit"] or Decimal("0.00"),
            aggs["total_credit"] or Decimal("0.00"),
        )

    # True if double-entry rule holds: total debits = total credits
    def is_balanced(self):
        debit, credit = self.compute_totals()
        return debit == credit

    # Post the entry safely inside a database transaction
    @transaction.atomic
    def post(self):
        """
        Mark the entry posted after re-checking it against its lines.
        """
        # Lock row + lines to prevent concurrent modifications
        je = JournalEntry.objects.select_for_update().get(pk=self.pk)
        lines = je.lines.select_for_update().all()

        if je.is_posted:
            raise JournalAlreadyPosted(f"{je.entry_number} is already posted")

        """ Business validations """
        if lines.count() < 2:  # one line per side at minimum
            raise ValidationError(
                "JournalEntry must have at least two JournalEntryLines.")

        # Recompute totals fresh from DB & ignore any stale cached values
        total_debit, total_credit = je.compute_totals()

        # Enforce double-entry rule: debits = credits
        if total_debit != total_credit:
            raise UnbalancedJournalError(
                f"Journal not balanced: debits={total_debit}, credits={total_credit}"
            )
        if total_debit != je.total_debit or total_credit != je.total_credit:
            raise UnbalancedJournalError(
                f"Journal totals out of sync with lines on {je.entry_number}"
            )

        """ Update state """
        je.is_posted = True
        je.posted_at = timezone.now()
        je.save(update_fields=["is_posted", "posted_at"])

        # mirror the new state on the caller's instance
        self.is_posted = je.is_posted
        self.posted_at = je.posted_at
        return je

    def save(self, *args, **kwargs):
        if self.pk:  # Does this row already exist in DB?
            orig = JournalEntry.objects.get(pk=self.pk)
            # Check if journal was already posted
            if orig.is_posted and not self.is_posted:
                # disallow toggling posted flag
                raise ValidationError("Cannot unpost a posted journal")
        super().save(*args, **kwargs)


class JournalEntryLine(models.Model):  # Stores Lines ( credits / debits )
    journal_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )

    # Must point to one Account (can't delete account if lines exist → PROTECT)
    account = models.ForeignKey(ChartOfAccount, on_delete=models.PROTECT)

    debit_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    credit_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00"))
    description = models.CharField(max_length=400, blank=True, default="")
    reference = models.CharField(max_length=100, null=True, blank=True)

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["account"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(debit_amount__gte=0) &
                    models.Q(credit_amount__gte=0)
                ),
                name="jel_non_negative_amounts",
            ),
            models.CheckConstraint(
                condition=~(models.Q(debit_amount=0) &
                            models.Q(credit_amount=0)),
                name="jel_debit_or_credit_nonzero",
            ),
            models.CheckConstraint(
                condition=models.Q(debit_amount=0) |
                models.Q(credit_amount=0),
                name="jel_not_both_sides",
            ),
        ]

    # Show journal, account, and amounts in debug logs
    def __str__(self):
        return (
            f"{self.journal_entry_id} | {self.account} | "
            f"D:{self.debit_amount} C:{self.credit_amount}"
        )

    def clean(self):
        # Ensure no negative values sneak in
        # (redundant with CheckConstraint but useful at app-level)
        if self.debit_amount < 0 or self.credit_amount < 0:
            raise ValidationError("Debit and credit must be >= 0")
        if (self.debit_amount > 0) and (self.credit_amount > 0):
            raise ValidationError(
                "JournalEntryLine should not have both debit and credit > 0"
            )
        if (self.debit_amount == 0) and (self.credit_amount == 0):
            raise ValidationError(
                "JournalEntryLine requires a non-0 amount on either debit or credit"
            )

        # No new or edited lines once the parent is posted
        if self.journal_entry_id and JournalEntry.objects.filter(
            pk=self.journal_entry_id, is_posted=True
        ).exists():
            raise ValidationError(
                "Cannot modify JournalEntryLine: parent JournalEntry is posted."
            )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        # Prevent deletion if parent journal is posted
        if JournalEntry.objects.filter(
            pk=self.journal_entry_id, is_posted=True
        ).exists():
            raise ValidationError(
                "Cannot delete JournalEntryLine: parent JournalEntry is posted."
            )
        return super().delete(*args, **kwargs)


class JournalSequence(models.Model):
    """
    Gapless counter behind JournalEntry.entry_number.
    Locked with select_for_update while a number is handed out.
    """

    name = models.CharField(max_length=50, unique=True)
    last_value = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.name}: {self.last_value}"
