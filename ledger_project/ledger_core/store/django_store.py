import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Sum

from ..choices import Direction, EntityKind
from ..exceptions import NotFound
from ..models import (ChartOfAccount, CompanyAccount, CompanyTransaction,
                      Customer, CustomerTransaction, Invoice, JournalEntry,
                      JournalEntryLine, JournalSequence, Payment, Vendor,
                      VendorTransaction, format_entry_number,
                      parse_entry_number)
from .base import LedgerStore

logger = logging.getLogger(__name__)

JOURNAL_SEQUENCE_NAME = "journal_entry"
ZERO = Decimal("0.00")

# kind → (entity model, audit model, FK field on the audit model)
ENTITY_MODELS = {
    EntityKind.CUSTOMER: (Customer, CustomerTransaction, "customer"),
    EntityKind.VENDOR: (Vendor, VendorTransaction, "vendor"),
    EntityKind.COMPANY: (CompanyAccount, CompanyTransaction, "company_account"),
}


class DjangoLedgerStore(LedgerStore):
    """LedgerStore over the ORM; row locks via select_for_update."""

    def atomic(self):
        # nested calls become savepoints
        return transaction.atomic()

    # ----------------------------
    # Invoices
    # ----------------------------
    def _invoice_qs(self, lock):
        qs = Invoice.objects.all()
        return qs.select_for_update() if lock else qs

    def get_invoice(self, invoice_number, lock=False):
        try:
            return self._invoice_qs(lock).get(invoice_number=invoice_number)
        except Invoice.DoesNotExist:
            raise NotFound(f"Invoice {invoice_number} not found")

    def get_invoice_by_id(self, invoice_id, lock=False):
        try:
            return self._invoice_qs(lock).get(pk=invoice_id)
        except Invoice.DoesNotExist:
            raise NotFound(f"Invoice id={invoice_id} not found")

    def outstanding_invoices(self, kind, payer_id, statuses,
                             exclude_invoice_number=None, lock=False):
        qs = Invoice.objects.for_payer(kind, payer_id).with_status(statuses)
        if exclude_invoice_number is not None:
            qs = qs.exclude(invoice_number=exclude_invoice_number)
        qs = qs.oldest_first()
        if lock:
            qs = qs.select_for_update()
        return list(qs)

    def set_invoice_status(self, invoice, status):
        invoice.status = status
        invoice.save(update_fields=["status", "updated_at"])

    def update_invoice_fields(self, invoice, **fields):
        for name, value in fields.items():
            setattr(invoice, name, value)
        # customer_id → customer for update_fields
        names = [name.removesuffix("_id") for name in fields]
        invoice.save(update_fields=[*names, "updated_at"])

    def delete_invoice(self, invoice):
        invoice.delete()

    # ----------------------------
    # Payments
    # ----------------------------
    def sum_payments(self, invoice_number):
        return Payment.objects.for_invoice(invoice_number).total_amount()

    def count_payments(self, invoice_number, include_allocations=False):
        qs = Payment.objects.for_invoice(invoice_number)
        if not include_allocations:
            qs = qs.primary()
        return qs.count()

    def has_payment(self, invoice_number, reference):
        return (
            Payment.objects.for_invoice(invoice_number)
            .primary()
            .filter(reference=reference)
            .exists()
        )

    def create_payment(self, **fields):
        # Payment.invoice targets Invoice.invoice_number
        fields["invoice_id"] = fields.pop("invoice_number")
        return Payment.objects.create(**fields)

    # ----------------------------
    # Ledger entities
    # ----------------------------
    def get_entity(self, kind, entity_id, lock=False):
        kind = EntityKind(kind)
        if kind == EntityKind.COMPANY and entity_id is None:
            return self.get_company_account(lock=lock)

        model = ENTITY_MODELS[kind][0]
        qs = model.objects.select_for_update() if lock else model.objects.all()
        try:
            return qs.get(pk=entity_id)
        except model.DoesNotExist:
            raise NotFound(f"{kind.label} id={entity_id} not found")

    def get_company_account(self, lock=False):
        account, created = CompanyAccount.objects.get_or_create(
            name=settings.LEDGER_COMPANY_ACCOUNT_NAME
        )
        if created:
            logger.info("Created company ledger account",
                        extra={"company_account_id": account.pk})
        if lock:
            account = CompanyAccount.objects.select_for_update().get(pk=account.pk)
        return account

    def set_balance(self, kind, entity, new_balance):
        entity.current_balance = new_balance
        entity.save(update_fields=["current_balance"])

    def entity_ids(self, kind):
        model = ENTITY_MODELS[EntityKind(kind)][0]
        return list(model.objects.order_by("pk").values_list("pk", flat=True))

    # ----------------------------
    # Ledger transaction log
    # ----------------------------
    def _transactions_qs(self, kind, entity):
        _, txn_model, fk = ENTITY_MODELS[EntityKind(kind)]
        return txn_model.objects.filter(**{fk: entity})

    def add_transaction(self, kind, entity, **fields):
        _, txn_model, fk = ENTITY_MODELS[EntityKind(kind)]
        return txn_model.objects.create(**{fk: entity}, **fields)

    def find_invoice_transaction(self, kind, entity, invoice_number,
                                 direction=Direction.DEBIT):
        return (
            self._transactions_qs(kind, entity)
            .filter(invoice=invoice_number, type=direction)
            .order_by("-created_at", "-id")
            .first()
        )

    def update_transaction(self, kind, txn, **fields):
        for name, value in fields.items():
            setattr(txn, name, value)
        txn.save(update_fields=list(fields))

    def transactions(self, kind, entity):
        return list(self._transactions_qs(kind, entity).order_by("created_at", "id"))

    # ----------------------------
    # Chart of accounts / journal
    # ----------------------------
    def find_account(self, account_name, category):
        active = ChartOfAccount.objects.filter(category=category, is_active=True)
        # exact name first, partial match as a fallback
        return (
            active.filter(account_name__iexact=account_name).order_by("code").first()
            or active.filter(account_name__icontains=account_name).order_by("code").first()
        )

    def get_account_by_code(self, code):
        try:
            return ChartOfAccount.objects.get(code=code)
        except ChartOfAccount.DoesNotExist:
            raise NotFound(f"Account {code} not found")

    def _highest_entry_number(self):
        numbers = JournalEntry.objects.filter(
            entry_number__startswith="JE-"
        ).values_list("entry_number", flat=True)
        return max((parse_entry_number(n) for n in numbers), default=0)

    def _advance_sequence(self, name, start=0):
        with transaction.atomic():
            # single locked row serializes number allocation
            seq, _ = JournalSequence.objects.select_for_update().get_or_create(
                name=name, defaults={"last_value": start},
            )
            seq.last_value += 1
            seq.save(update_fields=["last_value"])
        return seq.last_value

    def next_entry_number(self):
        value = self._advance_sequence(JOURNAL_SEQUENCE_NAME,
                                       start=self._highest_entry_number())
        return format_entry_number(value)

    def next_sequence_value(self, name):
        return self._advance_sequence(name)

    def create_journal_entry(self, entry_number, entry_date, description,
                             reference, lines, is_posted):
        total_debit = sum(line["debit"] for line in lines)
        total_credit = sum(line["credit"] for line in lines)
        with transaction.atomic():
            entry = JournalEntry.objects.create(
                entry_number=entry_number,
                date=entry_date,
                description=description or "",
                reference=reference,
                total_debit=total_debit,
                total_credit=total_credit,
            )
            for line in lines:
                JournalEntryLine.objects.create(
                    journal_entry=entry,
                    account=line["account"],
                    debit_amount=line["debit"],
                    credit_amount=line["credit"],
                    description=(line.get("description") or "")[:400],
                    reference=reference,
                )
            if is_posted:
                entry.post()
        return entry

    def get_journal_entry(self, entry_number, lock=False):
        qs = JournalEntry.objects.select_for_update() if lock else JournalEntry.objects.all()
        try:
            return qs.get(entry_number=entry_number)
        except JournalEntry.DoesNotExist:
            raise NotFound(f"Journal entry {entry_number} not found")

    def journal_lines(self, entry):
        return list(entry.lines.select_related("account").order_by("id"))

    def mark_journal_posted(self, entry):
        # re-checks balance against the stored lines
        entry.post()

    def find_journal_entry(self, reference):
        return JournalEntry.objects.filter(reference=reference).order_by("id").first()

    def posted_account_totals(self, category, end_date):
        sums = {
            row["account"]: (row["debit"], row["credit"])
            for row in (
                JournalEntryLine.objects
                .filter(account__category=category,
                        journal_entry__is_posted=True,
                        journal_entry__date__lte=end_date)
                .values("account")
                .annotate(debit=Sum("debit_amount"), credit=Sum("credit_amount"))
                .order_by()
            )
        }
        accounts = ChartOfAccount.objects.filter(
            category=category, is_active=True
        ).order_by("code")
        return [
            (account, *sums.get(account.pk, (ZERO, ZERO)))
            for account in accounts
        ]
