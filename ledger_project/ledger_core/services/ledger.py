import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List

from ..choices import Direction, EntityKind, JournalKind
from ..store import resolve_store
from .journal import post_entry
from .money import ZERO, positive_money, to_money

logger = logging.getLogger(__name__)


@dataclass
class BalanceChange:
    kind: str
    entity_id: int
    previous_balance: Decimal
    new_balance: Decimal
    transaction: Any = None


def signed_amount(kind, direction, amount):
    """
    Balance effect of `amount` moving in `direction` on an entity of `kind`.

    Customers and vendors grow on DEBIT (they owe us / we owe them more).
    The company grows on CREDIT (money received). Kept as an explicit
    switch: the two conventions are opposite on purpose.
    """
    kind = EntityKind(kind)
    direction = Direction(direction)
    if kind == EntityKind.CUSTOMER:
        return amount if direction == Direction.DEBIT else -amount
    if kind == EntityKind.VENDOR:
        return amount if direction == Direction.DEBIT else -amount
    if kind == EntityKind.COMPANY:
        return amount if direction == Direction.CREDIT else -amount
    raise ValueError(f"Unknown entity kind: {kind}")


def apply_direction(kind, balance, direction, amount):
    return balance + signed_amount(kind, direction, amount)


# ----------------------------
# The one write path for balances
# ----------------------------
def append_transaction(kind, entity_id, direction, amount, description,
                       reference=None, invoice=None, *, store=None):
    """
    Move an entity's balance and append the matching audit row.

    Both writes happen in one atomic block with the entity row locked.
    For the company ledger `entity_id=None` means the default company
    account. Not idempotent: callers dedupe by reference.
    """
    store = resolve_store(store)
    kind = EntityKind(kind)
    direction = Direction(direction)
    amount = positive_money(amount)

    with store.atomic():
        entity = store.get_entity(kind, entity_id, lock=True)
        previous = entity.current_balance
        new = apply_direction(kind, previous, direction, amount)

        txn = store.add_transaction(
            kind,
            entity,
            type=direction,
            amount=amount,
            description=description or "",
            reference=reference,
            invoice=invoice,
            previous_balance=previous,
            new_balance=new,
        )
        store.set_balance(kind, entity, new)

    logger.info(
        "Ledger %s %s %s on %s #%s: %s -> %s",
        direction, amount, reference or "", kind, entity.pk, previous, new,
        extra={"entity_kind": kind.value, "entity_id": entity.pk,
               "reference": reference, "invoice": invoice},
    )
    return BalanceChange(kind, entity.pk, previous, new, txn)


def correct_transaction(kind, entity_id, invoice, old_amount, new_amount,
                        description, *, store=None):
    """
    Rewrite the DEBIT row an invoice booked when the invoice amount changes.

    The row keeps its previous_balance, its amount and new_balance move by the
    delta, and the entity balance shifts by the same delta. Later rows are
    left as written. Without a usable row (never booked, or the correction
    would take it to zero) a fresh row for |delta| is appended instead.
    """
    store = resolve_store(store)
    kind = EntityKind(kind)
    delta = to_money(new_amount) - to_money(old_amount)
    if delta == 0:
        return None

    with store.atomic():
        entity = store.get_entity(kind, entity_id, lock=True)
        txn = store.find_invoice_transaction(kind, entity, invoice, Direction.DEBIT)

        if txn is None or txn.amount + delta <= 0:
            direction = Direction.DEBIT if delta > 0 else Direction.CREDIT
            return append_transaction(
                kind, entity.pk, direction, abs(delta), description,
                reference=invoice, invoice=invoice, store=store,
            )

        previous = entity.current_balance
        corrected = txn.amount + delta
        store.update_transaction(
            kind,
            txn,
            amount=corrected,
            description=description or txn.description,
            new_balance=apply_direction(kind, txn.previous_balance,
                                        txn.type, corrected),
        )
        new = previous + signed_amount(kind, txn.type, delta)
        store.set_balance(kind, entity, new)

    logger.info(
        "Corrected %s #%s invoice %s by %s: %s -> %s",
        kind, entity.pk, invoice, delta, previous, new,
        extra={"entity_kind": kind.value, "entity_id": entity.pk,
               "invoice": invoice},
    )
    return BalanceChange(kind, entity.pk, previous, new, txn)


def record_manual_transaction(kind, entity_id, direction, amount, description,
                              reference=None, *, store=None):
    """Ledger movement entered by hand, with its journal entry."""
    store = resolve_store(store)
    amount = positive_money(amount)
    with store.atomic():
        change = append_transaction(kind, entity_id, direction, amount,
                                    description, reference, store=store)
        entry = post_entry(JournalKind.for_entry(kind, direction), amount,
                           description, reference, store=store)
    return change, entry


def get_company_account(*, store=None):
    return resolve_store(store).get_company_account()


# ----------------------------
# Audit
# ----------------------------
def replay_balance(kind, entity_id, *, store=None):
    """Balance rebuilt from zero by replaying the entity's audit rows."""
    store = resolve_store(store)
    entity = store.get_entity(kind, entity_id)
    balance = ZERO
    for txn in store.transactions(kind, entity):
        balance = apply_direction(kind, balance, txn.type, txn.amount)
    return balance


def find_balance_mismatches(*, store=None) -> List[dict]:
    store = resolve_store(store)
    mismatches = []
    for kind in EntityKind:
        for entity_id in store.entity_ids(kind):
            entity = store.get_entity(kind, entity_id)
            replayed = replay_balance(kind, entity_id, store=store)
            if replayed != entity.current_balance:
                mismatches.append({
                    "kind": kind.value,
                    "entity_id": entity_id,
                    "current_balance": entity.current_balance,
                    "replayed_balance": replayed,
                })
    return mismatches
