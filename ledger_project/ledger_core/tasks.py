import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def verify_ledger_balances():
    """
    Replay every ledger entity's audit rows and report balances that drift.
    Returns JSON-friendly dicts (amounts as strings).
    """
    # import services lazily to avoid circular imports at module import time
    from .services.ledger import find_balance_mismatches

    mismatches = [
        {**m, "current_balance": str(m["current_balance"]),
         "replayed_balance": str(m["replayed_balance"])}
        for m in find_balance_mismatches()
    ]
    for m in mismatches:
        logger.error(
            "Ledger balance mismatch on %s #%s: stored %s, replayed %s",
            m["kind"], m["entity_id"], m["current_balance"], m["replayed_balance"],
            extra=m,
        )
    if not mismatches:
        logger.info("Ledger balances verified")
    return mismatches
