from .base import LedgerStore

_default_store = None


def get_default_store():
    """Process-wide Django-backed store, built on first use."""
    global _default_store
    if _default_store is None:
        # models need the app registry; import lazily
        from .django_store import DjangoLedgerStore
        _default_store = DjangoLedgerStore()
    return _default_store


def resolve_store(store=None):
    return store if store is not None else get_default_store()


__all__ = ["LedgerStore", "get_default_store", "resolve_store"]
