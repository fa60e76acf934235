import pytest

from ledger_core.store import get_default_store


@pytest.fixture(autouse=True)
def clear_account_cache():
    # cached ChartOfAccount rows do not survive a test's rollback
    get_default_store().account_cache.clear()
    yield
    get_default_store().account_cache.clear()
