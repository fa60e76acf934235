from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import ChartOfAccount
from .store import get_default_store

"""Drop cached account lookups whenever the chart changes."""


# Fires after any ChartOfAccount save/delete (admin, seed command, shell)
@receiver((post_save, post_delete), sender=ChartOfAccount)
def chart_of_accounts_changed(sender, instance, **kwargs):
    get_default_store().account_cache.clear()
