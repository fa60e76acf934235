# Celery instance is defined in ledger_project/celery.py
# It points celery_app at the Django settings of this project
from .celery import celery_app

# 'from ledger_project import *', only exports celery_app
__all__ = ("celery_app",)

""" Workers are started with "celery -A ledger_project worker -l info"
    -A ledger_project imports ledger_project/__init__.py,
    which exposes celery_app. """
