"""
Settings for the ledger reconciliation project.

Values are read from the environment (or a .env file next to manage.py)
through django-environ. Engine-specific knobs are the LEDGER_* settings
at the bottom of this module.
"""

from __future__ import annotations

import sys
from pathlib import Path

import environ

# -----------------------------------------
# BASE DIRECTORY
# -----------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent

TESTING = "test" in sys.argv or "pytest" in sys.modules

# -----------------------------------------
# ENV (django-environ)
# -----------------------------------------
env = environ.Env(
    DEBUG=(bool, True),
    SECRET_KEY=(str, ""),
    TIME_ZONE=(str, "UTC"),
    ALLOWED_HOSTS=(list, ["localhost", "127.0.0.1"]),
    DATABASE_URL=(str, f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
    LOG_LEVEL=(str, "INFO"),
    CELERY_BROKER_URL=(str, "redis://localhost:6379/0"),
    CELERY_TASK_ALWAYS_EAGER=(bool, TESTING),
    # Ledger engine
    LEDGER_CURRENCY=(str, "USD"),
    LEDGER_STRICT_CHART=(bool, False),
    LEDGER_STICKY_STATUSES=(list, ["Overdue", "Cancelled"]),
    LEDGER_AMOUNT_DECREASE_POLICY=(str, "smaller_debit"),
    LEDGER_COMPANY_ACCOUNT_NAME=(str, "Company Account"),
)

env_file = BASE_DIR / ".env"
if env_file.exists():
    env.read_env(str(env_file))

# -----------------------------------------
# CORE
# -----------------------------------------
SECRET_KEY = (env("SECRET_KEY") or "dev-insecure-change-me").strip()
DEBUG = env.bool("DEBUG")
ALLOWED_HOSTS = env.list("ALLOWED_HOSTS")

LANGUAGE_CODE = "en-us"
TIME_ZONE = (env("TIME_ZONE") or "UTC").strip()
USE_I18N = True
USE_TZ = True

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "ledger_core",
]

MIDDLEWARE = []
ROOT_URLCONF = None

# -----------------------------------------
# DATABASE
# -----------------------------------------
DATABASES = {
    "default": env.db("DATABASE_URL"),
}
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -----------------------------------------
# CELERY
# -----------------------------------------
CELERY_BROKER_URL = env("CELERY_BROKER_URL")
CELERY_TASK_ALWAYS_EAGER = env.bool("CELERY_TASK_ALWAYS_EAGER")
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]

# -----------------------------------------
# LOGGING
# -----------------------------------------
LOG_LEVEL = env("LOG_LEVEL").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "ledger_core": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}

# -----------------------------------------
# LEDGER ENGINE
# -----------------------------------------
# Currency stamped on payment rows
LEDGER_CURRENCY = env("LEDGER_CURRENCY")

# When True, a chart-of-accounts gap aborts payment processing instead of
# only skipping the journal entry
LEDGER_STRICT_CHART = env.bool("LEDGER_STRICT_CHART")

# Statuses set outside payment processing that the status calculator keeps
LEDGER_STICKY_STATUSES = env.list("LEDGER_STICKY_STATUSES")

# How a decreased invoice amount is booked: "smaller_debit" | "credit_reversal"
LEDGER_AMOUNT_DECREASE_POLICY = env("LEDGER_AMOUNT_DECREASE_POLICY")

# Name used when the company ledger account is created on first use
LEDGER_COMPANY_ACCOUNT_NAME = env("LEDGER_COMPANY_ACCOUNT_NAME")
