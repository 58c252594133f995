import os
import sys
from pathlib import Path

import dj_database_url
from dotenv import load_dotenv

from ops.logging_config import get_logging_config

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.environ.get("SECRET_KEY", os.environ.get("DJANGO_SECRET_KEY", "changeme"))
DEBUG = os.getenv("DEBUG", os.getenv("DJANGO_DEBUG", "True")) == "True"
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",")

# Test-mode flag; include Django's manage.py test invocation.
TESTING = (
    "PYTEST_CURRENT_TEST" in os.environ
    or "pytest" in sys.argv
    or "test" in sys.argv
)

INSTALLED_APPS = [
    "ops.apps.OpsConfig",  # Logging & metrics
    "accounting.apps.AccountingConfig",
    "reports.apps.ReportsConfig",
]

# =============================================================================
# Database Configuration
# =============================================================================
DATABASES = {
    "default": dj_database_url.config(
        env="DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=0 if TESTING else 600,
    )
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# Ledger
# =============================================================================
# Page size for ledger statements when a page is requested without a limit
LEDGER_DEFAULT_PAGE_LIMIT = int(os.getenv("LEDGER_DEFAULT_PAGE_LIMIT", "10"))
LEDGER_MAX_PAGE_LIMIT = int(os.getenv("LEDGER_MAX_PAGE_LIMIT", "500"))

# =============================================================================
# Logging
# =============================================================================
LOGGING = get_logging_config(DEBUG)
