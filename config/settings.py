"""
Tally – Django Settings (Infrastructure Only)
===============================================
Django hosts the ORM-backed entity store and ledger, the startup
self-check and the thin JSON adapter. Engine code never reads these
settings directly; it receives an EngineSettings built from TALLY.

Environment overrides:
    TALLY_SECRET_KEY, TALLY_DEBUG, TALLY_DB_PATH, TALLY_LOG_LEVEL
    TALLY_LOCK_TIMEOUT_SECONDS, TALLY_OPERATION_DEADLINE_SECONDS,
    TALLY_STATS_QUEUE_SIZE, TALLY_STATS_BUCKET_SECONDS,
    TALLY_LEDGER_FAILURE_THRESHOLD, TALLY_RETRY_MAX_ATTEMPTS,
    TALLY_RETRY_BASE_DELAY_SECONDS, TALLY_RETRY_MAX_DELAY_SECONDS
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("TALLY_SECRET_KEY", "tally-dev-key-replace-before-deployment")

DEBUG = os.environ.get("TALLY_DEBUG", "1") == "1"

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "core.store",
    "core.ledger",
    "core.bootstrap",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

# ── URL & WSGI ────────────────────────────────────────────────
ROOT_URLCONF = "config.urls"

# ── Database ──────────────────────────────────────────────────
# SQLite for development. TALLY_DB_PATH points it elsewhere.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("TALLY_DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# ── Engine ────────────────────────────────────────────────────
def _env_number(name, cast):
    raw = os.environ.get(f"TALLY_{name.upper()}")
    if raw is None or raw == "":
        return None
    return cast(raw)


def _engine_settings_from_env():
    casts = {
        "lock_timeout_seconds": float,
        "operation_deadline_seconds": float,
        "stats_queue_size": int,
        "stats_bucket_seconds": int,
        "ledger_failure_threshold": int,
        "retry_max_attempts": int,
        "retry_base_delay_seconds": float,
        "retry_max_delay_seconds": float,
    }
    values = {}
    for name, cast in casts.items():
        value = _env_number(name, cast)
        if value is not None:
            values[name] = value
    return values


TALLY = _engine_settings_from_env()


# ── Logging ───────────────────────────────────────────────────
LOG_LEVEL = os.environ.get("TALLY_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "loggers": {
        "tally": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": True,
        },
        "django": {
            "handlers": ["console"],
            "level": "WARNING",
        },
    },
}
