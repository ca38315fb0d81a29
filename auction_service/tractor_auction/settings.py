import os
from decimal import Decimal
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "1") == "1"
ALLOWED_HOSTS = [h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "bidding.apps.BiddingConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "tractor_auction.urls"
WSGI_APPLICATION = "tractor_auction.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("AUCTION_DB_PATH", str(BASE_DIR / "db.sqlite3")),
        # Writers take the lock at BEGIN, so concurrent bids queue instead of
        # failing when they upgrade from a read lock.
        "OPTIONS": {
            "transaction_mode": "IMMEDIATE",
            "timeout": int(os.environ.get("AUCTION_DB_TIMEOUT", "20")),
        },
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = "Asia/Kolkata"
LANGUAGE_CODE = "en-us"

# --- Auction rules ---------------------------------------------------

APPROVAL_DEADLINE_DAYS = int(os.environ.get("APPROVAL_DEADLINE_DAYS", "7"))
TRANSACTION_FEE_RATE = Decimal(os.environ.get("TRANSACTION_FEE_RATE", "0.025"))

# How many times a bid is retried when the database reports it is locked.
BID_WRITE_ATTEMPTS = int(os.environ.get("BID_WRITE_ATTEMPTS", "10"))

# Used when an auction row carries no explicit value for a knob.
AUCTION_AUTO_EXTEND_DEFAULTS = {
    "enabled": True,
    "minutes": 5,
    "threshold_minutes": 2,
    "max_extensions": 3,
}

# --- Collaborators ---------------------------------------------------

# "rpyc" talks to notification_service; "memory" keeps events in-process.
BIDDING_CHANNEL_BACKEND = os.environ.get("BIDDING_CHANNEL_BACKEND", "rpyc")
NOTIFICATION_SERVICE_HOST = os.environ.get("NOTIFICATION_SERVICE_HOST", "localhost")
NOTIFICATION_SERVICE_PORT = int(os.environ.get("NOTIFICATION_SERVICE_PORT", "18861"))

CRON_SECRET = os.environ.get("CRON_SECRET", "")

# --- Logging ---------------------------------------------------------

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s [%(name)s] %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "bidding": {
            "handlers": ["console"],
            "level": os.environ.get("BIDDING_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
}
