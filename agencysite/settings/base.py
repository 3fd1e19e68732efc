from pathlib import Path
import os
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent.parent

# === env ===
load_dotenv(BASE_DIR / ".env")
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
DEBUG = os.getenv("DEBUG", "False") == "True"
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",")
# reverse proxies in front of the app that append to X-Forwarded-For; 0 trusts only REMOTE_ADDR
TRUSTED_PROXY_COUNT = int(os.getenv("TRUSTED_PROXY_COUNT", "0"))


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "catalog",
    "activity",
    "payments",
    "adminauth",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "agencysite.middleware.ClientAddressMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "agencysite.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
            ],
        },
    },
]

WSGI_APPLICATION = "agencysite.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# Admin verification is kept in the database-backed session, never in process memory.
SESSION_ENGINE = "django.contrib.sessions.backends.db"
SESSION_COOKIE_SECURE = not DEBUG

LANGUAGE_CODE = "en-us"
TIME_ZONE = "Asia/Jakarta"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# === Payments ===
PAYMENTS = {
    "GATEWAY": os.getenv("PAYMENTS_GATEWAY", "midtrans"),  # midtrans | xendit
    "SITE_URL": os.getenv("SITE_URL", ""),
    "REQUIRE_AUTH": _env_bool("PAYMENTS_REQUIRE_AUTH", "true"),
    "GATEWAY_TIMEOUT": float(os.getenv("PAYMENTS_GATEWAY_TIMEOUT", "20")),
    "AMOUNT_TOLERANCE": 1,
    "CURRENCY": "IDR",
}

MIDTRANS = {
    "SERVER_KEY": os.getenv("MIDTRANS_SERVER_KEY", ""),
    "IS_PRODUCTION": _env_bool("MIDTRANS_IS_PRODUCTION", "true"),
    # transaction_time in notifications carries no offset
    "TIMEZONE": os.getenv("MIDTRANS_TIMEZONE", "Asia/Jakarta"),
}

XENDIT = {
    "BASE_URL": os.getenv("XENDIT_BASE_URL", "https://api.xendit.co"),
    "SECRET_KEY": os.getenv("XENDIT_SECRET_KEY", ""),
    "CALLBACK_TOKEN": os.getenv("XENDIT_CALLBACK_TOKEN", ""),
    "INVOICE_DURATION": int(os.getenv("XENDIT_INVOICE_DURATION", "86400")),
}

# === Admin password gate ===
ADMIN_AUTH = {
    "PASSWORD_HASH": os.getenv("ADMIN_PASSWORD_HASH", ""),
    # deprecated: plaintext fallback, prefer ADMIN_PASSWORD_HASH
    "PASSWORD": os.getenv("ADMIN_PASSWORD", ""),
    "MAX_ATTEMPTS": int(os.getenv("ADMIN_MAX_ATTEMPTS", "5")),
    "LOCKOUT_MINUTES": int(os.getenv("ADMIN_LOCKOUT_MINUTES", "15")),
    "SESSION_MINUTES": int(os.getenv("ADMIN_SESSION_MINUTES", "60")),
}

# === Bearer tokens issued by the auth backend ===
AUTH_JWT = {
    "SECRET": os.getenv("AUTH_JWT_SECRET", ""),
    "ALGORITHMS": ["HS256"],
    "AUDIENCE": os.getenv("AUTH_JWT_AUDIENCE", "authenticated"),
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "simple"}},
    "root": {"handlers": ["console"], "level": os.getenv("LOG_LEVEL", "INFO")},
    "loggers": {
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
}
