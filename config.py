"""
Configuration for the subscription payments Flask app.
Production (Railway/Render): uses DATABASE_URL only; fails if missing.
Local: DATABASE_URL or DB_* fallback for backward compatibility.
"""
import os
from datetime import timedelta
from urllib.parse import quote_plus


def _is_production():
    """True when running on Railway, Render, or explicit production."""
    return (
        os.environ.get("RENDER") == "true"
        or os.environ.get("RAILWAY_ENVIRONMENT") is not None
        or os.environ.get("FLASK_ENV") == "production"
    )


def _normalize_database_url(url):
    """Convert postgres:// to postgresql+psycopg2:// for SQLAlchemy/psycopg2."""
    if not url:
        return url
    url = url.strip()
    if url.startswith("postgres://"):
        return "postgresql+psycopg2://" + url[11:]
    if url.startswith("postgresql://") and "psycopg2" not in url:
        return "postgresql+psycopg2://" + url[13:]
    return url


def _get_database_uri():
    """Database URI: production = DATABASE_URL only; local = DATABASE_URL or DB_*."""
    if _is_production():
        url = os.environ.get("DATABASE_URL")
        if not url or not url.strip():
            raise RuntimeError(
                "DATABASE_URL is required in production (Railway/Render). "
                "Set it in your service environment variables."
            )
        return _normalize_database_url(url.strip())

    url = os.environ.get("DATABASE_URL")
    if url and url.strip():
        return _normalize_database_url(url.strip())

    host = os.environ.get("DB_HOST", "localhost")
    port = os.environ.get("DB_PORT", "5432")
    name = os.environ.get("DB_NAME", "subpay")
    user = os.environ.get("DB_USER", "subpay")
    password = os.environ.get("DB_PASSWORD", "")
    if password:
        password = quote_plus(password)
    return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"


def _env_flag(name, default="false"):
    return os.environ.get(name, default).lower() in ("true", "on", "1")


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get("SECRET_KEY") or "dev-secret-key-change-in-production"
    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)

    SQLALCHEMY_DATABASE_URI = _get_database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Public URLs used to build webhook and redirect targets
    API_BASE_URL = (os.environ.get("API_BASE_URL") or "http://localhost:8080").rstrip("/")
    FRONTEND_URL = (os.environ.get("FRONTEND_URL") or "http://localhost:3000").rstrip("/")

    # Fee policy: settings row 'fixed_fee_amount' wins; this is the fallback
    DEFAULT_PLATFORM_FEE = os.environ.get("DEFAULT_PLATFORM_FEE", "0.55")
    FEE_CACHE_SECONDS = int(os.environ.get("FEE_CACHE_SECONDS") or 60)

    # Upper bound on any single provider call; a timeout is a checkout failure
    PROVIDER_TIMEOUT_SECONDS = float(os.environ.get("PROVIDER_TIMEOUT_SECONDS") or 15)

    ASAAS_API_URL = os.environ.get("ASAAS_API_URL", "https://api.asaas.com/v3")
    ASAAS_PLATFORM_WALLET_ID = os.environ.get("ASAAS_PLATFORM_WALLET_ID")
    ASAAS_WEBHOOK_TOKEN = os.environ.get("ASAAS_WEBHOOK_TOKEN")

    MERCADOPAGO_API_URL = os.environ.get("MERCADOPAGO_API_URL", "https://api.mercadopago.com")
    MERCADOPAGO_ACCESS_TOKEN = os.environ.get("MERCADOPAGO_ACCESS_TOKEN")
    MERCADOPAGO_WEBHOOK_SECRET = os.environ.get("MERCADOPAGO_WEBHOOK_SECRET")

    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
    STRIPE_CURRENCY = os.environ.get("STRIPE_CURRENCY", "brl")

    PUSHINPAY_API_URL = os.environ.get("PUSHINPAY_API_URL", "https://api.pushinpay.com.br")
    PUSHINPAY_PLATFORM_ACCOUNT_ID = os.environ.get("PUSHINPAY_PLATFORM_ACCOUNT_ID")

    SYNCPAY_API_URL = os.environ.get("SYNCPAY_API_URL", "https://api.syncpay.com.br")
    SYNCPAY_PLATFORM_RECIPIENT_ID = os.environ.get("SYNCPAY_PLATFORM_RECIPIENT_ID")

    PARADISEPAG_API_URL = os.environ.get("PARADISEPAG_API_URL", "https://api.paradise-pay.com")
    PARADISEPAG_LOGO_URL = os.environ.get("PARADISEPAG_LOGO_URL")

    # Background jobs
    CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL") or os.environ.get("REDIS_URL") or "redis://localhost:6379/0"
    CELERY_TIMEZONE = os.environ.get("CELERY_TIMEZONE", "America/Sao_Paulo")
    SWEEP_ON_STARTUP = _env_flag("SWEEP_ON_STARTUP", "true")
    REMINDER_DAYS_AHEAD = int(os.environ.get("REMINDER_DAYS_AHEAD") or 3)

    # 'mail' sends subscriber e-mails when an address is known; 'log' only logs
    NOTIFIER = os.environ.get("NOTIFIER", "mail")

    MAIL_SERVER = os.environ.get("MAIL_SERVER")
    MAIL_PORT = int(os.environ.get("MAIL_PORT") or 587)
    MAIL_USE_TLS = _env_flag("MAIL_USE_TLS", "true")
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER") or os.environ.get("MAIL_USERNAME") or "noreply@subpay.local"


class TestingConfig(Config):
    """Configuration used by the test suite."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    FEE_CACHE_SECONDS = 0
    PROVIDER_TIMEOUT_SECONDS = 2
    SWEEP_ON_STARTUP = False
    NOTIFIER = "log"
    MAIL_SUPPRESS_SEND = True
    API_BASE_URL = "https://api.test"
    FRONTEND_URL = "https://app.test"
    ASAAS_PLATFORM_WALLET_ID = "wallet_platform"
    PUSHINPAY_PLATFORM_ACCOUNT_ID = "acc_platform"
    SYNCPAY_PLATFORM_RECIPIENT_ID = "rcp_platform"
    STRIPE_SECRET_KEY = "sk_test_platform"
    STRIPE_WEBHOOK_SECRET = "whsec_test"
    MERCADOPAGO_ACCESS_TOKEN = "mp_platform_token"
    MERCADOPAGO_WEBHOOK_SECRET = "mp_webhook_secret"
