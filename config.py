"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')

    # Session Configuration (Production-safe defaults)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400 * 7  # 7 days

    # Preferred URL scheme (for url_for with _external=True)
    PREFERRED_URL_SCHEME = os.getenv('PREFERRED_URL_SCHEME', 'http')

    # Public URL of the app (used in emails)
    APP_URL = os.getenv('APP_URL', 'https://www.fiftymais.site')

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'propostas')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'propostas')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'propostas')

        DATABASE_URL = (
            f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', '0') == '1'

    # Proposals
    DEFAULT_VALIDADE_DIAS = int(os.getenv('DEFAULT_VALIDADE_DIAS', '15'))
    # Block proposal endpoints for profiles without an active subscription
    REQUIRE_ACTIVE_SUBSCRIPTION = os.getenv('REQUIRE_ACTIVE_SUBSCRIPTION', 'false').lower() == 'true'

    # Stripe (checkout + webhooks)
    STRIPE_SECRET_KEY = os.getenv('STRIPE_SECRET_KEY')
    STRIPE_WEBHOOK_SECRET = os.getenv('STRIPE_WEBHOOK_SECRET')
    STRIPE_PRICE_ID = os.getenv('STRIPE_PRICE_ID')
    CHECKOUT_SUCCESS_URL = os.getenv('CHECKOUT_SUCCESS_URL', 'https://fiftymais.site?pagamento=sucesso')
    CHECKOUT_CANCEL_URL = os.getenv('CHECKOUT_CANCEL_URL', 'https://fiftymais.com.br/#oferta')

    # Email configuration
    # RESEND_API_KEY takes precedence and routes mail through the Resend SMTP relay
    RESEND_API_KEY = os.getenv('RESEND_API_KEY')
    if RESEND_API_KEY:
        MAIL_SERVER = 'smtp.resend.com'
        MAIL_PORT = 587
        MAIL_USERNAME = 'resend'
        MAIL_PASSWORD = RESEND_API_KEY
    else:
        MAIL_SERVER = os.getenv('SMTP_HOST', '')
        MAIL_PORT = int(os.getenv('SMTP_PORT', 587))
        MAIL_USERNAME = os.getenv('SMTP_USER') or ''
        MAIL_PASSWORD = os.getenv('SMTP_PASSWORD') or ''
    MAIL_USE_TLS = True
    MAIL_USE_SSL = False
    MAIL_DEFAULT_SENDER = (
        os.getenv('SMTP_FROM')
        or 'Fifty+ <noreply@fiftymais.com.br>'
    )
    MAIL_SUPPRESS_SEND = os.getenv('MAIL_SUPPRESS_SEND', 'false').lower() == 'true'

    # Error tracking
    SENTRY_DSN = os.getenv('SENTRY_DSN')
