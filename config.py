"""Configuration module for the packaging archive application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _database_url():
    """Resolve the SQL connection URL, or None when nothing is configured."""
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    url = os.getenv('DATABASE_URL')
    if url:
        return url

    host = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST')
    if not host:
        return None

    port = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
    name = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'packaging')
    user = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'packaging')
    password = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'packaging')
    return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{name}"


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    # Document store backend: "sql" (PostgreSQL via SQLAlchemy) or "memory"
    DOCUMENT_STORE = os.getenv('DOCUMENT_STORE', 'sql').lower()

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Packaging pipeline
    PACKAGING_PAGE_SIZE = int(os.getenv('PACKAGING_PAGE_SIZE', '100'))
    PACKAGING_BATCH_SIZE = int(os.getenv('PACKAGING_BATCH_SIZE', '50'))
    PACKAGING_API_DELAY_MS = int(os.getenv('PACKAGING_API_DELAY_MS', '50'))
    # Token bucket in front of the store; 0 disables it
    STORE_RATE_LIMIT_PER_SECOND = int(os.getenv('STORE_RATE_LIMIT_PER_SECOND', '0'))
    STORE_RATE_LIMIT_MAX_DELAY_MS = int(os.getenv('STORE_RATE_LIMIT_MAX_DELAY_MS', '2000'))

    # "Yesterday" is computed in this timezone, never in the process local time
    ARCHIVAL_TIMEZONE = os.getenv('ARCHIVAL_TIMEZONE', 'UTC')
    ARCHIVAL_CRON = os.getenv('ARCHIVAL_CRON', '0 0 * * *')

    # Job runtime retry policy (exponential backoff with jitter)
    JOB_MAX_ATTEMPTS = int(os.getenv('JOB_MAX_ATTEMPTS', '3'))
    JOB_MIN_TIMEOUT_MS = int(os.getenv('JOB_MIN_TIMEOUT_MS', '1000'))
    JOB_MAX_TIMEOUT_MS = int(os.getenv('JOB_MAX_TIMEOUT_MS', '10000'))
    JOB_BACKOFF_FACTOR = float(os.getenv('JOB_BACKOFF_FACTOR', '2'))

    # Redis read-through cache for the cache read path
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '3600'))  # seconds
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'packaging')

    # Error tracking
    SENTRY_DSN = os.getenv('SENTRY_DSN')


class TestConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    ENV = 'testing'
    DOCUMENT_STORE = 'sql'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    PACKAGING_API_DELAY_MS = 0
    STORE_RATE_LIMIT_PER_SECOND = 0
    JOB_MIN_TIMEOUT_MS = 0
    JOB_MAX_TIMEOUT_MS = 0
    CACHE_ENABLED = False
    SENTRY_DSN = None
