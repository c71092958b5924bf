"""
Application Configuration
========================

Configuration settings for different environments. Values are read from the
environment (``.env`` is loaded by the app factory before this module is
imported).
"""

import os
from pathlib import Path

from sitegen.constants import RATE_LIMITS as DEFAULT_RATE_LIMITS


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).lower() in ('true', '1', 'yes')


class Config:
    """Base configuration class."""

    # Basic Flask settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    APP_ENV = os.environ.get('APP_ENV', 'development')
    IS_PRODUCTION = APP_ENV == 'production'

    # Database settings
    BASE_DIR = Path(__file__).resolve().parent.parent.parent  # /src
    DATABASE_PATH = BASE_DIR / 'data' / 'sitegen.db'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or f'sqlite:///{DATABASE_PATH}'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session configuration
    SESSION_COOKIE_SECURE = _env_flag('SESSION_COOKIE_SECURE')
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = int(os.environ.get('SESSION_LIFETIME', str(30 * 86400)))

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Flask-Limiter budgets per limit kind (see ``rate_limited``)
    RATE_LIMITS = dict(DEFAULT_RATE_LIMITS)

    # Scheduled endpoints (cron / session cleanup)
    CRON_SECRET_TOKEN = os.environ.get('CRON_SECRET_TOKEN', '')

    # Admin console base URL (used in emails)
    ADMIN_BASE_URL = os.environ.get('ADMIN_BASE_URL', 'http://localhost:5000')

    # AI providers
    OPENAI_API_KEY = os.environ.get('OPENAI_API_KEY', '')
    OPENAI_TIMEOUT = float(os.environ.get('OPENAI_TIMEOUT', '30'))
    HUGGINGFACE_API_KEY = os.environ.get('HUGGINGFACE_API_KEY', '')
    HUGGINGFACE_LOGO_URL = os.environ.get(
        'HUGGINGFACE_LOGO_URL',
        'https://router.huggingface.co/nebius/v1/images/generations'
    )

    # Email
    SENDGRID_API_KEY = os.environ.get('SENDGRID_API_KEY', '')
    SENDGRID_FROM_EMAIL = os.environ.get('SENDGRID_FROM_EMAIL', 'no-reply@example.com')
    ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL', '')

    # DigitalOcean Spaces (S3 compatible)
    DO_SPACES_KEY = os.environ.get('DO_SPACES_KEY', '')
    DO_SPACES_SECRET = os.environ.get('DO_SPACES_SECRET', '')
    DO_SPACES_BUCKET = os.environ.get('DO_SPACES_BUCKET', '')
    DO_SPACES_REGION = os.environ.get('DO_SPACES_REGION', 'nyc3')
    DO_SPACES_ENDPOINT = os.environ.get('DO_SPACES_ENDPOINT', 'https://nyc3.digitaloceanspaces.com')
    DO_SPACES_CDN_URL = os.environ.get('DO_SPACES_CDN_URL', '')

    # DNS / SSL provisioning
    CLOUDFLARE_API_TOKEN = os.environ.get('CLOUDFLARE_API_TOKEN', '')
    CLOUDFLARE_ENABLED = _env_flag('CLOUDFLARE_ENABLED')
    SERVER_IP = os.environ.get('SERVER_IP', '')
    CERTBOT_EMAIL = os.environ.get('CERTBOT_EMAIL', '')
    HOSTS_FILE = os.environ.get('HOSTS_FILE', '/etc/hosts')
    MANAGE_HOSTS_FILE = _env_flag('MANAGE_HOSTS_FILE')

    # Freestar ad feed and reporting
    FREESTAR_API_URL = os.environ.get('FREESTAR_API_URL', 'https://searchapi.freestar.com/feed')
    FREESTAR_API_KEY = os.environ.get('FREESTAR_API_KEY', '')
    FREESTAR_REPORT_URL = os.environ.get(
        'FREESTAR_REPORT_URL', 'https://reporting.searchapi.freestar.com/reporting/search-type/daily'
    )
    FREESTAR_REPORT_KEY = os.environ.get('FREESTAR_REPORT_KEY', '')
    FREESTAR_SERVE_URL = os.environ.get('FREESTAR_SERVE_URL', 'https://likedcontent.com/search')
    CLICK_POSTBACK_URL = os.environ.get('CLICK_POSTBACK_URL', '')

    # Bing web search
    BING_API_KEY = os.environ.get('BING_API_KEY', '')
    BING_ENDPOINT = os.environ.get('BING_ENDPOINT', 'https://api.bing.microsoft.com/v7.0/search')
    BING_CACHE_DIR = os.environ.get('BING_CACHE_DIR', str(BASE_DIR.parent / 'cache'))

    # Vendor request timeout (seconds)
    HTTP_TIMEOUT = int(os.environ.get('HTTP_TIMEOUT', '30'))

    # In-process OTP sweeper
    OTP_SWEEPER_ENABLED = _env_flag('OTP_SWEEPER_ENABLED', 'true')

    # Background tasks
    CELERY_BROKER_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    CELERY_RESULT_BACKEND = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    CELERY_TASK_ALWAYS_EAGER = _env_flag('CELERY_ALWAYS_EAGER')
    CELERY_TASK_EAGER_PROPAGATES = True
    CELERY_TASK_SERIALIZER = 'json'
    CELERY_RESULT_SERIALIZER = 'json'
    CELERY_ACCEPT_CONTENT = ['json']
    CELERY_TIMEZONE = 'UTC'
    CELERY_ENABLE_UTC = True


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    DEBUG = False
    APP_ENV = 'testing'
    IS_PRODUCTION = False
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    CELERY_TASK_ALWAYS_EAGER = True
    OTP_SWEEPER_ENABLED = False
    CRON_SECRET_TOKEN = 'test-cron-token'
    CLOUDFLARE_ENABLED = False
    DO_SPACES_CDN_URL = 'https://cdn.test'
    DO_SPACES_BUCKET = 'test-bucket'


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    APP_ENV = 'production'
    IS_PRODUCTION = True
    SESSION_COOKIE_SECURE = True


# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
