"""
Constants and Enums for Sitegen
===============================

Centralized enums and the small set of shared constants used across
services and routes.
"""

from enum import Enum


class BaseEnum(str, Enum):
    """Base enum class with string values for consistent behavior."""

    def __str__(self):
        return self.value


class PageType(BaseEnum):
    """Static page kinds a site can publish."""
    ABOUT = "ABOUT"
    TERMS = "TERMS"
    PRIVACY = "PRIVACY"
    CONTACT = "CONTACT"


class ReportFormat(BaseEnum):
    """Output formats of the Freestar dashboard."""
    JSON = "json"
    CSV = "csv"
    XML = "xml"


# ===========================
# AUTH / SESSIONS
# ===========================

ACCESS_TOKEN_TTL_DAYS = 7
REFRESH_TOKEN_TTL_DAYS = 30
SESSION_PURGE_AFTER_DAYS = 90
DEFAULT_ROLE_NAME = "User"
ADMIN_ROLE_NAME = "Admin"

# Meta keys exposed through the profile endpoint
PROFILE_META_KEYS = (
    'first_name', 'last_name', 'phone', 'teams', 'linkedin', 'account_type',
    'company', 'vat', 'country', 'state', 'city', 'zip', 'address',
)

# ===========================
# OTP
# ===========================

OTP_EXPIRY_SECONDS = 10 * 60
OTP_MAX_ATTEMPTS = 3
OTP_SWEEP_INTERVAL_SECONDS = 5 * 60
REGISTRATION_OTP_PREFIX = "registration_"

# ===========================
# RATE LIMITS (Flask-Limiter notation)
# ===========================

RATE_LIMITS = {
    'login': '5 per 15 minutes',
    'otp': '3 per minute',
    'api': '100 per minute',
    'register': '5 per hour',
}

# ===========================
# SITES / ARTICLES
# ===========================

SITE_ARTICLES_PER_PAGE = 12
ARTICLES_DEFAULT_LIMIT = 10
TAGS_DEFAULT_LIMIT = 10
DEV_DOMAIN_PREFIX = "dev."

# Site meta written by the article generator wizard
GENERATION_META_KEYS = ('niche', 'contentStyle', 'tone', 'language', 'refreshCycle')

# ===========================
# IMAGES
# ===========================

IMAGE_TARGET_SIZE = (1024, 1024)
IMAGE_MAX_BYTES = 1024 * 1024
IMAGE_START_QUALITY = 90
IMAGE_MIN_QUALITY = 50
IMAGE_QUALITY_STEP = 10
# Pillow refuses to decode anything beyond twice this many pixels
IMAGE_MAX_PIXELS = 50_000_000
FAVICON_SIZE = (32, 32)
LOGO_SIZE = (600, 200)

# ===========================
# FREESTAR
# ===========================

FREESTAR_REPORT_COLUMNS = (
    'date', 'site_domain', 'traffic_source_name', 'traffic_source_code',
    'product', 'market', 'source_tag', 'type_tag', 'device_type', 'ad_type',
    'searches', 'bidded_searches', 'bidded_results', 'bidded_clicks',
    'partner_net_revenue',
)
FREESTAR_NUMERIC_COLUMNS = (
    'searches', 'bidded_searches', 'bidded_results', 'bidded_clicks',
    'partner_net_revenue',
)

# Bot signatures rejected by the outbound redirect
KNOWN_BOT_PATTERNS = ('selenium', 'headless', 'phantomjs', 'chrome-lighthouse')
