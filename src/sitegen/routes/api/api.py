"""
API Routes Orchestrator
=======================

Main ``/api`` blueprint. Route implementations live in the domain modules:

- core.py: health check
- auth.py: login sessions, registration, password reset
- profile.py: profile of the signed-in user
- sites.py: site CRUD, DNS/SSL provisioning and public site data
- articles.py / tags.py / pages.py: site content
- generate.py: AI titles, articles, images, logos and favicons
- companies.py: company management
- contact.py: public contact form
- cron.py / freestar.py: scheduled report import and ad-feed reporting

SECURITY: every API route requires a session cookie or Bearer access token
unless its view is marked with ``@public_endpoint``. Flask-Limiter applies the
shared per-client ``RATE_LIMITS['api']`` budget to all of them.
"""

from flask import Blueprint, current_app, request
from flask_login import current_user

from .articles import articles_bp
from .auth import auth_bp
from .common import api_error
from .companies import companies_bp
from .contact import contact_bp
from .core import core_bp
from .cron import cron_bp
from .freestar import freestar_bp
from .generate import generate_bp
from .pages import pages_bp
from .profile import profile_bp
from .sites import sites_bp
from .tags import tags_bp

api_bp = Blueprint('api', __name__)


@api_bp.before_request
def require_authentication():
    """Require a user on non-public endpoints."""
    view = current_app.view_functions.get(request.endpoint) if request.endpoint else None
    if view is None or getattr(view, 'is_public', False):
        return None

    # Flask-Login resolves both the session cookie and Bearer access tokens
    if current_user.is_authenticated:
        return None

    return api_error('Authentication required', status=401, error_type='Unauthorized',
                     hint='Log in or provide a valid Bearer access token')


# Register all specialized blueprints as nested blueprints
api_bp.register_blueprint(core_bp)
api_bp.register_blueprint(auth_bp, url_prefix='/auth')
api_bp.register_blueprint(profile_bp, url_prefix='/profile')
api_bp.register_blueprint(sites_bp, url_prefix='/site')
api_bp.register_blueprint(articles_bp, url_prefix='/articles')
api_bp.register_blueprint(tags_bp, url_prefix='/tags')
api_bp.register_blueprint(pages_bp, url_prefix='/pages')
api_bp.register_blueprint(generate_bp)
api_bp.register_blueprint(companies_bp, url_prefix='/companies')
api_bp.register_blueprint(contact_bp, url_prefix='/contact')
api_bp.register_blueprint(cron_bp, url_prefix='/cron')
api_bp.register_blueprint(freestar_bp, url_prefix='/freestar')
