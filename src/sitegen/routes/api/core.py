"""
Core API routes
===============

Basic health and overview endpoints.
"""

from datetime import datetime, timezone

from flask import Blueprint

from sitegen import __version__
from .common import api_error, api_success, get_database_health, public_endpoint


core_bp = Blueprint('core_api', __name__)


@core_bp.route('/')
@public_endpoint
def api_overview():
    """API overview endpoint."""
    return api_success({
        'version': __version__,
        'endpoints': {
            'auth': '/api/auth',
            'sites': '/api/site',
            'articles': '/api/articles',
            'pages': '/api/pages',
            'companies': '/api/companies',
        }
    }, message='Site Generator API')


@core_bp.route('/health')
@public_endpoint
def api_health():
    """API health check endpoint."""
    db_healthy, db_error = get_database_health()

    if not db_healthy:
        return api_error(f"Database health check failed: {db_error}", status=503)

    return api_success({
        'status': 'healthy',
        'database': 'connected',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'version': __version__
    })
