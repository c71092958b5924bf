"""
Routes Package
Handles all application routes organized by type.
"""

from .api import api_bp
from .public import site_api_bp, site_bp

__all__ = [
    # Main API orchestrator blueprint (includes all nested blueprints)
    'api_bp',

    # Public renderer and its JSON helpers
    'site_bp',
    'site_api_bp',

    # Blueprint registration function
    'register_blueprints'
]


def register_blueprints(app):
    """
    Register all application blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(site_api_bp, url_prefix='/site-api')

    # Catch-all public routes last so /api and /site-api win
    app.register_blueprint(site_bp)
