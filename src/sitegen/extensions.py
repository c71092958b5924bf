"""
Flask Extensions Configuration

This module initializes Flask extensions used throughout the application.
Extensions are created here and then initialized in the app factory.
"""

import logging

from flask import current_app, jsonify, request, session
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter

from sitegen.utils.security import get_client_ip

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()


def api_rate_limit() -> str:
    """Shared per-client budget for everything under /api."""
    return current_app.config['RATE_LIMITS']['api']


limiter = Limiter(
    key_func=get_client_ip,
    application_limits=[api_rate_limit],
    headers_enabled=True,
    storage_uri="memory://",
)


@limiter.request_filter
def _outside_admin_api() -> bool:
    return not request.path.startswith('/api/')


# Key under which the active UserSession id is kept in the Flask session cookie
SESSION_ID_KEY = 'user_session_id'


def bearer_token_from_request(req=None) -> str:
    """Return the raw token from an ``Authorization: Bearer`` header, or ''."""
    req = req or request
    auth_header = req.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header[7:].strip()
    return ''


def init_extensions(app):
    """Initialize Flask extensions with the app instance."""
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    login_manager.init_app(app)
    login_manager.session_protection = 'basic'

    @login_manager.user_loader
    def load_user(login_id):
        """Load the user named by a ``"<user id>:<session id>"`` login id.

        Both the session cookie and the remember cookie carry this id, so a
        login only survives while its UserSession is still live.
        """
        from sitegen.models import UserSession

        user_id, _, session_id = str(login_id).partition(':')
        if not session_id:
            return None

        user_session = db.session.get(UserSession, session_id)
        if user_session is None or user_session.user_id != user_id or not user_session.is_valid():
            session.pop(SESSION_ID_KEY, None)
            return None

        user = user_session.user
        if user is None or not user.is_active:
            return None
        user.login_session_id = user_session.id
        if session.get(SESSION_ID_KEY) != user_session.id:
            session[SESSION_ID_KEY] = user_session.id
        return user

    @login_manager.request_loader
    def load_user_from_request(req):
        """Load user from an access token in the Authorization header."""
        from sitegen.models import UserSession

        token = bearer_token_from_request(req)
        if not token:
            return None
        user_session = UserSession.find_by_access_token(token)
        if user_session is None:
            return None
        user = user_session.user
        return user if user is not None and user.is_active else None

    @login_manager.unauthorized_handler
    def unauthorized():
        """Every protected surface is JSON, so unauthorized is always a JSON 401."""
        return jsonify({
            'success': False,
            'error': 'Unauthorized',
            'message': 'Authentication required',
            'path': request.path,
        }), 401

    logging.getLogger('urllib3').setLevel(logging.WARNING)
    app.logger.info("Extensions initialized")
