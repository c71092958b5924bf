"""
Common API utilities and response helpers
=========================================

Shared response builders, request parsing and the service-error translation
used across all API route modules.
"""

import hmac
from datetime import datetime, timezone
from functools import wraps

from flask import current_app, jsonify, request

from sitegen.extensions import bearer_token_from_request, db, limiter
from sitegen.services.service_base import ServiceError
from sitegen.utils.errors import build_error_payload, map_service_exception


# ============================================================================
# RESPONSE HELPERS
# ============================================================================

def api_success(data=None, message="Success", status=200):
    """Shorthand for JSON success response."""
    return jsonify({
        'success': True,
        'message': message,
        'data': data,
        'timestamp': datetime.now(timezone.utc).isoformat()
    }), status


def api_result(status=200, **fields):
    """Flat ``{success: true, **fields}`` body used by endpoints the site frontends consume."""
    return jsonify({'success': True, **fields}), status


def api_error(message, status=500, error_type=None, details=None, **extra):
    """Shorthand for JSON error response."""
    return jsonify(build_error_payload(
        message,
        status=status,
        error_type=error_type or 'APIError',
        details=details or None,
        **extra
    )), status


# ============================================================================
# REQUEST HELPERS
# ============================================================================

def request_data():
    """JSON body, or form fields for multipart/urlencoded requests."""
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def uploaded_bytes(field):
    """Bytes of an uploaded file field, or None when absent/empty."""
    storage = request.files.get(field)
    if storage is None or not storage.filename:
        return None
    data = storage.read()
    return data or None


def get_pagination_params(default_limit=10, max_limit=100):
    """Extract and validate ``page`` / ``limit`` from the query string."""
    page = request.args.get('page', type=int) or 1
    limit = request.args.get('limit', type=int) or default_limit

    limit = max(1, min(limit, max_limit))
    page = max(1, page)

    return page, limit


def get_database_health():
    """Check database connection health."""
    try:
        db.session.execute(db.text('SELECT 1'))
        db.session.commit()
        return True, None
    except Exception as e:
        return False, str(e)


# ============================================================================
# EXCEPTION HELPERS
# ============================================================================

def handle_service_errors(func):
    """Translate :class:`ServiceError` raised by a view into a JSON error response."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ServiceError as exc:
            status = map_service_exception(exc)
            if status >= 500:
                current_app.logger.error("%s in %s: %s", type(exc).__name__, request.path, exc.message)
            db.session.rollback()
            return api_error(exc.message, status=status, error_type=type(exc).__name__, **exc.details)
    return wrapper


def rate_limited(kind):
    """Flask-Limiter limit named in ``RATE_LIMITS``, shared by every view using ``kind``."""
    return limiter.shared_limit(lambda: current_app.config['RATE_LIMITS'][kind], scope=kind)


def public_endpoint(func):
    """Mark a view as reachable without authentication."""
    func.is_public = True
    return func


def bearer_matches(expected):
    """True if the request carries ``Authorization: Bearer <expected>``."""
    token = bearer_token_from_request()
    return bool(expected) and hmac.compare_digest(token.encode(), expected.encode())
