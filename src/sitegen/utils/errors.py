"""HTTP side of error reporting: the JSON error body and service-error status codes."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from flask import g, has_request_context, request

# Keyed by class name so this module does not import the service layer
SERVICE_ERROR_STATUS = {
    'ValidationError': 400,
    'UnauthorizedError': 401,
    'ForbiddenError': 403,
    'NotFoundError': 404,
    'ConflictError': 409,
    'OperationError': 500,
}


def build_error_payload(message: str, *, status: int, error: str | None = None, **extra: Any) -> Dict[str, Any]:
    """Body shared by every JSON error the admin API and /site-api return.

    ``extra`` keys with a ``None`` value are dropped.
    """
    in_request = has_request_context()
    payload: Dict[str, Any] = {
        'success': False,
        'status': 'error',
        'status_code': status,
        'message': message,
        'error': error or message,
        'error_id': g.get('request_id') if in_request else None,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'path': request.path if in_request else None,
    }
    payload.update({key: value for key, value in extra.items() if value is not None})
    return payload


def map_service_exception(exc: Exception) -> int:
    """HTTP status for a service exception, looked up along its class hierarchy."""
    for cls in type(exc).__mro__:
        if cls.__name__ in SERVICE_ERROR_STATUS:
            return SERVICE_ERROR_STATUS[cls.__name__]
    return 500
