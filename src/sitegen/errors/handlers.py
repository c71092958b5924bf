"""Application-wide error handlers.

Requests under ``/api/`` and ``/site-api/`` (or asking for JSON) get the
``build_error_payload`` body; visitors of the public sites get the
``errors/error.html`` page.
"""
from __future__ import annotations

import traceback
import uuid
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, current_app, g, jsonify, make_response, render_template, request
from werkzeug.exceptions import HTTPException

from sitegen.extensions import db
from sitegen.services.service_base import ServiceError
from sitegen.utils.errors import build_error_payload, map_service_exception

error_bp = Blueprint("errors", __name__)

# status -> (title, subtitle)
ERROR_TEXT: Dict[int, Tuple[str, str]] = {
    400: ("Bad Request", "The request could not be understood."),
    401: ("Unauthorized", "Please sign in to continue."),
    403: ("Forbidden", "You do not have access to this resource."),
    404: ("Page Not Found", "The page you are looking for does not exist."),
    405: ("Method Not Allowed", "This endpoint does not accept that method."),
    409: ("Conflict", "The request conflicts with existing data."),
    429: ("Too Many Requests", "Too many requests, please slow down."),
    500: ("Internal Server Error", "Something went wrong on our end."),
    503: ("Service Unavailable", "The service is temporarily unavailable."),
}
HANDLED_STATUS_CODES = tuple(ERROR_TEXT)

JSON_PATH_PREFIXES = ("/api/", "/site-api/")


def wants_json_response() -> bool:
    if request.path.startswith(JSON_PATH_PREFIXES):
        return True
    if "application/json" in request.headers.get("Accept", ""):
        return True
    return request.headers.get("X-Requested-With") == "XMLHttpRequest"


def _describe(status_code: int, error: Optional[Exception]) -> Tuple[int, str, Dict[str, Any]]:
    """Final status, message and extra payload fields for ``error``."""
    default = ERROR_TEXT.get(status_code, ("Error", "Error"))[1]
    if isinstance(error, ServiceError):
        return map_service_exception(error), error.message or default, dict(error.details)
    if isinstance(error, HTTPException):
        return status_code, error.description or default, {}
    return status_code, default, {}


def render_error(status_code: int, error: Optional[Exception] = None):
    status_code, message, extra = _describe(status_code, error)
    title, subtitle = ERROR_TEXT.get(status_code, ("Error", ""))

    show_details = current_app.debug or current_app.config.get("SHOW_ERROR_DETAILS", False)
    debug_info: Dict[str, Any] = {}
    if show_details and error is not None:
        debug_info = {"exception_type": type(error).__name__}
        if not isinstance(error, HTTPException):
            debug_info["stacktrace"] = traceback.format_exc()
        extra["debug"] = debug_info

    if wants_json_response():
        return make_response(jsonify(build_error_payload(message, status=status_code, error=title, **extra)),
                             status_code)

    return make_response(render_template(
        "errors/error.html",
        error_code=status_code,
        error_title=title,
        error_subtitle=subtitle,
        error_message=message,
        debug=show_details,
        debug_info=debug_info,
        request_id=g.get("request_id"),
    ), status_code)


@error_bp.app_errorhandler(ServiceError)
def handle_service_error(exc: ServiceError):
    """Service errors raised by views that do not translate them themselves."""
    db.session.rollback()
    status = map_service_exception(exc)
    if status >= 500:
        current_app.logger.error("%s on %s: %s", type(exc).__name__, request.path, exc.message)
    return render_error(status, exc)


@error_bp.app_errorhandler(Exception)
def handle_uncaught_exception(exc: Exception):
    if isinstance(exc, HTTPException):
        return render_error(exc.code or 500, exc)
    current_app.logger.exception("Unhandled exception on %s: %s", request.path, exc)
    db.session.rollback()
    return render_error(500, exc)


def _status_handler(status_code: int):
    def handler(exc):
        return render_error(status_code, exc)
    return handler


def register_error_handlers(app):
    """Tag each request with an id and install the handlers above."""
    @app.before_request
    def assign_request_id():
        g.request_id = uuid.uuid4().hex

    app.register_blueprint(error_bp)
    for status_code in HANDLED_STATUS_CODES:
        app.register_error_handler(status_code, _status_handler(status_code))
    return app
