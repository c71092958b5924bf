"""Service Base Utilities
=========================

Shared exception hierarchy for the service layer.

Usage Pattern:
    from .service_base import ServiceError, NotFoundError, ValidationError

All service modules raise these exceptions so route / API layers can
map them uniformly to HTTP responses.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    'ServiceError', 'NotFoundError', 'ValidationError', 'ConflictError',
    'ForbiddenError', 'UnauthorizedError', 'OperationError', 'text_field',
]


class ServiceError(Exception):
    """Base class for all service layer errors.

    ``details`` is merged into the JSON error body by the API layer.
    """

    def __init__(self, message: str = '', details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(ServiceError):
    """Entity not found."""


class ValidationError(ServiceError):
    """Invalid input or failed validation rules."""


class ConflictError(ServiceError):
    """State or uniqueness conflict when performing operation."""


class ForbiddenError(ServiceError):
    """Caller is authenticated but does not own the resource."""


class UnauthorizedError(ServiceError):
    """Missing, invalid or expired credentials."""


class OperationError(ServiceError):
    """Generic failure performing an operation (e.g., external dependency)."""


def text_field(data: Dict[str, Any], *keys: str, default: str = '') -> str:
    """Stripped value of the first of ``keys`` present (non-empty) in ``data``.

    Raises :class:`ValidationError` when that value is not a string, so a
    request body with ``{"title": 5}`` is a 400 rather than a crash.
    """
    for key in keys:
        value = data.get(key)
        if value is None or value == '':
            continue
        if not isinstance(value, str):
            raise ValidationError(f"{key} must be a string")
        return value.strip()
    return default
