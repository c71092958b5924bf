"""Multi-tenant public site renderer."""

from .site import site_bp, site_api_bp

__all__ = ['site_bp', 'site_api_bp']
