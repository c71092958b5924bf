"""
Sitegen Application Package
===========================

Admin API and multi-tenant public renderer for generated content sites.
Uses the factory pattern implemented in factory.py for application creation.
"""

__version__ = "1.0.0"

from sitegen.factory import create_app

__all__ = ['create_app', '__version__']
