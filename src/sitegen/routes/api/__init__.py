"""
API Routes Package
==================

Admin JSON API organized by domain:
- core: health and overview
- auth / profile: sessions, registration, password reset, profile
- sites / articles / tags / pages: site content management and public readers
- generate: AI content, images, logos and favicons
- companies: company management
- contact: public contact form
- cron / freestar: scheduled report import and ad-feed reporting
"""

from .api import api_bp

__all__ = ['api_bp']
