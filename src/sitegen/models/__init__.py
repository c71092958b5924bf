"""
Database Models for Sitegen

Models include:
- User, UserMeta, Role, UserRole, UserSession: accounts and logins
- Company: owning organisation of sites
- Site, SiteMeta, StaticPage, Contact: tenants of the public renderer
- Article, Tag, ArticleTag: site content
- FreestarDailyReport, FreestarTypecode, FreestarHourlyReport: ad reporting
"""

from __future__ import annotations

from ..constants import PageType
from ..extensions import db

from .user import User, UserMeta, Role, UserRole, UserSession
from .company import Company
from .site import Site, SiteMeta, StaticPage, Contact
from .article import Article, Tag, ArticleTag
from .report import FreestarDailyReport, FreestarTypecode, FreestarHourlyReport

from ..utils.time import utc_now

__all__ = [
    'PageType',
    'db',
    'User', 'UserMeta', 'Role', 'UserRole', 'UserSession',
    'Company',
    'Site', 'SiteMeta', 'StaticPage', 'Contact',
    'Article', 'Tag', 'ArticleTag',
    'FreestarDailyReport', 'FreestarTypecode', 'FreestarHourlyReport',
    'utc_now',
]
