"""Static pages (about / terms / privacy / contact) of a site."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..constants import PageType
from ..extensions import db
from ..models import StaticPage, User
from .service_base import NotFoundError, ValidationError
from .site_service import get_owned_site, get_site_by_domain


def normalize_page_type(value: str) -> str:
    page_type = (value or '').strip().upper()
    if page_type not in PageType.__members__:
        raise ValidationError(f"Unknown page type: {value}")
    return page_type


def save_pages(user: User, site_id: str, pages: Dict[str, Optional[str]]) -> List[Dict[str, Any]]:
    """Replace every static page of the site with ``pages`` (keyed about/terms/...)."""
    if not site_id or not isinstance(pages, dict):
        raise ValidationError("Invalid payload")
    site = get_owned_site(user, site_id)
    normalized = {normalize_page_type(key): (key, content) for key, content in pages.items()}

    StaticPage.query.filter_by(site_id=site.id).delete(synchronize_session=False)
    saved = []
    for page_type, (key, content) in normalized.items():
        page = StaticPage(site_id=site.id, page_type=page_type, title=key.strip().capitalize(),
                          content=content or '')
        db.session.add(page)
        saved.append(page)
    db.session.commit()
    return [p.to_dict() for p in saved]


def list_pages(user: User, site_id: str) -> List[Dict[str, Any]]:
    if not site_id:
        raise ValidationError("siteId is required")
    site = get_owned_site(user, site_id)
    pages = StaticPage.query.filter_by(site_id=site.id).order_by(StaticPage.page_type).all()
    return [
        {'key': p.page_type.lower(), 'label': p.title, 'content': p.content}
        for p in pages
    ]


def find_page(site_id: str, page_type: str) -> Optional[StaticPage]:
    return StaticPage.query.filter_by(site_id=site_id, page_type=normalize_page_type(page_type)).first()


def get_page(domain: str, page_type: str) -> Dict[str, Any]:
    if not domain or not page_type:
        raise ValidationError("Domain and page_type are required")
    site = get_site_by_domain(domain)
    page = find_page(site.id, page_type)
    if page is None:
        raise NotFoundError("Page not found")
    return page.to_dict()
