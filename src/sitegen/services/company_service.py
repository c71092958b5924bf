"""Company Service Layer
======================

Listing and maintenance of the companies that own sites. Admins see and
edit every company; other users only the ones they own.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Company, Site, User
from ..utils.pagination import paginate, pagination_meta
from ..utils.security import is_valid_email
from .service_base import ConflictError, ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

REQUIRED_UPDATE_FIELDS = ['name', 'phone', 'email', 'address']


def _get_company(company_id: str) -> Company:
    if not company_id:
        raise ValidationError("Company ID is required")
    company = db.session.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found")
    return company


def _ensure_can_manage(user: User, company: Company, action: str) -> None:
    if company.user_id != user.id and not user.is_admin:
        raise ForbiddenError(f"You do not have permission to {action} this company")


def list_companies(user: User, page: int = 1, limit: int = 10, search: str = '',
                   status: Optional[str] = None) -> Dict[str, Any]:
    """Companies ordered by number of sites, newest first among equals."""
    site_count = (
        db.session.query(func.count(Site.id)).filter(Site.company_id == Company.id).correlate(Company).scalar_subquery()
    )
    query = Company.query
    if not user.is_admin:
        query = query.filter(Company.user_id == user.id)
    search = (search or '').strip()
    if search:
        like = f"%{search}%"
        query = query.filter(or_(
            Company.name.ilike(like), Company.email.ilike(like),
            Company.phone.ilike(like), Company.address.ilike(like),
        ))
    if status is not None and status != '':
        query = query.filter(Company.status.is_(str(status).lower() == 'true'))

    companies, total = paginate(query.order_by(site_count.desc(), Company.created_at.desc()), page, limit)
    return {
        'data': [c.to_dict(include_sites=True) for c in companies],
        'pagination': pagination_meta(total, page, limit),
    }


def update_company(user: User, data: Dict[str, Any]) -> Dict[str, Any]:
    company = _get_company(data.get('id') or data.get('companyId'))
    missing = [f for f in REQUIRED_UPDATE_FIELDS if not str(data.get(f) or '').strip()]
    if missing:
        raise ValidationError("Name, phone, email, and address are required")
    if not is_valid_email(data['email'].strip()):
        raise ValidationError("Invalid email format")
    _ensure_can_manage(user, company, 'update')

    name = data['name'].strip()
    duplicate = Company.query.filter(func.lower(Company.name) == name.lower(), Company.id != company.id).first()
    if duplicate is not None:
        raise ConflictError(f"Company with name {name} already exists")

    company.name = name
    company.phone = data['phone'].strip()
    company.email = data['email'].strip()
    company.address = data['address'].strip()
    if isinstance(data.get('status'), bool):
        company.status = data['status']
    db.session.commit()
    return company.to_dict()


def toggle_company_status(user: User, company_id: str, status: Optional[bool] = None) -> Dict[str, Any]:
    company = _get_company(company_id)
    _ensure_can_manage(user, company, 'update')
    new_status = (not company.status) if status is None else bool(status)
    count = company.sites.count()
    if count:
        verb = 'enable' if new_status else 'disable'
        raise ValidationError(
            f"Cannot {verb} company with {count} site(s) registered. Please delete all sites first."
        )
    company.status = new_status
    db.session.commit()
    return company.to_dict()


def delete_company(user: User, company_id: str) -> None:
    company = _get_company(company_id)
    _ensure_can_manage(user, company, 'delete')
    count = company.sites.count()
    if count:
        raise ValidationError(
            f"Cannot delete company with {count} site(s) registered. Please delete all sites first."
        )
    db.session.delete(company)
    db.session.commit()
    logger.info("Deleted company %s", company.name)
