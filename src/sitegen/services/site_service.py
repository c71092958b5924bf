"""Site Service Layer
===================

Creation, update and teardown of tenant sites, including the DNS / SSL
provisioning and the logo and favicon assets stored on Spaces.

Field-level validation problems are raised with ``details={'fields': {...}}``
so the admin form can highlight the offending input.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app
from sqlalchemy import func, or_

from ..constants import DEV_DOMAIN_PREFIX, SITE_ARTICLES_PER_PAGE
from ..extensions import db
from ..models import Article, ArticleTag, Company, Contact, Site, SiteMeta, StaticPage, User
from ..utils.pagination import paginate, pagination_meta
from ..utils.security import is_valid_uuid, validate_domain
from .dns_service import DNSService
from .image_service import load_image_source, resize_favicon
from .service_base import (
    ConflictError, ForbiddenError, NotFoundError, OperationError, ServiceError, ValidationError,
)
from .storage_service import StorageService

logger = logging.getLogger(__name__)

SVG_MIME = 'image/svg+xml'


def field_error(field: str, message: str, error_cls=ValidationError):
    return error_cls(message, details={'fields': {field: message}})


def get_site_or_404(site_id: str) -> Site:
    if not site_id:
        raise ValidationError("Site ID is required")
    site = db.session.get(Site, site_id)
    if site is None:
        raise NotFoundError("Site not found")
    return site


def ensure_site_owner(user: User, site: Site) -> None:
    if user.is_admin or site.user_id == user.id:
        return
    if site.company is not None and site.company.user_id == user.id:
        return
    raise ForbiddenError("Unauthorized - You do not own this site")


def get_owned_site(user: User, site_id: str) -> Site:
    site = get_site_or_404(site_id)
    ensure_site_owner(user, site)
    return site


def get_site_by_domain(domain: str) -> Site:
    if not domain:
        raise ValidationError("Domain parameter is required")
    site = Site.query.filter(func.lower(Site.domain) == domain.strip().lower()).first()
    if site is None:
        raise NotFoundError("Site not found")
    return site


def _replace_meta(site: Site, values: Dict[str, Optional[str]]) -> None:
    SiteMeta.query.filter(SiteMeta.site_id == site.id, SiteMeta.meta_key.in_(list(values))).delete(
        synchronize_session=False
    )
    for key, value in values.items():
        db.session.add(SiteMeta(site_id=site.id, meta_key=key, meta_value=value or ''))


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------

def store_logo(storage: StorageService, site_id: str, source: Optional[str] = None,
               upload: Optional[bytes] = None) -> str:
    """Upload the logo to ``{site_id}/logo.png``; returns '' when nothing was stored."""
    try:
        if upload:
            data = upload
        elif source:
            data, _ = load_image_source(source, current_app.config.get('HTTP_TIMEOUT', 30))
        else:
            return ''
        return storage.upload_bytes(data, 'logo.png', site_id, 'image/png')
    except (ValidationError, OperationError) as e:
        logger.error("Failed to upload logo for site %s: %s", site_id, e)
        return ''


def store_favicon(storage: StorageService, site_id: str, source: Optional[str] = None,
                  upload: Optional[bytes] = None) -> str:
    """Resize the favicon to 32x32 and upload it to ``{site_id}/favicon.png``.

    SVG monograms from the favicon generator are stored as-is.
    """
    try:
        if upload:
            data, mime = upload, ''
        elif source:
            data, mime = load_image_source(source, current_app.config.get('HTTP_TIMEOUT', 30))
        else:
            return ''
        if mime == SVG_MIME:
            return storage.upload_bytes(data, 'favicon.svg', site_id, SVG_MIME)
        return storage.upload_bytes(resize_favicon(data), 'favicon.png', site_id, 'image/png')
    except (ValidationError, OperationError) as e:
        logger.error("Failed to upload favicon for site %s: %s", site_id, e)
        return ''


# ---------------------------------------------------------------------------
# Provisioning
# ---------------------------------------------------------------------------

def _provision_dns(dns: DNSService, domain: str) -> Optional[Dict[str, str]]:
    """Create the Cloudflare A record, wait for it and install SSL.

    Returns ``{zone_id, record_id}`` for cleanup.
    """
    zone_id = dns.get_zone_id(domain)
    if not zone_id:
        raise field_error('domain', f"Your domain {domain} does not exist in Cloudflare.")
    if dns.find_dns_record(zone_id, domain):
        raise field_error('domain', f"DNS record with name {domain} already exists.")

    record_id = dns.create_a_record(zone_id, domain)
    created = {'zone_id': zone_id, 'record_id': record_id}

    if not dns.check_dns_propagation(domain, dns.server_ip):
        dns.delete_dns_record(zone_id, record_id)
        raise field_error(
            'dns', f"DNS A record not propagated for {domain}. Please add {dns.server_ip} to your DNS records."
        )
    if not dns.install_ssl(domain):
        dns.delete_dns_record(zone_id, record_id)
        raise field_error(
            'ssl', f"Failed to install SSL certificate for {domain}. "
                   "Please check your domain configuration and try again."
        )
    return created


def _resolve_company(user: User, data: Dict[str, Any]) -> Company:
    company_id = (data.get('companyId') or data.get('company') or '').strip()
    if company_id:
        if not is_valid_uuid(company_id):
            raise field_error('company', "Invalid company ID format")
        company = db.session.get(Company, company_id)
        if company is None:
            raise field_error('company', f"Company with id {company_id} not found")
        return company

    name = (data.get('companyName') or '').strip()
    if not name:
        raise field_error('company', "Company is required")
    if Company.query.filter(func.lower(Company.name) == name.lower()).first() is not None:
        raise field_error('company', f"Company with name {name} already exists", ConflictError)
    company = Company(
        name=name,
        email=(data.get('email') or '').strip(),
        phone=(data.get('phone') or '').strip(),
        address=(data.get('address') or '').strip(),
        user_id=user.id,
        status=True,
    )
    db.session.add(company)
    db.session.flush()
    return company


def _cleanup_failed_site(site_id: Optional[str], dns: Optional[DNSService],
                         dns_record: Optional[Dict[str, str]], domain: str) -> None:
    db.session.rollback()
    if site_id:
        site = db.session.get(Site, site_id)
        if site is not None:
            db.session.delete(site)
            db.session.commit()
            logger.info("Cleaned up site %s after creation failure", site_id)
    if dns is not None and dns_record:
        if dns.delete_dns_record(dns_record['zone_id'], dns_record['record_id']):
            logger.info("Cleaned up DNS record for %s", domain)
    elif current_app.config.get('MANAGE_HOSTS_FILE'):
        DNSService().remove_hosts_entry(domain)


def create_site(user: User, data: Dict[str, Any], logo_upload: Optional[bytes] = None,
                favicon_upload: Optional[bytes] = None, dns: Optional[DNSService] = None,
                storage: Optional[StorageService] = None) -> Dict[str, Any]:
    cfg = current_app.config
    domain_check = validate_domain(data.get('domain'))
    if not domain_check.is_valid:
        raise field_error('domain', domain_check.error or "Missing domain")
    domain = domain_check.sanitized

    site_name = (data.get('siteName') or '').strip()
    tagline = (data.get('tagline') or '').strip()
    if not site_name:
        raise field_error('siteName', "Missing site name")
    if not tagline:
        raise field_error('tagline', "Missing tagline")

    if not cfg.get('IS_PRODUCTION') and not domain.startswith(DEV_DOMAIN_PREFIX):
        domain = f"{DEV_DOMAIN_PREFIX}{domain}"

    if Site.query.filter(func.lower(Site.domain) == domain).first() is not None:
        raise field_error('domain', f"This domain {domain} is already connected to another site.", ConflictError)

    use_cloudflare = cfg.get('IS_PRODUCTION') and (
        cfg.get('CLOUDFLARE_ENABLED') or str(data.get('isCloudflare', '')).lower() == 'true'
    )
    dns_record = None
    if use_cloudflare:
        dns = dns or DNSService()
        dns_record = _provision_dns(dns, domain)
    elif cfg.get('MANAGE_HOSTS_FILE'):
        (dns or DNSService()).add_hosts_entry(domain)

    site_id = None
    try:
        company = _resolve_company(user, data)
        site = Site(domain=domain, site_name=site_name, user_id=user.id, company_id=company.id)
        db.session.add(site)
        db.session.flush()
        site_id = site.id
        site.set_meta('tagline', tagline)
        site.set_meta('accent_color', (data.get('accentColor') or '').strip())
        db.session.commit()

        if logo_upload or data.get('logoUrl') or favicon_upload or data.get('faviconUrl'):
            storage = storage or StorageService()
            site.set_meta('logo_url', store_logo(storage, site.id, data.get('logoUrl'), logo_upload))
            site.set_meta('favicon_url', store_favicon(storage, site.id, data.get('faviconUrl'), favicon_upload))
            db.session.commit()
    except Exception:
        logger.exception("Site creation for %s failed", domain)
        _cleanup_failed_site(site_id, dns, dns_record, domain)
        raise

    logger.info("Created site %s (%s)", domain, site.id)
    return {'siteId': site.id, 'domain': domain, 'message': 'Site created successfully.'}


def update_site(user: User, data: Dict[str, Any], logo_upload: Optional[bytes] = None,
                favicon_upload: Optional[bytes] = None,
                storage: Optional[StorageService] = None) -> Dict[str, Any]:
    site_id = (data.get('siteId') or '').strip()
    site_name = (data.get('siteName') or '').strip()
    tagline = (data.get('tagline') or '').strip()
    if not site_id or not site_name or not tagline:
        raise ValidationError("Missing required fields")

    site = get_site_or_404(site_id)
    ensure_site_owner(user, site)

    company_id = (data.get('companyId') or '').strip()
    if company_id:
        company = db.session.get(Company, company_id) if is_valid_uuid(company_id) else None
        if company is None:
            raise field_error('company', f"Company with id {company_id} not found")
        site.company = company

    logo_url = (data.get('logoUrl') or '').strip()
    favicon_url = (data.get('faviconUrl') or '').strip()
    if logo_upload or favicon_upload:
        storage = storage or StorageService()
        if logo_upload:
            logo_url = store_logo(storage, site.id, upload=logo_upload) or logo_url
        if favicon_upload:
            favicon_url = store_favicon(storage, site.id, upload=favicon_upload) or favicon_url

    site.site_name = site_name
    values = {
        'tagline': tagline,
        'company': data.get('companyName') or (site.company.name if site.company else ''),
    }
    for key, field in (('phone', 'phone'), ('email', 'email'), ('address', 'address'),
                       ('accent_color', 'accentColor')):
        if field in data:
            values[key] = (data.get(field) or '').strip()
    if logo_url:
        values['logo_url'] = logo_url
    if favicon_url:
        values['favicon_url'] = favicon_url
    _replace_meta(site, values)
    db.session.commit()
    return {'siteId': site.id, 'message': 'Site updated successfully.'}


def delete_site(user: User, site_id: str, dns: Optional[DNSService] = None,
                storage: Optional[StorageService] = None) -> Dict[str, Any]:
    """Remove the site, its content and files, then its DNS record and certificate."""
    site = get_owned_site(user, site_id)
    domain = site.domain

    SiteMeta.query.filter_by(site_id=site.id).delete(synchronize_session=False)
    StaticPage.query.filter_by(site_id=site.id).delete(synchronize_session=False)
    Contact.query.filter_by(site_id=site.id).delete(synchronize_session=False)
    article_ids = [a.id for a in Article.query.with_entities(Article.id).filter_by(site_id=site.id)]
    if article_ids:
        ArticleTag.query.filter(ArticleTag.article_id.in_(article_ids)).delete(synchronize_session=False)
        Article.query.filter(Article.id.in_(article_ids)).delete(synchronize_session=False)
    db.session.delete(site)
    db.session.commit()
    logger.info("Deleted site %s (%s)", domain, site_id)

    cfg = current_app.config
    try:
        (storage or StorageService()).delete_site_files(site_id)
    except (BotoCoreError, ClientError, ServiceError) as e:
        logger.error("Failed to delete Spaces files of site %s: %s", site_id, e)

    if cfg.get('IS_PRODUCTION'):
        dns = dns or DNSService()
        if not dns.remove_domain_record(domain):
            logger.error("Failed to remove DNS record for %s", domain)
        if not dns.remove_ssl(domain):
            logger.error("Failed to remove SSL certificate for %s", domain)
    elif cfg.get('MANAGE_HOSTS_FILE'):
        (dns or DNSService()).remove_hosts_entry(domain)

    return {'message': 'Site and all related data deleted.'}


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def list_sites(user: User, search: str = '', page: int = 1, limit: int = 10) -> Dict[str, Any]:
    query = Site.query
    if not user.is_admin:
        owned_companies = db.session.query(Company.id).filter(Company.user_id == user.id)
        query = query.filter(or_(Site.user_id == user.id, Site.company_id.in_(owned_companies)))
    search = (search or '').strip()
    if search:
        like = f"%{search}%"
        query = query.filter(or_(Site.domain.ilike(like), Site.site_name.ilike(like)))
    sites, total = paginate(query.order_by(Site.created_at.desc()), page, limit)
    return {
        'sites': [s.to_dict(include_company=True) for s in sites],
        'pagination': pagination_meta(total, page, limit),
    }


def publish_site(user: User, site_id: str) -> Dict[str, Any]:
    site = get_owned_site(user, site_id)
    site.status = True
    db.session.commit()
    return {'url': site.domain}


def validate_site(user: User, site_id: str) -> Dict[str, Any]:
    site = get_owned_site(user, site_id)
    return {
        'valid': True,
        'domain': site.domain,
        'site_name': site.site_name,
        'meta': site.meta_dict(),
        'company': site.company.to_dict() if site.company else None,
    }


def get_site_data(domain: str, page: int = 1, limit: int = SITE_ARTICLES_PER_PAGE) -> Dict[str, Any]:
    """Public view of a site: meta, company and one page of published articles."""
    site = get_site_by_domain(domain)
    query = Article.query.filter_by(site_id=site.id, published=True).order_by(Article.created_at.desc())
    articles, total = paginate(query, page, limit)
    data = site.to_dict(include_company=True)
    data['articles'] = [a.to_dict() for a in articles]
    data['articlesCount'] = total
    return data
