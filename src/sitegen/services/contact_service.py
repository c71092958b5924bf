"""Contact form submissions from the public sites."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..extensions import db
from ..models import Contact, Site
from ..utils.security import is_valid_email
from .email_service import EmailService
from .service_base import NotFoundError, ServiceError, ValidationError, text_field

logger = logging.getLogger(__name__)


def validate_contact(data: Dict[str, Any]) -> List[str]:
    errors = []
    if len(text_field(data, 'name')) < 2:
        errors.append('Name must be at least 2 characters long')
    if not is_valid_email(text_field(data, 'email')):
        errors.append('Please provide a valid email address')
    if not text_field(data, 'subject'):
        errors.append('Subject is required.')
    if len(text_field(data, 'message')) < 10:
        errors.append('Message must be at least 10 characters long')
    return errors


def submit_contact(data: Dict[str, Any], ip_address: Optional[str] = None,
                   email_service: Optional[EmailService] = None) -> Contact:
    """Store the message and notify the admin inbox; mail failures are only logged."""
    errors = validate_contact(data)
    if errors:
        raise ValidationError(errors[0], details={'errors': errors})

    site_id = text_field(data, 'siteId')
    site = db.session.get(Site, site_id) if site_id else None
    if site is None:
        raise NotFoundError("Site not found")

    contact = Contact(
        site_id=site.id,
        name=text_field(data, 'name'),
        email=text_field(data, 'email'),
        subject=text_field(data, 'subject'),
        message=text_field(data, 'message'),
        ip_address=ip_address,
    )
    db.session.add(contact)
    db.session.commit()
    logger.info("Contact message %s stored for %s", contact.id, site.domain)

    try:
        (email_service or EmailService()).send_contact_notification(contact, site)
    except ServiceError as e:
        logger.error("Contact notification email failed: %s", e)
    return contact
