"""Email Service
================

Transactional mail through SendGrid: OTP codes for password reset and
registration, and contact-form notifications to the admin inbox.
"""

from __future__ import annotations

import logging
from typing import Optional

from flask import current_app
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from ..utils.security import sanitize_html
from .service_base import OperationError

logger = logging.getLogger(__name__)

OTP_SUBJECTS = {
    'reset': 'Password Reset - Your OTP Code',
    'registration': 'Verify your email - Your OTP Code',
}


class EmailService:
    """Thin wrapper around :class:`SendGridAPIClient`."""

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        self.api_key = api_key if api_key is not None else current_app.config.get('SENDGRID_API_KEY')
        self.from_email = from_email or current_app.config.get('SENDGRID_FROM_EMAIL')

    def _client(self) -> SendGridAPIClient:
        if not self.api_key:
            raise OperationError("Email service is not configured (SENDGRID_API_KEY missing)")
        return SendGridAPIClient(api_key=self.api_key)

    def send(self, to: str, subject: str, html_content: str, text_content: Optional[str] = None) -> int:
        client = self._client()
        message = Mail(
            from_email=self.from_email,
            to_emails=to,
            subject=subject,
            html_content=html_content,
            plain_text_content=text_content,
        )
        try:
            response = client.send(message)
        except Exception as e:
            logger.error("SendGrid send to %s failed: %s", to, e)
            raise OperationError(f"Failed to send email: {e}") from e

        if response.status_code not in (200, 201, 202):
            raise OperationError(f"SendGrid returned status {response.status_code}")
        logger.info("Email '%s' sent to %s", subject, to)
        return response.status_code

    def send_otp_email(self, to: str, otp: str, purpose: str = 'reset') -> int:
        subject = OTP_SUBJECTS.get(purpose, OTP_SUBJECTS['reset'])
        heading = 'Password Reset Request' if purpose == 'reset' else 'Verify Your Email'
        html_content = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
          <h2 style="text-align: center;">{heading}</h2>
          <p>Use the following code to continue. It expires in 10 minutes.</p>
          <div style="background-color: #f8f9fa; border-radius: 8px; padding: 30px; text-align: center; margin: 30px 0;">
            <span style="font-size: 32px; font-weight: bold; letter-spacing: 8px;">{otp}</span>
          </div>
          <p style="color: #666; font-size: 12px;">If you didn't request this, you can safely ignore this email.</p>
        </div>
        """
        text_content = f"{heading}\n\nYour OTP code is: {otp}\nIt expires in 10 minutes."
        return self.send(to, subject, html_content, text_content)

    def send_contact_notification(self, contact, site=None) -> int:
        """Notify the admin inbox about a contact form submission."""
        admin_email = current_app.config.get('ADMIN_EMAIL')
        if not admin_email:
            raise OperationError("ADMIN_EMAIL is not configured")

        name = sanitize_html(contact.name)
        email = sanitize_html(contact.email)
        subject = sanitize_html(contact.subject or '')
        message = sanitize_html(contact.message).replace('\n', '<br>')
        site_line = f"<p><strong>Site:</strong> {sanitize_html(site.domain)}</p>" if site is not None else ''

        html_content = f"""
          <h3>New Contact Form Submission</h3>
          {site_line}
          <p><strong>Name:</strong> {name}</p>
          <p><strong>Email:</strong> {email}</p>
          <p><strong>Subject:</strong> {subject}</p>
          <p><strong>Message:</strong></p>
          <p>{message}</p>
        """
        text_content = (
            "You have received a new contact form message:\n\n"
            f"Name: {contact.name}\nEmail: {contact.email}\nSubject: {contact.subject}\n"
            f"Message:\n{contact.message}\n"
        )
        return self.send(admin_email, f"New Contact Message: {contact.subject}", html_content, text_content)
