"""Security Utilities
===================

Input validation and sanitization helpers shared by the admin API and the
public renderer:

- domain validation before a value reaches certbot / DNS APIs
- URL validation and redirect-checked fetching of user-supplied URLs (SSRF guard)
- email / UUID checks and HTML escaping
- client IP extraction behind proxies

Rate limiting lives in Flask-Limiter (see ``sitegen.extensions.limiter``).
"""
from __future__ import annotations

import html
import ipaddress
import re
import socket
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Tuple
from urllib.parse import urljoin, urlparse

import requests
from flask import request

SHELL_METACHARACTERS = re.compile(r"[;&|`$(){}\[\]<>!#*?~\n\r\\'\"]")
DOMAIN_REGEX = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.[A-Za-z0-9-]{1,63})*\.[A-Za-z]{2,}$")
SAFE_DOMAIN_CHARS = re.compile(r"^[a-z0-9.-]+$")
EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ALLOWED_URL_SCHEMES = ('http', 'https')
MAX_FETCH_REDIRECTS = 3
BLOCKED_HOSTNAMES = {
    'localhost',
    'metadata.google.internal',
    'metadata.google.com',
}


# ============================================================================
# DOMAIN VALIDATION
# ============================================================================

@dataclass
class DomainValidation:
    is_valid: bool
    sanitized: Optional[str] = None
    error: Optional[str] = None


def validate_domain(domain: Any) -> DomainValidation:
    """Validate and normalize a domain for use in shell commands and DNS calls.

    >>> validate_domain(" Example.COM ").sanitized
    'example.com'
    >>> validate_domain("evil.com; rm -rf /").is_valid
    False
    """
    if not domain or not isinstance(domain, str):
        return DomainValidation(False, error="Domain is required")

    cleaned = domain.strip().lower()
    if not cleaned:
        return DomainValidation(False, error="Domain cannot be empty")

    if len(cleaned) > 253:
        return DomainValidation(False, error="Domain name too long (max 253 characters)")

    # metacharacters first
    if SHELL_METACHARACTERS.search(cleaned):
        return DomainValidation(False, error="Domain contains invalid characters")

    if not DOMAIN_REGEX.match(cleaned):
        return DomainValidation(False, error="Invalid domain format. Example: example.com")

    if not SAFE_DOMAIN_CHARS.match(cleaned):
        return DomainValidation(False, error="Domain contains disallowed characters")

    return DomainValidation(True, sanitized=cleaned)


# ============================================================================
# URL VALIDATION (SSRF)
# ============================================================================

def _is_blocked_address(hostname: str) -> bool:
    try:
        address = ipaddress.ip_address(hostname.strip('[]').split('%')[0])
    except ValueError:
        return False
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_unspecified
        or address.is_multicast
        or not address.is_global
    )


def validate_url_for_fetch(url: Any) -> Tuple[bool, Optional[str]]:
    """Check a URL is safe to fetch server-side.

    Returns ``(is_valid, error)``.
    """
    if not url or not isinstance(url, str):
        return False, "URL is required"

    try:
        parsed = urlparse(url)
    except ValueError:
        return False, "Invalid URL format"

    if parsed.scheme not in ALLOWED_URL_SCHEMES or not parsed.hostname:
        return False, "Only HTTP/HTTPS URLs are allowed"

    if parsed.username or parsed.password:
        return False, "URLs with credentials are not allowed"

    hostname = parsed.hostname.lower()
    if hostname in BLOCKED_HOSTNAMES or _is_blocked_address(hostname):
        return False, "This URL is not allowed"

    return True, None


class UnsafeURLError(ValueError):
    """A user-supplied URL (or one of its redirects) points somewhere we must not fetch."""


def resolves_to_public_address(hostname: str) -> bool:
    """True when every address ``hostname`` resolves to is globally routable."""
    try:
        infos = socket.getaddrinfo(hostname, None)
    except (socket.gaierror, UnicodeError):
        return False
    addresses = {info[4][0] for info in infos}
    return bool(addresses) and not any(_is_blocked_address(address) for address in addresses)


def fetch_public_url(url: str, timeout: float = 30, max_redirects: int = MAX_FETCH_REDIRECTS) -> requests.Response:
    """GET a user-supplied URL.

    Redirects are followed by hand so that every hop is validated and its
    host resolved before it is requested. Raises :class:`UnsafeURLError` for
    blocked targets and ``requests.RequestException`` for transport or HTTP
    errors.
    """
    for _ in range(max_redirects + 1):
        ok, error = validate_url_for_fetch(url)
        if not ok:
            raise UnsafeURLError(error or "This URL is not allowed")
        if not resolves_to_public_address(urlparse(url).hostname):
            raise UnsafeURLError("This URL is not allowed")

        response = requests.get(url, timeout=timeout, allow_redirects=False)
        if not response.is_redirect:
            response.raise_for_status()
            return response
        url = urljoin(url, response.headers['Location'])

    raise UnsafeURLError("Too many redirects")


# ============================================================================
# INPUT HELPERS
# ============================================================================

def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and bool(EMAIL_REGEX.match(email))


def is_valid_uuid(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def sanitize_html(value: str) -> str:
    """Escape text for safe inclusion in HTML bodies (emails, notifications)."""
    return html.escape(value or '', quote=True).replace('/', '&#x2F;')


def get_client_ip(req=None) -> str:
    """Best-effort client IP behind reverse proxies."""
    req = req or request
    forwarded = req.headers.get('X-Forwarded-For', '')
    if forwarded:
        first = forwarded.split(',')[0].strip()
        if first:
            return first
    real_ip = req.headers.get('X-Real-IP')
    if real_ip:
        return real_ip.strip()
    return req.remote_addr or 'unknown'

