"""DNS / SSL Provisioning Service
=================================

Points new site domains at this server and secures them:

- Cloudflare zone lookup and A-record management (REST via requests)
- propagation check through Google's public DNS-over-HTTPS resolver
- certbot install / removal of certificates
- ``/etc/hosts`` entries for staging boxes without Cloudflare

Every domain is passed through :func:`validate_domain` before it reaches a
subprocess, and subprocesses are always given list arguments.
"""

from __future__ import annotations

import logging
import subprocess
import time
from typing import Callable, Optional

import requests
from flask import current_app

from ..utils.security import validate_domain
from .service_base import OperationError, ValidationError

logger = logging.getLogger(__name__)

CLOUDFLARE_API = 'https://api.cloudflare.com/client/v4'
DNS_RESOLVE_URL = 'https://dns.google/resolve'
DNS_RECORD_COMMENT = 'Dynamic website generator (sitegen)'
# Cloudflare error code for "an identical record already exists"
CF_IDENTICAL_RECORD = 81058


def root_zone(domain: str) -> str:
    """Zone name for ``domain`` (its last two labels).

    >>> root_zone('dev.blog.example.com')
    'example.com'
    """
    labels = domain.strip('.').split('.')
    return '.'.join(labels[-2:])


def _safe_domain(domain: str) -> str:
    result = validate_domain(domain)
    if not result.is_valid:
        raise ValidationError(result.error or 'Invalid domain', details={'domain': result.error})
    return result.sanitized  # type: ignore[return-value]


class DNSService:
    def __init__(self, api_token: Optional[str] = None, server_ip: Optional[str] = None,
                 sleep: Callable[[float], None] = time.sleep):
        cfg = current_app.config
        self.api_token = api_token if api_token is not None else cfg.get('CLOUDFLARE_API_TOKEN')
        self.server_ip = server_ip or cfg.get('SERVER_IP')
        self.timeout = cfg.get('HTTP_TIMEOUT', 30)
        self.hosts_file = cfg.get('HOSTS_FILE', '/etc/hosts')
        self.certbot_email = cfg.get('CERTBOT_EMAIL')
        self._sleep = sleep

    def _headers(self) -> dict:
        return {
            'Authorization': f'Bearer {self.api_token}',
            'Content-Type': 'application/json',
        }

    # ------------------------------------------------------------------
    # Cloudflare
    # ------------------------------------------------------------------

    def get_zone_id(self, domain: str) -> Optional[str]:
        zone = root_zone(_safe_domain(domain))
        try:
            response = requests.get(
                f'{CLOUDFLARE_API}/zones', params={'name': zone},
                headers=self._headers(), timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Cloudflare zone lookup for %s failed: %s", zone, e)
            return None
        if not response.ok:
            logger.error("Cloudflare API error (%s) looking up zone %s", response.status_code, zone)
            return None
        data = response.json()
        result = data.get('result') or []
        return result[0]['id'] if data.get('success') and result else None

    def find_dns_record(self, zone_id: str, domain: str, ip: Optional[str] = None) -> Optional[str]:
        """Id of the A record named ``domain`` (pointing at ``ip``), if any."""
        ip = ip or self.server_ip
        try:
            response = requests.get(
                f'{CLOUDFLARE_API}/zones/{zone_id}/dns_records',
                params={'type': 'A', 'name': domain},
                headers=self._headers(), timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Cloudflare record lookup for %s failed: %s", domain, e)
            return None
        if not response.ok:
            logger.error("Cloudflare API error (%s) listing records", response.status_code)
            return None
        for record in response.json().get('result') or []:
            if record.get('name') == domain and (not ip or record.get('content') == ip):
                return record.get('id')
        return None

    def create_a_record(self, zone_id: str, domain: str, ip: Optional[str] = None, proxied: bool = True) -> str:
        """Create the A record and return its id."""
        payload = {
            'type': 'A',
            'name': _safe_domain(domain),
            'content': ip or self.server_ip,
            'ttl': 3600,
            'proxied': proxied,
            'comment': DNS_RECORD_COMMENT,
        }
        try:
            response = requests.post(
                f'{CLOUDFLARE_API}/zones/{zone_id}/dns_records',
                json=payload, headers=self._headers(), timeout=self.timeout,
            )
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise OperationError(f"Failed to create DNS record for {domain}: {e}") from e

        if not response.ok or not data.get('success'):
            errors = data.get('errors') or [{}]
            if any(err.get('code') == CF_IDENTICAL_RECORD for err in errors):
                raise ValidationError(
                    f"An identical record already exists for {domain}",
                    details={'domain': f"DNS record with name {domain} already exists."},
                )
            message = errors[0].get('message', 'Cloudflare API error')
            raise OperationError(f"{message} for {domain}")

        record_id = (data.get('result') or {}).get('id')
        logger.info("Created A record %s for %s", record_id, domain)
        return record_id

    def delete_dns_record(self, zone_id: str, record_id: str) -> bool:
        if not zone_id or not record_id:
            return False
        try:
            response = requests.delete(
                f'{CLOUDFLARE_API}/zones/{zone_id}/dns_records/{record_id}',
                headers=self._headers(), timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Cloudflare record delete failed: %s", e)
            return False
        if not response.ok:
            logger.error("Cloudflare API error (%s) deleting record %s", response.status_code, record_id)
            return False
        return True

    def remove_domain_record(self, domain: str) -> bool:
        """Look up and delete the A record of ``domain``."""
        zone_id = self.get_zone_id(domain)
        if not zone_id:
            return False
        record_id = self.find_dns_record(zone_id, domain)
        return self.delete_dns_record(zone_id, record_id) if record_id else False

    # ------------------------------------------------------------------
    # Propagation
    # ------------------------------------------------------------------

    def check_dns_propagation(self, domain: str, expected_ip: Optional[str] = None, attempts: int = 3) -> bool:
        """Poll dns.google for an A record, backing off 1s, 2s, 4s... (max 10s)."""
        for attempt in range(1, attempts + 1):
            try:
                response = requests.get(
                    DNS_RESOLVE_URL, params={'name': domain, 'type': 'A'}, timeout=self.timeout,
                )
                answers = response.json().get('Answer') or []
                addresses = [a.get('data') for a in answers]
                if addresses and (not expected_ip or expected_ip in addresses):
                    logger.info("DNS A record found for %s: %s", domain, addresses[0])
                    return True
            except (requests.RequestException, ValueError) as e:
                logger.error("DNS propagation check for %s failed (attempt %d): %s", domain, attempt, e)

            if attempt < attempts:
                delay = min(2 ** (attempt - 1), 10)
                logger.info("DNS A record not found for %s, retrying in %ss", domain, delay)
                self._sleep(delay)
        return False

    # ------------------------------------------------------------------
    # SSL (certbot)
    # ------------------------------------------------------------------

    def install_ssl(self, domain: str) -> bool:
        safe = _safe_domain(domain)
        cmd = ['sudo', 'certbot', '--nginx', '-d', safe, '--non-interactive', '--agree-tos']
        if self.certbot_email:
            cmd += ['-m', self.certbot_email]
        else:
            cmd.append('--register-unsafely-without-email')
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=300, check=False)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error("certbot install for %s failed: %s", safe, e)
            return False
        if result.returncode != 0:
            logger.error("certbot install for %s exited %s: %s", safe, result.returncode, result.stderr.strip())
            return False
        logger.info("SSL certificate installed for %s", safe)
        return True

    def remove_ssl(self, domain: str) -> bool:
        safe = _safe_domain(domain)
        revoke = ['sudo', 'certbot', 'revoke',
                  '--cert-path', f'/etc/letsencrypt/live/{safe}/fullchain.pem',
                  '--reason', 'cessationofoperation', '--non-interactive']
        delete = ['sudo', 'certbot', 'delete', '--cert-name', safe, '--non-interactive']
        try:
            revoked = subprocess.run(revoke, capture_output=True, text=True, timeout=120, check=False)
            if revoked.returncode != 0:
                logger.warning("certbot revoke for %s failed: %s", safe, revoked.stderr.strip())
            deleted = subprocess.run(delete, capture_output=True, text=True, timeout=120, check=False)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error("certbot removal for %s failed: %s", safe, e)
            return False
        if deleted.returncode != 0:
            logger.error("certbot delete for %s failed: %s", safe, deleted.stderr.strip())
            return False
        return True

    # ------------------------------------------------------------------
    # Hosts file (staging)
    # ------------------------------------------------------------------

    def add_hosts_entry(self, domain: str, ip: str = '127.0.0.1') -> bool:
        safe = _safe_domain(domain)
        try:
            with open(self.hosts_file, 'r', encoding='utf-8') as fh:
                lines = fh.read().splitlines()
            if any(safe in line.split()[1:] for line in lines if line.strip()):
                logger.info("%s already present in %s", safe, self.hosts_file)
                return False
            with open(self.hosts_file, 'a', encoding='utf-8') as fh:
                fh.write(f"\n{ip}\t{safe}")
        except OSError as e:
            logger.error("Could not update %s: %s", self.hosts_file, e)
            return False
        return True

    def remove_hosts_entry(self, domain: str) -> bool:
        safe = _safe_domain(domain)
        try:
            with open(self.hosts_file, 'r', encoding='utf-8') as fh:
                lines = fh.read().splitlines()
            kept = [line for line in lines if safe not in line.split()[1:]]
            if len(kept) == len(lines):
                return False
            with open(self.hosts_file, 'w', encoding='utf-8') as fh:
                fh.write('\n'.join(kept) + '\n')
        except OSError as e:
            logger.error("Could not update %s: %s", self.hosts_file, e)
            return False
        return True
