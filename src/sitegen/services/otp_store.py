"""OTP Store
============

In-process store of one-time codes used by password reset and registration
email verification. Keys are normalized emails (registration codes carry the
``registration_`` prefix). Entries expire after ten minutes; a daemon timer
sweeps expired entries every five minutes.

The store lives in process memory, so a multi-worker deployment needs sticky
sessions or a single web worker for the OTP flows.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..constants import OTP_EXPIRY_SECONDS, OTP_MAX_ATTEMPTS, OTP_SWEEP_INTERVAL_SECONDS

logger = logging.getLogger(__name__)

NO_OTP_ERROR = 'No OTP found for this email. Please request a new OTP.'
EXPIRED_ERROR = 'OTP has expired. Please request a new OTP.'
TOO_MANY_ATTEMPTS_ERROR = 'Too many failed attempts. Please request a new OTP.'


def normalize_email(email: str) -> str:
    return (email or '').strip().lower()


def generate_otp() -> str:
    """Six-digit numeric code in 100000..999999."""
    return str(100000 + secrets.randbelow(900000))


@dataclass
class OTPData:
    otp: str
    email: str
    created_at: float = field(default_factory=time.time)
    attempts: int = 0

    def is_expired(self, now: Optional[float] = None) -> bool:
        return ((now or time.time()) - self.created_at) > OTP_EXPIRY_SECONDS


@dataclass
class OTPVerification:
    valid: bool
    error: Optional[str] = None


class OTPStore:
    """Thread-safe map of normalized email to :class:`OTPData`."""

    def __init__(self, sweep_interval: float = OTP_SWEEP_INTERVAL_SECONDS):
        self._store: Dict[str, OTPData] = {}
        self._lock = threading.Lock()
        self._sweep_interval = sweep_interval
        self._timer: Optional[threading.Timer] = None

    def set(self, email: str, otp: str) -> None:
        key = normalize_email(email)
        with self._lock:
            self._store[key] = OTPData(otp=str(otp), email=key)
            size = len(self._store)
        logger.info("OTP stored for %s (store size %d)", key, size)

    def get(self, email: str) -> Optional[OTPData]:
        key = normalize_email(email)
        with self._lock:
            data = self._store.get(key)
            if data is None:
                return None
            if data.is_expired():
                del self._store[key]
                logger.debug("OTP expired for %s", key)
                return None
            return data

    def verify(self, email: str, otp: str) -> OTPVerification:
        """Check ``otp`` against the stored code, counting failed attempts.

        A successful match consumes the code. After three failures the entry
        is dropped and a new code must be requested.
        """
        key = normalize_email(email)
        with self._lock:
            data = self._store.get(key)
            if data is None:
                return OTPVerification(False, NO_OTP_ERROR)

            if data.is_expired():
                del self._store[key]
                return OTPVerification(False, EXPIRED_ERROR)

            if data.attempts >= OTP_MAX_ATTEMPTS:
                del self._store[key]
                return OTPVerification(False, TOO_MANY_ATTEMPTS_ERROR)

            if str(otp).strip() == data.otp.strip():
                del self._store[key]
                logger.info("OTP verified for %s", key)
                return OTPVerification(True)

            data.attempts += 1
            remaining = OTP_MAX_ATTEMPTS - data.attempts
            if remaining <= 0:
                del self._store[key]
                return OTPVerification(False, TOO_MANY_ATTEMPTS_ERROR)

        logger.info("Invalid OTP for %s (%d/%d)", key, OTP_MAX_ATTEMPTS - remaining, OTP_MAX_ATTEMPTS)
        return OTPVerification(False, f'Invalid OTP. {remaining} attempt(s) remaining.')

    def delete(self, email: str) -> bool:
        with self._lock:
            return self._store.pop(normalize_email(email), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._store)

    def entries(self) -> List[Tuple[str, OTPData]]:
        with self._lock:
            return list(self._store.items())

    def cleanup_expired(self) -> int:
        now = time.time()
        with self._lock:
            expired = [k for k, v in self._store.items() if v.is_expired(now)]
            for key in expired:
                del self._store[key]
        if expired:
            logger.info("Cleaned up %d expired OTP(s)", len(expired))
        return len(expired)

    # -- periodic sweep -------------------------------------------------

    def start_sweeper(self) -> None:
        """Schedule the periodic sweep (idempotent)."""
        with self._lock:
            if self._timer is not None:
                return
            self._schedule_locked()

    def stop_sweeper(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _schedule_locked(self) -> None:
        timer = threading.Timer(self._sweep_interval, self._sweep)
        timer.daemon = True
        timer.name = 'otp-sweeper'
        self._timer = timer
        timer.start()

    def _sweep(self) -> None:
        try:
            self.cleanup_expired()
        except Exception:  # keep the timer chain alive
            logger.exception("OTP sweep failed")
        with self._lock:
            if self._timer is not None:
                self._schedule_locked()


otp_store = OTPStore()
