"""Auth Service Layer
===================

Login sessions, registration with email verification, password reset and
the profile of the signed-in user.

Route handlers stay responsible for the HTTP side (Flask-Login calls,
cookies, rate limiting); everything here works on models and raises
service exceptions.
"""
from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_

from ..constants import DEFAULT_ROLE_NAME, PROFILE_META_KEYS, REGISTRATION_OTP_PREFIX, SESSION_PURGE_AFTER_DAYS
from ..extensions import db
from ..models import Company, Role, User, UserMeta, UserRole, UserSession
from ..utils.security import is_valid_email
from ..utils.time import utc_now
from .email_service import EmailService
from .otp_store import generate_otp, normalize_email, otp_store
from .service_base import ConflictError, NotFoundError, UnauthorizedError, ValidationError

logger = logging.getLogger(__name__)

REGISTRATION_REQUIRED_FIELDS = [
    'email', 'password', 'username', 'first_name', 'last_name', 'account_type', 'company', 'phone',
]
REGISTRATION_META_FIELDS = [
    'first_name', 'last_name', 'phone', 'account_type', 'teams', 'linkedin',
    'country', 'state', 'city', 'zip', 'address', 'vat',
]
PHONE_REGEX = re.compile(r'^\+?[0-9]\d{0,15}$')
MIN_RESET_PASSWORD_LENGTH = 6


def registration_key(email: str) -> str:
    return f"{REGISTRATION_OTP_PREFIX}{normalize_email(email)}"


def _find_user_by_login(identifier: str) -> Optional[User]:
    identifier = (identifier or '').strip()
    return User.query.filter(
        or_(func.lower(User.email) == identifier.lower(), User.username == identifier)
    ).first()


def _find_user_by_email(email: str) -> Optional[User]:
    return User.query.filter(func.lower(User.email) == normalize_email(email)).first()


def _company_name_taken(name: str, exclude_id: Optional[str] = None) -> bool:
    query = Company.query.filter(func.lower(Company.name) == (name or '').strip().lower())
    if exclude_id:
        query = query.filter(Company.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def session_payload(user: User, user_session: UserSession) -> Dict[str, Any]:
    return {
        'user': user.to_dict(include_meta=True),
        'accessToken': user_session.access_token,
        'refreshToken': user_session.refresh_token,
        'expiresAt': user_session.to_dict()['expiresAt'],
        'sessionId': user_session.id,
    }


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

def login(identifier: str, password: str, device_info: Optional[str] = None,
          ip_address: Optional[str] = None) -> UserSession:
    """Check credentials and open a new :class:`UserSession`."""
    if not identifier or not password:
        raise ValidationError("Username/Email and password are required")

    user = _find_user_by_login(identifier)
    if user is None:
        raise NotFoundError("User not found")
    if not user.check_password(password):
        logger.warning("Failed login for %s from %s", user.username, ip_address)
        raise UnauthorizedError("Invalid password")
    if not user.is_active:
        raise UnauthorizedError("Account is disabled")

    user_session = UserSession.open(user, device_info=(device_info or 'Unknown')[:255], ip_address=ip_address)
    user.last_login = utc_now()
    db.session.commit()
    logger.info("User %s logged in (session %s)", user.username, user_session.id)
    return user_session


def refresh_session(refresh_token: str) -> UserSession:
    """Rotate both tokens of a live session and extend its expiry."""
    if not refresh_token:
        raise ValidationError("Refresh token is required")

    user_session = UserSession.find_by_refresh_token(refresh_token)
    if user_session is None or not user_session.is_valid():
        raise UnauthorizedError("Invalid or expired refresh token")
    user = user_session.user
    if user is None or not user.is_active:
        raise UnauthorizedError("Invalid or expired refresh token")

    user_session.issue_tokens()
    db.session.commit()
    return user_session


def logout(user: User, refresh_token: Optional[str] = None, logout_all: bool = False,
           current_session_id: Optional[str] = None) -> int:
    """Deactivate the current session (or every session); returns the count."""
    query = UserSession.query.filter_by(user_id=user.id, is_active=True)
    if not logout_all:
        if refresh_token:
            query = query.filter_by(refresh_token=refresh_token)
        elif current_session_id:
            query = query.filter_by(id=current_session_id)
        else:
            return 0

    sessions = query.all()
    for user_session in sessions:
        user_session.deactivate()
    db.session.commit()
    logger.info("Logged out %d session(s) of %s", len(sessions), user.username)
    return len(sessions)


def list_sessions(user: User) -> List[Dict[str, Any]]:
    now = utc_now()
    sessions = (
        UserSession.query
        .filter(UserSession.user_id == user.id, UserSession.is_active.is_(True), UserSession.expires_at > now)
        .order_by(UserSession.last_used_at.desc())
        .all()
    )
    return [s.to_dict() for s in sessions]


def revoke_session(user: User, session_id: str) -> None:
    if not session_id:
        raise ValidationError("Session ID required")
    user_session = UserSession.query.filter_by(id=session_id, user_id=user.id, is_active=True).first()
    if user_session is None:
        raise NotFoundError("Session not found or already inactive")
    user_session.deactivate()
    db.session.commit()


def cleanup_sessions() -> Dict[str, int]:
    """Deactivate expired sessions and purge the ones expired long ago."""
    now = utc_now()
    deactivated = (
        UserSession.query
        .filter(UserSession.is_active.is_(True), UserSession.expires_at < now)
        .update({'is_active': False}, synchronize_session=False)
    )
    deleted = (
        UserSession.query
        .filter(UserSession.expires_at < now - timedelta(days=SESSION_PURGE_AFTER_DAYS))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    logger.info("Session cleanup: %d deactivated, %d deleted", deactivated, deleted)
    return {'deactivatedCount': deactivated, 'deletedCount': deleted}


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

def check_availability(email: Optional[str] = None, username: Optional[str] = None,
                       company: Optional[str] = None) -> Dict[str, Optional[bool]]:
    if not email and not username and not company:
        raise ValidationError("Email, username or company is required")
    result: Dict[str, Optional[bool]] = {'email': None, 'username': None, 'company': None}
    if email:
        result['email'] = _find_user_by_email(email) is None
    if username:
        result['username'] = User.query.filter_by(username=username.strip()).first() is None
    if company:
        result['company'] = not _company_name_taken(company)
    return result


def send_registration_otp(email: str, username: Optional[str] = None,
                          email_service: Optional[EmailService] = None) -> None:
    if not email:
        raise ValidationError("Email is required")
    if not is_valid_email(email.strip()):
        raise ValidationError("Invalid email format")
    if _find_user_by_email(email) is not None:
        raise ConflictError("Email is already registered")
    if username and User.query.filter_by(username=username.strip()).first() is not None:
        raise ConflictError("Username is already taken")

    otp = generate_otp()
    otp_store.set(registration_key(email), otp)
    (email_service or EmailService()).send_otp_email(normalize_email(email), otp, purpose='registration')


def verify_registration_otp(email: str, otp: str) -> None:
    if not email or not otp:
        raise ValidationError("Email and OTP are required")
    result = otp_store.verify(registration_key(email), otp)
    if not result.valid:
        raise ValidationError(result.error)


def validate_registration(data: Dict[str, Any]) -> List[str]:
    errors = []
    for field in REGISTRATION_REQUIRED_FIELDS:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            errors.append(f"{field.replace('_', ' ')} is required")

    email = data.get('email')
    if email and not is_valid_email(str(email).strip()):
        errors.append("Invalid email format")

    password = data.get('password')
    if isinstance(password, str) and password:
        if len(password) < 8:
            errors.append("Password must be at least 8 characters long")
        if not (re.search(r'[a-z]', password) and re.search(r'[A-Z]', password) and re.search(r'\d', password)):
            errors.append(
                "Password must contain at least one uppercase letter, one lowercase letter, and one number"
            )

    phone = data.get('phone')
    if isinstance(phone, str) and phone and not PHONE_REGEX.match(re.sub(r'\s', '', phone)):
        errors.append("Invalid phone number format")
    return errors


def register(data: Dict[str, Any]) -> Dict[str, Any]:
    """Create the user, its profile meta, its company and the default role."""
    errors = validate_registration(data)
    if errors:
        raise ValidationError("Validation failed", details={'details': errors})

    email = normalize_email(data['email'])
    username = data['username'].strip()
    company_name = data['company'].strip()

    if _find_user_by_email(email) is not None:
        raise ConflictError("User with this email already exists")
    if User.query.filter_by(username=username).first() is not None:
        raise ConflictError("Username is already taken")
    if _company_name_taken(company_name):
        raise ConflictError("Company with this name already exists")

    user = User(username=username, email=email)
    user.set_password(data['password'])
    db.session.add(user)
    db.session.flush()

    for key in REGISTRATION_META_FIELDS:
        value = data.get(key)
        db.session.add(UserMeta(user_id=user.id, meta_key=key, meta_value=str(value).strip() if value else ''))
    db.session.add(UserMeta(user_id=user.id, meta_key='company', meta_value=company_name))

    address_parts = [str(data.get(k) or '').strip() for k in ('address', 'city', 'state', 'zip')]
    company = Company(
        name=company_name,
        email=email,
        phone=data['phone'].strip(),
        address=', '.join(p for p in address_parts if p),
        user_id=user.id,
        status=True,
    )
    db.session.add(company)

    role = Role.get_or_create(DEFAULT_ROLE_NAME)
    db.session.add(UserRole(user_id=user.id, role_id=role.id))
    db.session.commit()

    otp_store.delete(registration_key(email))
    logger.info("Registered user %s with company %s", username, company_name)
    return {'user': user.to_dict(), 'company': company.to_dict()}


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------

def forgot_password(email: str, email_service: Optional[EmailService] = None) -> None:
    if not email:
        raise ValidationError("Email is required")
    if not is_valid_email(email.strip()):
        raise ValidationError("Invalid email format")
    if _find_user_by_email(email) is None:
        raise NotFoundError("No account found with this email address.", details={'emailNotFound': True})

    otp = generate_otp()
    otp_store.set(email, otp)
    (email_service or EmailService()).send_otp_email(normalize_email(email), otp, purpose='reset')


def verify_reset_otp(email: str, otp: str) -> None:
    if not email or not otp:
        raise ValidationError("Email and OTP are required")
    result = otp_store.verify(email, otp)
    if not result.valid:
        raise ValidationError(result.error)


def reset_password(email: str, password: str) -> None:
    """Set a new password and sign the account out everywhere.

    Unknown emails are accepted silently so the endpoint cannot be used to
    enumerate accounts.
    """
    if not email or not password:
        raise ValidationError("Email and new password required")
    if not is_valid_email(email.strip()):
        raise ValidationError("Invalid email format")
    if len(password) < MIN_RESET_PASSWORD_LENGTH:
        raise ValidationError("Password must be at least 6 characters long")

    user = _find_user_by_email(email)
    if user is None:
        return

    user.set_password(password)
    UserSession.query.filter_by(user_id=user.id, is_active=True).update(
        {'is_active': False}, synchronize_session=False
    )
    db.session.commit()
    otp_store.delete(email)
    logger.info("Password reset for %s", user.username)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

def get_profile(user: User) -> Dict[str, Any]:
    data = user.to_dict()
    meta = user.meta_dict()
    for key in PROFILE_META_KEYS:
        data[key] = meta.get(key) or ''
    return data


def update_profile(user: User, data: Dict[str, Any]) -> Dict[str, Any]:
    username = (data.get('username') or '').strip()
    if username and username != user.username:
        if User.query.filter(User.username == username, User.id != user.id).first() is not None:
            raise ConflictError("Username is already taken")
        user.username = username

    email = data.get('email')
    if email and normalize_email(email) != user.email:
        if not is_valid_email(email.strip()):
            raise ValidationError("Invalid email format")
        if User.query.filter(func.lower(User.email) == normalize_email(email), User.id != user.id).first():
            raise ConflictError("Email is already registered")
        user.email = normalize_email(email)

    for key in PROFILE_META_KEYS:
        if key in data:
            value = data[key]
            user.set_meta(key, str(value).strip() if value is not None else '')

    db.session.commit()
    return get_profile(user)
