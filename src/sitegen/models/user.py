"""
User Models for Authentication
==============================

User accounts, their free-form profile meta, roles and the login sessions
that back both the cookie session and Bearer access tokens.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import timedelta
from typing import Dict, Optional

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from ..constants import ACCESS_TOKEN_TTL_DAYS, ADMIN_ROLE_NAME, REFRESH_TOKEN_TTL_DAYS
from ..extensions import db
from ..utils.time import ensure_aware, utc_now


def new_uuid() -> str:
    return str(uuid.uuid4())


def _isoformat(value) -> Optional[str]:
    value = ensure_aware(value)
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    """
    User model for authentication.

    Uses Flask-Login's UserMixin for session management. Profile fields such
    as first name or phone live in ``UserMeta`` rows.
    """

    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)
    last_login = db.Column(db.DateTime(timezone=True))

    metas = db.relationship('UserMeta', backref='user', lazy='dynamic', cascade='all, delete-orphan')
    user_roles = db.relationship('UserRole', backref='user', lazy='dynamic', cascade='all, delete-orphan')
    sessions = db.relationship('UserSession', backref='user', lazy='dynamic', cascade='all, delete-orphan')

    # UserSession behind the current cookie login; not a column
    login_session_id = None

    def __init__(self, username: str, email: str):
        self.username = username
        self.email = email

    def get_id(self) -> str:
        """Login id stored in the session and remember cookies: ``"<user id>:<session id>"``."""
        return f"{self.id}:{self.login_session_id or ''}"

    def set_password(self, password: str) -> None:
        """
        Hash and store a password.

        Args:
            password: Plain text password to hash
        """
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """
        Verify a password against the stored hash.

        Args:
            password: Plain text password to verify

        Returns:
            True if password matches, False otherwise
        """
        return check_password_hash(self.password_hash, password)

    def get_meta(self, key: str, default: Optional[str] = None) -> Optional[str]:
        row = self.metas.filter_by(meta_key=key).first()
        return row.meta_value if row else default

    def set_meta(self, key: str, value: Optional[str]) -> None:
        """Insert or update one meta row (caller commits)."""
        row = self.metas.filter_by(meta_key=key).first()
        if row is None:
            db.session.add(UserMeta(user_id=self.id, meta_key=key, meta_value=value))
        else:
            row.meta_value = value

    def meta_dict(self) -> Dict[str, Optional[str]]:
        return {m.meta_key: m.meta_value for m in self.metas}

    @property
    def role_names(self) -> list:
        return [ur.role.name for ur in self.user_roles if ur.role is not None]

    def has_role(self, name: str) -> bool:
        return name in self.role_names

    @property
    def is_admin(self) -> bool:
        return self.has_role(ADMIN_ROLE_NAME)

    def __repr__(self) -> str:
        return f'<User {self.username}>'

    def to_dict(self, include_meta: bool = False) -> dict:
        """Convert user to dictionary (excluding password hash)."""
        data = {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'is_active': self.is_active,
            'is_admin': self.is_admin,
            'roles': self.role_names,
            'created_at': _isoformat(self.created_at),
            'last_login': _isoformat(self.last_login),
        }
        if include_meta:
            data['meta'] = self.meta_dict()
        return data


class UserMeta(db.Model):
    __tablename__ = 'user_meta'
    __table_args__ = (db.UniqueConstraint('user_id', 'meta_key', name='uq_user_meta_key'),)

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    meta_key = db.Column(db.String(100), nullable=False)
    meta_value = db.Column(db.Text)


class Role(db.Model):
    __tablename__ = 'roles'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    name = db.Column(db.String(50), unique=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    @classmethod
    def get_or_create(cls, name: str) -> 'Role':
        role = cls.query.filter_by(name=name).first()
        if role is None:
            role = cls(name=name)
            db.session.add(role)
            db.session.flush()
        return role


class UserRole(db.Model):
    __tablename__ = 'user_roles'
    __table_args__ = (db.UniqueConstraint('user_id', 'role_id', name='uq_user_role'),)

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    role_id = db.Column(db.String(36), db.ForeignKey('roles.id'), nullable=False)

    role = db.relationship('Role')


class UserSession(db.Model):
    """
    One login of one device.

    The refresh token lives for 30 days and the access token for 7; both are
    rotated together on refresh. Deactivated sessions stay in the table until
    the cleanup job purges them.
    """

    __tablename__ = 'user_sessions'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    refresh_token = db.Column(db.String(128), unique=True, nullable=False, index=True)
    access_token = db.Column(db.String(128), unique=True, nullable=False, index=True)
    device_info = db.Column(db.String(255))
    ip_address = db.Column(db.String(64))
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    access_expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    last_used_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    @classmethod
    def open(cls, user: User, device_info: Optional[str] = None,
             ip_address: Optional[str] = None) -> 'UserSession':
        """Create (but do not commit) a fresh session for ``user``."""
        user_session = cls(user_id=user.id, device_info=device_info, ip_address=ip_address, is_active=True)
        user_session.issue_tokens()
        db.session.add(user_session)
        return user_session

    def issue_tokens(self) -> None:
        now = utc_now()
        self.refresh_token = secrets.token_urlsafe(48)
        self.access_token = secrets.token_urlsafe(48)
        self.expires_at = now + timedelta(days=REFRESH_TOKEN_TTL_DAYS)
        self.access_expires_at = now + timedelta(days=ACCESS_TOKEN_TTL_DAYS)
        self.last_used_at = now

    def is_valid(self) -> bool:
        return bool(self.is_active) and ensure_aware(self.expires_at) > utc_now()

    def deactivate(self) -> None:
        self.is_active = False

    @classmethod
    def find_by_access_token(cls, token: str) -> Optional['UserSession']:
        if not token:
            return None
        user_session = cls.query.filter_by(access_token=token, is_active=True).first()
        if user_session is None or ensure_aware(user_session.access_expires_at) <= utc_now():
            return None
        return user_session

    @classmethod
    def find_by_refresh_token(cls, token: str) -> Optional['UserSession']:
        if not token:
            return None
        return cls.query.filter_by(refresh_token=token).first()

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'deviceInfo': self.device_info,
            'ipAddress': self.ip_address,
            'isActive': self.is_active,
            'createdAt': _isoformat(self.created_at),
            'lastUsedAt': _isoformat(self.last_used_at),
            'expiresAt': _isoformat(self.expires_at),
        }
