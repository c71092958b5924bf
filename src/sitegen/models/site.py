"""
Site Models
===========

A ``Site`` is one tenant of the public renderer, addressed by its domain.
Free-form settings (tagline, accent colour, logo/favicon URLs, generator
preferences) are stored as ``SiteMeta`` key/value rows.
"""

from __future__ import annotations

from typing import Dict, Optional

from ..extensions import db
from ..utils.time import utc_now
from .user import new_uuid, _isoformat


class Site(db.Model):
    __tablename__ = 'sites'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    domain = db.Column(db.String(253), unique=True, nullable=False, index=True)
    site_name = db.Column(db.String(200), nullable=False)
    status = db.Column(db.Boolean, default=False, nullable=False)
    company_id = db.Column(db.String(36), db.ForeignKey('companies.id'), index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), index=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    metas = db.relationship('SiteMeta', backref='site', lazy='dynamic', cascade='all, delete-orphan')
    pages = db.relationship('StaticPage', backref='site', lazy='dynamic', cascade='all, delete-orphan')
    contacts = db.relationship('Contact', backref='site', lazy='dynamic', cascade='all, delete-orphan')
    articles = db.relationship('Article', backref='site', lazy='dynamic')
    owner = db.relationship('User', backref=db.backref('sites', lazy='dynamic'))

    def get_meta(self, key: str, default: Optional[str] = None) -> Optional[str]:
        row = self.metas.filter_by(meta_key=key).first()
        return row.meta_value if row else default

    def set_meta(self, key: str, value: Optional[str]) -> None:
        """Insert or update one meta row (caller commits)."""
        row = self.metas.filter_by(meta_key=key).first()
        if row is None:
            db.session.add(SiteMeta(site_id=self.id, meta_key=key, meta_value=value))
        else:
            row.meta_value = value

    def meta_dict(self) -> Dict[str, Optional[str]]:
        return {m.meta_key: m.meta_value for m in self.metas}

    def __repr__(self) -> str:
        return f'<Site {self.domain}>'

    def to_dict(self, include_meta: bool = True, include_company: bool = False) -> dict:
        data = {
            'id': self.id,
            'domain': self.domain,
            'site_name': self.site_name,
            'status': self.status,
            'company_id': self.company_id,
            'user_id': self.user_id,
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
        }
        if include_meta:
            data['site_meta'] = [m.to_dict() for m in self.metas]
            data['meta'] = self.meta_dict()
        if include_company:
            data['company'] = self.company.to_dict() if self.company else None
        return data


class SiteMeta(db.Model):
    __tablename__ = 'site_meta'
    __table_args__ = (db.UniqueConstraint('site_id', 'meta_key', name='uq_site_meta_key'),)

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    site_id = db.Column(db.String(36), db.ForeignKey('sites.id'), nullable=False, index=True)
    meta_key = db.Column(db.String(100), nullable=False)
    meta_value = db.Column(db.Text)

    def to_dict(self) -> dict:
        return {'meta_key': self.meta_key, 'meta_value': self.meta_value}


class StaticPage(db.Model):
    """About / terms / privacy / contact copy of one site."""

    __tablename__ = 'static_pages'
    __table_args__ = (db.UniqueConstraint('site_id', 'page_type', name='uq_site_page_type'),)

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    site_id = db.Column(db.String(36), db.ForeignKey('sites.id'), nullable=False, index=True)
    page_type = db.Column(db.String(20), nullable=False)
    title = db.Column(db.String(200))
    content = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'site_id': self.site_id,
            'page_type': self.page_type,
            'title': self.title,
            'content': self.content,
            'updated_at': _isoformat(self.updated_at),
        }


class Contact(db.Model):
    """A message left through a site's contact form."""

    __tablename__ = 'contacts'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    site_id = db.Column(db.String(36), db.ForeignKey('sites.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(120), nullable=False)
    subject = db.Column(db.String(255))
    message = db.Column(db.Text, nullable=False)
    ip_address = db.Column(db.String(64))
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'site_id': self.site_id,
            'name': self.name,
            'email': self.email,
            'subject': self.subject,
            'message': self.message,
            'created_at': _isoformat(self.created_at),
        }
