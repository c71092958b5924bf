from __future__ import annotations

from ..extensions import db
from ..utils.time import utc_now
from .user import new_uuid, _isoformat


class Company(db.Model):
    """Billing/owning organisation; every site belongs to one company."""

    __tablename__ = 'companies'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    name = db.Column(db.String(200), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120))
    phone = db.Column(db.String(32))
    address = db.Column(db.Text)
    status = db.Column(db.Boolean, default=True, nullable=False)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), index=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    owner = db.relationship('User', backref=db.backref('companies', lazy='dynamic'))
    sites = db.relationship('Site', backref='company', lazy='dynamic')

    def __repr__(self) -> str:
        return f'<Company {self.name}>'

    def to_dict(self, include_sites: bool = False) -> dict:
        data = {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'status': self.status,
            'user_id': self.user_id,
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
            'sitesCount': self.sites.count(),
        }
        if self.owner is not None:
            data['user'] = {'id': self.owner.id, 'email': self.owner.email, 'username': self.owner.username}
        if include_sites:
            data['sites'] = [
                {'id': s.id, 'domain': s.domain, 'site_name': s.site_name, 'status': s.status}
                for s in self.sites
            ]
        return data
