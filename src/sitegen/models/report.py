"""
Freestar Reporting Models
=========================

``FreestarDailyReport`` mirrors the daily CSV export row for row.
``FreestarTypecode`` is the source/typecode registry the search feed hands
out per (site, keyword); ``FreestarHourlyReport`` holds the per-typecode
hourly figures the dashboard charts.
"""

from __future__ import annotations

from ..extensions import db
from ..utils.time import utc_now


class FreestarDailyReport(db.Model):
    __tablename__ = 'freestar_daily_reports'
    __table_args__ = (
        db.UniqueConstraint(
            'date', 'site_domain', 'traffic_source_code', 'type_tag', 'device_type', 'ad_type',
            name='uq_freestar_daily_row',
        ),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    date = db.Column(db.Date, nullable=False, index=True)
    site_domain = db.Column(db.String(253), nullable=False, default='')
    traffic_source_name = db.Column(db.String(200), default='')
    traffic_source_code = db.Column(db.String(100), nullable=False, default='')
    product = db.Column(db.String(100), default='')
    market = db.Column(db.String(20), default='')
    source_tag = db.Column(db.String(100), default='')
    type_tag = db.Column(db.String(100), nullable=False, default='')
    device_type = db.Column(db.String(50), nullable=False, default='')
    ad_type = db.Column(db.String(50), nullable=False, default='')
    searches = db.Column(db.Integer, default=0)
    bidded_searches = db.Column(db.Integer, default=0)
    bidded_results = db.Column(db.Integer, default=0)
    bidded_clicks = db.Column(db.Integer, default=0)
    partner_net_revenue = db.Column(db.Float, default=0.0)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    def to_dict(self) -> dict:
        return {
            'date': self.date.isoformat() if self.date else None,
            'site_domain': self.site_domain,
            'traffic_source_code': self.traffic_source_code,
            'type_tag': self.type_tag,
            'device_type': self.device_type,
            'ad_type': self.ad_type,
            'searches': self.searches,
            'bidded_clicks': self.bidded_clicks,
            'partner_net_revenue': self.partner_net_revenue,
        }


class FreestarTypecode(db.Model):
    __tablename__ = 'freestar_typecodes'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    c_site = db.Column(db.String(253), nullable=False, index=True)
    c_market = db.Column(db.String(20), default='')
    c_network = db.Column(db.String(100), default='')
    c_campaign = db.Column(db.String(100), default='')
    c_adgroup = db.Column(db.String(100), default='')
    c_supplier = db.Column(db.String(100), default='')
    keyword = db.Column(db.String(255), default='')
    feed = db.Column(db.String(20), default='')
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'c_site': self.c_site,
            'c_market': self.c_market,
            'c_network': self.c_network,
            'c_campaign': self.c_campaign,
            'c_adgroup': self.c_adgroup,
            'c_supplier': self.c_supplier,
            'keyword': self.keyword,
            'feed': self.feed,
        }


class FreestarHourlyReport(db.Model):
    __tablename__ = 'freestar_hourly_reports'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    date = db.Column(db.Date, nullable=False, index=True)
    hour = db.Column(db.Integer, nullable=False, default=0)
    type_tag = db.Column(db.Integer, nullable=False, index=True)
    searches = db.Column(db.Integer, default=0)
    bidded_clicks = db.Column(db.Integer, default=0)
    partner_net_revenue = db.Column(db.Float, default=0.0)
