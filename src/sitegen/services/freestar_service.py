"""Freestar Service
===================

Everything that talks to the Freestar search-ads platform:

- ``import_daily_report``: pull the daily CSV export and upsert it into
  ``FreestarDailyReport``
- ``build_dashboard``: per-site click/revenue series from the hourly table,
  with CSV / XML renderings for downloads
- ``upsert_typecode``: register the (site, keyword, ...) tuple the search
  feed is called with and hand back its source id
- ``search_feed``: query the sponsored-listings XML feed
"""

from __future__ import annotations

import csv
import io
import logging
import re
import xml.etree.ElementTree as ET
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

import requests
from flask import current_app

from ..constants import FREESTAR_NUMERIC_COLUMNS, FREESTAR_REPORT_COLUMNS
from ..extensions import db
from ..models import FreestarDailyReport, FreestarHourlyReport, FreestarTypecode, Site
from ..utils.time import utc_now
from .service_base import NotFoundError, OperationError, ValidationError

logger = logging.getLogger(__name__)

DATE_RE = re.compile(r'^[0-9]{4}-[0-9]{2}-[0-9]{2}$')
UPSERT_KEY = ('date', 'site_domain', 'traffic_source_code', 'type_tag', 'device_type', 'ad_type')

FEED_FLAGS = (
    'enable_merch_rating', 'enable_favicon', 'enable_action_ext', 'enable_site_links',
    'enable_enhanced_site_link', 'enable_image_extensions', 'enable_callout_extension',
    'enable_more_sponsored_results', 'enable_product_ads', 'enable_pla_merchant_promotion',
    'enable_pla_product_ratings', 'enable_pla_price_drop', 'enable_pla_elite_badge',
)


def parse_report_date(value: str) -> date:
    if not value or not DATE_RE.match(value):
        raise ValidationError('Invalid date format')
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValidationError('Invalid date format') from e


def _to_int(value: str) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _to_float(value: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


# ----------------------------------------------------------------------
# Daily CSV ingestion
# ----------------------------------------------------------------------

@dataclass
class IngestResult:
    date: str
    deleted: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'deleted': self.deleted,
            'inserted': self.inserted,
            'updated': self.updated,
            'skipped': self.skipped,
            'errors': len(self.errors),
        }


def parse_report_row(columns: List[str]) -> Dict[str, Any]:
    """Map one CSV row (at least 15 columns) onto report fields."""
    values = dict(zip(FREESTAR_REPORT_COLUMNS, (c.strip() for c in columns)))
    row: Dict[str, Any] = {}
    for name in FREESTAR_REPORT_COLUMNS:
        raw = values.get(name, '')
        if name == 'date':
            row[name] = date.fromisoformat(raw[:10])
        elif name == 'partner_net_revenue':
            row[name] = _to_float(raw)
        elif name in FREESTAR_NUMERIC_COLUMNS:
            row[name] = _to_int(raw)
        else:
            row[name] = raw
    return row


def ingest_report_csv(text: str, report_date: date) -> IngestResult:
    """Replace the stored rows of ``report_date`` with the rows of ``text``.

    The header line is skipped, rows with fewer than 15 columns are ignored
    and a row that fails to parse is logged without aborting the import.
    """
    result = IngestResult(date=report_date.isoformat())
    result.deleted = FreestarDailyReport.query.filter_by(date=report_date).delete()
    logger.info("%d records deleted for date %s", result.deleted, report_date)

    reader = csv.reader(io.StringIO(text.strip()))
    next(reader, None)
    for line_no, columns in enumerate(reader, start=2):
        if len(columns) < len(FREESTAR_REPORT_COLUMNS):
            result.skipped += 1
            continue
        try:
            row = parse_report_row(columns)
        except ValueError as e:
            logger.error("Skipping report line %d: %s", line_no, e)
            result.errors.append(f"line {line_no}: {e}")
            continue

        existing = FreestarDailyReport.query.filter_by(**{k: row[k] for k in UPSERT_KEY}).first()
        if existing is None:
            db.session.add(FreestarDailyReport(**row))
            db.session.flush()
            result.inserted += 1
        else:
            for key, value in row.items():
                setattr(existing, key, value)
            result.updated += 1

    db.session.commit()
    logger.info("Processed report for %s: %s", report_date, result.to_dict())
    return result


class FreestarService:
    def __init__(self):
        cfg = current_app.config
        self.feed_url = cfg.get('FREESTAR_API_URL')
        self.api_key = cfg.get('FREESTAR_API_KEY')
        self.report_url = cfg.get('FREESTAR_REPORT_URL')
        self.report_key = cfg.get('FREESTAR_REPORT_KEY') or self.api_key
        self.serve_url = (cfg.get('FREESTAR_SERVE_URL') or '').rstrip('/')
        self.timeout = cfg.get('HTTP_TIMEOUT', 30)

    # -- reporting import -------------------------------------------------

    def fetch_daily_report(self, report_date: date) -> str:
        try:
            response = requests.get(
                self.report_url,
                params={'date': report_date.isoformat()},
                headers={'Authorization': self.report_key or '', 'Content-Type': 'application/json'},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise OperationError(f"Failed to fetch Freestar report for {report_date}: {e}") from e
        return response.text

    def import_daily_report(self, today: Optional[date] = None) -> List[IngestResult]:
        """Import yesterday's and today's reports."""
        today = today or utc_now().date()
        results = []
        for report_date in (today - timedelta(days=1), today):
            text = self.fetch_daily_report(report_date)
            results.append(ingest_report_csv(text, report_date))

        latest = db.session.query(db.func.max(FreestarDailyReport.date)).scalar()
        logger.info("Freestar data freshness: daily data up to %s", latest)
        return results

    # -- typecodes --------------------------------------------------------

    def upsert_typecode(self, domain: str, keyword: str, src: str = '', market: str = '',
                        network: str = '', campaign: str = '', adgroup: str = '',
                        supplier: str = '', serve_url: str = '') -> FreestarTypecode:
        if not domain or not keyword:
            raise ValidationError('Missing required fields: domain and keyword are required')
        if Site.query.filter_by(domain=domain).first() is None:
            raise NotFoundError('Site not found')

        fields = {
            'c_site': domain or serve_url,
            'c_market': market or '',
            'c_network': network or '',
            'c_campaign': campaign or '',
            'c_adgroup': adgroup or '',
            'c_supplier': supplier or '',
            'keyword': keyword,
            'feed': src or '',
        }
        typecode = FreestarTypecode.query.filter_by(**fields).first()
        if typecode is None:
            typecode = FreestarTypecode(**fields)
            db.session.add(typecode)
        else:
            typecode.updated_at = utc_now()
        db.session.commit()
        return typecode

    # -- dashboard --------------------------------------------------------

    def build_dashboard(self, site_id: str, date_from: Optional[str] = None,
                        date_to: Optional[str] = None) -> Dict[str, Any]:
        if not site_id:
            raise ValidationError('No or invalid ID specified')
        today = utc_now().date()
        start = parse_report_date(date_from) if date_from else today - timedelta(days=1)
        end = parse_report_date(date_to) if date_to else today

        site = db.session.get(Site, site_id)
        if site is None:
            raise NotFoundError('Site not found')

        is_single_day = start == end
        typecode_ids = [
            t.id for t in FreestarTypecode.query.filter_by(c_site=site.domain, c_supplier='').all()
        ]
        if not typecode_ids:
            return {
                'chartData': [],
                'summaryTotals': {'total_clicks': 0, 'total_revenue': 0},
                'isSingleDay': is_single_day,
            }

        rows = (
            FreestarHourlyReport.query
            .filter(FreestarHourlyReport.date >= start, FreestarHourlyReport.date <= end)
            .filter(FreestarHourlyReport.type_tag.in_(typecode_ids))
            .order_by(FreestarHourlyReport.date.asc())
            .all()
        )
        chart = aggregate_chart_data(rows, start, is_single_day)
        return {
            'chartData': chart,
            'summaryTotals': {
                'total_clicks': sum(r['bidded_clicks'] for r in chart),
                'total_revenue': sum(r['revenue'] for r in chart),
            },
            'isSingleDay': is_single_day,
        }

    # -- sponsored listings feed ------------------------------------------

    def feed_params(self, keyword: str, ip: str, user_agent: str) -> Dict[str, str]:
        params = {
            'keywords': keyword,
            'src': 'SS',
            'market': 'us',
            'network': '',
            'campaign': '',
            'adgroup': '',
            'supplier': '',
            'ip': ip or '',
            'serve_url': f"{self.serve_url}/{keyword}",
            'ua': user_agent or '',
            'type': 'SS',
        }
        params.update({flag: '1' for flag in FEED_FLAGS})
        return params

    def search_feed(self, keyword: str, ip: str = '', user_agent: str = '') -> List[Dict[str, Any]]:
        if not keyword:
            raise ValidationError('Missing search keyword')
        if not self.api_key:
            raise OperationError('Freestar API key not configured')
        try:
            response = requests.get(
                self.feed_url,
                params=self.feed_params(keyword, ip, user_agent),
                headers={'Authorization': self.api_key, 'Content-Type': 'application/x-www-form-urlencoded'},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error("Freestar feed request failed: %s", e)
            raise OperationError('Failed to fetch results from the API') from e
        return parse_feed_listings(response.text)


# ----------------------------------------------------------------------
# Pure helpers
# ----------------------------------------------------------------------

def aggregate_chart_data(rows: Iterable[Any], start: date, is_single_day: bool) -> List[Dict[str, Any]]:
    """Sum clicks/revenue per hour (single day) or per date, sorted by label."""
    buckets: Dict[str, List[float]] = defaultdict(lambda: [0, 0.0])
    for row in rows:
        if is_single_day:
            label = f"{start.isoformat()} {int(row.hour or 0):02d}:00"
        else:
            label = row.date.isoformat()
        buckets[label][0] += row.bidded_clicks or 0
        buckets[label][1] += row.partner_net_revenue or 0.0
    return [
        {'date': label, 'bidded_clicks': clicks, 'revenue': revenue}
        for label, (clicks, revenue) in sorted(buckets.items())
    ]


def chart_to_csv(chart: List[Dict[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow(['Date', 'Clicks', 'Revenue'])
    for row in chart:
        writer.writerow([row['date'], row['bidded_clicks'], row['revenue']])
    return buffer.getvalue().rstrip('\n')


def chart_to_xml(chart: List[Dict[str, Any]]) -> str:
    root = ET.Element('root')
    for row in chart:
        record = ET.SubElement(root, 'record')
        for key in ('date', 'bidded_clicks', 'revenue'):
            ET.SubElement(record, key).text = str(row[key])
    return '<?xml version="1.0" encoding="UTF-8"?>' + ET.tostring(root, encoding='unicode')


def _element_to_dict(element: ET.Element) -> Dict[str, Any]:
    data: Dict[str, Any] = dict(element.attrib)
    for child in element:
        value: Any
        if len(child) or child.attrib:
            value = _element_to_dict(child)
            if child.text and child.text.strip():
                value['text'] = child.text.strip()
        else:
            value = (child.text or '').strip()
        if child.tag in data:
            if not isinstance(data[child.tag], list):
                data[child.tag] = [data[child.tag]]
            data[child.tag].append(value)
        else:
            data[child.tag] = value
    return data


def parse_feed_listings(xml_text: str) -> List[Dict[str, Any]]:
    """``Results/ResultSet/Listing`` elements as dicts (attributes + children)."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise OperationError(f"Invalid feed XML: {e}") from e
    result_set = root if root.tag == 'ResultSet' else root.find('ResultSet')
    if result_set is None:
        return []
    return [_element_to_dict(listing) for listing in result_set.findall('Listing')]
