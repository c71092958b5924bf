"""
Freestar reporting API routes
=============================

Revenue dashboard (JSON / CSV / XML) and the typecode hook the search pages
call before querying the sponsored-listings feed.
"""

from flask import Blueprint, Response, jsonify, request
from flask_login import current_user

from sitegen.constants import ReportFormat
from sitegen.services import site_service
from sitegen.services.freestar_service import FreestarService, chart_to_csv, chart_to_xml
from sitegen.services.service_base import ValidationError
from .common import api_result, handle_service_errors, public_endpoint, request_data


freestar_bp = Blueprint('freestar_api', __name__)


@freestar_bp.route('/dashboard', methods=['GET'])
@handle_service_errors
def dashboard():
    site_id = request.args.get('website', '')
    fmt = None
    if request.args.get('format'):
        try:
            fmt = ReportFormat(request.args['format'].lower())
        except ValueError:
            raise ValidationError('Invalid format')
    if site_id:
        site_service.get_owned_site(current_user, site_id)

    report = FreestarService().build_dashboard(
        site_id, request.args.get('date_from'), request.args.get('date_to')
    )
    chart = report['chartData']

    if fmt is ReportFormat.CSV:
        return Response(
            chart_to_csv(chart),
            mimetype='text/csv',
            headers={'Content-Disposition': 'attachment; filename="report.csv"'},
        )
    if fmt is ReportFormat.XML:
        return Response(chart_to_xml(chart), mimetype='text/xml')
    if fmt is ReportFormat.JSON:
        return jsonify(chart)
    return api_result(**report)


@freestar_bp.route('/insertupdate', methods=['POST'])
@public_endpoint
@handle_service_errors
def insert_update():
    data = request_data()
    typecode = FreestarService().upsert_typecode(
        (data.get('domain') or '').strip(),
        (data.get('keyword') or '').strip(),
        src=data.get('src', ''),
        market=data.get('market', ''),
        network=data.get('network', ''),
        campaign=data.get('campaign', ''),
        adgroup=data.get('adgroup', ''),
        supplier=data.get('supplier', ''),
        serve_url=data.get('serve_url', ''),
    )
    return api_result(
        freestarYsmTypecodes=typecode.to_dict(),
        source_id=typecode.id,
        source_type=typecode.feed,
    )
