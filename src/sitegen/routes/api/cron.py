"""
Scheduled job endpoints
=======================

Triggered by an external scheduler (or the Celery beat task) with
``Authorization: Bearer $CRON_SECRET_TOKEN``.
"""

from datetime import datetime, timezone

from flask import Blueprint, current_app

from sitegen.services.freestar_service import FreestarService
from sitegen.utils.time import utc_now
from .common import api_error, api_result, bearer_matches, handle_service_errors, public_endpoint


cron_bp = Blueprint('cron_api', __name__)


@cron_bp.route('/daily-report', methods=['POST', 'GET'])
@public_endpoint
@handle_service_errors
def daily_report():
    """Import yesterday's and today's Freestar reports."""
    if not bearer_matches(current_app.config.get('CRON_SECRET_TOKEN')):
        current_app.logger.warning("Rejected daily-report call without a valid cron token")
        return api_error('Unauthorized', status=401, error_type='Unauthorized')

    today = utc_now().date()
    results = FreestarService().import_daily_report(today)
    return api_result(
        message='Daily processing completed',
        processedDate=today.isoformat(),
        timestamp=datetime.now(timezone.utc).isoformat(),
        results=[r.to_dict() for r in results],
    )
