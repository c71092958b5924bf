"""
Site API routes
===============

Site CRUD for the admin console plus the public ``/data`` reader used by
the site frontends.
"""

from flask import Blueprint, request
from flask_login import current_user

from sitegen.constants import SITE_ARTICLES_PER_PAGE
from sitegen.services import site_service
from .common import (
    api_result, get_pagination_params, handle_service_errors, public_endpoint, request_data, uploaded_bytes,
)


sites_bp = Blueprint('sites_api', __name__)


@sites_bp.route('/create', methods=['POST'])
@handle_service_errors
def create_site():
    """Create a site from JSON or a multipart form with ``logo`` / ``favicon`` files."""
    result = site_service.create_site(
        current_user,
        request_data(),
        logo_upload=uploaded_bytes('logo'),
        favicon_upload=uploaded_bytes('favicon'),
    )
    return api_result(status=201, **result)


@sites_bp.route('/update', methods=['PUT'])
@handle_service_errors
def update_site():
    result = site_service.update_site(
        current_user,
        request_data(),
        logo_upload=uploaded_bytes('logo'),
        favicon_upload=uploaded_bytes('favicon'),
    )
    return api_result(**result)


@sites_bp.route('/delete', methods=['DELETE'])
@handle_service_errors
def delete_site():
    site_id = request.args.get('siteId') or request_data().get('siteId')
    return api_result(**site_service.delete_site(current_user, site_id))


@sites_bp.route('/get-all', methods=['GET'])
@handle_service_errors
def list_sites():
    page, limit = get_pagination_params()
    result = site_service.list_sites(current_user, request.args.get('search', ''), page, limit)
    return api_result(**result)


@sites_bp.route('/publish', methods=['POST'])
@handle_service_errors
def publish_site():
    result = site_service.publish_site(current_user, request_data().get('siteId'))
    return api_result(message='Site published successfully', **result)


@sites_bp.route('/validate', methods=['GET'])
@handle_service_errors
def validate_site():
    return api_result(**site_service.validate_site(current_user, request.args.get('siteId')))


@sites_bp.route('/data', methods=['GET'])
@public_endpoint
@handle_service_errors
def site_data():
    page, limit = get_pagination_params(default_limit=SITE_ARTICLES_PER_PAGE)
    data = site_service.get_site_data(request.args.get('domain', ''), page, limit)
    return api_result(data=data)
