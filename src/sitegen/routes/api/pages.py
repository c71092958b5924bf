"""Static page API routes."""

from flask import Blueprint, request
from flask_login import current_user

from sitegen.services import page_service
from .common import api_result, handle_service_errors, public_endpoint, request_data


pages_bp = Blueprint('pages_api', __name__)


@pages_bp.route('/save', methods=['POST'])
@handle_service_errors
def save_pages():
    data = request_data()
    pages = page_service.save_pages(current_user, data.get('siteId'), data.get('pages'))
    return api_result(message='Pages saved successfully', pages=pages)


@pages_bp.route('/getall', methods=['GET'])
@handle_service_errors
def list_pages():
    return api_result(pages=page_service.list_pages(current_user, request.args.get('siteId')))


@pages_bp.route('/get/<page_type>', methods=['GET'])
@public_endpoint
@handle_service_errors
def get_page(page_type):
    return api_result(page=page_service.get_page(request.args.get('domain', ''), page_type))
