"""Company management API routes."""

from flask import Blueprint, request
from flask_login import current_user

from sitegen.services import company_service
from .common import api_result, get_pagination_params, handle_service_errors, request_data


companies_bp = Blueprint('companies_api', __name__)


@companies_bp.route('/get', methods=['GET'])
@handle_service_errors
def list_companies():
    page, limit = get_pagination_params()
    result = company_service.list_companies(
        current_user, page, limit,
        search=request.args.get('search', ''),
        status=request.args.get('status'),
    )
    return api_result(**result)


@companies_bp.route('/update', methods=['PUT'])
@handle_service_errors
def update_company():
    company = company_service.update_company(current_user, request_data())
    return api_result(message='Company updated successfully', data=company)


@companies_bp.route('/toggle-status', methods=['POST'])
@handle_service_errors
def toggle_status():
    data = request_data()
    status = data.get('status')
    company = company_service.toggle_company_status(
        current_user, data.get('companyId'), status if isinstance(status, bool) else None
    )
    state = 'enabled' if company['status'] else 'disabled'
    return api_result(message=f'Company {state} successfully', data=company)


@companies_bp.route('/delete', methods=['DELETE'])
@handle_service_errors
def delete_company():
    company_id = request.args.get('companyId') or request_data().get('companyId')
    company_service.delete_company(current_user, company_id)
    return api_result(message='Company deleted successfully')
