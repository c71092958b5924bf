"""Public contact form endpoint."""

from flask import Blueprint

from sitegen.services import contact_service
from sitegen.utils.security import get_client_ip
from .common import api_result, handle_service_errors, public_endpoint, request_data


contact_bp = Blueprint('contact_api', __name__)


@contact_bp.route('/submit', methods=['POST'])
@public_endpoint
@handle_service_errors
def submit_contact():
    contact = contact_service.submit_contact(request_data(), ip_address=get_client_ip())
    return api_result(status=201, message='Your message has been sent successfully', contactId=contact.id)
