"""Profile of the signed-in user."""

from flask import Blueprint
from flask_login import current_user

from sitegen.services import auth_service
from .common import api_result, handle_service_errors, request_data


profile_bp = Blueprint('profile_api', __name__)


@profile_bp.route('', methods=['GET'], strict_slashes=False)
@handle_service_errors
def get_profile():
    return api_result(user=auth_service.get_profile(current_user))


@profile_bp.route('', methods=['PATCH'], strict_slashes=False)
@handle_service_errors
def update_profile():
    user = auth_service.update_profile(current_user, request_data())
    return api_result(message='Profile updated successfully', user=user)
