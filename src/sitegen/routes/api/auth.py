"""
Authentication API routes
=========================

Login sessions (cookie + Bearer tokens), registration with email OTP and
password reset.
"""

from flask import Blueprint, current_app, request, session
from flask_login import current_user, login_user, logout_user

from sitegen.extensions import SESSION_ID_KEY
from sitegen.services import auth_service
from sitegen.utils.security import get_client_ip
from .common import (
    api_error, api_result, bearer_matches, handle_service_errors, public_endpoint, rate_limited, request_data,
)


auth_bp = Blueprint('auth_api', __name__)


# ============================================================================
# SESSIONS
# ============================================================================

@auth_bp.route('/login', methods=['POST'])
@public_endpoint
@rate_limited('login')
@handle_service_errors
def login():
    data = request_data()
    identifier = data.get('email') or data.get('username')
    user_session = auth_service.login(
        identifier,
        data.get('password'),
        device_info=data.get('deviceInfo') or request.headers.get('User-Agent'),
        ip_address=get_client_ip(),
    )
    user = user_session.user
    user.login_session_id = user_session.id
    login_user(user, remember=bool(data.get('remember')))
    session[SESSION_ID_KEY] = user_session.id
    return api_result(**auth_service.session_payload(user, user_session))


@auth_bp.route('/refresh', methods=['POST'])
@public_endpoint
@handle_service_errors
def refresh():
    data = request_data()
    user_session = auth_service.refresh_session(data.get('refreshToken'))
    return api_result(**auth_service.session_payload(user_session.user, user_session))


@auth_bp.route('/logout', methods=['POST'])
@handle_service_errors
def logout():
    data = request_data()
    count = auth_service.logout(
        current_user,
        refresh_token=data.get('refreshToken'),
        logout_all=bool(data.get('logoutAll')),
        current_session_id=session.get(SESSION_ID_KEY),
    )
    session.pop(SESSION_ID_KEY, None)
    logout_user()
    return api_result(message='Logged out successfully', sessionsClosed=count)


@auth_bp.route('/sessions', methods=['GET'])
@handle_service_errors
def list_sessions():
    sessions = auth_service.list_sessions(current_user)
    return api_result(sessions=sessions, currentSessionId=session.get(SESSION_ID_KEY))


@auth_bp.route('/sessions', methods=['DELETE'])
@handle_service_errors
def revoke_session():
    auth_service.revoke_session(current_user, request.args.get('sessionId', ''))
    return api_result(message='Session revoked successfully')


@auth_bp.route('/cleanup-sessions', methods=['POST'])
@public_endpoint
@handle_service_errors
def cleanup_sessions():
    if not bearer_matches(current_app.config.get('CRON_SECRET_TOKEN')):
        return api_error('Unauthorized', status=401, error_type='Unauthorized')
    counts = auth_service.cleanup_sessions()
    return api_result(message='Session cleanup completed', **counts)


@auth_bp.route('/verify', methods=['GET'])
def verify():
    return api_result(user=current_user.to_dict(include_meta=True))


# ============================================================================
# REGISTRATION
# ============================================================================

@auth_bp.route('/check-availability', methods=['POST'])
@public_endpoint
@handle_service_errors
def check_availability():
    data = request_data()
    available = auth_service.check_availability(
        email=data.get('email'), username=data.get('username'), company=data.get('company'),
    )
    return api_result(**available)


@auth_bp.route('/send-registration-otp', methods=['POST'])
@public_endpoint
@rate_limited('otp')
@handle_service_errors
def send_registration_otp():
    data = request_data()
    auth_service.send_registration_otp(data.get('email'), data.get('username'))
    return api_result(message='Verification code sent to your email')


@auth_bp.route('/verify-registration-otp', methods=['POST'])
@public_endpoint
@handle_service_errors
def verify_registration_otp():
    data = request_data()
    auth_service.verify_registration_otp(data.get('email'), str(data.get('otp') or ''))
    return api_result(message='Email verified successfully')


@auth_bp.route('/register', methods=['POST'])
@public_endpoint
@rate_limited('register')
@handle_service_errors
def register():
    created = auth_service.register(request_data())
    return api_result(status=201, message='Registration successful', **created)


# ============================================================================
# PASSWORD RESET
# ============================================================================

@auth_bp.route('/forgot-password', methods=['POST'])
@public_endpoint
@rate_limited('otp')
@handle_service_errors
def forgot_password():
    auth_service.forgot_password(request_data().get('email'))
    return api_result(message='OTP sent to your email')


@auth_bp.route('/verify-otp', methods=['POST'])
@public_endpoint
@handle_service_errors
def verify_otp():
    data = request_data()
    auth_service.verify_reset_otp(data.get('email'), str(data.get('otp') or ''))
    return api_result(message='OTP verified successfully')


@auth_bp.route('/reset-password', methods=['POST'])
@public_endpoint
@handle_service_errors
def reset_password():
    data = request_data()
    auth_service.reset_password(data.get('email'), data.get('password'))
    return api_result(message='Password has been reset successfully')
