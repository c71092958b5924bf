"""Tests for the auth service (sessions, registration, password reset, profile)."""
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from sitegen.extensions import db
from sitegen.models import Company, User, UserSession
from sitegen.services import auth_service
from sitegen.services.otp_store import otp_store
from sitegen.services.service_base import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from sitegen.utils.time import utc_now

REGISTRATION = {
    'email': 'New@Example.com',
    'password': 'Passw0rdX',
    'username': 'newbie',
    'first_name': 'New',
    'last_name': 'Bie',
    'account_type': 'business',
    'company': 'Newbie Media',
    'phone': '+1 555 0100',
    'city': 'Austin',
    'state': 'TX',
}


@pytest.mark.unit
class TestLogin:

    def test_login_by_email_or_username(self, make_user):
        user = make_user(username='carol', email='carol@example.com', password='Secret123')
        by_email = auth_service.login('CAROL@example.com', 'Secret123', device_info='Chrome', ip_address='1.1.1.1')
        by_name = auth_service.login('carol', 'Secret123')
        assert by_email.user_id == user.id
        assert by_name.id != by_email.id
        assert by_email.device_info == 'Chrome'
        assert by_name.device_info == 'Unknown'
        assert user.last_login is not None

    def test_login_errors(self, make_user):
        make_user(username='dave', password='Secret123')
        with pytest.raises(ValidationError):
            auth_service.login('', 'x')
        with pytest.raises(NotFoundError):
            auth_service.login('nobody', 'Secret123')
        with pytest.raises(UnauthorizedError, match='Invalid password'):
            auth_service.login('dave', 'nope')

    def test_disabled_account(self, make_user):
        make_user(username='erin', password='Secret123', active=False)
        with pytest.raises(UnauthorizedError, match='disabled'):
            auth_service.login('erin', 'Secret123')

    def test_session_payload(self, make_user):
        user = make_user()
        user_session = auth_service.login(user.username, 'Secret123')
        payload = auth_service.session_payload(user, user_session)
        assert payload['accessToken'] == user_session.access_token
        assert payload['refreshToken'] == user_session.refresh_token
        assert payload['sessionId'] == user_session.id
        assert payload['user']['username'] == user.username


@pytest.mark.unit
class TestSessions:

    def test_refresh_rotates_tokens(self, make_user):
        user = make_user()
        user_session = auth_service.login(user.username, 'Secret123')
        old_refresh = user_session.refresh_token
        refreshed = auth_service.refresh_session(old_refresh)
        assert refreshed.id == user_session.id
        assert refreshed.refresh_token != old_refresh
        with pytest.raises(UnauthorizedError):
            auth_service.refresh_session(old_refresh)

    def test_refresh_rejects_inactive_session(self, make_user):
        user = make_user()
        user_session = auth_service.login(user.username, 'Secret123')
        auth_service.logout(user, refresh_token=user_session.refresh_token)
        with pytest.raises(UnauthorizedError):
            auth_service.refresh_session(user_session.refresh_token)
        with pytest.raises(ValidationError):
            auth_service.refresh_session('')

    def test_logout_current_and_all(self, make_user):
        user = make_user()
        first = auth_service.login(user.username, 'Secret123')
        auth_service.login(user.username, 'Secret123')
        auth_service.login(user.username, 'Secret123')

        assert auth_service.logout(user, current_session_id=first.id) == 1
        assert len(auth_service.list_sessions(user)) == 2
        assert auth_service.logout(user, logout_all=True) == 2
        assert auth_service.list_sessions(user) == []
        assert auth_service.logout(user) == 0

    def test_revoke_session(self, make_user):
        user = make_user()
        other = make_user()
        user_session = auth_service.login(user.username, 'Secret123')
        with pytest.raises(NotFoundError):
            auth_service.revoke_session(other, user_session.id)
        auth_service.revoke_session(user, user_session.id)
        with pytest.raises(NotFoundError):
            auth_service.revoke_session(user, user_session.id)

    def test_cleanup_sessions(self, make_user):
        user = make_user()
        live = auth_service.login(user.username, 'Secret123')
        expired = auth_service.login(user.username, 'Secret123')
        ancient = auth_service.login(user.username, 'Secret123')
        expired.expires_at = utc_now() - timedelta(days=1)
        ancient.expires_at = utc_now() - timedelta(days=120)
        db.session.commit()

        counts = auth_service.cleanup_sessions()
        assert counts == {'deactivatedCount': 2, 'deletedCount': 1}
        assert db.session.get(UserSession, live.id).is_active is True
        assert db.session.get(UserSession, ancient.id) is None


@pytest.mark.unit
class TestRegistration:

    def test_check_availability(self, make_user):
        make_user(username='taken', email='taken@example.com')
        result = auth_service.check_availability(email='TAKEN@example.com', username='free')
        assert result == {'email': False, 'username': True, 'company': None}
        with pytest.raises(ValidationError):
            auth_service.check_availability()

    def test_registration_otp_flow(self, app):
        mailer = MagicMock()
        auth_service.send_registration_otp('New@Example.com', 'newbie', email_service=mailer)
        to, otp = mailer.send_otp_email.call_args[0][:2]
        assert to == 'new@example.com'
        assert mailer.send_otp_email.call_args.kwargs['purpose'] == 'registration'
        # the reset namespace is separate from registration codes
        assert otp_store.get('new@example.com') is None

        with pytest.raises(ValidationError):
            auth_service.verify_registration_otp('new@example.com', '000000' if otp != '000000' else '111111')
        auth_service.verify_registration_otp('new@example.com', otp)

    def test_registration_otp_rejects_taken_email(self, make_user):
        make_user(email='used@example.com')
        with pytest.raises(ConflictError):
            auth_service.send_registration_otp('used@example.com', email_service=MagicMock())
        with pytest.raises(ValidationError):
            auth_service.send_registration_otp('nope', email_service=MagicMock())

    def test_validate_registration(self):
        errors = auth_service.validate_registration(dict(REGISTRATION, password='short', phone='abc'))
        assert 'Password must be at least 8 characters long' in errors
        assert any('uppercase' in e for e in errors)
        assert 'Invalid phone number format' in errors
        assert 'email is required' in auth_service.validate_registration(dict(REGISTRATION, email=''))

    def test_register_creates_user_company_and_role(self, app):
        result = auth_service.register(dict(REGISTRATION))
        user = User.query.filter_by(username='newbie').one()
        assert user.email == 'new@example.com'
        assert user.check_password('Passw0rdX')
        assert user.role_names == ['User']
        assert user.get_meta('first_name') == 'New'
        assert user.get_meta('company') == 'Newbie Media'
        company = Company.query.filter_by(name='Newbie Media').one()
        assert company.user_id == user.id
        assert company.address == 'Austin, TX'
        assert result['company']['id'] == company.id

    def test_register_conflicts(self, app):
        auth_service.register(dict(REGISTRATION))
        with pytest.raises(ConflictError, match='email'):
            auth_service.register(dict(REGISTRATION))
        with pytest.raises(ConflictError, match='Company'):
            auth_service.register(dict(REGISTRATION, email='other@example.com', username='other'))

    def test_register_validation_details(self, app):
        with pytest.raises(ValidationError) as excinfo:
            auth_service.register({'email': 'x'})
        assert excinfo.value.details['details']


@pytest.mark.unit
class TestPasswordReset:

    def test_full_reset_flow(self, make_user):
        user = make_user(email='reset@example.com', password='OldPass123')
        auth_service.login(user.username, 'OldPass123')
        mailer = MagicMock()

        auth_service.forgot_password('Reset@Example.com', email_service=mailer)
        otp = mailer.send_otp_email.call_args[0][1]
        auth_service.verify_reset_otp('reset@example.com', otp)
        auth_service.reset_password('reset@example.com', 'NewPass1')

        assert user.check_password('NewPass1')
        assert auth_service.list_sessions(user) == []

    def test_forgot_password_unknown_email(self, app):
        with pytest.raises(NotFoundError) as excinfo:
            auth_service.forgot_password('ghost@example.com', email_service=MagicMock())
        assert excinfo.value.details == {'emailNotFound': True}

    def test_reset_password_validation(self, app):
        with pytest.raises(ValidationError):
            auth_service.reset_password('a@example.com', '123')
        # unknown accounts are accepted silently
        auth_service.reset_password('ghost@example.com', 'LongEnough1')


@pytest.mark.unit
class TestProfile:

    def test_get_and_update_profile(self, make_user):
        user = make_user(username='frank')
        profile = auth_service.update_profile(user, {'first_name': ' Frank ', 'city': 'Oslo', 'username': 'franky'})
        assert profile['username'] == 'franky'
        assert profile['first_name'] == 'Frank'
        assert profile['city'] == 'Oslo'
        assert profile['phone'] == ''

    def test_update_profile_conflicts(self, make_user):
        make_user(username='gina', email='gina@example.com')
        user = make_user(username='hank')
        with pytest.raises(ConflictError):
            auth_service.update_profile(user, {'username': 'gina'})
        with pytest.raises(ConflictError):
            auth_service.update_profile(user, {'email': 'GINA@example.com'})
        with pytest.raises(ValidationError):
            auth_service.update_profile(user, {'email': 'bad'})
