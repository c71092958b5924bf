import sys
from pathlib import Path

# Ensure the application package under src/ is importable when running tests
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / 'src'
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

import os
import pytest

os.environ.setdefault('OTP_SWEEPER_ENABLED', 'false')

from sitegen.factory import create_app
from sitegen.extensions import db as _db, limiter
from sitegen.constants import ADMIN_ROLE_NAME
from sitegen.models import Company, Role, Site, User, UserRole, UserSession
from sitegen.services.otp_store import otp_store

TEST_PASSWORD = 'Secret123'


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for the tests (fresh in-memory database per test)."""
    app = create_app('testing')
    app.config.update({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'BING_CACHE_DIR': str(tmp_path / 'bing-cache'),
        'HOSTS_FILE': str(tmp_path / 'hosts'),
        'ADMIN_EMAIL': 'admin@example.com',
    })

    with app.app_context():
        limiter.reset()
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create a test client."""
    return app.test_client()


@pytest.fixture(autouse=True)
def _reset_in_memory_stores():
    otp_store.clear()
    yield
    otp_store.clear()


@pytest.fixture
def make_user(app):
    """Factory creating a committed user (optionally an admin)."""
    counter = {'n': 0}

    def _make(username=None, email=None, password=TEST_PASSWORD, admin=False, active=True):
        counter['n'] += 1
        username = username or f"user{counter['n']}"
        user = User(username=username, email=email or f"{username}@example.com")
        user.set_password(password)
        user.is_active = active
        _db.session.add(user)
        _db.session.flush()
        if admin:
            role = Role.get_or_create(ADMIN_ROLE_NAME)
            _db.session.add(UserRole(user_id=user.id, role_id=role.id))
        _db.session.commit()
        return user

    return _make


@pytest.fixture
def auth_headers(app):
    """Factory returning a Bearer header for a fresh session of ``user``."""
    def _headers(user):
        user_session = UserSession.open(user, device_info='pytest', ip_address='127.0.0.1')
        _db.session.commit()
        return {'Authorization': f'Bearer {user_session.access_token}'}

    return _headers


@pytest.fixture
def make_site(app):
    """Factory creating a company + site owned by ``user``."""
    counter = {'n': 0}

    def _make(user, domain=None, site_name='Test Site', tagline='Fresh ideas daily', meta=None):
        counter['n'] += 1
        company = Company(name=f"Company {counter['n']} of {user.username}", email=user.email,
                          phone='+15550100', address='1 Main St', user_id=user.id, status=True)
        _db.session.add(company)
        _db.session.flush()
        site = Site(domain=domain or f"dev.site{counter['n']}.example.com", site_name=site_name,
                    user_id=user.id, company_id=company.id, status=True)
        _db.session.add(site)
        _db.session.flush()
        site.set_meta('tagline', tagline)
        for key, value in (meta or {}).items():
            site.set_meta(key, value)
        _db.session.commit()
        return site

    return _make


@pytest.fixture
def user(make_user):
    return make_user(username='owner')


@pytest.fixture
def headers(user, auth_headers):
    return auth_headers(user)
