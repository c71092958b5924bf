"""Tests for the company, static page and contact services."""
from unittest.mock import MagicMock

import pytest

from sitegen.extensions import db
from sitegen.models import Company, Contact, StaticPage
from sitegen.services import company_service, contact_service, page_service
from sitegen.services.service_base import (
    ConflictError, ForbiddenError, NotFoundError, OperationError, ValidationError,
)


def _company(user, name, status=True):
    company = Company(name=name, email=f"{name.lower().replace(' ', '')}@example.com", phone='123',
                      address='Main St', user_id=user.id, status=status)
    db.session.add(company)
    db.session.commit()
    return company


@pytest.mark.unit
class TestCompanyService:

    def test_list_scoped_and_ordered_by_site_count(self, user, make_user, make_site):
        busy = make_site(user).company
        make_site(user, domain='dev.second.example.com').company_id = busy.id
        db.session.commit()
        _company(user, 'Quiet Co')
        _company(make_user(), 'Foreign Co')

        mine = company_service.list_companies(user)
        names = [c['name'] for c in mine['data']]
        assert names[0] == busy.name
        assert 'Foreign Co' not in names
        assert mine['data'][0]['sitesCount'] == 2

        admin_view = company_service.list_companies(make_user(admin=True))
        assert admin_view['pagination']['totalCount'] == 4

    def test_list_filters(self, user):
        _company(user, 'Alpha Media')
        _company(user, 'Beta Labs', status=False)
        assert [c['name'] for c in company_service.list_companies(user, search='media')['data']] == ['Alpha Media']
        assert [c['name'] for c in company_service.list_companies(user, status='false')['data']] == ['Beta Labs']

    def test_update_company(self, user, make_user):
        company = _company(user, 'Old Name')
        _company(user, 'Taken')
        payload = {'id': company.id, 'name': 'New Name', 'phone': '999', 'email': 'new@example.com',
                   'address': 'Elm St', 'status': False}
        data = company_service.update_company(user, payload)
        assert data['name'] == 'New Name'
        assert data['status'] is False

        with pytest.raises(ValidationError):
            company_service.update_company(user, dict(payload, address=''))
        with pytest.raises(ValidationError):
            company_service.update_company(user, dict(payload, email='bad'))
        with pytest.raises(ConflictError):
            company_service.update_company(user, dict(payload, name='TAKEN'))
        with pytest.raises(ForbiddenError):
            company_service.update_company(make_user(), payload)
        with pytest.raises(NotFoundError):
            company_service.update_company(user, dict(payload, id='missing'))

    def test_toggle_status(self, user, make_site):
        company = _company(user, 'Toggle Co')
        assert company_service.toggle_company_status(user, company.id)['status'] is False
        assert company_service.toggle_company_status(user, company.id, status=True)['status'] is True

        with_sites = make_site(user).company
        with pytest.raises(ValidationError, match='Cannot disable company with 1 site'):
            company_service.toggle_company_status(user, with_sites.id)

    def test_delete_company(self, user, make_user, make_site):
        company = _company(user, 'Doomed')
        with pytest.raises(ForbiddenError):
            company_service.delete_company(make_user(), company.id)
        company_service.delete_company(user, company.id)
        assert db.session.get(Company, company.id) is None

        with pytest.raises(ValidationError, match='delete all sites'):
            company_service.delete_company(user, make_site(user).company.id)


@pytest.mark.unit
class TestPageService:

    def test_normalize_page_type(self):
        assert page_service.normalize_page_type(' about ') == 'ABOUT'
        with pytest.raises(ValidationError):
            page_service.normalize_page_type('faq')

    def test_save_replaces_pages(self, user, make_site):
        site = make_site(user)
        page_service.save_pages(user, site.id, {'about': '<p>Old</p>', 'terms': '<p>T</p>'})
        saved = page_service.save_pages(user, site.id, {'about': '<p>New</p>', 'privacy': None})
        assert {p['page_type'] for p in saved} == {'ABOUT', 'PRIVACY'}
        assert StaticPage.query.filter_by(site_id=site.id).count() == 2

        listed = page_service.list_pages(user, site.id)
        assert listed == [
            {'key': 'about', 'label': 'About', 'content': '<p>New</p>'},
            {'key': 'privacy', 'label': 'Privacy', 'content': ''},
        ]

    def test_save_rejects_unknown_type_and_strangers(self, user, make_user, make_site):
        site = make_site(user)
        with pytest.raises(ValidationError):
            page_service.save_pages(user, site.id, {'faq': 'x'})
        with pytest.raises(ValidationError):
            page_service.save_pages(user, site.id, ['about'])
        with pytest.raises(ForbiddenError):
            page_service.save_pages(make_user(), site.id, {'about': 'x'})

    def test_get_page_by_domain(self, user, make_site):
        site = make_site(user)
        page_service.save_pages(user, site.id, {'terms': '<p>Rules</p>'})
        assert page_service.get_page(site.domain, 'terms')['content'] == '<p>Rules</p>'
        with pytest.raises(NotFoundError):
            page_service.get_page(site.domain, 'about')
        with pytest.raises(ValidationError):
            page_service.get_page(site.domain, '')


@pytest.mark.unit
class TestContactService:

    VALID = {'name': 'Jane', 'email': 'jane@example.com', 'subject': 'Hello', 'message': 'A long enough message'}

    def test_validate_contact(self):
        assert contact_service.validate_contact(self.VALID) == []
        errors = contact_service.validate_contact({'name': 'J', 'email': 'x', 'message': 'short'})
        assert len(errors) == 4

    def test_submit_stores_and_notifies(self, user, make_site):
        site = make_site(user)
        mailer = MagicMock()
        contact = contact_service.submit_contact(dict(self.VALID, siteId=site.id), ip_address='9.9.9.9',
                                                 email_service=mailer)
        assert contact.ip_address == '9.9.9.9'
        assert Contact.query.count() == 1
        mailer.send_contact_notification.assert_called_once_with(contact, site)

    def test_mail_failure_does_not_fail_submission(self, user, make_site):
        site = make_site(user)
        mailer = MagicMock()
        mailer.send_contact_notification.side_effect = OperationError('SendGrid down')
        contact_service.submit_contact(dict(self.VALID, siteId=site.id), email_service=mailer)
        assert Contact.query.count() == 1

    def test_submit_errors(self, app):
        with pytest.raises(ValidationError) as excinfo:
            contact_service.submit_contact({'name': 'J'}, email_service=MagicMock())
        assert len(excinfo.value.details['errors']) == 4
        with pytest.raises(NotFoundError):
            contact_service.submit_contact(dict(self.VALID, siteId='missing'), email_service=MagicMock())
