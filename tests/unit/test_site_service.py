"""Tests for site creation, ownership, teardown and queries."""
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from sitegen.extensions import db
from sitegen.models import Article, Company, Contact, Site, SiteMeta, StaticPage
from sitegen.services import site_service
from sitegen.services.service_base import ConflictError, ForbiddenError, NotFoundError, ValidationError


def _production_dns(propagated=True, ssl=True):
    dns = MagicMock(server_ip='203.0.113.10')
    dns.get_zone_id.return_value = 'zone-1'
    dns.find_dns_record.return_value = None
    dns.create_a_record.return_value = 'rec-1'
    dns.check_dns_propagation.return_value = propagated
    dns.install_ssl.return_value = ssl
    return dns


@pytest.mark.unit
class TestCreateSite:

    def test_dev_prefix_and_new_company(self, user):
        result = site_service.create_site(user, {
            'domain': ' Blog.Example.com ', 'siteName': 'Blog', 'tagline': 'Daily notes',
            'companyName': 'Blog Media', 'accentColor': '#ff0000',
        })
        assert result['domain'] == 'dev.blog.example.com'
        site = db.session.get(Site, result['siteId'])
        assert site.company.name == 'Blog Media'
        assert site.company.user_id == user.id
        assert site.get_meta('tagline') == 'Daily notes'
        assert site.get_meta('accent_color') == '#ff0000'
        assert site.status is False

    def test_existing_dev_prefix_is_kept(self, user):
        result = site_service.create_site(user, {
            'domain': 'dev.shop.example.com', 'siteName': 'Shop', 'tagline': 't', 'companyName': 'Shop Co',
        })
        assert result['domain'] == 'dev.shop.example.com'

    def test_uses_existing_company(self, user, make_site):
        company = make_site(user).company
        result = site_service.create_site(user, {
            'domain': 'news.example.com', 'siteName': 'News', 'tagline': 't', 'companyId': company.id,
        })
        assert db.session.get(Site, result['siteId']).company_id == company.id

    @pytest.mark.parametrize('data, field', [
        ({'siteName': 'x', 'tagline': 't'}, 'domain'),
        ({'domain': 'bad domain', 'siteName': 'x', 'tagline': 't'}, 'domain'),
        ({'domain': 'a.example.com', 'tagline': 't'}, 'siteName'),
        ({'domain': 'a.example.com', 'siteName': 'x'}, 'tagline'),
        ({'domain': 'a.example.com', 'siteName': 'x', 'tagline': 't'}, 'company'),
        ({'domain': 'a.example.com', 'siteName': 'x', 'tagline': 't', 'companyId': 'nope'}, 'company'),
    ])
    def test_field_errors(self, user, data, field):
        with pytest.raises(ValidationError) as excinfo:
            site_service.create_site(user, data)
        assert field in excinfo.value.details['fields']
        assert Site.query.count() == 0

    def test_duplicate_domain(self, user, make_site):
        make_site(user, domain='dev.taken.example.com')
        with pytest.raises(ConflictError):
            site_service.create_site(user, {
                'domain': 'taken.example.com', 'siteName': 'x', 'tagline': 't', 'companyName': 'Other',
            })

    def test_duplicate_company_name(self, user, make_site):
        company = make_site(user).company
        with pytest.raises(ConflictError) as excinfo:
            site_service.create_site(user, {
                'domain': 'fresh.example.com', 'siteName': 'x', 'tagline': 't', 'companyName': company.name.upper(),
            })
        assert 'company' in excinfo.value.details['fields']
        assert Site.query.count() == 1

    def test_uploads_logo(self, user):
        storage = MagicMock()
        storage.upload_bytes.return_value = 'https://cdn.test/site/logo.png'
        result = site_service.create_site(
            user,
            {'domain': 'logo.example.com', 'siteName': 'x', 'tagline': 't', 'companyName': 'Logo Co'},
            logo_upload=b'png-bytes', storage=storage,
        )
        site = db.session.get(Site, result['siteId'])
        storage.upload_bytes.assert_called_once_with(b'png-bytes', 'logo.png', site.id, 'image/png')
        assert site.get_meta('logo_url') == 'https://cdn.test/site/logo.png'
        assert site.get_meta('favicon_url') == ''

    def test_hosts_file_entry(self, app, user, tmp_path):
        hosts = tmp_path / 'hosts'
        hosts.write_text('127.0.0.1\tlocalhost\n')
        app.config['MANAGE_HOSTS_FILE'] = True
        site_service.create_site(user, {
            'domain': 'local.example.com', 'siteName': 'x', 'tagline': 't', 'companyName': 'Local Co',
        })
        assert 'dev.local.example.com' in hosts.read_text()


@pytest.mark.unit
class TestCreateSiteProduction:

    @pytest.fixture(autouse=True)
    def production(self, app):
        app.config.update({'IS_PRODUCTION': True, 'CLOUDFLARE_ENABLED': True})

    def test_provisions_dns_and_ssl(self, user):
        dns = _production_dns()
        result = site_service.create_site(user, {
            'domain': 'prod.example.com', 'siteName': 'x', 'tagline': 't', 'companyName': 'Prod Co',
        }, dns=dns)
        assert result['domain'] == 'prod.example.com'
        dns.create_a_record.assert_called_once_with('zone-1', 'prod.example.com')
        dns.install_ssl.assert_called_once_with('prod.example.com')

    def test_unknown_zone(self, user):
        dns = _production_dns()
        dns.get_zone_id.return_value = None
        with pytest.raises(ValidationError, match='does not exist in Cloudflare'):
            site_service.create_site(user, {
                'domain': 'prod.example.com', 'siteName': 'x', 'tagline': 't', 'companyName': 'Prod Co',
            }, dns=dns)

    def test_propagation_failure_removes_record(self, user):
        dns = _production_dns(propagated=False)
        with pytest.raises(ValidationError) as excinfo:
            site_service.create_site(user, {
                'domain': 'prod.example.com', 'siteName': 'x', 'tagline': 't', 'companyName': 'Prod Co',
            }, dns=dns)
        assert 'dns' in excinfo.value.details['fields']
        dns.delete_dns_record.assert_called_once_with('zone-1', 'rec-1')
        dns.install_ssl.assert_not_called()
        assert Site.query.count() == 0

    def test_ssl_failure_removes_record(self, user):
        dns = _production_dns(ssl=False)
        with pytest.raises(ValidationError) as excinfo:
            site_service.create_site(user, {
                'domain': 'prod.example.com', 'siteName': 'x', 'tagline': 't', 'companyName': 'Prod Co',
            }, dns=dns)
        assert 'ssl' in excinfo.value.details['fields']
        dns.delete_dns_record.assert_called_once_with('zone-1', 'rec-1')

    def test_database_failure_cleans_up_dns(self, user):
        dns = _production_dns()
        with pytest.raises(ValidationError):
            site_service.create_site(user, {
                'domain': 'prod.example.com', 'siteName': 'x', 'tagline': 't',
            }, dns=dns)
        dns.delete_dns_record.assert_called_once_with('zone-1', 'rec-1')


@pytest.mark.unit
class TestOwnership:

    def test_owner_admin_and_company_owner(self, user, make_user, make_site):
        site = make_site(user)
        site_service.ensure_site_owner(user, site)
        site_service.ensure_site_owner(make_user(admin=True), site)

        company_owner = make_user()
        site.company.user_id = company_owner.id
        site.user_id = None
        db.session.commit()
        site_service.ensure_site_owner(company_owner, site)

        with pytest.raises(ForbiddenError):
            site_service.ensure_site_owner(make_user(), site)

    def test_get_site_or_404(self, app):
        with pytest.raises(ValidationError):
            site_service.get_site_or_404('')
        with pytest.raises(NotFoundError):
            site_service.get_site_or_404('missing')

    def test_get_site_by_domain_is_case_insensitive(self, user, make_site):
        site = make_site(user, domain='dev.case.example.com')
        assert site_service.get_site_by_domain('DEV.Case.example.com').id == site.id
        with pytest.raises(NotFoundError):
            site_service.get_site_by_domain('other.example.com')


@pytest.mark.unit
class TestUpdateSite:

    def test_updates_name_and_meta(self, user, make_site):
        site = make_site(user)
        site_service.update_site(user, {
            'siteId': site.id, 'siteName': 'Renamed', 'tagline': 'New line',
            'phone': '123', 'logoUrl': 'https://cdn.test/logo.png',
        })
        assert site.site_name == 'Renamed'
        meta = site.meta_dict()
        assert meta['tagline'] == 'New line'
        assert meta['phone'] == '123'
        assert meta['logo_url'] == 'https://cdn.test/logo.png'
        assert meta['company'] == site.company.name
        assert 'email' not in meta

    def test_requires_fields_and_ownership(self, user, make_user, make_site):
        site = make_site(user)
        with pytest.raises(ValidationError):
            site_service.update_site(user, {'siteId': site.id, 'siteName': 'x'})
        with pytest.raises(ForbiddenError):
            site_service.update_site(make_user(), {'siteId': site.id, 'siteName': 'x', 'tagline': 't'})


@pytest.mark.unit
class TestDeleteSite:

    def test_removes_everything(self, user, make_site):
        site = make_site(user)
        site_id = site.id
        db.session.add_all([
            Article(site_id=site_id, title='A', slug='a', content='c'),
            StaticPage(site_id=site_id, page_type='ABOUT', title='About', content='c'),
            Contact(site_id=site_id, name='N', email='n@example.com', subject='s', message='m' * 10),
        ])
        db.session.commit()
        storage = MagicMock()

        result = site_service.delete_site(user, site_id, storage=storage)

        assert result == {'message': 'Site and all related data deleted.'}
        assert db.session.get(Site, site_id) is None
        for model in (Article, StaticPage, Contact, SiteMeta):
            assert model.query.filter_by(site_id=site_id).count() == 0
        assert Company.query.count() == 1
        storage.delete_site_files.assert_called_once_with(site_id)

    def test_storage_failure_is_logged(self, user, make_site):
        site = make_site(user)
        storage = MagicMock()
        storage.delete_site_files.side_effect = ClientError({'Error': {'Code': '500', 'Message': 'x'}}, 'List')
        site_service.delete_site(user, site.id, storage=storage)
        assert Site.query.count() == 0

    def test_production_removes_dns_and_ssl(self, app, user, make_site):
        app.config['IS_PRODUCTION'] = True
        site = make_site(user, domain='live.example.com')
        dns = MagicMock()
        site_service.delete_site(user, site.id, dns=dns, storage=MagicMock())
        dns.remove_domain_record.assert_called_once_with('live.example.com')
        dns.remove_ssl.assert_called_once_with('live.example.com')

    def test_forbidden_for_strangers(self, user, make_user, make_site):
        site = make_site(user)
        with pytest.raises(ForbiddenError):
            site_service.delete_site(make_user(), site.id, storage=MagicMock())


@pytest.mark.unit
class TestQueries:

    def test_list_sites_scoping_and_search(self, user, make_user, make_site):
        make_site(user, domain='dev.alpha.example.com', site_name='Alpha')
        make_site(user, domain='dev.beta.example.com', site_name='Beta')
        make_site(make_user(), domain='dev.gamma.example.com')

        mine = site_service.list_sites(user)
        assert mine['pagination']['totalCount'] == 2
        assert site_service.list_sites(make_user(admin=True))['pagination']['totalCount'] == 3

        found = site_service.list_sites(user, search='alp')
        assert [s['domain'] for s in found['sites']] == ['dev.alpha.example.com']

        paged = site_service.list_sites(user, page=2, limit=1)
        assert len(paged['sites']) == 1
        assert paged['pagination']['hasPrevPage'] is True

    def test_publish_and_validate(self, user, make_site):
        site = make_site(user)
        site.status = False
        db.session.commit()
        assert site_service.publish_site(user, site.id) == {'url': site.domain}
        assert site.status is True
        info = site_service.validate_site(user, site.id)
        assert info['valid'] is True
        assert info['meta']['tagline'] == 'Fresh ideas daily'

    def test_get_site_data_lists_published_articles(self, user, make_site):
        site = make_site(user)
        db.session.add_all([
            Article(site_id=site.id, title='Live', slug='live', content='c', published=True),
            Article(site_id=site.id, title='Draft', slug='draft', content='c', published=False),
        ])
        db.session.commit()
        data = site_service.get_site_data(site.domain)
        assert [a['slug'] for a in data['articles']] == ['live']
        assert data['articlesCount'] == 1
        assert data['company']['name'] == site.company.name
