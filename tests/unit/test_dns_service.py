"""Tests for Cloudflare / propagation / certbot / hosts-file provisioning."""
import subprocess
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests

from sitegen.services.dns_service import CF_IDENTICAL_RECORD, DNSService, root_zone
from sitegen.services.service_base import OperationError, ValidationError


def _response(payload, ok=True, status=200):
    response = MagicMock(ok=ok, status_code=status)
    response.json.return_value = payload
    return response


@pytest.fixture
def dns(app):
    return DNSService(api_token='cf-token', server_ip='203.0.113.10', sleep=lambda s: None)


@pytest.mark.unit
class TestCloudflare:

    def test_root_zone(self):
        assert root_zone('dev.blog.example.com') == 'example.com'
        assert root_zone('example.com') == 'example.com'

    def test_get_zone_id(self, dns):
        with patch('sitegen.services.dns_service.requests.get',
                   return_value=_response({'success': True, 'result': [{'id': 'zone-1'}]})) as get:
            assert dns.get_zone_id('dev.blog.example.com') == 'zone-1'
        assert get.call_args.kwargs['params'] == {'name': 'example.com'}
        assert get.call_args.kwargs['headers']['Authorization'] == 'Bearer cf-token'

    def test_get_zone_id_handles_failures(self, dns):
        with patch('sitegen.services.dns_service.requests.get', return_value=_response({}, ok=False, status=403)):
            assert dns.get_zone_id('example.com') is None
        with patch('sitegen.services.dns_service.requests.get', side_effect=requests.Timeout()):
            assert dns.get_zone_id('example.com') is None

    def test_get_zone_id_rejects_unsafe_domain(self, dns):
        with pytest.raises(ValidationError):
            dns.get_zone_id('example.com; rm -rf /')

    def test_find_dns_record(self, dns):
        records = {'result': [
            {'id': 'r1', 'name': 'example.com', 'content': '198.51.100.1'},
            {'id': 'r2', 'name': 'example.com', 'content': '203.0.113.10'},
        ]}
        with patch('sitegen.services.dns_service.requests.get', return_value=_response(records)):
            assert dns.find_dns_record('zone-1', 'example.com') == 'r2'

    def test_create_a_record(self, dns):
        with patch('sitegen.services.dns_service.requests.post',
                   return_value=_response({'success': True, 'result': {'id': 'rec-9'}})) as post:
            assert dns.create_a_record('zone-1', 'Example.com') == 'rec-9'
        payload = post.call_args.kwargs['json']
        assert payload['name'] == 'example.com'
        assert payload['content'] == '203.0.113.10'
        assert payload['type'] == 'A'
        assert payload['proxied'] is True

    def test_create_a_record_identical(self, dns):
        body = {'success': False, 'errors': [{'code': CF_IDENTICAL_RECORD, 'message': 'exists'}]}
        with patch('sitegen.services.dns_service.requests.post', return_value=_response(body, ok=False, status=400)):
            with pytest.raises(ValidationError) as excinfo:
                dns.create_a_record('zone-1', 'example.com')
        assert 'domain' in excinfo.value.details

    def test_create_a_record_other_error(self, dns):
        body = {'success': False, 'errors': [{'code': 1000, 'message': 'Bad zone'}]}
        with patch('sitegen.services.dns_service.requests.post', return_value=_response(body, ok=False, status=400)):
            with pytest.raises(OperationError, match='Bad zone'):
                dns.create_a_record('zone-1', 'example.com')

    def test_delete_dns_record(self, dns):
        with patch('sitegen.services.dns_service.requests.delete', return_value=_response({})) as delete:
            assert dns.delete_dns_record('zone-1', 'rec-1') is True
        assert delete.call_args[0][0].endswith('/zones/zone-1/dns_records/rec-1')
        assert dns.delete_dns_record('', 'rec-1') is False


@pytest.mark.unit
class TestPropagation:

    def test_found_on_second_attempt(self, app):
        delays = []
        dns = DNSService(api_token='t', server_ip='203.0.113.10', sleep=delays.append)
        responses = [
            _response({}),
            _response({'Answer': [{'data': '203.0.113.10'}]}),
        ]
        with patch('sitegen.services.dns_service.requests.get', side_effect=responses):
            assert dns.check_dns_propagation('example.com', '203.0.113.10') is True
        assert delays == [1]

    def test_gives_up_with_backoff(self, app):
        delays = []
        dns = DNSService(api_token='t', server_ip='203.0.113.10', sleep=delays.append)
        with patch('sitegen.services.dns_service.requests.get',
                   return_value=_response({'Answer': [{'data': '198.51.100.1'}]})):
            assert dns.check_dns_propagation('example.com', '203.0.113.10', attempts=3) is False
        assert delays == [1, 2]


@pytest.mark.unit
class TestCertbot:

    def test_install_ssl_uses_list_arguments(self, dns):
        with patch('sitegen.services.dns_service.subprocess.run',
                   return_value=SimpleNamespace(returncode=0, stderr='')) as run:
            assert dns.install_ssl('Example.com') is True
        cmd = run.call_args[0][0]
        assert cmd[:4] == ['sudo', 'certbot', '--nginx', '-d']
        assert cmd[4] == 'example.com'
        assert run.call_args.kwargs.get('shell') is None

    def test_install_ssl_failure(self, dns):
        with patch('sitegen.services.dns_service.subprocess.run',
                   return_value=SimpleNamespace(returncode=1, stderr='rate limited')):
            assert dns.install_ssl('example.com') is False
        with patch('sitegen.services.dns_service.subprocess.run',
                   side_effect=subprocess.TimeoutExpired('certbot', 300)):
            assert dns.install_ssl('example.com') is False

    def test_install_ssl_rejects_injection(self, dns):
        with patch('sitegen.services.dns_service.subprocess.run') as run:
            with pytest.raises(ValidationError):
                dns.install_ssl('example.com && reboot')
        run.assert_not_called()

    def test_remove_ssl(self, dns):
        with patch('sitegen.services.dns_service.subprocess.run',
                   return_value=SimpleNamespace(returncode=0, stderr='')) as run:
            assert dns.remove_ssl('example.com') is True
        assert run.call_count == 2
        assert run.call_args_list[1][0][0][:3] == ['sudo', 'certbot', 'delete']


@pytest.mark.unit
class TestHostsFile:

    def test_add_and_remove(self, dns, tmp_path):
        hosts = tmp_path / 'hosts'
        hosts.write_text('127.0.0.1\tlocalhost\n')
        dns.hosts_file = str(hosts)

        assert dns.add_hosts_entry('dev.example.com') is True
        assert dns.add_hosts_entry('dev.example.com') is False
        assert '127.0.0.1\tdev.example.com' in hosts.read_text()

        assert dns.remove_hosts_entry('dev.example.com') is True
        assert 'dev.example.com' not in hosts.read_text()
        assert 'localhost' in hosts.read_text()
        assert dns.remove_hosts_entry('dev.example.com') is False

    def test_missing_hosts_file(self, dns, tmp_path):
        dns.hosts_file = str(tmp_path / 'missing')
        assert dns.add_hosts_entry('dev.example.com') is False
