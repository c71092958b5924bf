"""Tests for the vendor clients: Bing, Spaces storage and SendGrid email."""
import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from sitegen.services.bing_service import BingSearchClient
from sitegen.services.email_service import EmailService
from sitegen.services.service_base import OperationError, ValidationError
from sitegen.services.storage_service import StorageService


def _bing_response(values, ok=True, status=200):
    response = MagicMock(ok=ok, status_code=status)
    response.json.return_value = {'webPages': {'value': values}} if ok else {'error': {'message': 'quota'}}
    return response


@pytest.mark.unit
class TestBingSearchClient:

    def test_fetches_and_caches(self, app, tmp_path):
        client = BingSearchClient(api_key='bing-key', cache_dir=str(tmp_path))
        results = [{'name': 'Result', 'url': 'https://r.test', 'snippet': 's'}]
        with patch('sitegen.services.bing_service.requests.get', return_value=_bing_response(results)) as get:
            assert client.search('Coffee Beans') == results
            assert client.search('coffee beans') == results
        get.assert_called_once()
        params = get.call_args.kwargs['params']
        assert params['q'] == 'coffee beans'
        assert params['safeSearch'] == 'strict'
        assert get.call_args.kwargs['headers'] == {'Ocp-Apim-Subscription-Key': 'bing-key'}
        assert (tmp_path / 'coffee%20beans.txt').exists()

    def test_reads_existing_cache_without_key(self, app, tmp_path):
        (tmp_path / 'tea.txt').write_text(json.dumps({'webPages': {'value': [{'name': 'Cached'}]}}))
        client = BingSearchClient(api_key='', cache_dir=str(tmp_path))
        with patch('sitegen.services.bing_service.requests.get') as get:
            assert client.search('tea') == [{'name': 'Cached'}]
        get.assert_not_called()

    def test_errors_are_not_cached(self, app, tmp_path):
        client = BingSearchClient(api_key='bing-key', cache_dir=str(tmp_path))
        with patch('sitegen.services.bing_service.requests.get',
                   return_value=_bing_response([], ok=False, status=403)):
            with pytest.raises(OperationError, match='quota'):
                client.search('tea')
        assert list(tmp_path.iterdir()) == []

    def test_missing_keyword_and_key(self, app, tmp_path):
        with pytest.raises(ValidationError):
            BingSearchClient(api_key='k', cache_dir=str(tmp_path)).search('  ')
        with pytest.raises(OperationError):
            BingSearchClient(api_key='', cache_dir=str(tmp_path)).search('tea')


@pytest.mark.unit
class TestStorageService:

    def test_upload_bytes(self, app):
        s3 = MagicMock()
        storage = StorageService(client=s3, bucket='bucket', cdn_url='https://cdn.test/')
        url = storage.upload_bytes(b'data', 'logo.png', 'site-1', 'image/png')
        assert url == 'https://cdn.test/site-1/logo.png'
        s3.put_object.assert_called_once_with(
            Bucket='bucket', Key='site-1/logo.png', Body=b'data', ACL='public-read', ContentType='image/png',
        )

    def test_upload_failure(self, app):
        s3 = MagicMock()
        s3.put_object.side_effect = ClientError({'Error': {'Code': 'AccessDenied', 'Message': 'no'}}, 'PutObject')
        with pytest.raises(OperationError):
            StorageService(client=s3).upload_bytes(b'x', 'a.png')

    def test_delete_site_files(self, app):
        s3 = MagicMock()
        s3.get_paginator.return_value.paginate.return_value = [
            {'Contents': [{'Key': 's1/logo.png'}, {'Key': 's1/articles/a.webp'}]},
            {},
        ]
        assert StorageService(client=s3, bucket='b').delete_site_files('s1') == 2
        s3.get_paginator.return_value.paginate.assert_called_once_with(Bucket='b', Prefix='s1/')
        s3.delete_objects.assert_called_once()


@pytest.mark.unit
class TestEmailService:

    def test_requires_api_key(self, app):
        with pytest.raises(OperationError):
            EmailService(api_key='').send_otp_email('a@example.com', '123456')

    def test_send_otp_email(self, app):
        with patch('sitegen.services.email_service.SendGridAPIClient') as client_cls:
            client_cls.return_value.send.return_value = SimpleNamespace(status_code=202)
            status = EmailService(api_key='sg-key', from_email='from@example.com').send_otp_email(
                'a@example.com', '654321', purpose='registration'
            )
        assert status == 202
        message = client_cls.return_value.send.call_args[0][0]
        body = json.dumps(message.get())
        assert '654321' in body
        assert 'Verify your email' in body

    def test_unexpected_status(self, app):
        with patch('sitegen.services.email_service.SendGridAPIClient') as client_cls:
            client_cls.return_value.send.return_value = SimpleNamespace(status_code=500)
            with pytest.raises(OperationError):
                EmailService(api_key='sg-key').send('a@example.com', 'Hi', '<p>Hi</p>')

    def test_contact_notification_escapes_html(self, app):
        contact = SimpleNamespace(name='<b>Eve</b>', email='eve@example.com', subject='Hello',
                                  message='line one\nline two')
        site = SimpleNamespace(domain='dev.example.com')
        service = EmailService(api_key='sg-key')
        with patch.object(service, 'send', return_value=202) as send:
            service.send_contact_notification(contact, site)
        to, subject, html_content = send.call_args[0][:3]
        assert to == 'admin@example.com'
        assert subject == 'New Contact Message: Hello'
        assert '&lt;b&gt;Eve' in html_content
        assert 'line one<br>line two' in html_content
