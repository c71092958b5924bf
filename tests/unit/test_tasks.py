"""Tests for the Celery periodic jobs (run directly, without a broker)."""
import importlib
from datetime import timedelta
from unittest.mock import patch

import pytest

from sitegen.config.celery_config import CeleryConfig
from sitegen.extensions import db
from sitegen.models import UserSession
from sitegen.services.freestar_service import IngestResult
from sitegen.services.service_base import OperationError
from sitegen.utils.time import utc_now


@pytest.fixture
def tasks(app, monkeypatch):
    monkeypatch.setenv('FLASK_CONFIG', 'testing')
    return importlib.import_module('sitegen.tasks')


@pytest.mark.unit
class TestCeleryTasks:

    def test_beat_schedule_names_registered_tasks(self, tasks):
        names = {entry['task'] for entry in CeleryConfig.beat_schedule.values()}
        assert names == {tasks.import_daily_report.name, tasks.cleanup_expired_sessions.name}

    def test_import_daily_report(self, tasks):
        with patch('sitegen.tasks.FreestarService') as service_cls:
            service_cls.return_value.import_daily_report.return_value = [IngestResult(date='2025-01-02', inserted=2)]
            result = tasks.import_daily_report.run()
        assert result['status'] == 'success'
        assert result['results'][0]['inserted'] == 2

    def test_import_daily_report_failure_propagates(self, tasks):
        with patch('sitegen.tasks.FreestarService') as service_cls:
            service_cls.return_value.import_daily_report.side_effect = OperationError('down')
            with pytest.raises(OperationError):
                tasks.import_daily_report.run()

    def test_cleanup_expired_sessions(self, tasks, user):
        expired = UserSession.open(user, device_info='old')
        expired.expires_at = utc_now() - timedelta(days=1)
        db.session.commit()

        counts = tasks.cleanup_expired_sessions.run()
        assert counts['deactivatedCount'] == 1
        assert db.session.get(UserSession, expired.id).is_active is False
