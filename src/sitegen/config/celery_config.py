"""
Celery Configuration
====================

Redis-backed Celery settings and the beat schedule for periodic jobs
(Freestar report import, session cleanup).
"""

import os


class CeleryConfig:
    """Celery configuration class."""

    broker_url = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    result_backend = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

    broker_connection_retry_on_startup = True

    task_serializer = 'json'
    result_serializer = 'json'
    accept_content = ['json']
    timezone = 'UTC'
    enable_utc = True

    beat_schedule = {
        'daily-freestar-report': {
            'task': 'sitegen.tasks.import_daily_report',
            'schedule': 6 * 3600.0,
        },
        'cleanup-expired-sessions': {
            'task': 'sitegen.tasks.cleanup_expired_sessions',
            'schedule': 24 * 3600.0,
        },
    }
