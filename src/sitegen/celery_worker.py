"""
Celery Worker Entry Point
=========================

Worker and beat for the periodic jobs in :mod:`sitegen.tasks`::

    celery -A sitegen.celery_worker.celery worker --beat --loglevel=info
"""

import os

from celery import Celery

from sitegen.config.celery_config import CeleryConfig
from sitegen.factory import create_app

CELERY_PREFIX = 'CELERY_'


def make_celery(app):
    """Celery bound to ``app``: tasks run inside its application context."""
    celery = Celery(app.import_name, include=['sitegen.tasks'])
    celery.config_from_object(CeleryConfig)

    # Flask-style CELERY_TASK_ALWAYS_EAGER overrides task_always_eager etc.
    celery.conf.update({
        key[len(CELERY_PREFIX):].lower(): value
        for key, value in app.config.items()
        if key.startswith(CELERY_PREFIX)
    })

    class AppContextTask(celery.Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = AppContextTask
    return celery


flask_app = create_app(os.environ.get('FLASK_CONFIG', 'default'))
celery = make_celery(flask_app)
