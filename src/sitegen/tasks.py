"""
Celery Tasks
============

Periodic jobs scheduled by ``CeleryConfig.beat_schedule``.
"""

import logging
from typing import Any, Dict

from sitegen.celery_worker import celery
from sitegen.services import auth_service
from sitegen.services.freestar_service import FreestarService

logger = logging.getLogger(__name__)


@celery.task(bind=True, max_retries=2, default_retry_delay=300)
def import_daily_report(self) -> Dict[str, Any]:
    """Import yesterday's and today's Freestar reports."""
    logger.info("[CELERY] Starting Freestar daily report import")
    try:
        results = FreestarService().import_daily_report()
    except Exception as exc:
        logger.error("[CELERY] Freestar import failed: %s", exc)
        raise self.retry(exc=exc)
    return {'status': 'success', 'results': [r.to_dict() for r in results]}


@celery.task
def cleanup_expired_sessions() -> Dict[str, int]:
    """Deactivate expired login sessions and purge old ones."""
    counts = auth_service.cleanup_sessions()
    logger.info("[CELERY] Session cleanup: %s", counts)
    return counts
