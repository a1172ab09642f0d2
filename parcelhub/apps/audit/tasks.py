import logging

from celery import shared_task

from .services import purge_older_than

logger = logging.getLogger(__name__)


@shared_task(ignore_result=True)
def purge_audit_logs(days=None):
    return purge_older_than(days)
