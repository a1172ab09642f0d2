from celery import shared_task

from .services import confirm_upstream_fulfillment


@shared_task(ignore_result=True)
def confirm_upstream_fulfillment_task(shadow_id):
    return confirm_upstream_fulfillment(shadow_id)
