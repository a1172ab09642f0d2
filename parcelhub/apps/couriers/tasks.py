import logging

from celery import shared_task

from apps.tenancy.models import Tenant

from .services import cancel_shipments, refresh_tracking, trackable_orders

logger = logging.getLogger(__name__)


@shared_task(ignore_result=True)
def cancel_shipments_task(tenant_id, shipments):
    outcome = cancel_shipments(tenant_id, shipments)
    logger.info(
        "Shipment cancellation finished",
        extra={"tenantId": tenant_id, "cancelled": len(outcome['cancelled']), "failed": len(outcome['failed'])},
    )
    return outcome


@shared_task(ignore_result=True)
def refresh_tenant_tracking(tenant_id):
    outcome = refresh_tracking(tenant_id, list(trackable_orders(tenant_id)))
    return {'processed': outcome.processed, 'updated': outcome.updated, 'failed': outcome.failed}


@shared_task(ignore_result=True)
def refresh_tracking_batch():
    """
    Periodic courier status poll (beat schedule ``refresh-courier-tracking``).

    Fans out one task per active tenant so a slow courier account only
    delays its own tenant.
    """
    tenant_ids = list(Tenant.objects.filter(is_active=True).values_list('pk', flat=True))
    for tenant_id in tenant_ids:
        refresh_tenant_tracking.delay(tenant_id)
    logger.info("Tracking refresh scheduled", extra={"tenants": len(tenant_ids)})
    return len(tenant_ids)
