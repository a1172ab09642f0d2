import logging

from django.dispatch import receiver

from apps.couriers.signals import shipment_dispatched

from .models import ShadowOrder

logger = logging.getLogger(__name__)


@receiver(shipment_dispatched, dispatch_uid='shopify_confirm_fulfillment')
def confirm_fulfillment_on_dispatch(sender, order, waybill, **kwargs):
    shadow = (
        ShadowOrder.objects.filter(order_id=order.pk, integration__confirm_fulfillment=True)
        .only('id')
        .first()
    )
    if shadow is None:
        return
    logger.info("Queueing Shopify fulfillment", extra={"shadowId": shadow.pk, "orderId": order.pk, "waybill": waybill})
    from .services import queue_confirmation

    queue_confirmation(shadow.pk)
