from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import IntegrityError, transaction

from apps.audit import services as audit
from apps.core.errors import ParcelhubError

from .client import ShopifyClient, ShopifyError, tracking_company_for
from .models import ShadowOrder, WebhookIntegration
from .payloads import (
    ORDERS_CREATE,
    SUPPORTED_TOPICS,
    FulfillmentEvent,
    MalformedPayload,
    OrderEvent,
    parse_event,
)
from .verification import verify_signature

logger = logging.getLogger(__name__)

COD_FINANCIAL_STATUSES = ('pending', 'partially_paid')
COD_GATEWAY_MARKERS = ('cod', 'cash on delivery')


@dataclass(frozen=True)
class WebhookOutcome:
    status_code: int
    outcome: str
    detail: str = ''
    shadow_id: Optional[int] = None

    def as_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'status': self.outcome, 'message': self.detail}
        if self.shadow_id is not None:
            payload['shadowOrderId'] = self.shadow_id
        return payload


def _reject(event_type: str, status_code: int, detail: str, *, tenant_id=None, severity='warning',
            details=None, request=None) -> WebhookOutcome:
    logger.warning("Shopify webhook rejected", extra={"event": event_type, "status": status_code, "detail": detail})
    audit.record(
        event_type,
        tenant_id=tenant_id,
        severity=severity,
        message=detail,
        details=details or {},
        request=request,
    )
    return WebhookOutcome(status_code=status_code, outcome=event_type.replace('webhook_', ''), detail=detail)


def process_webhook(*, shop_domain: str, topic: str, signature: str, raw_body: bytes, request=None) -> WebhookOutcome:
    """
    Verify and apply one Shopify webhook delivery.

    Checks run in a fixed order (headers, shop, signature, topic, payload)
    and every rejection happens before any write. Every outcome is audited.
    """
    shop_domain = (shop_domain or '').strip().lower()
    topic = (topic or '').strip().lower()
    if not shop_domain or not topic or not signature:
        return _reject(
            'webhook_missing_headers', 400, 'Missing required Shopify webhook headers',
            details={'shopDomain': shop_domain or None, 'topic': topic or None, 'signed': bool(signature)},
            request=request,
        )

    integration = (
        WebhookIntegration.objects.select_related('tenant').filter(shop_domain__iexact=shop_domain).first()
    )
    if integration is None:
        return _reject('webhook_unknown_shop', 404, 'Unknown shop', details={'shopDomain': shop_domain}, request=request)
    tenant_id = integration.tenant_id
    if not integration.is_active or not integration.tenant.is_active:
        return _reject(
            'webhook_inactive_shop', 401, 'Shop integration is inactive',
            tenant_id=tenant_id, details={'shopDomain': shop_domain}, request=request,
        )

    if not verify_signature(integration.webhook_secret, raw_body, signature):
        return _reject(
            'webhook_signature_invalid', 401, 'Invalid webhook signature',
            tenant_id=tenant_id, severity='critical',
            details={'shopDomain': shop_domain, 'topic': topic, 'bodyLength': len(raw_body or b'')},
            request=request,
        )

    if topic not in SUPPORTED_TOPICS:
        return _reject(
            'webhook_unsupported_topic', 400, f'Unsupported topic: {topic}',
            tenant_id=tenant_id, details={'shopDomain': shop_domain, 'topic': topic}, request=request,
        )

    try:
        event = parse_event(topic, json.loads(raw_body or b''))
    except (ValueError, MalformedPayload) as exc:
        fields = exc.details.get('fields') if isinstance(exc, MalformedPayload) else None
        return _reject(
            'webhook_malformed_payload', 400, 'Malformed webhook payload',
            tenant_id=tenant_id, details={'shopDomain': shop_domain, 'topic': topic, 'fields': fields},
            request=request,
        )

    if isinstance(event, FulfillmentEvent):
        return _apply_fulfillment(integration, event, request=request)
    if event.topic == ORDERS_CREATE:
        return _apply_order_create(integration, event, request=request)
    return _apply_order_update(integration, event, request=request)


def _processed(event_type: str, integration, detail: str, shadow: ShadowOrder, topic: str, request=None,
               extra: Optional[dict] = None) -> WebhookOutcome:
    details = {'shopDomain': integration.shop_domain, 'topic': topic, 'upstreamOrderId': shadow.upstream_order_id}
    details.update(extra or {})
    audit.record(event_type, tenant_id=integration.tenant_id, message=detail, details=details, request=request)
    return WebhookOutcome(status_code=200, outcome=event_type.replace('webhook_', ''), detail=detail, shadow_id=shadow.pk)


def _apply_order_create(integration: WebhookIntegration, event: OrderEvent, request=None) -> WebhookOutcome:
    try:
        with transaction.atomic():
            shadow, created = ShadowOrder.objects.get_or_create(
                shop_domain=integration.shop_domain,
                upstream_order_id=event.upstream_id,
                defaults={
                    'integration': integration,
                    'upstream_order_name': event.name,
                    'payload': event.raw,
                    'last_topic': event.topic,
                },
            )
    except IntegrityError:
        # lost the race against a concurrent delivery of the same event
        shadow = ShadowOrder.objects.get(shop_domain=integration.shop_domain, upstream_order_id=event.upstream_id)
        created = False

    if not created:
        return _processed('webhook_duplicate', integration, 'Duplicate order, skipped', shadow, event.topic, request)

    if integration.auto_create_orders:
        create_internal_order(integration, shadow, event)
    return _processed(
        'webhook_processed', integration, 'Order recorded', shadow, event.topic, request,
        extra={'orderId': shadow.order_id, 'shadowStatus': shadow.status},
    )


def _apply_order_update(integration: WebhookIntegration, event: OrderEvent, request=None) -> WebhookOutcome:
    with transaction.atomic():
        shadow = (
            ShadowOrder.objects.select_for_update()
            .filter(shop_domain=integration.shop_domain, upstream_order_id=event.upstream_id)
            .first()
        )
        if shadow is None:
            return _reject(
                'webhook_unknown_order', 404, 'Order update for an unknown order',
                tenant_id=integration.tenant_id,
                details={'shopDomain': integration.shop_domain, 'topic': event.topic, 'upstreamOrderId': event.upstream_id},
                request=request,
            )
        shadow.payload = event.raw
        shadow.upstream_order_name = event.name
        shadow.last_topic = event.topic
        if event.fulfillment_status == 'fulfilled':
            shadow.status = ShadowOrder.Status.FULFILLED
        shadow.save(update_fields=['payload', 'upstream_order_name', 'last_topic', 'status', 'updated_at'])
    return _processed('webhook_processed', integration, 'Order updated', shadow, event.topic, request)


def _apply_fulfillment(integration: WebhookIntegration, event: FulfillmentEvent, request=None) -> WebhookOutcome:
    from apps.orders.models import Order

    with transaction.atomic():
        shadow = (
            ShadowOrder.objects.select_for_update()
            .filter(shop_domain=integration.shop_domain, upstream_order_id=event.upstream_order_id)
            .first()
        )
        if shadow is None:
            return _reject(
                'webhook_unknown_order', 404, 'Fulfillment for an unknown order',
                tenant_id=integration.tenant_id,
                details={
                    'shopDomain': integration.shop_domain,
                    'topic': event.topic,
                    'upstreamOrderId': event.upstream_order_id,
                },
                request=request,
            )
        shadow.upstream_fulfillment_id = event.fulfillment_id
        if event.tracking_number:
            shadow.tracking_number = event.tracking_number
        if event.tracking_company:
            shadow.tracking_company = event.tracking_company
        shadow.status = ShadowOrder.Status.FULFILLED
        shadow.last_topic = event.topic
        shadow.save(update_fields=[
            'upstream_fulfillment_id', 'tracking_number', 'tracking_company', 'status', 'last_topic', 'updated_at',
        ])

        order = None
        if shadow.order_id:
            order = Order.objects.select_for_update().filter(pk=shadow.order_id, tenant_id=integration.tenant_id).first()
        if order is not None:
            if event.tracking_number and not order.tracking_id:
                order.tracking_id = event.tracking_number
            order.tracking_status = event.status
            order.save(update_fields=['tracking_id', 'tracking_status', 'updated_at'])

    if order is None:
        # expected for orders that were never created internally
        logger.info(
            "Fulfillment matched no internal order",
            extra={"shop": integration.shop_domain, "upstreamOrderId": event.upstream_order_id},
        )
        return _processed('webhook_partial_match', integration, 'Shadow order updated; no internal order', shadow,
                          event.topic, request)

    confirmed = None
    if integration.confirm_fulfillment:
        confirmed = _push_waybill(integration, shadow, order, event)
    return _processed(
        'webhook_processed', integration, 'Fulfillment reconciled', shadow, event.topic, request,
        extra={'orderId': order.pk, 'trackingPushed': confirmed},
    )


def _push_waybill(integration: WebhookIntegration, shadow: ShadowOrder, order, event: FulfillmentEvent) -> Optional[bool]:
    """Send our courier waybill upstream when the fulfillment carries a different one."""
    waybill = order.delhivery_waybill_number
    if not waybill or waybill == event.tracking_number or not integration.access_token:
        return None
    try:
        ShopifyClient.for_integration(integration).update_tracking(
            event.fulfillment_id,
            tracking_number=waybill,
            tracking_company=tracking_company_for(order.courier_service),
        )
    except ShopifyError as exc:
        logger.warning("Shopify tracking update failed", extra={"shadowId": shadow.pk, "error": str(exc)})
        audit.record(
            'upstream_fulfillment_failed',
            tenant_id=integration.tenant_id,
            severity='warning',
            message='Could not push waybill to Shopify',
            details={'shadowId': shadow.pk, 'fulfillmentId': event.fulfillment_id, 'error': str(exc)},
        )
        return False
    ShadowOrder.objects.filter(pk=shadow.pk).update(
        tracking_number=waybill,
        tracking_company=tracking_company_for(order.courier_service),
    )
    return True


def _full_name(*parts) -> str:
    return ' '.join(p.strip() for p in parts if p and p.strip())


def _is_cod(event: OrderEvent) -> bool:
    if event.financial_status in COD_FINANCIAL_STATUSES:
        return True
    return any(marker in (g or '').lower() for g in event.gateways for marker in COD_GATEWAY_MARKERS)


def map_order_fields(integration: WebhookIntegration, event: OrderEvent) -> Dict[str, Any]:
    """Shopify order -> order creation input (still unvalidated)."""
    address = event.shipping_address or {}
    customer = event.customer or {}
    name = (
        (address.get('name') or '').strip()
        or _full_name(address.get('first_name'), address.get('last_name'))
        or _full_name(customer.get('first_name'), customer.get('last_name'))
    )
    mobile = address.get('phone') or event.phone or customer.get('phone') or ''
    street = ', '.join(p.strip() for p in (address.get('address1'), address.get('address2')) if p and p.strip())
    items = event.line_items or []
    total_items = sum(int(item.get('quantity') or 0) for item in items) or 1
    titles = ', '.join(item.get('title') for item in items if item.get('title'))
    package_value = event.total_price if event.total_price is not None else Decimal('0')
    cod = _is_cod(event)
    return {
        'name': name,
        'mobile': mobile,
        'address': street,
        'city': address.get('city') or '',
        'state': address.get('province') or '',
        'country': address.get('country') or 'India',
        'pincode': address.get('zip') or '',
        'courier_service': integration.default_courier_service,
        'pickup_location': integration.default_pickup_location,
        'package_value': str(package_value),
        'weight': str(settings.SHOPIFY_DEFAULT_WEIGHT),
        'total_items': total_items,
        'is_cod': cod,
        'cod_amount': str(package_value) if cod else None,
        'product_description': titles[:500],
        'reference_number': event.name.lstrip('#'),
    }


def _shadow_error(shadow: ShadowOrder, message: str) -> None:
    shadow.status = ShadowOrder.Status.ERROR
    shadow.error = message[:2000]
    shadow.save(update_fields=['status', 'error', 'updated_at'])
    logger.warning("Shopify order could not be created internally", extra={"shadowId": shadow.pk, "error": message})


def create_internal_order(integration: WebhookIntegration, shadow: ShadowOrder, event: OrderEvent) -> None:
    """
    Mirror an upstream order as an internal one through the normal pipeline.

    Failures (bad address data, no credits) mark the shadow as ``error``;
    the webhook itself is still acknowledged.
    """
    from apps.orders.serializers import OrderCreateSerializer
    from apps.orders.services import create_order

    serializer = OrderCreateSerializer(data=map_order_fields(integration, event), context={'tenant_id': integration.tenant_id})
    if not serializer.is_valid():
        _shadow_error(shadow, json.dumps(serializer.errors, default=str))
        return
    fields = dict(serializer.validated_data)
    custom_reference = fields.pop('reference_number', None)
    try:
        outcome = create_order(integration.tenant_id, fields, custom_reference=custom_reference)
    except ParcelhubError as exc:
        _shadow_error(shadow, exc.message)
        return

    shadow.order = outcome.order
    shadow.status = ShadowOrder.Status.SYNCED
    shadow.error = ''
    shadow.save(update_fields=['order', 'status', 'error', 'updated_at'])
    # dispatch ran before the shadow was linked, so the signal receiver missed it
    if outcome.dispatch.success and integration.confirm_fulfillment:
        queue_confirmation(shadow.pk)


def queue_confirmation(shadow_id: int) -> None:
    from .tasks import confirm_upstream_fulfillment_task

    transaction.on_commit(lambda: confirm_upstream_fulfillment_task.delay(shadow_id))


def confirm_upstream_fulfillment(shadow_id: int) -> bool:
    """Create the Shopify fulfillment for an internally dispatched order."""
    shadow = ShadowOrder.objects.select_related('integration', 'order').filter(pk=shadow_id).first()
    if shadow is None or shadow.order is None:
        return False
    integration = shadow.integration
    order = shadow.order
    if not order.delhivery_waybill_number or shadow.upstream_fulfillment_id:
        return False
    company = tracking_company_for(order.courier_service)
    try:
        client = ShopifyClient.for_integration(integration)
        fulfillment = client.create_fulfillment(
            shadow.upstream_order_id,
            tracking_number=order.delhivery_waybill_number,
            tracking_company=company,
        )
    except ShopifyError as exc:
        logger.warning("Shopify fulfillment confirmation failed", extra={"shadowId": shadow.pk, "error": str(exc)})
        ShadowOrder.objects.filter(pk=shadow.pk).update(error=str(exc)[:2000])
        audit.record(
            'upstream_fulfillment_failed',
            tenant_id=integration.tenant_id,
            severity='warning',
            message='Could not create Shopify fulfillment',
            details={'shadowId': shadow.pk, 'orderId': order.pk, 'error': str(exc)},
        )
        return False

    shadow.upstream_fulfillment_id = fulfillment.get('id')
    shadow.tracking_number = order.delhivery_waybill_number
    shadow.tracking_company = company
    shadow.status = ShadowOrder.Status.FULFILLED
    shadow.error = ''
    shadow.save(update_fields=[
        'upstream_fulfillment_id', 'tracking_number', 'tracking_company', 'status', 'error', 'updated_at',
    ])
    return True
