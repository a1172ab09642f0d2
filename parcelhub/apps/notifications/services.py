from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from django.conf import settings

from apps.audit import services as audit
from apps.credits import services as credits
from apps.credits.models import Feature
from apps.orders.models import Order

from .models import MessageLog
from .whatsapp import WhatsAppClient, WhatsAppError

logger = logging.getLogger(__name__)

PLACEHOLDER_VALUES = {'', 'no name', 'no number'}
TRACKING_PENDING = 'Will be assigned'


def is_placeholder(value: Optional[str]) -> bool:
    return (value or '').strip().lower() in PLACEHOLDER_VALUES


def has_reseller(order: Order) -> bool:
    return not is_placeholder(order.reseller_name) and not is_placeholder(order.reseller_mobile)


def _brand(order: Order) -> str:
    return (order.tenant.company_name or '').strip() or settings.WHATSAPP_DEFAULT_BRAND


def _courier_label(order: Order) -> str:
    return (order.courier_service or '').replace('_', ' ').upper()


def _tracking(order: Order) -> str:
    return order.delhivery_waybill_number or order.tracking_id or TRACKING_PENDING


def customer_variables(order: Order) -> List[str]:
    sender = order.reseller_name.strip() if has_reseller(order) else _brand(order)
    return [order.name, sender, _courier_label(order), _tracking(order)]


def reseller_variables(order: Order) -> List[str]:
    return [
        f'{order.reseller_name.strip()} (Your Customer -{order.name})',
        _brand(order),
        _courier_label(order),
        _tracking(order),
    ]


def _log(order: Order, recipient: str, phone: str, status: str, *, error: str = '', request_id: str = '') -> None:
    MessageLog.objects.create(
        tenant_id=order.tenant_id,
        order=order,
        recipient=recipient,
        phone=phone or '',
        status=status,
        error=error,
        provider_request_id=request_id,
    )


def _send_one(
    client: WhatsAppClient,
    order: Order,
    recipient: str,
    phone: str,
    build_variables: Callable[[Order], List[str]],
) -> str:
    cost = credits.cost_for(order.tenant_id, Feature.WHATSAPP)
    if cost > 0:
        charge = credits.debit(
            order.tenant_id,
            cost,
            Feature.WHATSAPP,
            order_id=order.pk,
            order_reference=order.reference_number,
            description=f'WhatsApp {recipient} message: {order.reference_number}',
        )
        if not charge.ok:
            _log(order, recipient, phone, MessageLog.Status.SKIPPED, error='Insufficient credits')
            audit.record(
                'credit_insufficient',
                tenant_id=order.tenant_id,
                severity='warning',
                message=f'WhatsApp {recipient} message skipped: insufficient credits',
                details={'orderId': order.pk, 'balance': str(charge.new_balance), 'required': str(cost)},
            )
            return MessageLog.Status.SKIPPED

    try:
        request_id = client.send_template(phone, build_variables(order))
    except WhatsAppError as exc:
        if cost > 0:
            credits.credit(
                order.tenant_id,
                cost,
                f'Refund: WhatsApp {recipient} message failed for {order.reference_number}',
                feature=Feature.WHATSAPP,
                order_id=order.pk,
                order_reference=order.reference_number,
            )
        _log(order, recipient, phone, MessageLog.Status.FAILED, error=str(exc))
        logger.warning(
            "WhatsApp message failed",
            extra={"orderId": order.pk, "recipient": recipient, "error": str(exc)},
        )
        audit.record(
            'notification_failed',
            tenant_id=order.tenant_id,
            severity='warning',
            message=f'WhatsApp {recipient} message failed',
            details={'orderId': order.pk, 'recipient': recipient, 'error': str(exc)},
        )
        return MessageLog.Status.FAILED

    _log(order, recipient, phone, MessageLog.Status.SENT, request_id=request_id)
    logger.info("WhatsApp message sent", extra={"orderId": order.pk, "recipient": recipient})
    return MessageLog.Status.SENT


def _attempt(client, order, recipient, phone, build_variables) -> str:
    # each message stands alone: a crash here must not stop the next one
    try:
        return _send_one(client, order, recipient, phone, build_variables)
    except Exception:
        logger.exception("WhatsApp dispatch crashed", extra={"orderId": order.pk, "recipient": recipient})
        return MessageLog.Status.FAILED


def send_order_notifications(order_id: int, client: Optional[WhatsAppClient] = None) -> Dict[str, str]:
    """
    Best-effort WhatsApp confirmations for a freshly created order.

    Customer first, then the reseller when real reseller contact details are
    present. Never raises; outcomes land in MessageLog and the logs.
    """
    order = Order.objects.select_related('tenant').filter(pk=order_id).first()
    if order is None:
        logger.info("Order vanished before notifications", extra={"orderId": order_id})
        return {}
    if not order.tenant.whatsapp_enabled:
        return {}

    client = client or WhatsAppClient()
    if not client.configured:
        logger.info("WhatsApp not configured; skipping order notifications", extra={"orderId": order_id})
        return {}

    results = {
        MessageLog.Recipient.CUSTOMER: _attempt(
            client, order, MessageLog.Recipient.CUSTOMER, order.mobile, customer_variables
        ),
    }
    if has_reseller(order):
        results[MessageLog.Recipient.RESELLER] = _attempt(
            client, order, MessageLog.Recipient.RESELLER, order.reseller_mobile, reseller_variables
        )
    return {str(k): str(v) for k, v in results.items()}
