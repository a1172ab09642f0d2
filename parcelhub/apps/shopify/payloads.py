"""
Per-topic webhook payload schemas.

Each supported topic has its own strict serializer and parses into its own
event type. Anything that does not parse is rejected before it touches the
database.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from rest_framework import serializers

from apps.core.errors import ValidationError

ORDERS_CREATE = 'orders/create'
ORDERS_UPDATED = 'orders/updated'
FULFILLMENTS_CREATE = 'fulfillments/create'
SUPPORTED_TOPICS = (ORDERS_CREATE, ORDERS_UPDATED, FULFILLMENTS_CREATE)


class MalformedPayload(ValidationError):
    code = 'malformed_payload'


class StrictIntegerField(serializers.IntegerField):
    """Integers only: no numeric strings, floats or booleans."""

    def to_internal_value(self, data):
        if isinstance(data, bool) or not isinstance(data, int):
            self.fail('invalid')
        return super().to_internal_value(data)


class StrictCharField(serializers.CharField):
    def to_internal_value(self, data):
        if not isinstance(data, str):
            self.fail('invalid')
        return super().to_internal_value(data)


def _optional_text(**kwargs):
    return serializers.CharField(required=False, allow_blank=True, allow_null=True, **kwargs)


class AddressSerializer(serializers.Serializer):
    name = _optional_text()
    first_name = _optional_text()
    last_name = _optional_text()
    address1 = _optional_text()
    address2 = _optional_text()
    city = _optional_text()
    province = _optional_text()
    country = _optional_text()
    zip = _optional_text()
    phone = _optional_text()


class CustomerSerializer(serializers.Serializer):
    first_name = _optional_text()
    last_name = _optional_text()
    phone = _optional_text()
    email = _optional_text()


class LineItemSerializer(serializers.Serializer):
    title = _optional_text()
    quantity = serializers.IntegerField(required=False, min_value=0, default=1)


class OrderPayloadSerializer(serializers.Serializer):
    id = StrictIntegerField(min_value=1)
    name = StrictCharField(allow_blank=False)
    email = _optional_text()
    phone = _optional_text()
    financial_status = _optional_text()
    fulfillment_status = _optional_text()
    cancelled_at = _optional_text()
    gateway = _optional_text()
    note = _optional_text()
    total_price = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True)
    shipping_address = AddressSerializer(required=False, allow_null=True)
    customer = CustomerSerializer(required=False, allow_null=True)
    line_items = LineItemSerializer(many=True, required=False)
    payment_gateway_names = serializers.ListField(child=serializers.CharField(), required=False)


class TrackingInfoSerializer(serializers.Serializer):
    number = _optional_text()
    company = _optional_text()
    url = _optional_text()


class FulfillmentPayloadSerializer(serializers.Serializer):
    id = StrictIntegerField(min_value=1)
    order_id = StrictIntegerField(min_value=1)
    status = StrictCharField(allow_blank=False)
    tracking_number = _optional_text()
    tracking_numbers = serializers.ListField(child=serializers.CharField(), required=False)
    tracking_company = _optional_text()
    tracking_info = TrackingInfoSerializer(required=False, allow_null=True)


@dataclass(frozen=True)
class OrderEvent:
    topic: str
    upstream_id: int
    name: str
    financial_status: str = ''
    fulfillment_status: str = ''
    cancelled: bool = False
    gateways: List[str] = field(default_factory=list)
    total_price: Optional[Decimal] = None
    shipping_address: Dict[str, Any] = field(default_factory=dict)
    customer: Dict[str, Any] = field(default_factory=dict)
    phone: str = ''
    line_items: List[Dict[str, Any]] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FulfillmentEvent:
    topic: str
    fulfillment_id: int
    upstream_order_id: int
    status: str
    tracking_number: str = ''
    tracking_company: str = ''
    raw: Dict[str, Any] = field(default_factory=dict)


WebhookEvent = Union[OrderEvent, FulfillmentEvent]


def _validated(serializer_class, raw: Dict[str, Any]) -> Dict[str, Any]:
    serializer = serializer_class(data=raw)
    if not serializer.is_valid():
        raise MalformedPayload('Webhook payload failed validation', details={'fields': serializer.errors})
    return serializer.validated_data


def _order_event(topic: str, raw: Dict[str, Any]) -> OrderEvent:
    data = _validated(OrderPayloadSerializer, raw)
    gateways = list(data.get('payment_gateway_names') or [])
    if data.get('gateway'):
        gateways.append(data['gateway'])
    return OrderEvent(
        topic=topic,
        upstream_id=data['id'],
        name=data['name'],
        financial_status=(data.get('financial_status') or '').lower(),
        fulfillment_status=(data.get('fulfillment_status') or '').lower(),
        cancelled=bool(data.get('cancelled_at')),
        gateways=gateways,
        total_price=data.get('total_price'),
        shipping_address=dict(data.get('shipping_address') or {}),
        customer=dict(data.get('customer') or {}),
        phone=data.get('phone') or '',
        line_items=[dict(item) for item in data.get('line_items') or []],
        raw=raw,
    )


def _fulfillment_event(topic: str, raw: Dict[str, Any]) -> FulfillmentEvent:
    data = _validated(FulfillmentPayloadSerializer, raw)
    info = data.get('tracking_info') or {}
    numbers = data.get('tracking_numbers') or []
    tracking = data.get('tracking_number') or (numbers[0] if numbers else '') or info.get('number') or ''
    company = data.get('tracking_company') or info.get('company') or ''
    return FulfillmentEvent(
        topic=topic,
        fulfillment_id=data['id'],
        upstream_order_id=data['order_id'],
        status=data['status'],
        tracking_number=tracking.strip(),
        tracking_company=company.strip(),
        raw=raw,
    )


def parse_event(topic: str, raw: Any) -> WebhookEvent:
    if not isinstance(raw, dict):
        raise MalformedPayload('Webhook payload must be a JSON object')
    if topic in (ORDERS_CREATE, ORDERS_UPDATED):
        return _order_event(topic, raw)
    if topic == FULFILLMENTS_CREATE:
        return _fulfillment_event(topic, raw)
    raise ValidationError(f'Unsupported webhook topic: {topic}')
