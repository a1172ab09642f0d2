"""Shared builders for app test suites."""
import json
from decimal import Decimal

import requests
from django.contrib.auth import get_user_model

from apps.credits import services as credits
from apps.tenancy.models import PickupLocation, Tenant

DEFAULT_PICKUP = 'Main Warehouse'


def make_tenant(slug='acme', **kwargs) -> Tenant:
    kwargs.setdefault('company_name', slug.title())
    return Tenant.objects.create(slug=slug, **kwargs)


def make_user(tenant, username=None, **kwargs):
    User = get_user_model()
    username = username or f'user-{tenant.slug if tenant else "platform"}'
    return User.objects.create_user(username=username, password='pw-123456', tenant=tenant, **kwargs)


def make_pickup(tenant, name=DEFAULT_PICKUP, api_key='') -> PickupLocation:
    return PickupLocation.objects.create(tenant=tenant, name=name, address='1 Dock Road', delhivery_api_key=api_key)


def fund(tenant, amount) -> Decimal:
    return credits.credit(tenant.id, amount, 'Test top-up')


def order_fields(**overrides) -> dict:
    data = {
        'name': 'Asha Verma',
        'mobile': '9876543210',
        'address': '12 MG Road',
        'city': 'Pune',
        'state': 'Maharashtra',
        'country': 'India',
        'pincode': '411001',
        'courier_service': 'delhivery',
        'pickup_location': DEFAULT_PICKUP,
        'package_value': '499.00',
        'weight': '0.5',
        'total_items': 1,
        'is_cod': False,
        'product_description': 'Cotton kurta',
    }
    data.update(overrides)
    return data


def fake_response(payload, status=200) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.encoding = 'utf-8'
    resp._content = payload if isinstance(payload, bytes) else json.dumps(payload).encode('utf-8')
    resp.url = 'https://upstream.test/'
    return resp


def delhivery_created(waybill='1490810000123', refnum='REF-1'):
    return fake_response({
        'success': True,
        'packages': [{'waybill': waybill, 'refnum': refnum, 'status': 'Success', 'remarks': []}],
    })


def delhivery_rejected(remarks='Pincode not serviceable'):
    return fake_response({
        'success': False,
        'packages': [{'waybill': '', 'status': 'Fail', 'remarks': [remarks]}],
        'rmk': remarks,
    })


def delhivery_tracking(*shipments):
    """Tracking body for (waybill, status) or (waybill, status, delivery_date) tuples."""
    data = []
    for waybill, status, *rest in shipments:
        shipment = {'AWB': waybill, 'Status': {'Status': status, 'Instructions': f'{status} scan'}}
        if rest:
            shipment['DeliveryDate'] = rest[0]
        data.append({'Shipment': shipment})
    return fake_response({'ShipmentData': data})
