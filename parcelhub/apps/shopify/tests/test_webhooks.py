import json
from decimal import Decimal
from unittest.mock import patch

from django.core.cache import cache
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIClient

from apps.audit.models import AuditLog
from apps.core.tests.utils import delhivery_created, fake_response, fund, make_pickup, make_tenant
from apps.couriers.services import dispatch_order
from apps.orders.models import Order
from apps.shopify import services
from apps.shopify.models import ShadowOrder, WebhookIntegration
from apps.shopify.verification import compute_signature, verify_signature
from apps.shopify.views import ShopifyWebhookThrottle

URL = '/api/webhooks/shopify/'
SHOP = 'acme-store.myshopify.com'
SECRET = 'whsec-test'
SHOPIFY_REQUEST = 'apps.shopify.client.requests.request'

ORDER_PAYLOAD = {
    'id': 820982911946154508,
    'name': '#1001',
    'financial_status': 'pending',
    'fulfillment_status': None,
    'gateway': 'Cash on Delivery (COD)',
    'total_price': '499.00',
    'shipping_address': {
        'first_name': 'Asha',
        'last_name': 'Verma',
        'address1': '12 MG Road',
        'address2': 'Near Park',
        'city': 'Pune',
        'province': 'Maharashtra',
        'country': 'India',
        'zip': '411001',
        'phone': '+91 98765 43210',
    },
    'line_items': [{'title': 'Cotton kurta', 'quantity': 2}],
}

FULFILLMENT_PAYLOAD = {
    'id': 255858046,
    'order_id': 820982911946154508,
    'status': 'success',
    'tracking_number': 'SHP-TRACK-1',
    'tracking_company': 'Other',
}


class SignatureTests(SimpleTestCase):
    def test_round_trip_and_tamper(self):
        body = b'{"id": 1}'
        sig = compute_signature(SECRET, body)
        self.assertTrue(verify_signature(SECRET, body, sig))
        self.assertFalse(verify_signature(SECRET, body + b' ', sig))
        self.assertFalse(verify_signature('other', body, sig))

    def test_empty_secret_or_header_never_verifies(self):
        self.assertFalse(verify_signature('', b'x', compute_signature('', b'x')))
        self.assertFalse(verify_signature(SECRET, b'x', ''))


class WebhookTestCase(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.tenant = make_tenant()
        make_pickup(self.tenant)
        self.integration = WebhookIntegration.objects.create(
            tenant=self.tenant,
            shop_domain=SHOP,
            webhook_secret=SECRET,
            access_token='shpat-test',
            default_courier_service='dtdc',
            default_pickup_location='Main Warehouse',
        )

    def deliver(self, topic, payload, *, shop=SHOP, secret=SECRET, signature=None, raw=None):
        body = raw if raw is not None else json.dumps(payload).encode('utf-8')
        headers = {
            'HTTP_X_SHOPIFY_TOPIC': topic,
            'HTTP_X_SHOPIFY_SHOP_DOMAIN': shop,
            'HTTP_X_SHOPIFY_HMAC_SHA256': signature if signature is not None else compute_signature(secret, body),
        }
        return self.client.post(URL, data=body, content_type='application/json', **headers)


class WebhookGateTests(WebhookTestCase):
    def test_valid_order_creates_shadow(self):
        resp = self.deliver('orders/create', ORDER_PAYLOAD)

        self.assertEqual(resp.status_code, 200, resp.content)
        shadow = ShadowOrder.objects.get()
        self.assertEqual(shadow.upstream_order_name, '#1001')
        self.assertEqual(shadow.status, ShadowOrder.Status.PENDING)
        self.assertEqual(resp.json()['shadowOrderId'], shadow.pk)
        self.assertTrue(AuditLog.objects.filter(event_type='webhook_processed').exists())

    def test_tampered_body_is_rejected_without_writes(self):
        body = json.dumps(ORDER_PAYLOAD).encode('utf-8')
        signature = compute_signature(SECRET, body)

        resp = self.deliver('orders/create', None, raw=body.replace(b'#1001', b'#9999'), signature=signature)

        self.assertEqual(resp.status_code, 401)
        self.assertFalse(ShadowOrder.objects.exists())
        entry = AuditLog.objects.get(event_type='webhook_signature_invalid')
        self.assertEqual(entry.severity, AuditLog.Severity.CRITICAL)
        self.assertNotIn(signature, json.dumps(entry.details))

    def test_missing_headers(self):
        resp = self.client.post(URL, data=b'{}', content_type='application/json')
        self.assertEqual(resp.status_code, 400)

    def test_unknown_shop(self):
        resp = self.deliver('orders/create', ORDER_PAYLOAD, shop='stranger.myshopify.com')
        self.assertEqual(resp.status_code, 404)
        self.assertFalse(ShadowOrder.objects.exists())

    def test_inactive_integration(self):
        self.integration.is_active = False
        self.integration.save()
        resp = self.deliver('orders/create', ORDER_PAYLOAD)
        self.assertEqual(resp.status_code, 401)
        self.assertFalse(ShadowOrder.objects.exists())

    def test_unsupported_topic(self):
        resp = self.deliver('products/create', {'id': 1})
        self.assertEqual(resp.status_code, 400)
        self.assertTrue(AuditLog.objects.filter(event_type='webhook_unsupported_topic').exists())

    def test_malformed_payloads(self):
        cases = [
            ('orders/create', None, b'not json'),
            ('orders/create', None, b'[1, 2]'),
            ('orders/create', {'id': '123', 'name': '#1'}, None),
            ('orders/create', {'id': 123}, None),
            ('fulfillments/create', {'id': 1, 'status': 'success'}, None),
        ]
        for topic, payload, raw in cases:
            resp = self.deliver(topic, payload, raw=raw)
            self.assertEqual(resp.status_code, 400, (topic, payload, raw))
        self.assertFalse(ShadowOrder.objects.exists())

    def test_duplicate_delivery_keeps_one_shadow(self):
        self.assertEqual(self.deliver('orders/create', ORDER_PAYLOAD).status_code, 200)
        resp = self.deliver('orders/create', ORDER_PAYLOAD)

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['status'], 'duplicate')
        self.assertEqual(ShadowOrder.objects.count(), 1)

    def test_update_requires_known_order(self):
        resp = self.deliver('orders/updated', ORDER_PAYLOAD)
        self.assertEqual(resp.status_code, 404)

        self.deliver('orders/create', ORDER_PAYLOAD)
        updated = dict(ORDER_PAYLOAD, name='#1001-A', fulfillment_status='fulfilled')
        resp = self.deliver('orders/updated', updated)

        self.assertEqual(resp.status_code, 200)
        shadow = ShadowOrder.objects.get()
        self.assertEqual(shadow.upstream_order_name, '#1001-A')
        self.assertEqual(shadow.status, ShadowOrder.Status.FULFILLED)

    def test_throttled_per_shop(self):
        with patch.object(ShopifyWebhookThrottle, 'THROTTLE_RATES', {'shopify_webhook': '2/min'}):
            codes = [self.deliver('orders/updated', ORDER_PAYLOAD).status_code for _ in range(3)]
        self.assertEqual(codes, [404, 404, 429])


class AutoCreateTests(WebhookTestCase):
    def setUp(self):
        super().setUp()
        self.integration.auto_create_orders = True
        self.integration.save()

    def test_order_is_created_through_the_normal_pipeline(self):
        fund(self.tenant, 5)

        resp = self.deliver('orders/create', ORDER_PAYLOAD)

        self.assertEqual(resp.status_code, 200)
        shadow = ShadowOrder.objects.get()
        self.assertEqual(shadow.status, ShadowOrder.Status.SYNCED)
        order = shadow.order
        self.assertEqual(order.tenant_id, self.tenant.id)
        self.assertEqual(order.reference_number, 'REF-1001-9876543210')
        self.assertEqual(order.name, 'Asha Verma')
        self.assertEqual(order.address, '12 MG Road, Near Park')
        self.assertEqual(order.total_items, 2)
        self.assertTrue(order.is_cod)
        self.assertEqual(order.cod_amount, Decimal('499.00'))

    def test_order_failure_marks_shadow_error(self):
        resp = self.deliver('orders/create', ORDER_PAYLOAD)

        self.assertEqual(resp.status_code, 200)
        shadow = ShadowOrder.objects.get()
        self.assertEqual(shadow.status, ShadowOrder.Status.ERROR)
        self.assertIn('Insufficient credits', shadow.error)
        self.assertFalse(Order.objects.exists())

    def test_unusable_address_marks_shadow_error(self):
        fund(self.tenant, 5)
        payload = dict(ORDER_PAYLOAD, shipping_address=dict(ORDER_PAYLOAD['shipping_address'], phone='12'))

        self.deliver('orders/create', payload)

        shadow = ShadowOrder.objects.get()
        self.assertEqual(shadow.status, ShadowOrder.Status.ERROR)
        self.assertIn('mobile', shadow.error)


class FulfillmentTests(WebhookTestCase):
    def _shadow(self, order=None):
        return ShadowOrder.objects.create(
            integration=self.integration,
            shop_domain=SHOP,
            upstream_order_id=ORDER_PAYLOAD['id'],
            upstream_order_name='#1001',
            order=order,
        )

    def _order(self, **kwargs):
        fields = dict(
            tenant=self.tenant, name='Asha', mobile='9876543210', address='12 MG Road', city='Pune',
            state='MH', country='India', pincode='411001', courier_service='delhivery',
            pickup_location='Main Warehouse', package_value=Decimal('499'), weight=Decimal('0.5'),
            total_items=1, reference_number='REF-1001-9876543210',
        )
        fields.update(kwargs)
        return Order.objects.create(**fields)

    def test_unknown_order_is_not_found(self):
        resp = self.deliver('fulfillments/create', FULFILLMENT_PAYLOAD)
        self.assertEqual(resp.status_code, 404)

    def test_shadow_without_order_is_partial_match(self):
        shadow = self._shadow()

        resp = self.deliver('fulfillments/create', FULFILLMENT_PAYLOAD)

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['status'], 'partial_match')
        shadow.refresh_from_db()
        self.assertEqual(shadow.tracking_number, 'SHP-TRACK-1')
        self.assertEqual(shadow.upstream_fulfillment_id, FULFILLMENT_PAYLOAD['id'])
        self.assertEqual(shadow.status, ShadowOrder.Status.FULFILLED)

    def test_linked_order_gets_tracking(self):
        order = self._order()
        self._shadow(order)

        resp = self.deliver('fulfillments/create', FULFILLMENT_PAYLOAD)

        self.assertEqual(resp.status_code, 200)
        order.refresh_from_db()
        self.assertEqual(order.tracking_id, 'SHP-TRACK-1')
        self.assertEqual(order.tracking_status, 'success')

    def test_waybill_is_pushed_upstream_when_confirming(self):
        self.integration.confirm_fulfillment = True
        self.integration.save()
        self._shadow(self._order(delhivery_waybill_number='WB42', tracking_id='WB42'))

        with patch(SHOPIFY_REQUEST, return_value=fake_response({'fulfillment': {'id': 255858046}})) as req:
            resp = self.deliver('fulfillments/create', FULFILLMENT_PAYLOAD)

        self.assertEqual(resp.status_code, 200)
        method, url = req.call_args.args
        self.assertEqual(method, 'POST')
        self.assertTrue(url.endswith('/fulfillments/255858046/update_tracking.json'))
        self.assertEqual(req.call_args.kwargs['json']['fulfillment']['tracking_info'],
                         {'number': 'WB42', 'company': 'Delhivery'})
        self.assertEqual(ShadowOrder.objects.get().tracking_number, 'WB42')

    def test_upstream_failure_is_audited_not_raised(self):
        self.integration.confirm_fulfillment = True
        self.integration.save()
        self._shadow(self._order(delhivery_waybill_number='WB42'))

        with patch(SHOPIFY_REQUEST, return_value=fake_response({'errors': 'Not Found'}, status=404)):
            resp = self.deliver('fulfillments/create', FULFILLMENT_PAYLOAD)

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(AuditLog.objects.filter(event_type='upstream_fulfillment_failed').exists())


class ConfirmFulfillmentTests(WebhookTestCase):
    def setUp(self):
        super().setUp()
        self.integration.confirm_fulfillment = True
        self.integration.save()
        self.order = Order.objects.create(
            tenant=self.tenant, name='Asha', mobile='9876543210', address='12 MG Road', city='Pune',
            state='MH', country='India', pincode='411001', courier_service='delhivery',
            pickup_location='Main Warehouse', package_value=Decimal('499'), weight=Decimal('0.5'),
            total_items=1, reference_number='REF-1001-9876543210',
        )
        self.shadow = ShadowOrder.objects.create(
            integration=self.integration,
            shop_domain=SHOP,
            upstream_order_id=ORDER_PAYLOAD['id'],
            order=self.order,
        )

    def shopify_responses(self):
        return [
            fake_response({'fulfillment_orders': [
                {'id': 1046000778, 'status': 'open'},
                {'id': 1046000779, 'status': 'closed'},
            ]}),
            fake_response({'fulfillment': {'id': 777}}),
        ]

    def test_dispatch_confirms_upstream_after_commit(self):
        with patch('apps.couriers.adapters.delhivery.requests.post', return_value=delhivery_created(waybill='WB9')), \
                patch(SHOPIFY_REQUEST, side_effect=self.shopify_responses()) as req, \
                self.captureOnCommitCallbacks(execute=True):
            dispatch_order(self.order)

        self.assertEqual(req.call_count, 2)
        body = req.call_args.kwargs['json']['fulfillment']
        self.assertEqual(body['line_items_by_fulfillment_order'], [{'fulfillment_order_id': 1046000778}])
        self.assertEqual(body['tracking_info'], {'number': 'WB9', 'company': 'Delhivery'})
        self.shadow.refresh_from_db()
        self.assertEqual(self.shadow.upstream_fulfillment_id, 777)
        self.assertEqual(self.shadow.status, ShadowOrder.Status.FULFILLED)

    def test_no_open_fulfillment_orders(self):
        Order.objects.filter(pk=self.order.pk).update(delhivery_waybill_number='WB9')
        with patch(SHOPIFY_REQUEST, return_value=fake_response({'fulfillment_orders': []})):
            self.assertFalse(services.confirm_upstream_fulfillment(self.shadow.pk))

        self.shadow.refresh_from_db()
        self.assertIn('No open fulfillment orders', self.shadow.error)
        self.assertTrue(AuditLog.objects.filter(event_type='upstream_fulfillment_failed').exists())

    def test_nothing_to_confirm_without_waybill(self):
        with patch(SHOPIFY_REQUEST) as req:
            self.assertFalse(services.confirm_upstream_fulfillment(self.shadow.pk))
        req.assert_not_called()
