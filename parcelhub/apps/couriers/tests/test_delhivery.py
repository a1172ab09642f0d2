import datetime
import json
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

import requests
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from apps.core.tests.utils import (
    delhivery_created,
    delhivery_rejected,
    delhivery_tracking,
    fake_response,
    make_pickup,
    make_tenant,
)
from apps.couriers import services, tasks
from apps.couriers.adapters import DelhiveryAdapter, DelhiveryCredentials, DelhiveryError, get_adapter
from apps.couriers.signals import shipment_dispatched
from apps.orders.models import DispatchStatus, Order

DELHIVERY_POST = 'apps.couriers.adapters.delhivery.requests.post'
DELHIVERY_GET = 'apps.couriers.adapters.delhivery.requests.get'
CREDS = DelhiveryCredentials(base_url='https://delhivery.test/', api_key='k-1')


def _order(**kwargs):
    fields = dict(
        name='Asha', address='12 MG Road', pincode='411001', city='Pune', state='MH', country='India',
        mobile='9876543210', reference_number='REF-1', is_cod=False, cod_amount=None,
        package_value=Decimal('499'), product_description='Kurta', total_items=2,
        weight=Decimal('0.75'), reseller_name='',
    )
    fields.update(kwargs)
    return SimpleNamespace(**fields)


class DelhiveryAdapterTests(SimpleTestCase):
    def test_shipment_payload(self):
        shipment = DelhiveryAdapter().build_shipment(_order(is_cod=True, cod_amount=Decimal('499'), reseller_name='Shop'))
        self.assertEqual(shipment['weight'], '750')
        self.assertEqual(shipment['payment_mode'], 'COD')
        self.assertEqual(shipment['cod_amount'], '499.00')
        self.assertEqual(shipment['quantity'], '2')
        self.assertEqual(shipment['seller_name'], 'Shop')

    def test_prepaid_has_zero_cod(self):
        shipment = DelhiveryAdapter().build_shipment(_order())
        self.assertEqual(shipment['payment_mode'], 'Prepaid')
        self.assertEqual(shipment['cod_amount'], '0')

    def test_create_shipment_posts_form_encoded_json(self):
        with patch(DELHIVERY_POST, return_value=delhivery_created(waybill='WB1', refnum='R1')) as post:
            result = DelhiveryAdapter().create_shipment(CREDS, _order(), 'Main Warehouse')

        self.assertEqual(result.waybill, 'WB1')
        self.assertEqual(result.courier_order_id, 'R1')
        url = post.call_args.args[0]
        self.assertEqual(url, 'https://delhivery.test/api/cmu/create.json')
        form = post.call_args.kwargs['data']
        self.assertEqual(form['format'], 'json')
        data = json.loads(form['data'])
        self.assertEqual(data['pickup_location'], {'name': 'Main Warehouse'})
        self.assertEqual(data['shipments'][0]['order'], 'REF-1')

    def test_rejection_surfaces_remarks(self):
        with patch(DELHIVERY_POST, return_value=delhivery_rejected('Bad pincode')):
            with self.assertRaisesMessage(DelhiveryError, 'Bad pincode'):
                DelhiveryAdapter().create_shipment(CREDS, _order(), 'Main Warehouse')

    def test_missing_waybill_is_an_error(self):
        with patch(DELHIVERY_POST, return_value=fake_response({'success': True, 'packages': [{}]})):
            with self.assertRaises(DelhiveryError):
                DelhiveryAdapter().create_shipment(CREDS, _order(), 'Main Warehouse')

    def test_timeout_and_bad_json(self):
        with patch(DELHIVERY_POST, side_effect=requests.Timeout('slow')):
            with self.assertRaisesMessage(DelhiveryError, 'timed out'):
                DelhiveryAdapter().create_shipment(CREDS, _order(), 'Main Warehouse')
        with patch(DELHIVERY_POST, return_value=fake_response(b'<html>oops</html>')):
            with self.assertRaisesMessage(DelhiveryError, 'Malformed response'):
                DelhiveryAdapter().create_shipment(CREDS, _order(), 'Main Warehouse')

    def test_missing_key_fails_before_request(self):
        with patch(DELHIVERY_POST) as post:
            with self.assertRaises(DelhiveryError):
                DelhiveryAdapter().create_shipment(DelhiveryCredentials(CREDS.base_url, None), _order(), 'X')
        post.assert_not_called()

    def test_only_delhivery_is_integrated(self):
        self.assertEqual(get_adapter(' Delhivery ').courier, 'delhivery')
        self.assertIsNone(get_adapter('dtdc'))
        self.assertIsNone(get_adapter(''))

    def test_track_maps_courier_statuses(self):
        body = delhivery_tracking(
            ('WB1', 'Manifested'),
            ('WB2', 'Not Picked'),
            ('WB3', 'In Transit'),
            ('WB4', 'Delivered'),
            ('WB5', 'Success', '2026-10-01T10:00:00'),
            ('WB6', 'Returned'),
        )
        with patch(DELHIVERY_GET, return_value=body) as get:
            tracked = DelhiveryAdapter().track(CREDS, ['WB1', 'WB2', 'WB3', 'WB4', 'WB5', 'WB6'])

        self.assertEqual(get.call_args.args[0], 'https://delhivery.test/api/v1/packages/json/')
        self.assertEqual(get.call_args.kwargs['params'], {'waybill': 'WB1,WB2,WB3,WB4,WB5,WB6'})
        self.assertEqual(get.call_args.kwargs['headers']['Authorization'], 'Token k-1')
        self.assertEqual(
            {waybill: result.status for waybill, result in tracked.items()},
            {
                'WB1': 'manifested',
                'WB2': 'manifested',
                'WB3': 'in_transit',
                'WB4': 'delivered',
                'WB5': 'delivered',
                'WB6': 'returned',
            },
        )
        self.assertEqual(tracked['WB3'].courier_status, 'In Transit')

    def test_track_without_shipment_data_is_an_error(self):
        with patch(DELHIVERY_GET, return_value=fake_response({'Error': 'Invalid token'})):
            with self.assertRaisesMessage(DelhiveryError, 'Invalid token'):
                DelhiveryAdapter().track(CREDS, ['WB1'])

    def test_track_batch_limit(self):
        with patch(DELHIVERY_GET) as get:
            self.assertEqual(DelhiveryAdapter().track(CREDS, []), {})
            with self.assertRaises(DelhiveryError):
                DelhiveryAdapter().track(CREDS, [f'WB{i}' for i in range(51)])
        get.assert_not_called()


class DispatchOrderTests(TestCase):
    def setUp(self):
        self.tenant = make_tenant()
        make_pickup(self.tenant)
        self.order = Order.objects.create(
            tenant=self.tenant, name='Asha', mobile='9876543210', address='12 MG Road', city='Pune',
            state='MH', country='India', pincode='411001', courier_service='delhivery',
            pickup_location='Main Warehouse', package_value=Decimal('499'), weight=Decimal('0.5'),
            total_items=1, reference_number='REF-1',
        )

    def test_success_is_recorded_and_signalled(self):
        received = []

        def listener(sender, order, waybill, **kwargs):
            received.append((order.pk, waybill))

        shipment_dispatched.connect(listener)
        self.addCleanup(shipment_dispatched.disconnect, listener)
        with patch(DELHIVERY_POST, return_value=delhivery_created(waybill='WB5')):
            result = services.dispatch_order(self.order)

        self.assertTrue(result.success)
        self.assertEqual(received, [(self.order.pk, 'WB5')])
        self.order.refresh_from_db()
        self.assertEqual(self.order.delhivery_api_status, DispatchStatus.SUCCESS)
        self.assertEqual(self.order.tracking_status, 'manifested')

    def test_dispatched_order_is_never_booked_twice(self):
        stale = Order.objects.get(pk=self.order.pk)
        with patch(DELHIVERY_POST, return_value=delhivery_created(waybill='WB5')) as post:
            services.dispatch_order(self.order)
            again = services.dispatch_order(stale)

        self.assertEqual(post.call_count, 1)
        self.assertTrue(again.already_dispatched)
        self.assertEqual(again.waybill, 'WB5')

    def test_failure_never_raises(self):
        with patch(DELHIVERY_POST, side_effect=requests.ConnectionError('down')):
            result = services.dispatch_order(self.order)

        self.assertTrue(result.attempted)
        self.assertFalse(result.success)
        self.order.refresh_from_db()
        self.assertEqual(self.order.delhivery_api_status, DispatchStatus.FAILED)
        self.assertIn('down', self.order.delhivery_api_error)

    def test_overlapping_dispatch_books_one_shipment(self):
        competing = Order.objects.get(pk=self.order.pk)
        nested = []

        def book(*args, **kwargs):
            # a second dispatch arrives while the courier call is in flight
            if not nested:
                nested.append(services.dispatch_order(competing))
            return delhivery_created(waybill='WB-FIRST')

        with patch(DELHIVERY_POST, side_effect=book) as post:
            first = services.dispatch_order(self.order)

        self.assertEqual(post.call_count, 1)
        self.assertTrue(first.success)
        self.assertTrue(nested[0].in_progress)
        self.assertFalse(nested[0].attempted)
        self.order.refresh_from_db()
        self.assertEqual(self.order.delhivery_api_status, DispatchStatus.SUCCESS)
        self.assertEqual(self.order.delhivery_waybill_number, 'WB-FIRST')

    def test_fresh_claim_blocks_and_abandoned_claim_is_taken_over(self):
        Order.objects.filter(pk=self.order.pk).update(
            delhivery_api_status=DispatchStatus.DISPATCHING, last_delhivery_attempt=timezone.now()
        )
        with patch(DELHIVERY_POST) as post:
            blocked = services.dispatch_order(self.order)
        self.assertTrue(blocked.in_progress)
        post.assert_not_called()

        Order.objects.filter(pk=self.order.pk).update(
            last_delhivery_attempt=timezone.now() - datetime.timedelta(hours=1)
        )
        with patch(DELHIVERY_POST, return_value=delhivery_created(waybill='WB9')):
            result = services.dispatch_order(self.order)
        self.assertTrue(result.success)
        self.assertEqual(result.waybill, 'WB9')

    def test_cancel_reports_per_waybill(self):
        responses = [fake_response({'status': True}), fake_response({'status': False, 'remark': 'late'})]
        with patch(DELHIVERY_POST, side_effect=responses):
            outcome = services.cancel_shipments(self.tenant.id, [['WB1', 'Main Warehouse'], ['WB2', 'Main Warehouse']])

        self.assertEqual(outcome, {'cancelled': ['WB1'], 'failed': ['WB2']})


class TrackingRefreshTests(TestCase):
    def setUp(self):
        self.tenant = make_tenant()
        make_pickup(self.tenant)
        self.manifested = self._booked('WB1', 'manifested')
        self.moving = self._booked('WB2', 'in_transit')
        self.delivered = self._booked('WB3', 'delivered')
        self.unbooked = self._order(reference_number='REF-4')

    def _order(self, **kwargs):
        fields = dict(
            tenant=self.tenant, name='Asha', mobile='9876543210', address='12 MG Road', city='Pune',
            state='MH', country='India', pincode='411001', courier_service='delhivery',
            pickup_location='Main Warehouse', package_value=Decimal('499'), weight=Decimal('0.5'),
            total_items=1,
        )
        fields.update(kwargs)
        return Order.objects.create(**fields)

    def _booked(self, waybill, tracking_status):
        return self._order(
            reference_number=f'REF-{waybill}',
            delhivery_api_status=DispatchStatus.SUCCESS,
            delhivery_waybill_number=waybill,
            tracking_id=waybill,
            tracking_status=tracking_status,
        )

    def _status(self, order):
        order.refresh_from_db()
        return order.tracking_status

    def test_scheduled_refresh_polls_open_shipments(self):
        body = delhivery_tracking(('WB1', 'In Transit'), ('WB2', 'Delivered'))
        with patch(DELHIVERY_GET, return_value=body) as get:
            scheduled = tasks.refresh_tracking_batch()

        self.assertEqual(scheduled, 1)
        self.assertEqual(get.call_count, 1)
        polled = set(get.call_args.kwargs['params']['waybill'].split(','))
        self.assertEqual(polled, {'WB1', 'WB2'})
        self.assertEqual(self._status(self.manifested), 'in_transit')
        self.assertEqual(self._status(self.moving), 'delivered')
        self.assertEqual(self._status(self.delivered), 'delivered')
        self.assertEqual(self._status(self.unbooked), '')

    def test_inactive_tenants_are_skipped(self):
        self.tenant.is_active = False
        self.tenant.save()
        with patch(DELHIVERY_GET) as get:
            self.assertEqual(tasks.refresh_tracking_batch(), 0)
        get.assert_not_called()

    def test_unchanged_and_unreported_waybills(self):
        orders = list(services.trackable_orders(self.tenant.id))
        with patch(DELHIVERY_GET, return_value=delhivery_tracking(('WB1', 'Manifested'))):
            outcome = services.refresh_tracking(self.tenant.id, orders)

        self.assertEqual((outcome.processed, outcome.updated, outcome.failed), (1, 0, 1))
        self.assertEqual(self._status(self.moving), 'in_transit')

    def test_courier_outage_changes_nothing(self):
        orders = list(services.trackable_orders(self.tenant.id))
        with patch(DELHIVERY_GET, side_effect=requests.ConnectionError('down')):
            outcome = services.refresh_tracking(self.tenant.id, orders)

        self.assertEqual((outcome.processed, outcome.failed), (0, 2))
        self.assertEqual(self._status(self.manifested), 'manifested')
