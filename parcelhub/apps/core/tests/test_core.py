from unittest.mock import patch

from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIClient

from apps.core.errors import InsufficientCredit, OrderSetMismatch, ValidationError
from apps.core.exceptions import api_exception_handler
from apps.core.tests.utils import make_tenant, make_user


class HealthTests(TestCase):
    def test_health_ok(self):
        resp = self.client.get('/api/health/')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {'status': 'ok', 'database': 'up'})

    def test_health_degraded(self):
        with patch('apps.core.views.connection') as conn:
            conn.cursor.side_effect = DatabaseError('gone')
            resp = self.client.get('/api/health/')
        self.assertEqual(resp.status_code, 503)

    def test_schema_is_served(self):
        self.assertEqual(self.client.get('/api/schema/').status_code, 200)


class ErrorRenderingTests(SimpleTestCase):
    def test_domain_errors_render_code_and_details(self):
        resp = api_exception_handler(InsufficientCredit(balance=0, required=1), {})
        self.assertEqual(resp.status_code, 402)
        self.assertEqual(resp.data['error'], 'insufficient_credit')
        self.assertEqual(resp.data['required'], '1')

        resp = api_exception_handler(OrderSetMismatch({3, 1}), {})
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.data['missingIds'], [1, 3])

        resp = api_exception_handler(ValidationError('bad', details={'field': 'x'}), {})
        self.assertEqual((resp.status_code, resp.data['field']), (400, 'x'))

    def test_other_exceptions_fall_through(self):
        self.assertIsNone(api_exception_handler(RuntimeError('boom'), {}))


class RequestLogTests(TestCase):
    def test_request_id_is_generated_and_logged(self):
        with self.assertLogs('request', level='INFO') as logs:
            resp = self.client.get('/api/health/')

        request_id = resp['X-Request-ID']
        self.assertEqual(len(request_id), 32)
        record = logs.records[-1]
        self.assertEqual(record.requestId, request_id)
        self.assertEqual(record.status, 200)
        self.assertIsNone(record.tenantId)

    def test_caller_request_id_and_tenant_are_recorded(self):
        tenant = make_tenant()
        client = APIClient()
        client.force_authenticate(make_user(tenant))
        with self.assertLogs('request', level='INFO') as logs:
            resp = client.get('/api/orders/', HTTP_X_REQUEST_ID='trace-42')

        self.assertEqual(resp['X-Request-ID'], 'trace-42')
        self.assertEqual(logs.records[-1].tenantId, tenant.id)
        self.assertEqual(logs.records[-1].path, '/api/orders/')

    def test_server_errors_log_at_error_level(self):
        with patch('apps.core.views.connection') as conn:
            conn.cursor.side_effect = DatabaseError('gone')
            with self.assertLogs('request', level='INFO') as logs:
                self.client.get('/api/health/')
        self.assertEqual(logs.records[-1].levelname, 'ERROR')
