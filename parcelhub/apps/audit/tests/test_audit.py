import datetime
from unittest.mock import patch

from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from apps.audit import services
from apps.audit.models import AuditLog
from apps.audit.tasks import purge_audit_logs
from apps.core.tests.utils import make_tenant


class RedactionTests(SimpleTestCase):
    def test_nested_secrets_are_masked(self):
        details = {
            'shopDomain': 'acme.myshopify.com',
            'webhook_secret': 'abc',
            'headers': {'Authorization': 'Token x', 'X-Shopify-Hmac-Sha256': 'sig'},
            'items': [{'api_key': 'k', 'name': 'n'}],
        }
        safe = services.redact(details)
        self.assertEqual(safe['shopDomain'], 'acme.myshopify.com')
        self.assertEqual(safe['webhook_secret'], services.REDACTED)
        self.assertEqual(safe['headers']['Authorization'], services.REDACTED)
        self.assertEqual(safe['headers']['X-Shopify-Hmac-Sha256'], services.REDACTED)
        self.assertEqual(safe['items'], [{'api_key': services.REDACTED, 'name': 'n'}])
        self.assertEqual(details['webhook_secret'], 'abc')


class RecordTests(TestCase):
    def test_record_persists_redacted_entry(self):
        tenant = make_tenant()
        entry = services.record('order_created', tenant_id=tenant.id, message='hi', details={'token': 't', 'orderId': 1})

        entry.refresh_from_db()
        self.assertEqual(entry.details, {'token': services.REDACTED, 'orderId': 1})
        self.assertEqual(entry.severity, AuditLog.Severity.INFO)

    def test_failed_write_does_not_raise(self):
        with patch.object(AuditLog.objects, 'create', side_effect=DatabaseError('down')):
            self.assertIsNone(services.record('order_created', message='x'))


class PurgeTests(TestCase):
    def test_purge_drops_only_old_entries(self):
        old = services.record('order_created', message='old')
        services.record('order_created', message='new')
        AuditLog.objects.filter(pk=old.pk).update(created_at=timezone.now() - datetime.timedelta(days=120))

        purge_audit_logs.delay()

        self.assertEqual(list(AuditLog.objects.values_list('message', flat=True)), ['new'])

    def test_explicit_retention(self):
        services.record('order_created', message='recent')
        AuditLog.objects.update(created_at=timezone.now() - datetime.timedelta(days=3))
        self.assertEqual(services.purge_older_than(2), 1)
