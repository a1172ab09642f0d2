from __future__ import annotations

import datetime
import logging
from typing import Any, Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from .models import AuditLog

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("audit")

REDACTED = "[REDACTED]"
_SENSITIVE_MARKERS = ("secret", "token", "password", "hmac", "authorization", "api_key", "apikey")


def redact(value: Any) -> Any:
    """Return a copy of ``value`` with secret-looking keys masked."""
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            lowered = str(key).lower()
            if any(marker in lowered for marker in _SENSITIVE_MARKERS):
                out[key] = REDACTED
            else:
                out[key] = redact(item)
        return out
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


def _client_ip(request) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip() or None
    return request.META.get('REMOTE_ADDR') or None


def record(
    event_type: str,
    *,
    tenant_id: Optional[int] = None,
    severity: str = AuditLog.Severity.INFO,
    message: str = "",
    details: Optional[dict] = None,
    actor=None,
    request=None,
) -> Optional[AuditLog]:
    """
    Append an audit entry.

    The insert runs in its own savepoint: a failed audit write is logged and
    never poisons the caller's transaction.
    """
    safe_details = redact(details or {})
    actor_id = getattr(actor, 'pk', None) if getattr(actor, 'is_authenticated', False) else None
    log = audit_logger.warning if severity != AuditLog.Severity.INFO else audit_logger.info
    log(
        event_type, extra={
            "tenantId": tenant_id,
            "severity": severity,
            "auditMessage": message,
            "details": safe_details,
        }
    )
    try:
        with transaction.atomic():
            return AuditLog.objects.create(
                event_type=event_type,
                severity=severity,
                tenant_id=tenant_id,
                actor_id=actor_id,
                source_ip=_client_ip(request),
                message=message[:500],
                details=safe_details,
            )
    except DatabaseError:
        logger.exception("Failed to persist audit event %s", event_type)
        return None


def purge_older_than(days: Optional[int] = None) -> int:
    retention = days if days is not None else settings.AUDIT_LOG_RETENTION_DAYS
    cutoff = timezone.now() - datetime.timedelta(days=retention)
    deleted, _ = AuditLog.objects.filter(created_at__lt=cutoff).delete()
    if deleted:
        logger.info("Purged %s audit entries older than %s days", deleted, retention)
    return deleted
