"""Tenant-formatted order reference numbers."""
from __future__ import annotations

import random
import re
from datetime import datetime
from typing import Optional

from django.utils import timezone

DEFAULT_PREFIX = 'REF'
_NON_DIGITS = re.compile(r'\D')


def _mobile_digits(mobile) -> str:
    digits = _NON_DIGITS.sub('', str(mobile or ''))
    # keep the subscriber number, drop a leading 91 / 0
    return digits[-10:] if len(digits) > 10 else digits


def _with_prefix(body: str, enable_prefix: bool, prefix: Optional[str]) -> str:
    prefix = (prefix or '').strip()
    if enable_prefix and prefix:
        return f'{prefix}-{body}'
    return body


def generate_reference_number(
    mobile,
    *,
    enable_prefix: bool = True,
    prefix: Optional[str] = DEFAULT_PREFIX,
    custom: Optional[str] = None,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Build a reference number for an order.

    A non-blank ``custom`` value is kept and suffixed with the mobile digits:
    ``[PREFIX-]<custom>-<mobile>``. Otherwise one is generated:
    ``[PREFIX-]<mobile>-<YYMMDDHHMMSS><NNN>``.

    Uniqueness is the database's job (one reference per tenant); two calls
    may legitimately return the same string.
    """
    digits = _mobile_digits(mobile)
    custom_value = (custom or '').strip() if isinstance(custom, str) else ''
    if custom_value:
        body = f'{custom_value}-{digits}' if digits else custom_value
        return _with_prefix(body, enable_prefix, prefix)

    moment = now or timezone.now()
    if timezone.is_aware(moment):
        moment = timezone.localtime(moment)
    stamp = moment.strftime('%y%m%d%H%M%S')
    suffix = (rng or random).randint(100, 999)
    body = f'{digits}-{stamp}{suffix}' if digits else f'{stamp}{suffix}'
    return _with_prefix(body, enable_prefix, prefix)


def reference_for_tenant(tenant, mobile, custom: Optional[str] = None, **kwargs) -> str:
    return generate_reference_number(
        mobile,
        enable_prefix=tenant.enable_reference_prefix,
        prefix=tenant.reference_prefix,
        custom=custom,
        **kwargs,
    )
