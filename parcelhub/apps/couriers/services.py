from __future__ import annotations

import datetime
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from apps.audit import services as audit
from apps.orders.models import DispatchStatus, Order
from apps.tenancy.models import PickupLocation

from .adapters import FINAL_TRACKING_STATUSES, TRACK_BATCH_SIZE, DelhiveryError, get_adapter
from .signals import shipment_dispatched

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    attempted: bool
    success: bool
    waybill: str = ''
    courier_order_id: str = ''
    error: str = ''
    already_dispatched: bool = False
    in_progress: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            'attempted': self.attempted,
            'success': self.success,
            'waybill': self.waybill or None,
            'courierOrderId': self.courier_order_id or None,
            'error': self.error or None,
        }


def resolve_api_key(tenant_id: int, pickup_location: str) -> Optional[str]:
    key = (
        PickupLocation.objects.filter(tenant_id=tenant_id, name=pickup_location)
        .values_list('delhivery_api_key', flat=True)
        .first()
    )
    return key or settings.DELHIVERY_API_KEY or None


def claim_dispatch(order: Order) -> bool:
    """
    Atomically mark ``order`` as being booked.

    Only one caller wins: the row must be undispatched, failed, or hold a
    claim older than ``DELHIVERY_DISPATCH_CLAIM_TTL``.
    """
    now = timezone.now()
    abandoned = now - datetime.timedelta(seconds=settings.DELHIVERY_DISPATCH_CLAIM_TTL)
    claimed = (
        Order.objects.filter(pk=order.pk)
        .filter(
            Q(delhivery_api_status__in=[DispatchStatus.UNSET, DispatchStatus.FAILED])
            | Q(delhivery_api_status=DispatchStatus.DISPATCHING, last_delhivery_attempt__lt=abandoned)
            | Q(delhivery_api_status=DispatchStatus.DISPATCHING, last_delhivery_attempt__isnull=True)
        )
        .update(delhivery_api_status=DispatchStatus.DISPATCHING, last_delhivery_attempt=now, updated_at=now)
    )
    return claimed == 1


def dispatch_order(order: Order) -> DispatchResult:
    """
    Book one shipment for ``order`` with its courier and record the outcome.

    Couriers without an adapter are a no-op. The booking is claimed on the
    row before the courier is called, so an order is never booked twice even
    when two dispatches overlap. Courier failures are written to the order
    and returned, never raised.
    """
    binding = get_adapter(order.courier_service)
    if binding is None:
        return DispatchResult(attempted=False, success=False)

    if not claim_dispatch(order):
        order.refresh_from_db(fields=list(Order.DISPATCH_FIELDS))
        if order.is_dispatched:
            return DispatchResult(
                attempted=False,
                success=True,
                waybill=order.delhivery_waybill_number,
                courier_order_id=order.delhivery_order_id,
                already_dispatched=True,
            )
        logger.info("Courier dispatch already in flight", extra={"orderId": order.pk, "tenantId": order.tenant_id})
        return DispatchResult(
            attempted=False,
            success=False,
            error='A courier dispatch for this order is already in progress',
            in_progress=True,
        )
    order.refresh_from_db(fields=list(Order.DISPATCH_FIELDS))

    creds = binding.credentials({'api_key': resolve_api_key(order.tenant_id, order.pickup_location)})
    try:
        if not creds.api_key:
            raise DelhiveryError(f'No Delhivery API key configured for pickup location "{order.pickup_location}"')
        shipment = binding.adapter.create_shipment(creds, order, order.pickup_location)
    except DelhiveryError as exc:
        error = str(exc)
        order.record_dispatch_failure(error)
        order.save(update_fields=list(Order.DISPATCH_FIELDS))
        logger.warning(
            "Courier dispatch failed",
            extra={"orderId": order.pk, "tenantId": order.tenant_id, "courier": binding.courier, "error": error},
        )
        audit.record(
            'dispatch_failed',
            tenant_id=order.tenant_id,
            severity='warning',
            message=f'Dispatch failed for {order.reference_number}',
            details={'orderId': order.pk, 'courier': binding.courier, 'error': error},
        )
        return DispatchResult(attempted=True, success=False, error=error)

    order.record_dispatch_success(waybill=shipment.waybill, courier_order_id=shipment.courier_order_id)
    order.save(update_fields=list(Order.DISPATCH_FIELDS))
    logger.info(
        "Courier dispatch succeeded",
        extra={"orderId": order.pk, "tenantId": order.tenant_id, "waybill": shipment.waybill},
    )
    audit.record(
        'dispatch_succeeded',
        tenant_id=order.tenant_id,
        message=f'Dispatched {order.reference_number}',
        details={'orderId': order.pk, 'courier': binding.courier, 'waybill': shipment.waybill},
    )
    shipment_dispatched.send(sender=Order, order=order, waybill=shipment.waybill)
    return DispatchResult(
        attempted=True,
        success=True,
        waybill=shipment.waybill,
        courier_order_id=shipment.courier_order_id,
    )


def cancel_shipments(tenant_id: int, shipments: Iterable[Sequence[str]]) -> Dict[str, list]:
    """Best-effort cancellation of booked shipments, as (waybill, pickup_location) pairs."""
    binding = get_adapter('delhivery')
    outcome: Dict[str, list] = {'cancelled': [], 'failed': []}
    for waybill, pickup_location in shipments:
        creds = binding.credentials({'api_key': resolve_api_key(tenant_id, pickup_location)})
        try:
            if not creds.api_key:
                raise DelhiveryError('No Delhivery API key configured')
            binding.adapter.cancel_shipment(creds, waybill)
        except DelhiveryError as exc:
            logger.warning(
                "Shipment cancellation failed",
                extra={"tenantId": tenant_id, "waybill": waybill, "error": str(exc)},
            )
            outcome['failed'].append(waybill)
            continue
        outcome['cancelled'].append(waybill)
    return outcome


@dataclass
class TrackingRefresh:
    processed: int = 0
    updated: int = 0
    failed: int = 0
    results: List[Dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            'processed': self.processed,
            'updated': self.updated,
            'failed': self.failed,
            'results': self.results,
        }


def trackable_orders(tenant_id: int, order_ids: Optional[Sequence[int]] = None):
    """
    Booked Delhivery orders of one tenant whose courier status can be polled.

    Without ``order_ids`` only orders not yet delivered or returned are
    picked, oldest update first, capped at ``TRACKING_REFRESH_LIMIT``.
    """
    qs = (
        Order.objects.filter(tenant_id=tenant_id, courier_service__iexact='delhivery')
        .filter(delhivery_api_status=DispatchStatus.SUCCESS)
        .exclude(delhivery_waybill_number='')
    )
    if order_ids is not None:
        return qs.filter(pk__in=order_ids).order_by('pk')
    return qs.exclude(tracking_status__in=FINAL_TRACKING_STATUSES).order_by('updated_at', 'pk')[
        :settings.TRACKING_REFRESH_LIMIT
    ]


def refresh_tracking(tenant_id: int, orders: Iterable[Order]) -> TrackingRefresh:
    """Poll Delhivery for ``orders`` and store each changed tracking status."""
    binding = get_adapter('delhivery')
    outcome = TrackingRefresh()

    by_location: Dict[str, List[Order]] = defaultdict(list)
    for order in orders:
        by_location[order.pickup_location].append(order)

    for pickup_location, located in by_location.items():
        creds = binding.credentials({'api_key': resolve_api_key(tenant_id, pickup_location)})
        for start in range(0, len(located), TRACK_BATCH_SIZE):
            batch = located[start:start + TRACK_BATCH_SIZE]
            try:
                if not creds.api_key:
                    raise DelhiveryError(f'No Delhivery API key configured for pickup location "{pickup_location}"')
                tracked = binding.adapter.track(creds, [o.delhivery_waybill_number for o in batch])
            except DelhiveryError as exc:
                logger.warning(
                    "Tracking refresh failed",
                    extra={"tenantId": tenant_id, "pickupLocation": pickup_location, "error": str(exc)},
                )
                outcome.failed += len(batch)
                outcome.results.extend({'orderId': o.pk, 'success': False, 'error': str(exc)} for o in batch)
                continue

            for order in batch:
                result = tracked.get(order.delhivery_waybill_number)
                if result is None:
                    outcome.failed += 1
                    outcome.results.append({'orderId': order.pk, 'success': False, 'error': 'Waybill not found'})
                    continue
                outcome.processed += 1
                previous = order.tracking_status
                if previous != result.status:
                    Order.objects.filter(pk=order.pk).update(tracking_status=result.status, updated_at=timezone.now())
                    order.tracking_status = result.status
                    outcome.updated += 1
                outcome.results.append({
                    'orderId': order.pk,
                    'success': True,
                    'oldStatus': previous or None,
                    'newStatus': result.status,
                })

    logger.info(
        "Tracking refresh finished",
        extra={"tenantId": tenant_id, "processed": outcome.processed, "updated": outcome.updated, "failed": outcome.failed},
    )
    return outcome
