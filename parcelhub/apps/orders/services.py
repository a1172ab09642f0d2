from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from django.conf import settings
from django.core.paginator import Paginator
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from apps.audit import services as audit
from apps.core.errors import (
    ConsistencyError,
    InsufficientCredit,
    NotFoundError,
    OrderSetMismatch,
    ValidationError,
)
from apps.credits import services as credits
from apps.credits.models import Feature
from apps.tenancy.models import Tenant

from .models import DispatchStatus, Order
from .reference import reference_for_tenant

logger = logging.getLogger(__name__)


@dataclass
class CreationOutcome:
    order: Order
    dispatch: Any
    credits_charged: Any = 0


@dataclass
class OrderFilters:
    search: str = ''
    from_date: Optional[datetime.date] = None
    to_date: Optional[datetime.date] = None
    pickup_location: str = ''
    courier_service: str = ''


@dataclass
class OrderPage:
    orders: List[Order] = field(default_factory=list)
    current_page: int = 1
    total_pages: int = 0
    total_count: int = 0

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.current_page > 1

    def pagination(self) -> Dict[str, Any]:
        return {
            'currentPage': self.current_page,
            'totalPages': self.total_pages,
            'totalCount': self.total_count,
            'hasNextPage': self.has_next,
            'hasPrevPage': self.has_prev,
        }


def _active_tenant(tenant_id: int) -> Tenant:
    tenant = Tenant.objects.filter(pk=tenant_id, is_active=True).first()
    if tenant is None:
        raise NotFoundError('Tenant not found or inactive')
    return tenant


def _queue_notifications(order_id: int) -> None:
    from apps.notifications.tasks import send_order_notifications_task

    send_order_notifications_task.delay(order_id)


def create_order(
    tenant_id: int,
    fields: Dict[str, Any],
    *,
    custom_reference: Optional[str] = None,
    created_by=None,
    notify: bool = True,
) -> CreationOutcome:
    """
    Create an order and run its pipeline: debit, persist, dispatch, notify.

    ``fields`` must already be validated. Order row and credit debit commit
    together; courier dispatch runs after that commit and only records its
    outcome on the order. Notifications are queued once everything above is
    durable.
    """
    from apps.couriers.services import dispatch_order

    tenant = _active_tenant(tenant_id)
    cost = credits.cost_for(tenant_id, Feature.ORDER)

    try:
        with transaction.atomic():
            if cost > 0:
                account = credits.get_account(tenant_id, for_update=True)
                if account.balance < cost:
                    raise InsufficientCredit(balance=account.balance, required=cost, feature=Feature.ORDER)

            order = Order(tenant=tenant, created_by=created_by if getattr(created_by, 'is_authenticated', False) else None, **fields)
            order.reference_number = reference_for_tenant(tenant, order.mobile, custom=custom_reference)
            order.save()

            if cost > 0:
                result = credits.debit(
                    tenant_id,
                    cost,
                    Feature.ORDER,
                    order_id=order.pk,
                    order_reference=order.reference_number,
                    description=f'Order created: {order.reference_number}',
                    user=created_by,
                )
                if not result.ok:
                    raise InsufficientCredit(balance=result.new_balance, required=cost, feature=Feature.ORDER)
    except InsufficientCredit as exc:
        audit.record(
            'credit_insufficient',
            tenant_id=tenant_id,
            actor=created_by,
            severity='warning',
            message='Order creation rejected: insufficient credits',
            details={'balance': str(exc.balance), 'required': str(exc.required)},
        )
        raise
    except IntegrityError as exc:
        logger.warning("Order reference collision", extra={"tenantId": tenant_id, "error": str(exc)})
        raise ConsistencyError(
            'An order with this reference number already exists',
            details={'field': 'reference_number'},
        )

    logger.info(
        "Order created",
        extra={"orderId": order.pk, "tenantId": tenant_id, "reference": order.reference_number},
    )
    audit.record(
        'order_created',
        tenant_id=tenant_id,
        actor=created_by,
        message=f'Order {order.reference_number} created',
        details={'orderId': order.pk, 'courier': order.courier_service, 'credits': str(cost)},
    )

    dispatch = dispatch_order(order)

    if notify and tenant.whatsapp_enabled:
        order_id = order.pk
        transaction.on_commit(lambda: _queue_notifications(order_id))

    return CreationOutcome(order=order, dispatch=dispatch, credits_charged=cost)


def get_order(tenant_id: int, order_id: int) -> Order:
    order = Order.objects.filter(tenant_id=tenant_id, pk=order_id).first()
    if order is None:
        raise NotFoundError(f'Order {order_id} not found')
    return order


def _end_of_day(day: datetime.date) -> datetime.datetime:
    moment = datetime.datetime.combine(day, datetime.time.max)
    return timezone.make_aware(moment) if settings.USE_TZ else moment


def _start_of_day(day: datetime.date) -> datetime.datetime:
    moment = datetime.datetime.combine(day, datetime.time.min)
    return timezone.make_aware(moment) if settings.USE_TZ else moment


def filtered_orders(tenant_id: int, filters: OrderFilters):
    qs = Order.objects.filter(tenant_id=tenant_id)
    search = (filters.search or '').strip()
    if search:
        qs = qs.filter(
            Q(name__icontains=search)
            | Q(mobile__icontains=search)
            | Q(tracking_id__icontains=search)
            | Q(reference_number__icontains=search)
        )
    if filters.from_date:
        qs = qs.filter(created_at__gte=_start_of_day(filters.from_date))
    if filters.to_date:
        qs = qs.filter(created_at__lte=_end_of_day(filters.to_date))
    if filters.pickup_location:
        qs = qs.filter(pickup_location=filters.pickup_location)
    if filters.courier_service:
        qs = qs.filter(courier_service__iexact=filters.courier_service)
    return qs.order_by('-created_at', '-id')


def list_orders(tenant_id: int, filters: OrderFilters, page: int = 1, page_size: int = 10) -> OrderPage:
    paginator = Paginator(filtered_orders(tenant_id, filters), max(1, page_size))
    if paginator.count == 0:
        return OrderPage(orders=[], current_page=1, total_pages=0, total_count=0)
    page_obj = paginator.get_page(page)
    return OrderPage(
        orders=list(page_obj.object_list),
        current_page=page_obj.number,
        total_pages=paginator.num_pages,
        total_count=paginator.count,
    )


def _validate_ids(order_ids: Iterable[Any]) -> List[int]:
    if not isinstance(order_ids, (list, tuple)) or not order_ids:
        raise ValidationError('orderIds must be a non-empty array')
    cleaned: List[int] = []
    for raw in order_ids:
        if isinstance(raw, bool):
            raise ValidationError(f'Invalid order id: {raw!r}')
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise ValidationError(f'Invalid order id: {raw!r}')
        if value <= 0 or str(raw).strip() != str(value):
            raise ValidationError(f'Invalid order id: {raw!r}')
        cleaned.append(value)
    return sorted(set(cleaned))


def bulk_delete(tenant_id: int, order_ids: Iterable[Any], *, actor=None) -> int:
    """
    Delete the given orders, all or nothing.

    Every id must exist under ``tenant_id``; otherwise nothing is deleted.
    Booked shipments are cancelled with the courier after the commit.
    """
    from apps.couriers.tasks import cancel_shipments_task

    ids = _validate_ids(order_ids)
    with transaction.atomic():
        rows = list(
            Order.objects.select_for_update()
            .filter(tenant_id=tenant_id, pk__in=ids)
            .values('id', 'courier_service', 'delhivery_waybill_number', 'pickup_location', 'reference_number')
        )
        found = {row['id'] for row in rows}
        if found != set(ids):
            missing = set(ids) - found
            logger.warning("Bulk delete rejected", extra={"tenantId": tenant_id, "missing": sorted(missing)})
            raise OrderSetMismatch(missing)
        deleted, _ = Order.objects.filter(tenant_id=tenant_id, pk__in=ids).delete()

    shipments = [
        [row['delhivery_waybill_number'], row['pickup_location']]
        for row in rows
        if row['delhivery_waybill_number'] and (row['courier_service'] or '').lower() == 'delhivery'
    ]
    if shipments:
        transaction.on_commit(lambda: cancel_shipments_task.delay(tenant_id, shipments))

    audit.record(
        'orders_deleted',
        tenant_id=tenant_id,
        actor=actor,
        message=f'Deleted {deleted} orders',
        details={'orderIds': ids, 'references': [row['reference_number'] for row in rows]},
    )
    return deleted


def retry_dispatch(tenant_id: int, order_id: int):
    """Manual re-dispatch of a failed or never-dispatched courier booking."""
    from apps.couriers.services import dispatch_order

    with transaction.atomic():
        order = Order.objects.select_for_update().filter(tenant_id=tenant_id, pk=order_id).first()
        if order is None:
            raise NotFoundError(f'Order {order_id} not found')
        if not order.is_delhivery:
            raise ValidationError('Only Delhivery orders can be retried')
        if order.delhivery_api_status == DispatchStatus.SUCCESS:
            raise ConsistencyError('Order was already dispatched successfully')
        if order.dispatch_in_flight():
            raise ConsistencyError('A courier dispatch for this order is already in progress')
        if order.delhivery_retry_count >= settings.DELHIVERY_MAX_RETRIES:
            raise ValidationError(
                'Maximum retry attempts reached',
                details={'retryCount': order.delhivery_retry_count},
            )
        order.delhivery_retry_count += 1
        order.save(update_fields=['delhivery_retry_count', 'updated_at'])

    dispatch = dispatch_order(order)
    if dispatch.in_progress:
        raise ConsistencyError(dispatch.error, details={'orderId': order.pk})
    return order, dispatch


def refresh_statuses(tenant_id: int, order_ids: Iterable[Any]):
    """On-demand courier tracking refresh for up to ``TRACKING_REFRESH_MAX_IDS`` orders."""
    from apps.couriers.services import refresh_tracking, trackable_orders

    ids = _validate_ids(order_ids)
    if len(ids) > settings.TRACKING_REFRESH_MAX_IDS:
        raise ValidationError(
            f'Cannot refresh more than {settings.TRACKING_REFRESH_MAX_IDS} orders at once',
            details={'count': len(ids)},
        )
    orders = list(trackable_orders(tenant_id, ids))
    if not orders:
        raise NotFoundError('No dispatched Delhivery orders found for the given ids')
    return refresh_tracking(tenant_id, orders)
