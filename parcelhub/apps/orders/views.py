from __future__ import annotations

import datetime
import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.errors import UpstreamFailure, ValidationError
from apps.users.permissions import IsTenantMember, tenant_id_for

from . import services
from .serializers import (
    BulkDeleteSerializer,
    OrderCreatedSerializer,
    OrderCreateSerializer,
    OrderSerializer,
    OrdersListResponseSerializer,
    RefreshStatusesSerializer,
)

logger = logging.getLogger(__name__)


def _parse_date(raw, name: str):
    if not raw:
        return None
    try:
        # accept full ISO timestamps from the UI as well as bare dates
        return datetime.date.fromisoformat(str(raw)[:10])
    except ValueError:
        raise ValidationError(f'{name} must be a YYYY-MM-DD date')


def _positive_int(raw, default: int, name: str) -> int:
    if raw in (None, ''):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer')
    if value < 1:
        raise ValidationError(f'{name} must be >= 1')
    return value


def _created_payload(outcome) -> dict:
    data = dict(OrderSerializer(outcome.order).data)
    data['dispatch'] = outcome.dispatch.as_dict()
    return data


class OrdersView(APIView):
    permission_classes = [IsTenantMember]

    @extend_schema(
        tags=["Orders"],
        parameters=[
            OpenApiParameter('search', str, required=False),
            OpenApiParameter('fromDate', str, required=False),
            OpenApiParameter('toDate', str, required=False),
            OpenApiParameter('pickupLocation', str, required=False),
            OpenApiParameter('courierService', str, required=False),
            OpenApiParameter('page', int, required=False),
            OpenApiParameter('limit', int, required=False),
        ],
        responses={200: OrdersListResponseSerializer},
    )
    def get(self, request):
        params = request.query_params
        filters = services.OrderFilters(
            search=params.get('search', ''),
            from_date=_parse_date(params.get('fromDate'), 'fromDate'),
            to_date=_parse_date(params.get('toDate'), 'toDate'),
            pickup_location=params.get('pickupLocation', ''),
            courier_service=params.get('courierService', ''),
        )
        page = _positive_int(params.get('page'), 1, 'page')
        limit = min(_positive_int(params.get('limit'), 10, 'limit'), 100)
        result = services.list_orders(tenant_id_for(request), filters, page=page, page_size=limit)
        return Response({
            'orders': OrderSerializer(result.orders, many=True).data,
            'pagination': result.pagination(),
        })

    @extend_schema(tags=["Orders"], request=OrderCreateSerializer, responses={201: OrderCreatedSerializer})
    def post(self, request):
        tenant_id = tenant_id_for(request)
        serializer = OrderCreateSerializer(data=request.data, context={'tenant_id': tenant_id})
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        custom_reference = fields.pop('reference_number', None)
        outcome = services.create_order(
            tenant_id,
            fields,
            custom_reference=custom_reference,
            created_by=request.user,
        )
        return Response(_created_payload(outcome), status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Orders"], request=BulkDeleteSerializer, responses={200: OpenApiTypes.OBJECT})
    def delete(self, request):
        order_ids = request.data.get('orderIds') if isinstance(request.data, dict) else None
        deleted = services.bulk_delete(tenant_id_for(request), order_ids, actor=request.user)
        return Response({'message': f'{deleted} orders deleted', 'deletedCount': deleted})


class OrderDetailView(APIView):
    permission_classes = [IsTenantMember]

    @extend_schema(tags=["Orders"], responses={200: OrderSerializer})
    def get(self, request, id: int):
        order = services.get_order(tenant_id_for(request), id)
        return Response(OrderSerializer(order).data)


class OrderRetryDispatchView(APIView):
    permission_classes = [IsTenantMember]

    @extend_schema(tags=["Orders"], request=None, responses={200: OrderCreatedSerializer})
    def post(self, request, id: int):
        order, dispatch = services.retry_dispatch(tenant_id_for(request), id)
        if not dispatch.success:
            # the failure is already recorded on the order
            raise UpstreamFailure(
                f'Courier dispatch failed: {dispatch.error}',
                details={'orderId': order.pk, 'retryCount': order.delhivery_retry_count},
            )
        data = dict(OrderSerializer(order).data)
        data['dispatch'] = dispatch.as_dict()
        return Response(data)


class OrderRefreshStatusesView(APIView):
    permission_classes = [IsTenantMember]

    @extend_schema(tags=["Orders"], request=RefreshStatusesSerializer, responses={200: OpenApiTypes.OBJECT})
    def post(self, request):
        order_ids = request.data.get('orderIds') if isinstance(request.data, dict) else None
        outcome = services.refresh_statuses(tenant_id_for(request), order_ids)
        data = outcome.as_dict()
        data['message'] = f'{outcome.updated} of {outcome.processed} orders updated'
        return Response(data)
