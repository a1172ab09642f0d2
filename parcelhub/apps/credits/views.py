import logging

from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.errors import ValidationError
from apps.tenancy.models import Tenant
from apps.users.permissions import IsPlatformAdmin, IsTenantMember, tenant_id_for

from . import services
from .serializers import (
    CreditAccountSerializer,
    CreditAdjustmentSerializer,
    CreditGroupSerializer,
    CreditHistoryResponseSerializer,
)

logger = logging.getLogger(__name__)


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


class CreditAccountView(APIView):
    permission_classes = [IsTenantMember]

    @extend_schema(tags=["Credits"], responses={200: CreditAccountSerializer})
    def get(self, request):
        account = services.get_account(tenant_id_for(request))
        return Response(CreditAccountSerializer(account).data)


class CreditTransactionsView(APIView):
    permission_classes = [IsTenantMember]

    @extend_schema(
        tags=["Credits"],
        parameters=[
            OpenApiParameter('page', int, required=False),
            OpenApiParameter('limit', int, required=False),
        ],
        responses={200: CreditHistoryResponseSerializer},
    )
    def get(self, request):
        page = _positive_int(request.query_params.get('page'), 1, 'page')
        limit = min(_positive_int(request.query_params.get('limit'), 20, 'limit'), 100)
        result = services.history(tenant_id_for(request), page=page, page_size=limit)
        return Response({
            'orderTransactions': CreditGroupSerializer(result['groups'], many=True).data,
            'pagination': result['pagination'],
        })


class AdminCreditAdjustmentView(APIView):
    permission_classes = [IsPlatformAdmin]

    @extend_schema(tags=["Admin Credits"], request=CreditAdjustmentSerializer, responses={200: CreditAccountSerializer})
    def post(self, request, tenant_id: int):
        tenant = get_object_or_404(Tenant, pk=tenant_id)
        serializer = CreditAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if data['action'] == 'add':
            services.credit(
                tenant.id,
                data['amount'],
                data['description'] or 'Credits added by admin',
                user=request.user,
            )
        else:
            services.reset(
                tenant.id,
                data['amount'],
                data['description'] or 'Credits reset by admin',
                user=request.user,
            )
        account = services.get_account(tenant.id)
        return Response(CreditAccountSerializer(account).data, status=status.HTTP_200_OK)
