import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import SimpleRateThrottle
from rest_framework.views import APIView

from . import services

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = 'HTTP_X_SHOPIFY_HMAC_SHA256'
SHOP_HEADER = 'HTTP_X_SHOPIFY_SHOP_DOMAIN'
TOPIC_HEADER = 'HTTP_X_SHOPIFY_TOPIC'


class ShopifyWebhookThrottle(SimpleRateThrottle):
    """Per-shop rate limit; falls back to the client address when the header is missing."""

    scope = 'shopify_webhook'

    def get_cache_key(self, request, view):
        shop = (request.META.get(SHOP_HEADER) or '').strip().lower()
        ident = shop or self.get_ident(request)
        return self.cache_format % {'scope': self.scope, 'ident': ident}


class ShopifyWebhookView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [ShopifyWebhookThrottle]

    @extend_schema(
        tags=["Webhooks"],
        request=None,
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
        parameters=[
            OpenApiParameter('X-Shopify-Hmac-Sha256', str, OpenApiParameter.HEADER, required=True),
            OpenApiParameter('X-Shopify-Shop-Domain', str, OpenApiParameter.HEADER, required=True),
            OpenApiParameter('X-Shopify-Topic', str, OpenApiParameter.HEADER, required=True),
        ],
    )
    def post(self, request):
        # the signature covers the exact bytes, so read them before DRF parses anything
        raw_body = request.body
        outcome = services.process_webhook(
            shop_domain=request.META.get(SHOP_HEADER, ''),
            topic=request.META.get(TOPIC_HEADER, ''),
            signature=request.META.get(SIGNATURE_HEADER, ''),
            raw_body=raw_body,
            request=request,
        )
        return Response(outcome.as_payload(), status=outcome.status_code)
