from __future__ import annotations

import logging
import time
import uuid

logger = logging.getLogger("request")

REQUEST_ID_HEADER = 'X-Request-ID'


def request_id_for(request) -> str:
    incoming = (request.headers.get(REQUEST_ID_HEADER) or '').strip()
    # caller-supplied ids are echoed only when short and printable
    if incoming and len(incoming) <= 64 and incoming.isprintable():
        return incoming
    return uuid.uuid4().hex


class RequestLogMiddleware:
    """
    One structured log line per request.

    Each request is tagged with an id, echoed back as ``X-Request-ID``. The
    line carries the tenant and user DRF authenticated, and the shop domain
    for storefront webhooks, which have no user. Server errors log at ERROR.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.monotonic()
        request.request_id = request_id_for(request)
        response = None
        try:
            response = self.get_response(request)
            response[REQUEST_ID_HEADER] = request.request_id
            return response
        finally:
            status_code = response.status_code if response is not None else 500
            # DRF copies the authenticated user back onto the Django request
            user = getattr(request, 'user', None)
            fields = {
                "requestId": request.request_id,
                "method": request.method,
                "path": request.path,
                "tenantId": getattr(user, 'tenant_id', None),
                "userId": getattr(user, 'pk', None),
                "status": status_code,
                "durationMs": int((time.monotonic() - started) * 1000),
            }
            shop = request.headers.get('X-Shopify-Shop-Domain')
            if shop:
                fields["shop"] = shop
            logger.log(logging.ERROR if status_code >= 500 else logging.INFO, "Request finished", extra=fields)
