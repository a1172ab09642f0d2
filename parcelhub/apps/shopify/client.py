from __future__ import annotations

import logging
from typing import Any, Dict, List

import requests
from django.conf import settings
from requests import Response

logger = logging.getLogger(__name__)

OPEN_FULFILLMENT_STATUSES = ('open', 'in_progress', 'scheduled')

# courier_service -> Shopify tracking company
TRACKING_COMPANIES = {
    'delhivery': 'Delhivery',
    'dtdc': 'DTDC',
    'india_post': 'India Post',
    'bluedart': 'Bluedart',
    'ecom_express': 'Ecom Express',
    'xpressbees': 'Xpressbees',
}


def tracking_company_for(courier_service: str) -> str:
    key = (courier_service or '').strip().lower()
    return TRACKING_COMPANIES.get(key) or (courier_service or 'Other').replace('_', ' ').title()


class ShopifyError(Exception):
    pass


class ShopifyClient:
    """Minimal Admin REST API client for fulfillment calls."""

    def __init__(self, shop_domain: str, access_token: str, api_version: str | None = None, timeout=None) -> None:
        if not shop_domain or not access_token:
            raise ShopifyError('Shopify shop domain and access token are required')
        self.shop_domain = shop_domain.strip().lower()
        self.access_token = access_token
        self.api_version = api_version or settings.SHOPIFY_API_VERSION
        self.timeout = timeout or settings.SHOPIFY_TIMEOUT

    @classmethod
    def for_integration(cls, integration) -> "ShopifyClient":
        return cls(integration.shop_domain, integration.access_token)

    def _url(self, path: str) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}/{path.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        return {
            'X-Shopify-Access-Token': self.access_token,
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }

    def _handle(self, resp: Response) -> Dict[str, Any]:
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            raise ShopifyError(f"HTTP {resp.status_code}: {resp.text[:500]}") from e
        try:
            body = resp.json()
        except ValueError as e:
            raise ShopifyError(f"Malformed response from Shopify: {resp.text[:200]}") from e
        if not isinstance(body, dict):
            raise ShopifyError('Unexpected response shape from Shopify')
        return body

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = self._url(path)
        try:
            resp = requests.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ShopifyError(f"Shopify request failed: {e}") from e
        return self._handle(resp)

    def fulfillment_orders(self, order_id: int) -> List[Dict[str, Any]]:
        body = self._request('GET', f'orders/{order_id}/fulfillment_orders.json')
        return list(body.get('fulfillment_orders') or [])

    def create_fulfillment(
        self,
        order_id: int,
        *,
        tracking_number: str,
        tracking_company: str,
        notify_customer: bool = True,
    ) -> Dict[str, Any]:
        open_orders = [
            fo for fo in self.fulfillment_orders(order_id)
            if (fo.get('status') or '').lower() in OPEN_FULFILLMENT_STATUSES
        ]
        if not open_orders:
            raise ShopifyError(f'No open fulfillment orders for Shopify order {order_id}')
        payload = {
            'fulfillment': {
                'line_items_by_fulfillment_order': [{'fulfillment_order_id': fo['id']} for fo in open_orders],
                'tracking_info': {'number': tracking_number, 'company': tracking_company},
                'notify_customer': notify_customer,
            }
        }
        body = self._request('POST', 'fulfillments.json', json=payload)
        fulfillment = body.get('fulfillment')
        if not isinstance(fulfillment, dict) or not fulfillment.get('id'):
            raise ShopifyError('Shopify did not return a fulfillment')
        logger.info("Shopify fulfillment created", extra={"shop": self.shop_domain, "upstreamOrderId": order_id})
        return fulfillment

    def update_tracking(
        self,
        fulfillment_id: int,
        *,
        tracking_number: str,
        tracking_company: str,
        notify_customer: bool = False,
    ) -> Dict[str, Any]:
        payload = {
            'fulfillment': {
                'tracking_info': {'number': tracking_number, 'company': tracking_company},
                'notify_customer': notify_customer,
            }
        }
        body = self._request('POST', f'fulfillments/{fulfillment_id}/update_tracking.json', json=payload)
        return body.get('fulfillment') or {}
