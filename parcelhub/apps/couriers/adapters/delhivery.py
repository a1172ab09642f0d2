from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Sequence

import requests
from django.conf import settings
from requests import Response

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = (5, 20)  # (connect, read) seconds
CREATE_PATH = 'api/cmu/create.json'
EDIT_PATH = 'api/p/edit'
TRACK_PATH = 'api/v1/packages/json/'
# waybills per tracking call
TRACK_BATCH_SIZE = 50
FINAL_TRACKING_STATUSES = ('delivered', 'returned')


class DelhiveryError(Exception):
    pass


@dataclass
class DelhiveryCredentials:
    base_url: str | None
    api_key: str | None


@dataclass(frozen=True)
class ShipmentResult:
    waybill: str
    courier_order_id: str
    raw: Dict[str, Any]


@dataclass(frozen=True)
class TrackingResult:
    waybill: str
    status: str
    courier_status: str
    instructions: str = ''
    delivered_at: str = ''


def map_tracking_status(courier_status: str, delivered_at: str = '') -> str:
    """Collapse Delhivery scan statuses to manifested, in_transit, delivered or returned."""
    status = (courier_status or '').strip().lower()
    if status == 'delivered' or (status == 'success' and delivered_at):
        return 'delivered'
    if status in ('manifested', 'not picked'):
        return 'manifested'
    if status == 'returned':
        return 'returned'
    return 'in_transit'


def _money(value) -> str:
    if value is None:
        return '0'
    return str(Decimal(str(value)).quantize(Decimal('0.01')))


class DelhiveryAdapter:
    """Thin client for the Delhivery CMU shipment API."""

    def __init__(self, timeout=None) -> None:
        self.timeout = timeout or getattr(settings, 'DELHIVERY_TIMEOUT', DEFAULT_TIMEOUT)

    def _base(self, creds: DelhiveryCredentials) -> str:
        base = (creds.base_url or '').rstrip('/')
        if not base:
            raise DelhiveryError('Missing base_url for Delhivery')
        return base

    def _headers(self, creds: DelhiveryCredentials) -> Dict[str, str]:
        if not creds.api_key:
            raise DelhiveryError('Missing Delhivery API key')
        return {
            'Authorization': f'Token {creds.api_key}',
            'Accept': 'application/json',
            'Content-Type': 'application/x-www-form-urlencoded',
        }

    def _handle(self, resp: Response) -> Dict[str, Any]:
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            raise DelhiveryError(f"HTTP {resp.status_code}: {resp.text[:500]}") from e
        try:
            body = resp.json()
        except ValueError as e:
            raise DelhiveryError(f"Malformed response from Delhivery: {resp.text[:200]}") from e
        if not isinstance(body, dict):
            raise DelhiveryError(f"Unexpected response shape from Delhivery: {type(body).__name__}")
        return body

    def build_shipment(self, order) -> Dict[str, Any]:
        """Translate an order into one CMU shipment entry."""
        shipment = {
            'name': order.name,
            'add': order.address,
            'pin': order.pincode,
            'city': order.city,
            'state': order.state,
            'country': order.country,
            'phone': order.mobile,
            'order': order.reference_number,
            'payment_mode': 'COD' if order.is_cod else 'Prepaid',
            'cod_amount': _money(order.cod_amount) if order.is_cod else '0',
            'total_amount': _money(order.package_value),
            'products_desc': order.product_description or '',
            'quantity': str(order.total_items),
            # grams
            'weight': str(int(Decimal(str(order.weight)) * 1000)),
            'shipping_mode': 'Surface',
        }
        if order.reseller_name:
            shipment['seller_name'] = order.reseller_name
        return shipment

    def create_shipment(self, creds: DelhiveryCredentials, order, pickup_location: str) -> ShipmentResult:
        url = f"{self._base(creds)}/{CREATE_PATH}"
        data = {
            'shipments': [self.build_shipment(order)],
            'pickup_location': {'name': pickup_location},
        }
        form = {"format": "json", "data": json.dumps(data)}
        logger.debug("Creating Delhivery shipment", extra={"url": url, "reference": order.reference_number})
        try:
            resp = requests.post(url, data=form, headers=self._headers(creds), timeout=self.timeout)
        except requests.Timeout as e:
            raise DelhiveryError(f"Delhivery request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise DelhiveryError(f"Delhivery request failed: {e}") from e

        result = self._handle(resp)
        packages = result.get('packages') or []
        first = packages[0] if packages and isinstance(packages[0], dict) else {}

        if result.get('success') is False or result.get('error') is True:
            remarks = first.get('remarks') or result.get('rmk') or 'Shipment rejected by Delhivery'
            if isinstance(remarks, list):
                remarks = '; '.join(str(r) for r in remarks)
            raise DelhiveryError(str(remarks))

        waybill = first.get('waybill')
        if not waybill:
            raise DelhiveryError('Delhivery response did not include a waybill')
        return ShipmentResult(
            waybill=str(waybill),
            courier_order_id=str(first.get('refnum') or order.reference_number),
            raw=result,
        )

    def cancel_shipment(self, creds: DelhiveryCredentials, waybill: str) -> Dict[str, Any]:
        url = f"{self._base(creds)}/{EDIT_PATH}"
        headers = dict(self._headers(creds), **{'Content-Type': 'application/json'})
        try:
            resp = requests.post(
                url,
                json={'waybill': waybill, 'cancellation': 'true'},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise DelhiveryError(f"Delhivery cancellation failed: {e}") from e
        result = self._handle(resp)
        if result.get('status') is False or result.get('error'):
            raise DelhiveryError(str(result.get('remark') or result.get('error') or 'Cancellation rejected'))
        return result

    def track(self, creds: DelhiveryCredentials, waybills: Sequence[str]) -> Dict[str, TrackingResult]:
        """Current status per waybill. Waybills Delhivery does not report on are absent."""
        waybills = [w for w in waybills if w]
        if not waybills:
            return {}
        if len(waybills) > TRACK_BATCH_SIZE:
            raise DelhiveryError(f'At most {TRACK_BATCH_SIZE} waybills can be tracked per request')
        url = f"{self._base(creds)}/{TRACK_PATH}"
        headers = dict(self._headers(creds), **{'Content-Type': 'application/json'})
        try:
            resp = requests.get(url, params={'waybill': ','.join(waybills)}, headers=headers, timeout=self.timeout)
        except requests.Timeout as e:
            raise DelhiveryError(f"Delhivery tracking timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise DelhiveryError(f"Delhivery tracking failed: {e}") from e

        body = self._handle(resp)
        shipments = body.get('ShipmentData')
        if not isinstance(shipments, list):
            raise DelhiveryError(str(body.get('Error') or body.get('error') or 'No ShipmentData in Delhivery response'))

        results: Dict[str, TrackingResult] = {}
        for wrapper in shipments:
            shipment = wrapper.get('Shipment') if isinstance(wrapper, dict) else None
            if not isinstance(shipment, dict) or not shipment.get('AWB'):
                continue
            scan = shipment.get('Status') if isinstance(shipment.get('Status'), dict) else {}
            courier_status = str(scan.get('Status') or 'Unknown')
            delivered_at = str(shipment.get('DeliveryDate') or '')
            waybill = str(shipment['AWB'])
            results[waybill] = TrackingResult(
                waybill=waybill,
                status=map_tracking_status(courier_status, delivered_at),
                courier_status=courier_status,
                instructions=str(scan.get('Instructions') or ''),
                delivered_at=delivered_at,
            )
        return results
