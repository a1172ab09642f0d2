from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from django.conf import settings

from .delhivery import (
    FINAL_TRACKING_STATUSES,
    TRACK_BATCH_SIZE,
    DelhiveryAdapter,
    DelhiveryCredentials,
    DelhiveryError,
    ShipmentResult,
    TrackingResult,
)


@dataclass(frozen=True)
class AdapterBinding:
    courier: str
    adapter: Any
    _builder: Callable[[Dict[str, Any]], Any]

    def credentials(self, values: Dict[str, Any]):
        return self._builder(values)


def _delhivery_builder(values: Dict[str, Any]) -> DelhiveryCredentials:
    return DelhiveryCredentials(
        base_url=values.get('base_url') or settings.DELHIVERY_BASE_URL,
        api_key=values.get('api_key') or settings.DELHIVERY_API_KEY or None,
    )


def get_adapter(courier: str) -> Optional[AdapterBinding]:
    """Integrated couriers only; anything else is fulfilled manually."""
    key = (courier or '').strip().lower()
    if key == 'delhivery':
        return AdapterBinding(courier='delhivery', adapter=DelhiveryAdapter(), _builder=_delhivery_builder)
    return None


__all__ = [
    'AdapterBinding',
    'get_adapter',
    'DelhiveryAdapter',
    'DelhiveryCredentials',
    'DelhiveryError',
    'ShipmentResult',
    'TrackingResult',
    'FINAL_TRACKING_STATUSES',
    'TRACK_BATCH_SIZE',
]
