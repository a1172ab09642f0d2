from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class WhatsAppError(Exception):
    pass


@dataclass(frozen=True)
class WhatsAppConfig:
    base_url: str
    api_key: str
    message_id: str

    @classmethod
    def from_settings(cls) -> "WhatsAppConfig":
        return cls(
            base_url=settings.FAST2SMS_BASE_URL,
            api_key=settings.FAST2SMS_API_KEY,
            message_id=settings.FAST2SMS_MESSAGE_ID,
        )

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key and self.message_id)


def format_phone(phone) -> str:
    """91 followed by the 10 subscriber digits."""
    digits = re.sub(r'\D', '', str(phone or ''))
    if len(digits) == 10:
        return f'91{digits}'
    if len(digits) == 11 and digits.startswith('0'):
        return f'91{digits[1:]}'
    return digits


def _variable(value) -> str:
    # "|" separates template variables on the wire
    return str(value if value is not None else '').replace('|', '/').strip()


class WhatsAppClient:
    """Fast2SMS WhatsApp template sender."""

    def __init__(self, config: Optional[WhatsAppConfig] = None, timeout=None) -> None:
        self.config = config or WhatsAppConfig.from_settings()
        self.timeout = timeout or settings.WHATSAPP_TIMEOUT

    @property
    def configured(self) -> bool:
        return self.config.configured

    def _scrub(self, text: str) -> str:
        key = self.config.api_key
        return text.replace(key, '***') if key else text

    def send_template(self, phone, variables: Sequence[str]) -> str:
        """Send one templated message; returns the provider request id."""
        if not self.configured:
            raise WhatsAppError('Fast2SMS WhatsApp API is not configured')
        numbers = format_phone(phone)
        if len(numbers) != 12:
            raise WhatsAppError(f'Invalid phone number for WhatsApp: {phone!r}')
        params = {
            'authorization': self.config.api_key,
            'message_id': self.config.message_id,
            'numbers': numbers,
            'variables_values': '|'.join(_variable(v) for v in variables),
        }
        try:
            resp = requests.get(self.config.base_url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            # the exception text carries the full URL, api key included
            raise WhatsAppError(f'WhatsApp request failed: {type(e).__name__}') from e
        if not resp.ok:
            raise WhatsAppError(f'WhatsApp API error: {resp.status_code} - {self._scrub(resp.text[:300])}')
        try:
            body = resp.json()
        except ValueError as e:
            raise WhatsAppError('WhatsApp API returned a non-JSON body') from e
        if not isinstance(body, dict) or body.get('return') is not True:
            message = body.get('message') if isinstance(body, dict) else None
            if isinstance(message, list):
                message = ', '.join(str(m) for m in message)
            raise WhatsAppError(f'WhatsApp API error: {self._scrub(str(message or "Unknown error"))}')
        return str(body.get('request_id') or 'unknown')
