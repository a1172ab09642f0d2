from __future__ import annotations

from typing import Any, Dict, Optional


class ParcelhubError(Exception):
    """Base class for errors that map onto an API response."""

    status_code = 500
    code = 'error'

    def __init__(self, message: str = '', *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details or {}

    def as_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'error': self.code, 'message': self.message}
        payload.update(self.details)
        return payload


class ValidationError(ParcelhubError):
    """A required field is missing or malformed. Raised before any side effect."""

    status_code = 400
    code = 'validation_error'


class AuthorizationError(ParcelhubError):
    """Cross-tenant access or an invalid webhook signature."""

    status_code = 401
    code = 'authorization_error'


class NotFoundError(ParcelhubError):
    status_code = 404
    code = 'not_found'


class InsufficientCredit(ParcelhubError):
    status_code = 402
    code = 'insufficient_credit'

    def __init__(self, *, balance, required, feature: str = 'ORDER') -> None:
        super().__init__(
            f'Insufficient credits: {required} required, {balance} available',
            details={'balance': str(balance), 'required': str(required), 'feature': feature},
        )
        self.balance = balance
        self.required = required
        self.feature = feature


class UpstreamFailure(ParcelhubError):
    """A courier, messaging or storefront call failed or timed out."""

    status_code = 502
    code = 'upstream_failure'


class ConsistencyError(ParcelhubError):
    status_code = 409
    code = 'consistency_error'


class OrderSetMismatch(ConsistencyError):
    """Some requested ids are missing or belong to another tenant."""

    status_code = 404
    code = 'orders_not_found'

    def __init__(self, missing_ids) -> None:
        missing = sorted(missing_ids)
        super().__init__(
            'Some orders were not found or do not belong to this tenant',
            details={'missingIds': missing},
        )
        self.missing_ids = missing
