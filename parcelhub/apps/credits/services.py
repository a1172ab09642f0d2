from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.core.paginator import Paginator
from django.db import transaction

from apps.audit import services as audit
from apps.core.errors import ValidationError

from .models import CreditAccount, CreditCost, CreditTransaction, Feature

logger = logging.getLogger(__name__)

MANUAL_GROUP = 'manual'
MANUAL_GROUP_LABEL = 'Manual Transaction'
AI_USAGE_LABEL = 'AI Usage in Order reference'


@dataclass(frozen=True)
class DebitResult:
    ok: bool
    new_balance: Decimal
    required: Decimal
    transaction_id: Optional[int] = None


def _as_amount(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f'Invalid credit amount: {value!r}')
    if not amount.is_finite():
        raise ValidationError(f'Invalid credit amount: {value!r}')
    return amount


def get_account(tenant_id: int, *, for_update: bool = False) -> CreditAccount:
    """Fetch (creating on first use) the tenant's account, row-locked when asked."""
    account, _ = CreditAccount.objects.get_or_create(tenant_id=tenant_id)
    if for_update:
        account = CreditAccount.objects.select_for_update().get(pk=account.pk)
    return account


def cost_for(tenant_id: int, feature: str) -> Decimal:
    override = CreditCost.objects.filter(tenant_id=tenant_id, feature=feature).values_list('cost', flat=True).first()
    if override is not None:
        return Decimal(override)
    return Decimal(str(settings.CREDIT_COSTS.get(feature, 0)))


def debit(
    tenant_id: int,
    amount,
    feature: str,
    *,
    order_id: Optional[int] = None,
    order_reference: str = '',
    description: str = '',
    user=None,
) -> DebitResult:
    """
    Deduct ``amount`` credits.

    Insufficient balance is an expected outcome and comes back as
    ``DebitResult(ok=False)``; nothing is written in that case. The account
    row stays locked until the caller's outermost transaction ends.
    """
    amount = _as_amount(amount)
    if amount <= 0:
        raise ValidationError('Debit amount must be positive')

    with transaction.atomic():
        account = get_account(tenant_id, for_update=True)
        if account.balance < amount:
            logger.info(
                "Insufficient credits",
                extra={"tenantId": tenant_id, "feature": feature, "balance": str(account.balance), "required": str(amount)},
            )
            return DebitResult(ok=False, new_balance=account.balance, required=amount)

        account.balance -= amount
        account.total_used += amount
        account.save(update_fields=['balance', 'total_used', 'updated_at'])

        txn = CreditTransaction.objects.create(
            tenant_id=tenant_id,
            type=CreditTransaction.Type.DEDUCT,
            amount=amount,
            balance_after=account.balance,
            description=description or f'{feature} usage',
            feature=feature,
            order_id=order_id,
            order_reference=order_reference or '',
            user=user if getattr(user, 'is_authenticated', False) else None,
        )

    return DebitResult(ok=True, new_balance=account.balance, required=amount, transaction_id=txn.pk)


def credit(
    tenant_id: int,
    amount,
    description: str,
    *,
    feature: str = Feature.MANUAL,
    order_id: Optional[int] = None,
    order_reference: str = '',
    user=None,
) -> Decimal:
    amount = _as_amount(amount)
    if amount <= 0:
        raise ValidationError('Credit amount must be positive')

    with transaction.atomic():
        account = get_account(tenant_id, for_update=True)
        account.balance += amount
        account.total_added += amount
        account.save(update_fields=['balance', 'total_added', 'updated_at'])
        CreditTransaction.objects.create(
            tenant_id=tenant_id,
            type=CreditTransaction.Type.ADD,
            amount=amount,
            balance_after=account.balance,
            description=description,
            feature=feature,
            order_id=order_id,
            order_reference=order_reference or '',
            user=user if getattr(user, 'is_authenticated', False) else None,
        )

    if feature == Feature.MANUAL:
        audit.record(
            'credits_added',
            tenant_id=tenant_id,
            actor=user,
            message=f'Added {amount} credits',
            details={'amount': str(amount), 'balance': str(account.balance), 'description': description},
        )
    return account.balance


def reset(tenant_id: int, new_balance, description: str, *, user=None) -> CreditAccount:
    """Set the balance outright; totals move by the difference."""
    new_balance = _as_amount(new_balance)
    if new_balance < 0:
        raise ValidationError('Balance cannot be negative')

    with transaction.atomic():
        account = get_account(tenant_id, for_update=True)
        difference = new_balance - account.balance
        if difference > 0:
            account.total_added += difference
        elif difference < 0:
            account.total_used += -difference
        account.balance = new_balance
        account.save(update_fields=['balance', 'total_added', 'total_used', 'updated_at'])
        CreditTransaction.objects.create(
            tenant_id=tenant_id,
            type=CreditTransaction.Type.RESET,
            amount=new_balance,
            balance_after=new_balance,
            description=description,
            feature=Feature.MANUAL,
            user=user if getattr(user, 'is_authenticated', False) else None,
        )

    audit.record(
        'credits_reset',
        tenant_id=tenant_id,
        actor=user,
        severity='warning',
        message=f'Credits reset to {new_balance}',
        details={'balance': str(new_balance), 'difference': str(difference), 'description': description},
    )
    return account


def replay_balance(tenant_id: int) -> Decimal:
    """Rebuild the balance from the ledger in creation order."""
    balance = Decimal('0')
    for txn in CreditTransaction.objects.filter(tenant_id=tenant_id).order_by('created_at', 'id'):
        if txn.type == CreditTransaction.Type.ADD:
            balance += txn.amount
        elif txn.type == CreditTransaction.Type.DEDUCT:
            balance -= txn.amount
        else:
            balance = txn.amount
    return balance


def _group_key(txn: CreditTransaction) -> tuple[str, str]:
    if txn.order_id:
        return str(txn.order_id), txn.order_reference or f'Order #{txn.order_id}'
    if txn.feature == Feature.IMAGE_PROCESSING:
        return 'image_processing', AI_USAGE_LABEL
    if txn.feature == Feature.TEXT_PROCESSING:
        return 'text_processing', AI_USAGE_LABEL
    return MANUAL_GROUP, MANUAL_GROUP_LABEL


def _signed(txn: CreditTransaction) -> Decimal:
    if txn.type == CreditTransaction.Type.DEDUCT:
        return -txn.amount
    return txn.amount


def history(tenant_id: int, page: int = 1, page_size: int = 20) -> Dict[str, Any]:
    """
    Ledger grouped by order for display.

    Groups are ordered by their most recent entry and paginated as a whole,
    so one order's entries never straddle two pages.
    """
    groups: Dict[str, Dict[str, Any]] = {}
    for txn in CreditTransaction.objects.filter(tenant_id=tenant_id).order_by('-created_at', '-id'):
        key, label = _group_key(txn)
        group = groups.get(key)
        if group is None:
            group = groups[key] = {
                'orderId': key,
                'orderReference': label,
                'totalCredits': Decimal('0'),
                'transactions': [],
                'createdAt': txn.created_at,
                'lastUpdated': txn.created_at,
            }
        group['transactions'].append(txn)
        group['totalCredits'] += _signed(txn)
        if txn.created_at > group['lastUpdated']:
            group['lastUpdated'] = txn.created_at
        if txn.created_at < group['createdAt']:
            group['createdAt'] = txn.created_at

    ordered: List[Dict[str, Any]] = sorted(groups.values(), key=lambda g: g['lastUpdated'], reverse=True)
    paginator = Paginator(ordered, max(1, page_size))
    page_obj = paginator.get_page(page)
    return {
        'groups': list(page_obj.object_list),
        'pagination': {
            'page': page_obj.number,
            'limit': paginator.per_page,
            'total': paginator.count,
            'totalPages': paginator.num_pages if paginator.count else 0,
        },
    }
