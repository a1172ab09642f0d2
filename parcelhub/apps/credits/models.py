from decimal import Decimal

from django.conf import settings
from django.db import models


class Feature(models.TextChoices):
    ORDER = "ORDER", "Order"
    WHATSAPP = "WHATSAPP", "WhatsApp"
    IMAGE_PROCESSING = "IMAGE_PROCESSING", "Image processing"
    TEXT_PROCESSING = "TEXT_PROCESSING", "Text processing"
    MANUAL = "MANUAL", "Manual"


class CreditAccount(models.Model):
    """Authoritative balance per tenant; balance == total_added - total_used."""

    tenant = models.OneToOneField('tenancy.Tenant', on_delete=models.CASCADE, related_name='credit_account')
    balance = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    total_added = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    total_used = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'ph_credit_accounts'

    def __str__(self):
        return f"Credits(tenant={self.tenant_id}, balance={self.balance})"


class CreditTransaction(models.Model):
    """
    Append-only ledger entry.

    ``amount`` is a magnitude: ADD adds it, DEDUCT subtracts it, RESET sets
    the balance to it.
    """

    class Type(models.TextChoices):
        ADD = "ADD", "Add"
        DEDUCT = "DEDUCT", "Deduct"
        RESET = "RESET", "Reset"

    tenant = models.ForeignKey('tenancy.Tenant', on_delete=models.CASCADE, related_name='credit_transactions')
    type = models.CharField(max_length=10, choices=Type.choices)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    balance_after = models.DecimalField(max_digits=14, decimal_places=2)
    description = models.CharField(max_length=255, blank=True)
    feature = models.CharField(max_length=32, choices=Feature.choices, default=Feature.MANUAL)
    # Plain ids so the ledger survives order deletion
    order_id = models.BigIntegerField(null=True, blank=True, db_index=True)
    order_reference = models.CharField(max_length=128, blank=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='credit_transactions',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ph_credit_transactions'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['tenant', 'created_at'], name='ph_credit_tx_tenant_idx'),
        ]

    def __str__(self):
        return f"{self.type} {self.amount} (tenant={self.tenant_id})"


class CreditCost(models.Model):
    """Per-tenant override of the default cost of a feature. Zero means exempt."""

    tenant = models.ForeignKey('tenancy.Tenant', on_delete=models.CASCADE, related_name='credit_costs')
    feature = models.CharField(max_length=32, choices=Feature.choices)
    cost = models.DecimalField(max_digits=10, decimal_places=2)

    class Meta:
        db_table = 'ph_credit_costs'
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'feature'], name='ph_credit_cost_tenant_feature_uniq'),
        ]

    def __str__(self):
        return f"{self.feature}={self.cost} (tenant={self.tenant_id})"
