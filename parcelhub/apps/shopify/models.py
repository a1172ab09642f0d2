from __future__ import annotations

from django.db import models


class WebhookIntegration(models.Model):
    """A tenant's connected Shopify store."""

    tenant = models.ForeignKey('tenancy.Tenant', on_delete=models.CASCADE, related_name='webhook_integrations')
    shop_domain = models.CharField(max_length=255, unique=True)
    access_token = models.CharField(max_length=255, blank=True)
    webhook_secret = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)
    auto_create_orders = models.BooleanField(default=False)
    confirm_fulfillment = models.BooleanField(default=False)
    default_courier_service = models.CharField(max_length=64, blank=True)
    default_pickup_location = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'ph_webhook_integrations'

    def __str__(self) -> str:
        return f"{self.shop_domain} (tenant={self.tenant_id})"


class ShadowOrder(models.Model):
    """Internal mirror of an upstream Shopify order."""

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        SYNCED = "synced", "Synced"
        ERROR = "error", "Error"
        FULFILLED = "fulfilled", "Fulfilled"

    integration = models.ForeignKey(WebhookIntegration, on_delete=models.CASCADE, related_name='shadow_orders')
    shop_domain = models.CharField(max_length=255)
    upstream_order_id = models.BigIntegerField()
    upstream_order_name = models.CharField(max_length=64, blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    payload = models.JSONField(default=dict)
    order = models.OneToOneField(
        'orders.Order',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='shadow',
    )
    tracking_number = models.CharField(max_length=128, blank=True)
    tracking_company = models.CharField(max_length=128, blank=True)
    upstream_fulfillment_id = models.BigIntegerField(null=True, blank=True)
    last_topic = models.CharField(max_length=64, blank=True)
    error = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'ph_shadow_orders'
        constraints = [
            models.UniqueConstraint(fields=['shop_domain', 'upstream_order_id'], name='ph_shadow_shop_upstream_uniq'),
        ]

    def __str__(self) -> str:
        return f"{self.shop_domain}#{self.upstream_order_id} [{self.status}]"
