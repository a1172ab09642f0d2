from __future__ import annotations

import datetime

from django.conf import settings
from django.db import models
from django.utils import timezone


class DispatchStatus(models.TextChoices):
    UNSET = "unset", "Not dispatched"
    DISPATCHING = "dispatching", "Dispatch in progress"
    SUCCESS = "success", "Dispatched"
    FAILED = "failed", "Failed"


class Order(models.Model):
    tenant = models.ForeignKey('tenancy.Tenant', on_delete=models.CASCADE, related_name='orders')

    # recipient
    name = models.CharField(max_length=255)
    mobile = models.CharField(max_length=20)
    phone = models.CharField(max_length=20, blank=True)
    address = models.TextField()
    city = models.CharField(max_length=100)
    state = models.CharField(max_length=100)
    country = models.CharField(max_length=100)
    pincode = models.CharField(max_length=12)

    # shipment
    courier_service = models.CharField(max_length=64)
    pickup_location = models.CharField(max_length=255)
    package_value = models.DecimalField(max_digits=12, decimal_places=2)
    weight = models.DecimalField(max_digits=10, decimal_places=3)
    total_items = models.PositiveIntegerField()
    is_cod = models.BooleanField(default=False)
    cod_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    product_description = models.CharField(max_length=500, blank=True)

    reference_number = models.CharField(max_length=128)
    tracking_id = models.CharField(max_length=128, blank=True, db_index=True)
    tracking_status = models.CharField(max_length=64, blank=True)

    reseller_name = models.CharField(max_length=255, blank=True)
    reseller_mobile = models.CharField(max_length=20, blank=True)

    # courier dispatch state
    delhivery_waybill_number = models.CharField(max_length=64, blank=True)
    delhivery_order_id = models.CharField(max_length=128, blank=True)
    delhivery_api_status = models.CharField(
        max_length=16,
        choices=DispatchStatus.choices,
        default=DispatchStatus.UNSET,
    )
    delhivery_api_error = models.TextField(blank=True)
    delhivery_retry_count = models.PositiveIntegerField(default=0)
    last_delhivery_attempt = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders',
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'ph_orders'
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'reference_number'], name='ph_order_tenant_reference_uniq'),
        ]
        indexes = [
            models.Index(fields=['tenant', 'created_at'], name='ph_order_tenant_created_idx'),
            models.Index(fields=['tenant', 'courier_service'], name='ph_order_tenant_courier_idx'),
        ]

    def __str__(self):
        return f"{self.reference_number} ({self.tenant_id})"

    @property
    def is_delhivery(self) -> bool:
        return (self.courier_service or '').strip().lower() == 'delhivery'

    def dispatch_in_flight(self, now=None) -> bool:
        """A courier booking was claimed recently and has not reported back yet."""
        if self.delhivery_api_status != DispatchStatus.DISPATCHING or self.last_delhivery_attempt is None:
            return False
        now = now or timezone.now()
        return self.last_delhivery_attempt >= now - datetime.timedelta(seconds=settings.DELHIVERY_DISPATCH_CLAIM_TTL)

    @property
    def is_dispatched(self) -> bool:
        return self.delhivery_api_status == DispatchStatus.SUCCESS and bool(self.delhivery_waybill_number)

    def record_dispatch_success(self, *, waybill: str, courier_order_id: str = '') -> None:
        if self.delhivery_api_status == DispatchStatus.SUCCESS:
            raise ValueError(f"Order {self.pk} is already dispatched")
        self.delhivery_api_status = DispatchStatus.SUCCESS
        self.delhivery_waybill_number = waybill
        self.delhivery_order_id = courier_order_id or ''
        self.delhivery_api_error = ''
        self.last_delhivery_attempt = timezone.now()
        if not self.tracking_id:
            self.tracking_id = waybill
        self.tracking_status = 'manifested'

    def record_dispatch_failure(self, error: str) -> None:
        if self.delhivery_api_status == DispatchStatus.SUCCESS:
            raise ValueError(f"Order {self.pk} is already dispatched")
        self.delhivery_api_status = DispatchStatus.FAILED
        self.delhivery_api_error = (error or 'Unknown error')[:2000]
        self.last_delhivery_attempt = timezone.now()

    DISPATCH_FIELDS = (
        'delhivery_api_status',
        'delhivery_waybill_number',
        'delhivery_order_id',
        'delhivery_api_error',
        'last_delhivery_attempt',
        'tracking_id',
        'tracking_status',
        'updated_at',
    )
