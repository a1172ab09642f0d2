from django.db import models


class Tenant(models.Model):
    company_name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=100, unique=True)
    is_active = models.BooleanField(default=True)
    # Reference numbers are "<prefix>-..." when enabled
    enable_reference_prefix = models.BooleanField(default=True)
    reference_prefix = models.CharField(max_length=20, default='REF')
    whatsapp_enabled = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'ph_tenants'
        verbose_name = 'tenant'
        verbose_name_plural = 'tenants'

    def __str__(self):
        return self.company_name


class PickupLocation(models.Model):
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='pickup_locations')
    name = models.CharField(max_length=255)
    address = models.TextField(blank=True)
    delhivery_api_key = models.CharField(max_length=255, blank=True)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ph_pickup_locations'
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'name'], name='ph_pickup_tenant_name_uniq'),
        ]

    def __str__(self):
        return f"{self.name} ({self.tenant_id})"
