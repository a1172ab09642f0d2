from django.contrib import admin

from .models import ShadowOrder, WebhookIntegration


@admin.register(WebhookIntegration)
class WebhookIntegrationAdmin(admin.ModelAdmin):
    list_display = ('shop_domain', 'tenant', 'is_active', 'auto_create_orders', 'confirm_fulfillment', 'created_at')
    list_filter = ('is_active', 'auto_create_orders', 'confirm_fulfillment')
    search_fields = ('shop_domain', 'tenant__company_name')
    exclude = ('webhook_secret', 'access_token')


@admin.register(ShadowOrder)
class ShadowOrderAdmin(admin.ModelAdmin):
    list_display = ('shop_domain', 'upstream_order_name', 'status', 'order', 'tracking_number', 'updated_at')
    list_filter = ('status',)
    search_fields = ('shop_domain', 'upstream_order_name', 'tracking_number')
    readonly_fields = ('payload', 'created_at', 'updated_at')
