from __future__ import annotations

from django.contrib import admin

from .models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "reference_number",
        "tenant",
        "name",
        "courier_service",
        "delhivery_api_status",
        "delhivery_waybill_number",
        "created_at",
    )
    list_filter = ("delhivery_api_status", "courier_service", "is_cod")
    search_fields = ("reference_number", "name", "mobile", "tracking_id", "delhivery_waybill_number")
    date_hierarchy = "created_at"
    raw_id_fields = ("tenant", "created_by")
    readonly_fields = (
        "delhivery_api_status",
        "delhivery_api_error",
        "delhivery_retry_count",
        "last_delhivery_attempt",
        "created_at",
        "updated_at",
    )
