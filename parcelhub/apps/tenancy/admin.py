from django.contrib import admin

from .models import PickupLocation, Tenant


class PickupLocationInline(admin.TabularInline):
    model = PickupLocation
    extra = 0
    fields = ('name', 'address', 'is_default')


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ('company_name', 'slug', 'is_active', 'enable_reference_prefix', 'reference_prefix', 'created_at')
    list_filter = ('is_active', 'whatsapp_enabled')
    search_fields = ('company_name', 'slug')
    inlines = [PickupLocationInline]


@admin.register(PickupLocation)
class PickupLocationAdmin(admin.ModelAdmin):
    list_display = ('name', 'tenant', 'is_default')
    search_fields = ('name',)
    raw_id_fields = ('tenant',)
