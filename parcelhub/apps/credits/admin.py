from django.contrib import admin

from .models import CreditAccount, CreditCost, CreditTransaction


@admin.register(CreditAccount)
class CreditAccountAdmin(admin.ModelAdmin):
    list_display = ('tenant', 'balance', 'total_added', 'total_used', 'updated_at')
    search_fields = ('tenant__company_name',)
    # Balances only move through the ledger services
    readonly_fields = ('tenant', 'balance', 'total_added', 'total_used', 'updated_at')


@admin.register(CreditTransaction)
class CreditTransactionAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'tenant', 'type', 'amount', 'balance_after', 'feature', 'order_reference')
    list_filter = ('type', 'feature')
    search_fields = ('order_reference', 'description')
    date_hierarchy = 'created_at'
    readonly_fields = [f.name for f in CreditTransaction._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(CreditCost)
class CreditCostAdmin(admin.ModelAdmin):
    list_display = ('tenant', 'feature', 'cost')
    list_filter = ('feature',)
    raw_id_fields = ('tenant',)
