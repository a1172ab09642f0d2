from django.contrib import admin

from .models import MessageLog


@admin.register(MessageLog)
class MessageLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'tenant', 'order', 'recipient', 'phone', 'status')
    list_filter = ('status', 'recipient', 'channel')
    search_fields = ('phone', 'provider_request_id')
    raw_id_fields = ('tenant', 'order')
    date_hierarchy = 'created_at'
