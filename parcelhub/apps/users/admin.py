from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    fieldsets = DjangoUserAdmin.fieldsets + (
        ("Tenant", {"fields": ("tenant", "role")}),
        ("API", {"fields": ("api_token",)}),
    )
    list_display = ("id", "username", "email", "tenant", "role", "is_active")
    list_filter = ("role", "is_active")
    search_fields = ("username", "email")
    raw_id_fields = ("tenant",)
