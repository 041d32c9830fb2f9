from django.contrib import admin

from .models import Client


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ("id", "company_name", "user", "email", "gateway_customer_id", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("company_name", "email", "user__email", "user__username", "gateway_customer_id")
    ordering = ("company_name", "id")
