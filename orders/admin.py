from django.contrib import admin

from .models import IdempotencyKey, Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("product", "product_title", "product_sku", "quantity", "unit_price", "line_total")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "number", "client", "source", "status", "payment_status", "total_amount", "created_at")
    list_filter = ("source", "status", "payment_status", "failure_reason", "created_at")
    search_fields = ("number", "transaction_id", "client__company_name")
    date_hierarchy = "created_at"
    readonly_fields = ("total_amount", "payment_method", "transaction_id", "failure_reason")
    inlines = [OrderItemInline]


@admin.register(IdempotencyKey)
class IdempotencyKeyAdmin(admin.ModelAdmin):
    list_display = ("id", "key", "scope", "path", "method", "response_code", "created_at")
    list_filter = ("method", "response_code", "created_at")
    search_fields = ("key", "scope", "path")
    date_hierarchy = "created_at"
