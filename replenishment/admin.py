from django.contrib import admin

from .models import ConsumptionCycle, LedgerEntry, SettlementLease


@admin.register(LedgerEntry)
class LedgerEntryAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "client",
        "product",
        "current_stock",
        "daily_usage",
        "reorder_point",
        "reorder_qty",
        "auto_order_enabled",
        "last_decremented_at",
    )
    list_filter = ("auto_order_enabled",)
    search_fields = ("client__company_name", "product__title", "product__sku")
    list_select_related = ("client", "product")
    readonly_fields = ("last_decremented_at", "created_at", "updated_at")


@admin.register(ConsumptionCycle)
class ConsumptionCycleAdmin(admin.ModelAdmin):
    list_display = ("window", "started_at", "finished_at", "entries_decremented", "forced_runs")
    readonly_fields = ("window", "started_at", "finished_at", "entries_decremented", "forced_runs")
    ordering = ("-window",)


@admin.register(SettlementLease)
class SettlementLeaseAdmin(admin.ModelAdmin):
    list_display = ("client", "holder", "expires_at", "created_at")
    readonly_fields = ("client", "token", "holder", "expires_at", "created_at", "updated_at")
