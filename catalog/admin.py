"""Admin registration for catalog models."""

from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("title", "sku", "category", "price", "is_active", "updated_at")
    search_fields = ("title", "sku")
    list_filter = ("is_active", "category")
