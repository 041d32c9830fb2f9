"""DRF serializers for the replenishment API."""

from orders.serializers import OrderSerializer
from rest_framework import serializers

from .models import LedgerEntry


class LedgerEntrySerializer(serializers.ModelSerializer):
    """Read-only view of a client's ledger entry."""

    product_title = serializers.CharField(source="product.title", read_only=True)
    product_sku = serializers.CharField(source="product.sku", read_only=True)

    class Meta:
        model = LedgerEntry
        fields = [
            "id",
            "product",
            "product_title",
            "product_sku",
            "current_stock",
            "daily_usage",
            "reorder_point",
            "reorder_qty",
            "auto_order_enabled",
            "last_decremented_at",
        ]
        read_only_fields = fields


class ProjectionQuerySerializer(serializers.Serializer):
    days = serializers.IntegerField(min_value=1, max_value=365, default=7)


class ProjectedProductSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    title = serializers.CharField()
    sku = serializers.CharField()


class ProjectionSerializer(serializers.Serializer):
    entry_id = serializers.IntegerField()
    product = ProjectedProductSerializer()
    current_stock = serializers.DecimalField(max_digits=14, decimal_places=2)
    daily_usage = serializers.DecimalField(max_digits=14, decimal_places=2)
    reorder_point = serializers.DecimalField(max_digits=14, decimal_places=2)
    reorder_qty = serializers.IntegerField()
    auto_order_enabled = serializers.BooleanField()
    after_days = serializers.IntegerField()
    projected_stock = serializers.DecimalField(max_digits=14, decimal_places=2)
    hits_reorder = serializers.BooleanField()
    days_until_reorder = serializers.IntegerField(allow_null=True)
    trajectory = serializers.ListField(child=serializers.DecimalField(max_digits=14, decimal_places=2))


class RunResultSerializer(serializers.Serializer):
    """Response body of a manual run; `order` is present when one was created."""

    outcome = serializers.CharField()
    reason = serializers.CharField(required=False)
    detail = serializers.CharField(required=False)
    order = OrderSerializer(required=False)
