"""DRF serializers for Orders.

Orders are read-only over the API; settlement fields are exposed so clients
can see why an automatic order did not go through.
"""

from rest_framework import serializers

from .models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    """API representation of an order line item."""

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product",
            "product_title",
            "product_sku",
            "quantity",
            "unit_price",
            "line_total",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """API representation for an order with its line items."""

    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "number",
            "source",
            "status",
            "payment_status",
            "payment_method",
            "transaction_id",
            "failure_reason",
            "total_amount",
            "notes",
            "created_at",
            "items",
        ]
        read_only_fields = fields
