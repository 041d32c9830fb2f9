"""Selectors for supplier-side inventory."""

from .models import StockItem, StockMovement


def supplier_stock_for_product(product_id: int) -> int:
    try:
        item = StockItem.objects.only("quantity").get(product_id=product_id)
    except StockItem.DoesNotExist:
        return 0
    return int(item.quantity)


def list_movements_for_reference(reference: str):
    return list(
        StockMovement.objects.filter(reference=reference)
        .select_related("stock_item")
        .order_by("created_at", "id")
        .values("id", "stock_item__product_id", "movement_type", "quantity", "reason")
    )


# EOF
