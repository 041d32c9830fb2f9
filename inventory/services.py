"""Inventory services (supplier side): transactional stock movements."""

import logging

from django.db import transaction

from .models import StockItem, StockMovement

logger = logging.getLogger("smartsupply.inventory")


class MovementError(Exception):
    pass


@transaction.atomic
def apply_movement(*, product_id: int, movement_type: str, quantity: int, reason: str = "", reference: str = ""):
    """Apply a signed movement to a product's stock item.

    quantity: positive for inbound/additions, negative for outbound/deductions.
    movement_type: label for admin/documentation; logic is driven by sign.
    Outbound movements may not take stock below zero; use
    `decrement_supplier_stock` for paid orders, which may backorder.
    """
    if quantity == 0:
        return None
    item, _ = StockItem.objects.select_for_update().get_or_create(product_id=product_id, defaults={"quantity": 0})

    if quantity < 0 and abs(quantity) > int(item.quantity):
        raise MovementError("Insufficient available quantity")
    item.quantity = int(item.quantity) + int(quantity)
    item.save(update_fields=["quantity", "updated_at"])
    return StockMovement.objects.create(
        stock_item=item,
        movement_type=movement_type,
        quantity=quantity,
        reason=reason,
        reference=reference,
    )


@transaction.atomic
def decrement_supplier_stock(*, product_id: int, quantity: int, reference: str = "", reason: str = "order paid"):
    """Deduct stock for a paid order line.

    The charge has already been captured when this runs, so a shortfall is
    recorded as a backorder (negative quantity) instead of being refused.
    """
    if quantity <= 0:
        raise MovementError("Decrement quantity must be positive")
    item, _ = StockItem.objects.select_for_update().get_or_create(product_id=product_id, defaults={"quantity": 0})
    item.quantity = int(item.quantity) - int(quantity)
    item.save(update_fields=["quantity", "updated_at"])
    if item.quantity < 0:
        logger.warning(
            "supplier_stock_backordered",
            extra={
                "event": "supplier_stock_backordered",
                "product_id": product_id,
                "quantity": int(item.quantity),
                "reference": reference,
            },
        )
    return StockMovement.objects.create(
        stock_item=item,
        movement_type=StockMovement.TYPE_OUTBOUND,
        quantity=-int(quantity),
        reason=reason,
        reference=reference,
    )


# EOF
