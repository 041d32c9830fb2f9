"""Inventory models (supplier side, single location).

Tracks the supplier's own stock per product. This pool is decremented when
an order is paid and is unrelated to a client's consumable ledger
(`replenishment.LedgerEntry.current_stock`).
"""

from common.choices import MovementType
from django.db import models


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class StockItem(TimeStampedModel):
    # Negative quantity means paid orders are backordered
    product = models.OneToOneField("catalog.Product", on_delete=models.CASCADE, related_name="stock_item")
    quantity = models.IntegerField(default=0)

    class Meta:
        ordering = ["-updated_at", "id"]

    def __str__(self) -> str:  # pragma: no cover
        return f"StockItem<{self.product_id}> q={self.quantity}"

    @property
    def backordered(self) -> int:
        return max(0, -int(self.quantity))


class StockMovement(TimeStampedModel):
    TYPE_INBOUND = MovementType.INBOUND
    TYPE_OUTBOUND = MovementType.OUTBOUND
    TYPE_ADJUST = MovementType.ADJUST
    TYPE_CHOICES = MovementType.choices

    stock_item = models.ForeignKey(StockItem, on_delete=models.CASCADE, related_name="movements")
    movement_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    quantity = models.IntegerField()  # signed: +inbound, -outbound
    reason = models.CharField(max_length=200, blank=True)
    reference = models.CharField(max_length=120, blank=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "id"]
        constraints = [
            models.CheckConstraint(name="movement_non_zero", condition=~models.Q(quantity=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.movement_type} {self.quantity} for {self.stock_item_id}"


# EOF
