"""Replenishment engine models.

`LedgerEntry` is the client-side consumable stock record. It is a separate
pool from the supplier's `inventory.StockItem`; the engine only ever moves
`current_stock` downward.
"""

from decimal import Decimal

from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class LedgerEntry(TimeStampedModel):
    """One client's tracked stock of one consumable product.

    - `daily_usage` is consumed once per scheduling window.
    - An entry is due when auto ordering is on, stock is at or below
      `reorder_point`, and `reorder_qty` is positive.
    """

    client = models.ForeignKey("clients.Client", related_name="ledger_entries", on_delete=models.CASCADE)
    product = models.ForeignKey("catalog.Product", related_name="ledger_entries", on_delete=models.PROTECT)
    current_stock = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    daily_usage = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    reorder_point = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    reorder_qty = models.PositiveIntegerField(default=0)
    auto_order_enabled = models.BooleanField(default=True, db_index=True)
    last_decremented_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["client_id", "id"]
        verbose_name_plural = "ledger entries"
        indexes = [
            models.Index(fields=["client", "auto_order_enabled"]),
        ]
        constraints = [
            models.UniqueConstraint(fields=["client", "product"], name="uniq_ledger_client_product"),
            models.CheckConstraint(name="ledger_stock_non_negative", condition=models.Q(current_stock__gte=0)),
            models.CheckConstraint(name="ledger_usage_non_negative", condition=models.Q(daily_usage__gte=0)),
            models.CheckConstraint(name="ledger_reorder_point_non_negative", condition=models.Q(reorder_point__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"LedgerEntry#{self.id} client={self.client_id} product={self.product_id} stock={self.current_stock}"


class ConsumptionCycle(TimeStampedModel):
    """Claim record for one daily scheduling window.

    The unique `window` date makes the global consumption decrement run at
    most once per day (in the schedule timezone) unless a run is forced.
    """

    window = models.DateField(unique=True)
    started_at = models.DateTimeField()
    finished_at = models.DateTimeField(null=True, blank=True)
    entries_decremented = models.PositiveIntegerField(default=0)
    forced_runs = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["-window"]

    def __str__(self) -> str:  # pragma: no cover
        return f"ConsumptionCycle<{self.window}> decremented={self.entries_decremented}"


class SettlementLease(TimeStampedModel):
    """Per-client single-flight lease held while a settlement pass runs."""

    client = models.OneToOneField("clients.Client", related_name="settlement_lease", on_delete=models.CASCADE)
    token = models.CharField(max_length=64)
    holder = models.CharField(max_length=64, blank=True)
    expires_at = models.DateTimeField(db_index=True)

    def __str__(self) -> str:  # pragma: no cover
        return f"SettlementLease<client={self.client_id} holder={self.holder}>"
