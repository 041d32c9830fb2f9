from decimal import Decimal

from common.choices import FailureReason, OrderSource, OrderStatus, PaymentStatus
from django.conf import settings
from django.db import models
from django.db.models import DEFERRED


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# Fulfillment statuses an order may hold once its payment has cleared
PAID_STATUSES = (
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)


class Order(TimeStampedModel):
    """Client purchase order, either synthesized by the replenishment engine
    or created by manual checkout.

    Fulfillment (`status`) and settlement (`payment_status`) are tracked
    separately. A paid order is always past `pending`, and its total is
    frozen once paid.
    """

    client = models.ForeignKey("clients.Client", related_name="orders", on_delete=models.PROTECT)
    number = models.CharField(max_length=32, unique=True, null=True, blank=True, db_index=True)
    source = models.CharField(max_length=16, choices=OrderSource.choices, default=OrderSource.MANUAL)
    status = models.CharField(max_length=16, choices=OrderStatus.choices, default=OrderStatus.PENDING, db_index=True)
    payment_status = models.CharField(
        max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True
    )
    payment_method = models.CharField(max_length=32, blank=True)
    transaction_id = models.CharField(max_length=120, blank=True)
    failure_reason = models.CharField(max_length=32, choices=FailureReason.choices, blank=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["-id"]
        indexes = [
            models.Index(fields=["client", "status", "created_at"]),
            models.Index(fields=["source", "payment_status"]),
        ]
        constraints = [
            models.CheckConstraint(
                name="order_paid_requires_confirmed_status",
                condition=~models.Q(payment_status=PaymentStatus.PAID) | models.Q(status__in=PAID_STATUSES),
            ),
            models.CheckConstraint(name="order_total_non_negative", condition=models.Q(total_amount__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Order#{self.id} client={self.client_id} status={self.status}/{self.payment_status}"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_values = {name: value for name, value in zip(field_names, values) if value is not DEFERRED}
        return instance

    def refresh_from_db(self, *args, **kwargs):
        super().refresh_from_db(*args, **kwargs)
        self._loaded_values = {
            name: self.__dict__[name] for name in ("payment_status", "total_amount") if name in self.__dict__
        }

    def save(self, *args, **kwargs):
        loaded = getattr(self, "_loaded_values", None) or {}
        if loaded.get("payment_status") == PaymentStatus.PAID and "total_amount" in loaded:
            if Decimal(str(loaded["total_amount"])) != Decimal(str(self.total_amount)):
                raise ValueError("Cannot change the total of a paid order")
        super().save(*args, **kwargs)
        self._loaded_values = {
            **loaded,
            "payment_status": self.payment_status,
            "total_amount": self.total_amount,
        }


class OrderItem(TimeStampedModel):
    """Line item within an order.

    Snapshots product title, SKU, and unit price at synthesis time so later
    catalog edits never change what was charged.
    """

    order = models.ForeignKey(Order, related_name="items", on_delete=models.CASCADE)
    product = models.ForeignKey("catalog.Product", related_name="order_items", on_delete=models.PROTECT)
    product_title = models.CharField(max_length=200, blank=True)
    product_sku = models.CharField(max_length=64, blank=True)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    line_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["order", "product"]),
        ]
        constraints = [
            models.CheckConstraint(name="orderitem_price_non_negative", condition=models.Q(unit_price__gte=0)),
            models.CheckConstraint(name="orderitem_quantity_positive", condition=models.Q(quantity__gt=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"OrderItem#{self.id} order={self.order_id} product={self.product_id} qty={self.quantity}"


class IdempotencyKey(TimeStampedModel):
    """Stores idempotent request results to prevent duplicate processing."""

    key = models.CharField(max_length=128)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.CASCADE)
    scope = models.CharField(max_length=128)
    path = models.CharField(max_length=255)
    method = models.CharField(max_length=16)
    response_code = models.IntegerField(null=True, blank=True)
    response_json = models.JSONField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["key", "scope", "path", "method"], name="uniq_idem_scope_path_method"),
        ]
