"""Shared enumerations and choices used across apps."""

from django.db import models


class MovementType(models.TextChoices):
    INBOUND = "in", "Inbound"
    OUTBOUND = "out", "Outbound"
    ADJUST = "adjust", "Adjust"


class OrderStatus(models.TextChoices):
    """Fulfillment lifecycle statuses for orders."""

    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


class PaymentStatus(models.TextChoices):
    """Settlement state of an order, independent of fulfillment."""

    PENDING = "Pending", "Pending"
    PAID = "Paid", "Paid"
    FAILED = "Failed", "Failed"


class OrderSource(models.TextChoices):
    """Where an order came from."""

    AUTO = "auto", "Automatic replenishment"
    MANUAL = "manual", "Manual checkout"


class FailureReason(models.TextChoices):
    """Machine-readable reasons recorded on orders whose settlement failed."""

    NOT_CONFIGURED = "not_configured", "Payment gateway not configured"
    NO_INSTRUMENT = "no_instrument", "No saved payment instrument"
    GATEWAY_UNAVAILABLE = "gateway_unavailable", "Payment gateway unavailable"
    GATEWAY_REJECTED = "gateway_rejected", "Rejected by payment gateway"
    AMBIGUOUS_OUTCOME = "ambiguous_outcome", "Ambiguous outcome, reconcile manually"


class RunOutcome(models.TextChoices):
    """Result of one replenishment pass for a single client."""

    NO_ACTION = "no_action", "No action needed"
    SUCCEEDED = "succeeded", "Order created and paid"
    FAILED = "failed", "Order created, payment failed"
    IN_PROGRESS = "in_progress", "Another run is in progress"
    SKIPPED = "skipped", "Skipped (shutdown requested)"
    ERROR = "error", "Unexpected error"
