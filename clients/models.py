"""Client directory models.

A client is a purchasing organisation (clinic, lab, practice) whose
consumables are tracked by the replenishment ledger. The payment-gateway
customer handle lives here because it is required for automatic settlement.
"""

from django.conf import settings
from django.core.validators import RegexValidator
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Client(TimeStampedModel):
    """Purchasing organisation tied to one login account.

    - `email` overrides the account email for order notifications when set.
    - `gateway_customer_id` is the Stripe customer (`cus_...`) holding the
      saved payment methods used for off-session charges. Blank means the
      client has not configured automatic payment.
    """

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="client")
    company_name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    phone = models.CharField(
        max_length=16,
        blank=True,
        validators=[RegexValidator(r"^\+?[1-9]\d{1,14}$", message="Use E.164 format (e.g., +21620123456)")],
    )
    gateway_customer_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ["company_name", "id"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.company_name} (#{self.id})"

    @property
    def notification_email(self) -> str | None:
        """Return the address settlement notifications go to, if any."""

        email = (self.email or getattr(self.user, "email", "") or "").strip()
        return email or None
