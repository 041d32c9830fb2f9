"""Payment gateway backends used for off-session settlement.

Charge outcomes are a tagged union: `ChargeSucceeded`, `ChargeDeclined` or
`ChargeAmbiguous`. Ambiguous means the gateway may or may not have captured
the money, so callers must never retry it automatically.

The active backend is chosen by `REPLENISHMENT_GATEWAY_BACKEND` (dotted path).
"""

import logging
import random
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

import stripe
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

logger = logging.getLogger("smartsupply.replenishment")


class GatewayError(Exception):
    """Raised when the gateway cannot be queried (no charge was attempted)."""


@dataclass(frozen=True)
class PaymentInstrument:
    id: str
    method: str = "card"
    brand: str = ""
    last4: str = ""
    is_default: bool = False


@dataclass(frozen=True)
class ChargeSucceeded:
    transaction_id: str
    method: str = "card"


@dataclass(frozen=True)
class ChargeDeclined:
    reason: str
    code: str = ""


@dataclass(frozen=True)
class ChargeAmbiguous:
    detail: str


ChargeResult = Union[ChargeSucceeded, ChargeDeclined, ChargeAmbiguous]


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount (e.g. euros) to integer cents."""

    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGateway(ABC):
    """Interface every settlement backend implements."""

    name = "base"

    @abstractmethod
    def list_saved_instruments(self, customer_ref: str) -> list[PaymentInstrument]:
        """Return the customer's stored instruments, default first when known.

        Raises GatewayError when the gateway cannot be reached or refuses the lookup.
        """

    @abstractmethod
    def charge_off_session(
        self,
        *,
        customer_ref: str,
        instrument_ref: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        metadata: Optional[dict] = None,
    ) -> ChargeResult:
        """Charge a stored instrument without the customer present."""


class StripeGateway(PaymentGateway):
    """Stripe PaymentIntents backend (off-session, confirm immediately)."""

    name = "stripe"

    def __init__(self, api_key: Optional[str] = None, request_timeout: Optional[float] = None):
        self.api_key = api_key if api_key is not None else getattr(settings, "STRIPE_SECRET_KEY", "")
        if not self.api_key:
            raise ImproperlyConfigured("STRIPE_SECRET_KEY is required for StripeGateway")
        # requests applies the timeout to connect and read separately, so half the
        # settlement deadline lets the HTTP call abort before the caller gives up on it
        if request_timeout is None:
            request_timeout = float(settings.REPLENISHMENT_GATEWAY_TIMEOUT_SECONDS) / 2
        self.request_timeout = request_timeout
        stripe.default_http_client = stripe.RequestsClient(timeout=request_timeout)
        stripe.max_network_retries = 0

    def list_saved_instruments(self, customer_ref: str) -> list[PaymentInstrument]:
        try:
            customer = stripe.Customer.retrieve(customer_ref, api_key=self.api_key)
            methods = stripe.PaymentMethod.list(customer=customer_ref, type="card", api_key=self.api_key)
        except stripe.StripeError as exc:
            raise GatewayError(str(exc) or exc.__class__.__name__) from exc

        if getattr(customer, "deleted", False):
            return []
        invoice_settings = getattr(customer, "invoice_settings", None)
        default_pm = getattr(invoice_settings, "default_payment_method", None) if invoice_settings else None
        if default_pm is not None and not isinstance(default_pm, str):
            default_pm = default_pm.id

        instruments = []
        for pm in methods.data:
            card = getattr(pm, "card", None)
            instruments.append(
                PaymentInstrument(
                    id=pm.id,
                    method=getattr(pm, "type", "card") or "card",
                    brand=getattr(card, "brand", "") if card else "",
                    last4=getattr(card, "last4", "") if card else "",
                    is_default=pm.id == default_pm,
                )
            )
        instruments.sort(key=lambda i: not i.is_default)
        return instruments

    def charge_off_session(
        self,
        *,
        customer_ref: str,
        instrument_ref: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        metadata: Optional[dict] = None,
    ) -> ChargeResult:
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(amount),
                currency=currency,
                customer=customer_ref,
                payment_method=instrument_ref,
                off_session=True,
                confirm=True,
                metadata=metadata or {},
                idempotency_key=idempotency_key,
                api_key=self.api_key,
            )
        except stripe.CardError as exc:
            return ChargeDeclined(reason=exc.user_message or str(exc), code=exc.code or "card_error")
        except (stripe.InvalidRequestError, stripe.AuthenticationError, stripe.RateLimitError) as exc:
            # Request was refused before any money moved
            return ChargeDeclined(reason=str(exc) or exc.__class__.__name__, code=exc.code or "request_refused")
        except stripe.StripeError as exc:
            logger.warning(
                "gateway_charge_ambiguous",
                extra={
                    "event": "gateway_charge_ambiguous",
                    "gateway": self.name,
                    "idempotency_key": idempotency_key,
                    "error": exc.__class__.__name__,
                },
            )
            return ChargeAmbiguous(detail=f"{exc.__class__.__name__}: {exc}")

        if intent.status == "succeeded":
            return ChargeSucceeded(transaction_id=intent.id, method="card")
        if intent.status == "processing":
            return ChargeAmbiguous(detail=f"PaymentIntent {intent.id} still processing")
        return ChargeDeclined(reason=f"PaymentIntent {intent.id} ended in status {intent.status}", code=intent.status)


class SimulatedGateway(PaymentGateway):
    """Development backend: every customer has one saved card, charges succeed at a configured rate."""

    name = "simulated"

    def __init__(self, success_rate: Optional[float] = None, rng: Optional[random.Random] = None):
        if success_rate is None:
            success_rate = getattr(settings, "REPLENISHMENT_SIMULATED_SUCCESS_RATE", 0.9)
        self.success_rate = float(success_rate)
        self.rng = rng or random.Random()

    def list_saved_instruments(self, customer_ref: str) -> list[PaymentInstrument]:
        return [PaymentInstrument(id=f"pm_sim_{customer_ref}", method="saved_card", is_default=True)]

    def charge_off_session(
        self,
        *,
        customer_ref: str,
        instrument_ref: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        metadata: Optional[dict] = None,
    ) -> ChargeResult:
        if self.rng.random() < self.success_rate:
            return ChargeSucceeded(transaction_id=f"txn_{uuid.uuid4().hex}", method="saved_card")
        return ChargeDeclined(reason="Simulated card decline", code="card_declined")


def get_gateway() -> PaymentGateway:
    """Instantiate the configured gateway backend."""

    return import_string(settings.REPLENISHMENT_GATEWAY_BACKEND)()
