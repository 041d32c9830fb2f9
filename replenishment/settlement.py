"""Settlement of automatic orders against the payment gateway.

State machine for an automatic order:

    pending/Pending --no gateway identity-------> pending/Failed  (not_configured)
    pending/Pending --no saved instrument-------> pending/Failed  (no_instrument)
    pending/Pending --instrument lookup fails---> pending/Failed  (gateway_unavailable)
    pending/Pending --charge declined-----------> pending/Failed  (gateway_rejected)
    pending/Pending --timeout or exception------> pending/Failed  (ambiguous_outcome)
    pending/Pending --charge succeeds-----------> confirmed/Paid

Supplier stock is decremented only after the gateway confirmed the charge,
in the same transaction that marks the order Paid. Ambiguous outcomes are
never retried here; they are left for manual reconciliation.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, Optional

from clients.selectors import get_payment_identity
from common.choices import FailureReason, OrderStatus, PaymentStatus, RunOutcome
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import transaction
from inventory.services import decrement_supplier_stock
from orders.models import Order
from orders.services import append_note

from .emails import send_settlement_email
from .gateways import (
    ChargeAmbiguous,
    ChargeDeclined,
    ChargeResult,
    ChargeSucceeded,
    GatewayError,
    PaymentGateway,
    get_gateway,
)

logger = logging.getLogger("smartsupply.replenishment")


class SettlementError(Exception):
    """Raised when an order is not in a settleable state."""


@dataclass(frozen=True)
class SettlementResult:
    order: Order
    paid: bool
    reason: str = ""
    detail: str = ""

    @property
    def outcome(self) -> str:
        return RunOutcome.SUCCEEDED if self.paid else RunOutcome.FAILED


def idempotency_key_for(order: Order) -> str:
    return f"auto-order-{order.number or order.id}"


def _call_with_timeout(fn: Callable, timeout: float, **kwargs):
    """Run a blocking gateway call in a worker thread, bounded by `timeout` seconds.

    Raises concurrent.futures.TimeoutError when the deadline passes. The
    worker is abandoned, not joined. StripeGateway bounds its own HTTP calls
    below this deadline; a backend without such a bound may still be charging
    after the client's lease is released.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="gateway")
    try:
        future = executor.submit(fn, **kwargs)
        return future.result(timeout=timeout)
    finally:
        executor.shutdown(wait=False)


def _ensure_unsettled(order: Order) -> None:
    if order.status != OrderStatus.PENDING or order.payment_status != PaymentStatus.PENDING:
        raise SettlementError(
            f"Order {order.number or order.id} is {order.status}/{order.payment_status}, expected pending/Pending"
        )


def _log_extra(order: Order, event: str, **fields) -> dict:
    return {
        "extra": {
            "event": event,
            "order_id": order.id,
            "order_number": order.number,
            "client_id": order.client_id,
            "total_amount": str(order.total_amount),
            **fields,
        }
    }


def _mark_failed(order: Order, reason: str, detail: str) -> SettlementResult:
    with transaction.atomic():
        locked = Order.objects.select_for_update().get(id=order.id)
        _ensure_unsettled(locked)
        locked.payment_status = PaymentStatus.FAILED
        locked.failure_reason = reason
        append_note(locked, f"Automatic payment failed ({reason}): {detail}")
        locked.save(update_fields=["payment_status", "failure_reason", "notes", "updated_at"])
    order.refresh_from_db()
    logger.warning("order_settlement_failed", **_log_extra(order, "order_settlement_failed", reason=reason))
    return SettlementResult(order=order, paid=False, reason=reason, detail=detail)


def _mark_paid(order: Order, charge: ChargeSucceeded) -> SettlementResult:
    try:
        with transaction.atomic():
            locked = Order.objects.select_for_update().get(id=order.id)
            _ensure_unsettled(locked)
            locked.status = OrderStatus.CONFIRMED
            locked.payment_status = PaymentStatus.PAID
            locked.payment_method = charge.method
            locked.transaction_id = charge.transaction_id
            locked.failure_reason = ""
            locked.save(
                update_fields=[
                    "status",
                    "payment_status",
                    "payment_method",
                    "transaction_id",
                    "failure_reason",
                    "updated_at",
                ]
            )
            for item in locked.items.all():
                decrement_supplier_stock(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    reference=locked.number or str(locked.id),
                    reason="automatic order paid",
                )
    except Exception:
        # Money was captured but the order is not recorded as Paid
        logger.critical(
            "order_paid_not_recorded",
            exc_info=True,
            **_log_extra(order, "order_paid_not_recorded", transaction_id=charge.transaction_id),
        )
        raise
    order.refresh_from_db()
    logger.info(
        "order_settled",
        **_log_extra(order, "order_settled", transaction_id=charge.transaction_id, method=charge.method),
    )
    return SettlementResult(order=order, paid=True)


def _charge(order: Order, gateway: PaymentGateway, customer_ref: str) -> SettlementResult:
    timeout = float(settings.REPLENISHMENT_GATEWAY_TIMEOUT_SECONDS)

    try:
        instruments = _call_with_timeout(gateway.list_saved_instruments, timeout, customer_ref=customer_ref)
    except FutureTimeout:
        return _mark_failed(
            order, FailureReason.GATEWAY_UNAVAILABLE, f"Timed out after {timeout:g}s listing saved payment methods."
        )
    except GatewayError as exc:
        return _mark_failed(order, FailureReason.GATEWAY_UNAVAILABLE, str(exc))
    except Exception as exc:
        # Nothing was charged yet, so any lookup failure is a clean failure
        logger.error("gateway_lookup_raised", exc_info=True, **_log_extra(order, "gateway_lookup_raised"))
        return _mark_failed(order, FailureReason.GATEWAY_UNAVAILABLE, f"{exc.__class__.__name__}: {exc}")

    if not instruments:
        return _mark_failed(order, FailureReason.NO_INSTRUMENT, "No saved payment method on file.")
    instrument = next((i for i in instruments if i.is_default), instruments[0])

    try:
        outcome: ChargeResult = _call_with_timeout(
            gateway.charge_off_session,
            timeout,
            customer_ref=customer_ref,
            instrument_ref=instrument.id,
            amount=order.total_amount,
            currency=settings.REPLENISHMENT_CURRENCY,
            idempotency_key=idempotency_key_for(order),
            metadata={"order_number": order.number, "order_id": str(order.id), "client_id": str(order.client_id)},
        )
    except FutureTimeout:
        outcome = ChargeAmbiguous(detail=f"No answer from the gateway within {timeout:g}s.")
    except Exception as exc:
        logger.error("gateway_charge_raised", exc_info=True, **_log_extra(order, "gateway_charge_raised"))
        outcome = ChargeAmbiguous(detail=f"{exc.__class__.__name__}: {exc}")

    if isinstance(outcome, ChargeSucceeded):
        return _mark_paid(order, outcome)
    if isinstance(outcome, ChargeDeclined):
        return _mark_failed(order, FailureReason.GATEWAY_REJECTED, outcome.reason)
    if isinstance(outcome, ChargeAmbiguous):
        return _mark_failed(order, FailureReason.AMBIGUOUS_OUTCOME, f"{outcome.detail} Reconcile manually.")
    return _mark_failed(order, FailureReason.AMBIGUOUS_OUTCOME, f"Unrecognised gateway result {outcome!r}.")


def _notify(order: Order, result: SettlementResult) -> None:
    try:
        send_settlement_email(order, result)
    except Exception:
        logger.warning(
            "settlement_notification_failed",
            exc_info=True,
            **_log_extra(order, "settlement_notification_failed", paid=result.paid),
        )


def settle_order(
    order: Order, *, gateway: Optional[PaymentGateway] = None, notify: bool = True
) -> SettlementResult:
    """Charge the client for a pending automatic order and record the outcome.

    Raises SettlementError if the order is not pending/Pending, so each
    order transitions at most once. Notification failures never affect
    the recorded outcome.
    """

    _ensure_unsettled(order)

    customer_ref = get_payment_identity(order.client)
    if customer_ref is None:
        result = _mark_failed(order, FailureReason.NOT_CONFIGURED, "Client has no payment gateway customer.")
    else:
        try:
            gateway = gateway or get_gateway()
        except ImproperlyConfigured as exc:
            result = _mark_failed(order, FailureReason.NOT_CONFIGURED, str(exc))
        else:
            result = _charge(order, gateway, customer_ref)

    if notify:
        _notify(order, result)
    return result
