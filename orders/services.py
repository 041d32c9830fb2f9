import logging
from datetime import timedelta
from decimal import Decimal
from typing import Callable, Tuple

from django.db import IntegrityError, transaction
from django.utils import timezone

from .models import IdempotencyKey, Order

logger = logging.getLogger("smartsupply.orders")


def append_note(order: Order, text: str) -> Order:
    """Append a machine-generated annotation to the order's notes.

    Existing (possibly human-written) text is preserved; annotations go on a
    new line. Does not save.
    """

    text = (text or "").strip()
    if not text:
        return order
    order.notes = f"{order.notes.rstrip()}\n{text}" if order.notes.strip() else text
    return order


def assign_order_number(order: Order, prefix: str = "ORD") -> Order:
    """Give a freshly created order its user-friendly unique number."""

    order.number = f"{prefix}-{int(order.id):06d}"
    order.save(update_fields=["number", "updated_at"])
    logger.info(
        "order_created",
        extra={
            "event": "order_created",
            "order_id": order.id,
            "order_number": order.number,
            "client_id": order.client_id,
            "source": order.source,
            "total_amount": str(order.total_amount),
        },
    )
    return order


def with_idempotency(
    *,
    key: str,
    user,
    path: str,
    method: str,
    handler: Callable[[], Tuple[dict, int]],
) -> Tuple[dict, int]:
    """Run handler idempotently and persist its response for the given key and scope.

    - Scope is derived from the caller: for authenticated users, "user:<id>"; otherwise "anon".
    - If a record exists but response is not yet stored, returns 409 to indicate in-progress.
    - If the handler raises, the record is deleted and the exception propagates.
    """

    scope = f"user:{getattr(user, 'id', None)}" if getattr(user, "id", None) else "anon"
    method = str(method).upper()
    path = str(path)

    try:
        with transaction.atomic():
            idem = IdempotencyKey.objects.create(
                key=key,
                user=user if getattr(user, "id", None) else None,
                scope=scope,
                path=path,
                method=method,
                expires_at=timezone.now() + timedelta(hours=24),
            )
    except IntegrityError:
        idem = IdempotencyKey.objects.get(key=key, scope=scope, path=path, method=method)
        if idem.response_json is not None and idem.response_code is not None:
            return idem.response_json, int(idem.response_code)
        return {"detail": "Request in progress"}, 409

    try:
        body, code = handler()
    except Exception:
        # Free the key so a retry runs the handler again instead of seeing 409
        IdempotencyKey.objects.filter(id=idem.id, response_code__isnull=True).delete()
        logger.warning(
            "idempotency_key_released",
            extra={"event": "idempotency_key_released", "key": key, "path": path, "method": method},
        )
        raise

    def _json_safe(value):
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, dict):
            return {k: _json_safe(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [_json_safe(v) for v in value]
        return value

    safe_body = _json_safe(body)
    IdempotencyKey.objects.filter(id=idem.id).update(response_json=safe_body, response_code=code)
    return body, code
