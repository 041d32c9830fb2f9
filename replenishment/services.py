"""Write-side services of the replenishment engine: consumption and order synthesis."""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from catalog.selectors import get_price
from common.choices import OrderSource, OrderStatus, PaymentStatus
from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import DecimalField, F, Value
from django.db.models.functions import Greatest
from django.utils import timezone
from orders.models import Order, OrderItem
from orders.services import assign_order_number

from .models import ConsumptionCycle, LedgerEntry
from .selectors import is_due

logger = logging.getLogger("smartsupply.replenishment")

AUTO_ORDER_NOTE = "Automatic replenishment order generated by the system."
AUTO_ORDER_PREFIX = "AUTO"

_STOCK_FIELD = DecimalField(max_digits=12, decimal_places=2)


def decrement_consumption(now: Optional[datetime] = None) -> int:
    """Age every ledger entry by one day of usage, floored at zero.

    A single UPDATE statement, so readers see either all entries decremented
    or none. Not idempotent: callers guard it with the cycle window claim.
    Returns the number of entries updated.
    """

    now = now or timezone.now()
    with transaction.atomic():
        updated = LedgerEntry.objects.filter(daily_usage__gt=0).update(
            current_stock=Greatest(
                F("current_stock") - F("daily_usage"),
                Value(Decimal("0.00"), output_field=_STOCK_FIELD),
                output_field=_STOCK_FIELD,
            ),
            last_decremented_at=now,
            updated_at=now,
        )
    logger.info(
        "consumption_decremented",
        extra={"event": "consumption_decremented", "entries": updated, "at": now.isoformat()},
    )
    return updated


def cycle_window(now: Optional[datetime] = None, tz_name: Optional[str] = None) -> date:
    """Return the scheduling window (calendar date in the schedule timezone) containing `now`."""

    now = now or timezone.now()
    tz = ZoneInfo(tz_name or settings.REPLENISHMENT_TIMEZONE)
    return timezone.localtime(now, tz).date()


def begin_cycle(
    *, now: Optional[datetime] = None, force: bool = False, tz_name: Optional[str] = None
) -> Optional[ConsumptionCycle]:
    """Claim today's window and run the global decrement in one transaction.

    Returns None when the window was already claimed and `force` is False.
    If the decrement fails the claim is rolled back, so the next tick retries.
    """

    now = now or timezone.now()
    window = cycle_window(now, tz_name)
    with transaction.atomic():
        try:
            with transaction.atomic():
                cycle = ConsumptionCycle.objects.create(window=window, started_at=now)
        except IntegrityError:
            if not force:
                logger.info(
                    "cycle_window_already_claimed",
                    extra={"event": "cycle_window_already_claimed", "window": window.isoformat()},
                )
                return None
            cycle = ConsumptionCycle.objects.select_for_update().get(window=window)
            cycle.forced_runs += 1
            cycle.started_at = now
            cycle.finished_at = None
        cycle.entries_decremented = decrement_consumption(now=now)
        cycle.save()
    return cycle


def finish_cycle(cycle: ConsumptionCycle) -> None:
    ConsumptionCycle.objects.filter(id=cycle.id).update(finished_at=timezone.now())


def synthesize_order(client, entries: Iterable[LedgerEntry]) -> Optional[Order]:
    """Build a pending automatic order with one line per due entry.

    Each line orders `reorder_qty` at the product's current price. Entries
    that are not due are ignored; if none remain, nothing is written and
    None is returned.
    """

    due = [entry for entry in entries if is_due(entry)]
    if not due:
        return None

    with transaction.atomic():
        order = Order.objects.create(
            client=client,
            source=OrderSource.AUTO,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            notes=AUTO_ORDER_NOTE,
        )
        items = []
        total = Decimal("0.00")
        for entry in due:
            unit_price = Decimal(get_price(entry.product_id))
            quantity = int(entry.reorder_qty)
            line_total = (unit_price * quantity).quantize(Decimal("0.01"))
            total += line_total
            items.append(
                OrderItem(
                    order=order,
                    product_id=entry.product_id,
                    product_title=entry.product.title,
                    product_sku=entry.product.sku,
                    quantity=quantity,
                    unit_price=unit_price,
                    line_total=line_total,
                )
            )
        OrderItem.objects.bulk_create(items)
        order.total_amount = total
        order.save(update_fields=["total_amount", "updated_at"])
        assign_order_number(order, prefix=AUTO_ORDER_PREFIX)
    return order
