"""Read-only queries and pure decisions over the replenishment ledger."""

from decimal import Decimal
from typing import Iterable, Optional

from django.db.models import F

from .models import LedgerEntry


def is_due(entry: LedgerEntry) -> bool:
    """Return True when the entry should be reordered now.

    Due means auto ordering is on, stock is at or below the reorder point,
    and there is a positive quantity to order.
    """

    return (
        bool(entry.auto_order_enabled)
        and int(entry.reorder_qty or 0) > 0
        and Decimal(entry.current_stock) <= Decimal(entry.reorder_point)
    )


def due_entries_for_client(client_id: int) -> list[LedgerEntry]:
    qs = (
        LedgerEntry.objects.select_related("product")
        .filter(
            client_id=client_id,
            auto_order_enabled=True,
            reorder_qty__gt=0,
            current_stock__lte=F("reorder_point"),
        )
        .order_by("id")
    )
    return [entry for entry in qs if is_due(entry)]


def list_ledger_for_client(client_id: int):
    return LedgerEntry.objects.select_related("product").filter(client_id=client_id).order_by("id")


def _days_until_reorder(trajectory: list[Decimal], current: Decimal, reorder_point: Decimal) -> Optional[int]:
    if current <= reorder_point:
        return 0
    for day, stock in enumerate(trajectory, start=1):
        if stock <= reorder_point:
            return day
    return None


def project_consumption(entries: Iterable[LedgerEntry], days: int) -> list[dict]:
    """Project each entry's stock over the next `days` consumption windows.

    Pure: nothing is written. Stock is floored at zero exactly like the
    daily decrement. `days_until_reorder` is 0 when the entry is already at
    or below its reorder point and None when it stays above it for the
    whole horizon.
    """

    if days < 1:
        raise ValueError("days must be at least 1")

    out = []
    for entry in entries:
        current = Decimal(entry.current_stock)
        usage = Decimal(entry.daily_usage)
        reorder_point = Decimal(entry.reorder_point)
        trajectory = [max(Decimal("0"), current - usage * day) for day in range(1, days + 1)]
        projected = trajectory[-1]
        out.append(
            {
                "entry_id": entry.id,
                "product": {"id": entry.product_id, "title": entry.product.title, "sku": entry.product.sku},
                "current_stock": current,
                "daily_usage": usage,
                "reorder_point": reorder_point,
                "reorder_qty": entry.reorder_qty,
                "auto_order_enabled": entry.auto_order_enabled,
                "after_days": days,
                "projected_stock": projected,
                "hits_reorder": projected <= reorder_point,
                "days_until_reorder": _days_until_reorder(trajectory, current, reorder_point),
                "trajectory": trajectory,
            }
        )
    return out
