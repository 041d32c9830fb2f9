from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest
from replenishment.models import ConsumptionCycle, LedgerEntry
from replenishment.services import begin_cycle, cycle_window, decrement_consumption
from replenishment.tests.factories import LedgerEntryFactory


@pytest.mark.django_db
def test_decrement_subtracts_daily_usage_and_floors_at_zero():
    regular = LedgerEntryFactory(current_stock=Decimal("10.00"), daily_usage=Decimal("3.00"))
    near_empty = LedgerEntryFactory(current_stock=Decimal("1.50"), daily_usage=Decimal("4.00"))
    empty = LedgerEntryFactory(current_stock=Decimal("0.00"), daily_usage=Decimal("2.00"))

    updated = decrement_consumption()

    assert updated == 3
    regular.refresh_from_db()
    near_empty.refresh_from_db()
    empty.refresh_from_db()
    assert regular.current_stock == Decimal("7.00")
    assert near_empty.current_stock == Decimal("0.00")
    assert empty.current_stock == Decimal("0.00")


@pytest.mark.django_db
def test_decrement_skips_entries_without_usage_and_stamps_time():
    now = datetime(2026, 3, 1, 18, 53, tzinfo=dt_timezone.utc)
    idle = LedgerEntryFactory(current_stock=Decimal("5.00"), daily_usage=Decimal("0.00"))
    busy = LedgerEntryFactory(current_stock=Decimal("5.00"), daily_usage=Decimal("1.25"))

    assert decrement_consumption(now=now) == 1

    idle.refresh_from_db()
    busy.refresh_from_db()
    assert idle.current_stock == Decimal("5.00")
    assert idle.last_decremented_at is None
    assert busy.current_stock == Decimal("3.75")
    assert busy.last_decremented_at == now


@pytest.mark.django_db
def test_decrement_never_produces_negative_stock():
    for stock, usage in [("0.10", "0.20"), ("2.00", "2.00"), ("3.00", "99.00")]:
        LedgerEntryFactory(current_stock=Decimal(stock), daily_usage=Decimal(usage))

    decrement_consumption()
    decrement_consumption()

    assert not LedgerEntry.objects.filter(current_stock__lt=0).exists()
    assert LedgerEntry.objects.filter(current_stock=0).count() == 3


def test_cycle_window_uses_schedule_timezone(settings):
    settings.REPLENISHMENT_TIMEZONE = "Africa/Tunis"
    # 23:30 UTC is already the next day in Tunis (UTC+1)
    late = datetime(2026, 3, 1, 23, 30, tzinfo=dt_timezone.utc)
    assert cycle_window(late).isoformat() == "2026-03-02"
    assert cycle_window(late, "UTC").isoformat() == "2026-03-01"


@pytest.mark.django_db
def test_begin_cycle_decrements_once_per_window():
    entry = LedgerEntryFactory(current_stock=Decimal("10.00"), daily_usage=Decimal("3.00"))
    now = datetime(2026, 3, 1, 18, 53, tzinfo=dt_timezone.utc)

    first = begin_cycle(now=now)
    second = begin_cycle(now=now)

    assert first is not None
    assert first.entries_decremented == 1
    assert second is None
    entry.refresh_from_db()
    assert entry.current_stock == Decimal("7.00")
    assert ConsumptionCycle.objects.count() == 1


@pytest.mark.django_db
def test_forced_cycle_decrements_again_and_counts_forced_runs():
    entry = LedgerEntryFactory(current_stock=Decimal("10.00"), daily_usage=Decimal("3.00"))
    now = datetime(2026, 3, 1, 18, 53, tzinfo=dt_timezone.utc)

    begin_cycle(now=now)
    forced = begin_cycle(now=now, force=True)

    assert forced is not None
    assert forced.forced_runs == 1
    entry.refresh_from_db()
    assert entry.current_stock == Decimal("4.00")
    assert ConsumptionCycle.objects.count() == 1
