import threading
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from catalog.tests.factories import ProductFactory
from clients.tests.factories import ClientFactory
from common.choices import PaymentStatus, RunOutcome
from django.db import close_old_connections, connection
from django.utils import timezone
from orders.models import Order
from replenishment.jobs import run_cycle, run_for_client
from replenishment.models import SettlementLease
from replenishment.settlement import settle_order
from replenishment.tests.factories import LedgerEntryFactory
from replenishment.tests.fakes import FakeGateway

DAY_ONE = datetime(2026, 3, 1, 18, 53, tzinfo=dt_timezone.utc)
DAY_TWO = DAY_ONE + timedelta(days=1)


@pytest.mark.django_db
def test_two_cycles_decrement_then_reorder():
    client = ClientFactory()
    product = ProductFactory(price=Decimal("12.50"))
    entry = LedgerEntryFactory(
        client=client,
        product=product,
        current_stock=Decimal("10.00"),
        daily_usage=Decimal("3.00"),
        reorder_point=Decimal("5.00"),
        reorder_qty=20,
    )
    gateway = FakeGateway()

    first = run_cycle(now=DAY_ONE, gateway=gateway)

    entry.refresh_from_db()
    assert entry.current_stock == Decimal("7.00")
    assert [r.outcome for r in first.results] == [RunOutcome.NO_ACTION]
    assert Order.objects.count() == 0

    second = run_cycle(now=DAY_TWO, gateway=gateway)

    entry.refresh_from_db()
    assert entry.current_stock == Decimal("4.00")
    assert [r.outcome for r in second.results] == [RunOutcome.SUCCEEDED]
    order = Order.objects.get()
    item = order.items.get()
    assert (item.quantity, item.unit_price, item.line_total) == (20, Decimal("12.50"), Decimal("250.00"))
    assert order.payment_status == PaymentStatus.PAID


@pytest.mark.django_db
def test_client_with_nothing_due_gets_no_action_and_no_downstream_calls():
    client = ClientFactory()
    LedgerEntryFactory(client=client, current_stock=Decimal("100.00"), daily_usage=Decimal("1.00"))
    gateway = FakeGateway()

    result = run_for_client(client.id, gateway=gateway)

    assert result.outcome == RunOutcome.NO_ACTION
    assert result.order is None
    assert Order.objects.count() == 0
    assert gateway.list_calls == [] and gateway.charges == []


@pytest.mark.django_db
def test_manual_run_does_not_decrement_consumption():
    client = ClientFactory()
    entry = LedgerEntryFactory(client=client, current_stock=Decimal("10.00"), daily_usage=Decimal("3.00"))

    run_for_client(client.id, gateway=FakeGateway())

    entry.refresh_from_db()
    assert entry.current_stock == Decimal("10.00")
    assert entry.last_decremented_at is None


@pytest.mark.django_db
def test_run_for_client_reports_failure_reason():
    client = ClientFactory(gateway_customer_id=None)
    LedgerEntryFactory(client=client, current_stock=Decimal("0.00"))

    result = run_for_client(client.id, gateway=FakeGateway())

    assert result.outcome == RunOutcome.FAILED
    assert result.reason == "not_configured"
    assert result.order.payment_status == PaymentStatus.FAILED


@pytest.mark.django_db
def test_held_lease_reports_in_progress_without_creating_orders():
    client = ClientFactory()
    LedgerEntryFactory(client=client, current_stock=Decimal("0.00"))
    SettlementLease.objects.create(client=client, token="other", expires_at=timezone.now() + timedelta(minutes=5))
    gateway = FakeGateway()

    result = run_for_client(client.id, gateway=gateway)

    assert result.outcome == RunOutcome.IN_PROGRESS
    assert Order.objects.count() == 0
    assert gateway.charges == []


@pytest.mark.django_db
def test_lease_released_after_run():
    client = ClientFactory()
    LedgerEntryFactory(client=client, current_stock=Decimal("0.00"))

    run_for_client(client.id, gateway=FakeGateway())

    assert not SettlementLease.objects.filter(client=client).exists()


@pytest.mark.django_db
def test_one_failing_client_does_not_stop_the_others():
    broken = ClientFactory()
    healthy = ClientFactory()
    LedgerEntryFactory(client=broken, current_stock=Decimal("0.00"))
    LedgerEntryFactory(client=healthy, current_stock=Decimal("0.00"))
    gateway = FakeGateway()

    def _settle(order, gateway=None):
        if order.client_id == broken.id:
            raise RuntimeError("storage unavailable")
        return settle_order(order, gateway=gateway)

    with patch("replenishment.jobs.settle_order", side_effect=_settle):
        report = run_cycle(now=DAY_ONE, gateway=gateway)

    outcomes = {r.client_id: r.outcome for r in report.results}
    assert outcomes == {broken.id: RunOutcome.ERROR, healthy.id: RunOutcome.SUCCEEDED}
    errored = next(r for r in report.results if r.client_id == broken.id)
    assert "storage unavailable" in errored.detail
    assert report.counts() == {"error": 1, "succeeded": 1}


@pytest.mark.django_db
def test_cycle_skips_everything_when_window_already_ran():
    client = ClientFactory()
    entry = LedgerEntryFactory(client=client, current_stock=Decimal("10.00"), daily_usage=Decimal("3.00"))
    run_cycle(now=DAY_ONE, gateway=FakeGateway())

    again = run_cycle(now=DAY_ONE + timedelta(hours=1), gateway=FakeGateway())

    assert again.already_ran is True
    assert again.results == []
    entry.refresh_from_db()
    assert entry.current_stock == Decimal("7.00")


@pytest.mark.django_db
def test_stop_event_skips_clients_not_yet_started():
    clients = [ClientFactory() for _ in range(2)]
    for client in clients:
        LedgerEntryFactory(client=client, current_stock=Decimal("0.00"))
    stop = threading.Event()
    stop.set()

    report = run_cycle(now=DAY_ONE, stop_event=stop, gateway=FakeGateway())

    assert [r.outcome for r in report.results] == [RunOutcome.SKIPPED, RunOutcome.SKIPPED]
    assert Order.objects.count() == 0
    # consumption for the window was still applied
    assert report.decremented == 2


@pytest.mark.django_db
def test_only_active_clients_with_enabled_entries_are_processed():
    enabled = ClientFactory()
    disabled_only = ClientFactory()
    inactive = ClientFactory(is_active=False)
    LedgerEntryFactory(client=enabled, current_stock=Decimal("50.00"))
    LedgerEntryFactory(client=disabled_only, current_stock=Decimal("0.00"), auto_order_enabled=False)
    LedgerEntryFactory(client=inactive, current_stock=Decimal("0.00"))

    report = run_cycle(now=DAY_ONE, gateway=FakeGateway())

    assert [r.client_id for r in report.results] == [enabled.id]


@pytest.mark.django_db
def test_manual_run_during_in_flight_settlement_is_rejected():
    client = ClientFactory()
    LedgerEntryFactory(client=client, current_stock=Decimal("0.00"))
    gateway = FakeGateway()
    contender = []

    def _settle(order, gateway=None):
        # A second trigger arrives while the first still holds the lease
        contender.append(run_for_client(client.id, gateway=gateway, holder="manual"))
        return settle_order(order, gateway=gateway)

    with patch("replenishment.jobs.settle_order", side_effect=_settle):
        first = run_for_client(client.id, gateway=gateway, holder="cycle")

    assert first.outcome == RunOutcome.SUCCEEDED
    assert [r.outcome for r in contender] == [RunOutcome.IN_PROGRESS]
    assert Order.objects.filter(client=client).count() == 1
    assert Order.objects.filter(client=client, payment_status=PaymentStatus.PAID).count() == 1
    assert len(gateway.charges) == 1


def _run_worker(barrier, client_id, gateway, outcomes, errors):
    # Ensure this thread uses its own DB connection
    close_old_connections()
    barrier.wait()
    try:
        outcomes.append(run_for_client(client_id, gateway=gateway, holder=threading.current_thread().name).outcome)
    except Exception as exc:  # pragma: no cover
        errors.append(exc)
    finally:
        connection.close()


@pytest.mark.django_db(transaction=True)
def test_threaded_concurrent_runs_for_same_client_settle_once():
    if connection.vendor == "sqlite":
        pytest.skip("SQLite lacks real concurrent transactions; skipping threaded test.")
    client = ClientFactory()
    LedgerEntryFactory(client=client, current_stock=Decimal("0.00"))
    # Slow charge keeps the first lease held while the second caller arrives
    gateway = FakeGateway(charge_delay=0.5)

    barrier = threading.Barrier(2)
    outcomes = []
    errors = []

    threads = [
        threading.Thread(target=_run_worker, args=(barrier, client.id, gateway, outcomes, errors), name=f"run-{i}")
        for i in range(2)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert sorted(outcomes) == sorted([RunOutcome.SUCCEEDED, RunOutcome.IN_PROGRESS])
    assert Order.objects.filter(client=client, payment_status=PaymentStatus.PAID).count() == 1
    assert len(gateway.charges) == 1
    assert not SettlementLease.objects.filter(client=client).exists()
