from decimal import Decimal

import pytest
from catalog.tests.factories import ProductFactory
from clients.tests.factories import ClientFactory
from common.choices import OrderSource, OrderStatus, PaymentStatus
from orders.models import Order
from replenishment.models import LedgerEntry
from replenishment.selectors import due_entries_for_client, is_due
from replenishment.services import AUTO_ORDER_NOTE, synthesize_order
from replenishment.tests.factories import LedgerEntryFactory


def _entry(**kwargs):
    defaults = {
        "current_stock": Decimal("4.00"),
        "daily_usage": Decimal("3.00"),
        "reorder_point": Decimal("5.00"),
        "reorder_qty": 20,
        "auto_order_enabled": True,
    }
    defaults.update(kwargs)
    return LedgerEntry(**defaults)


def test_is_due_truth_table():
    assert is_due(_entry())
    assert is_due(_entry(current_stock=Decimal("5.00")))  # at the reorder point
    assert not is_due(_entry(current_stock=Decimal("5.01")))
    assert not is_due(_entry(auto_order_enabled=False))
    assert not is_due(_entry(reorder_qty=0))
    assert not is_due(_entry(auto_order_enabled=False, current_stock=Decimal("0.00")))


@pytest.mark.django_db
def test_due_entries_for_client_filters_by_client_and_trigger():
    client = ClientFactory()
    due = LedgerEntryFactory(client=client, current_stock=Decimal("2.00"))
    LedgerEntryFactory(client=client, current_stock=Decimal("9.00"))
    LedgerEntryFactory(client=client, current_stock=Decimal("0.00"), auto_order_enabled=False)
    LedgerEntryFactory(client=client, current_stock=Decimal("0.00"), reorder_qty=0)
    LedgerEntryFactory(current_stock=Decimal("0.00"))  # other client

    assert [e.id for e in due_entries_for_client(client.id)] == [due.id]


@pytest.mark.django_db
def test_synthesize_order_builds_lines_and_total():
    client = ClientFactory()
    gloves = ProductFactory(price=Decimal("12.50"))
    masks = ProductFactory(price=Decimal("8.99"))
    e1 = LedgerEntryFactory(client=client, product=gloves, current_stock=Decimal("4.00"), reorder_qty=20)
    e2 = LedgerEntryFactory(client=client, product=masks, current_stock=Decimal("1.00"), reorder_qty=3)

    order = synthesize_order(client, [e1, e2])

    assert order is not None
    assert order.client_id == client.id
    assert order.source == OrderSource.AUTO
    assert order.status == OrderStatus.PENDING
    assert order.payment_status == PaymentStatus.PENDING
    assert order.notes == AUTO_ORDER_NOTE
    assert order.number == f"AUTO-{order.id:06d}"

    items = list(order.items.order_by("id"))
    assert [(i.product_id, i.quantity, i.unit_price, i.line_total) for i in items] == [
        (gloves.id, 20, Decimal("12.50"), Decimal("250.00")),
        (masks.id, 3, Decimal("8.99"), Decimal("26.97")),
    ]
    for item in items:
        assert item.line_total == item.unit_price * item.quantity
    order.refresh_from_db()
    assert order.total_amount == sum(i.line_total for i in items) == Decimal("276.97")


@pytest.mark.django_db
def test_synthesize_order_uses_current_price_and_snapshots_it():
    client = ClientFactory()
    product = ProductFactory(price=Decimal("10.00"))
    entry = LedgerEntryFactory(client=client, product=product, current_stock=Decimal("0.00"), reorder_qty=2)
    product.price = Decimal("11.00")
    product.save()

    order = synthesize_order(client, [entry])
    product.price = Decimal("50.00")
    product.save()

    item = order.items.get()
    assert item.unit_price == Decimal("11.00")
    assert item.product_sku == product.sku


@pytest.mark.django_db
def test_synthesize_order_with_nothing_due_creates_nothing():
    client = ClientFactory()
    not_due = LedgerEntryFactory(client=client, current_stock=Decimal("50.00"))
    disabled = LedgerEntryFactory(client=client, current_stock=Decimal("0.00"), auto_order_enabled=False)

    assert synthesize_order(client, []) is None
    assert synthesize_order(client, [not_due, disabled]) is None
    assert Order.objects.count() == 0


@pytest.mark.django_db
def test_disabled_entries_never_become_order_lines():
    client = ClientFactory()
    enabled = LedgerEntryFactory(client=client, current_stock=Decimal("0.00"))
    disabled = LedgerEntryFactory(client=client, current_stock=Decimal("0.00"), auto_order_enabled=False)

    order = synthesize_order(client, [enabled, disabled])

    assert list(order.items.values_list("product_id", flat=True)) == [enabled.product_id]
