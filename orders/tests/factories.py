from decimal import Decimal

import factory
from common.choices import OrderSource
from factory.django import DjangoModelFactory
from orders.models import Order, OrderItem


class OrderFactory(DjangoModelFactory):
    class Meta:
        model = Order

    client = factory.SubFactory("clients.tests.factories.ClientFactory")
    number = factory.Sequence(lambda n: f"ORD-{n:06d}")
    source = OrderSource.MANUAL
    total_amount = Decimal("0.00")


class OrderItemFactory(DjangoModelFactory):
    class Meta:
        model = OrderItem

    order = factory.SubFactory(OrderFactory)
    product = factory.SubFactory("catalog.tests.factories.ProductFactory")
    product_title = factory.LazyAttribute(lambda o: o.product.title)
    product_sku = factory.LazyAttribute(lambda o: o.product.sku)
    quantity = 1
    unit_price = factory.LazyAttribute(lambda o: o.product.price)
    line_total = factory.LazyAttribute(lambda o: o.unit_price * o.quantity)
