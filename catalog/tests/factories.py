from decimal import Decimal

import factory
from catalog.models import Product
from factory import Faker
from factory.django import DjangoModelFactory


class ProductFactory(DjangoModelFactory):
    class Meta:
        model = Product

    title = Faker("sentence", nb_words=3)
    sku = factory.Sequence(lambda n: f"SKU-{n:05d}")
    description = Faker("paragraph")
    category = "Consumables"
    price = Decimal("12.50")
    is_active = True
