"""Selectors for the catalog domain.

Read-only helpers used by other apps so they never reach into catalog
models directly.
"""

from decimal import Decimal

from .models import Product


def get_price(product_id: int) -> Decimal:
    """Return the current unit price for a product.

    Raises Product.DoesNotExist for unknown ids; prices are read fresh on every
    call so synthesized orders always reflect today's price.
    """

    price = Product.objects.only("price").get(id=product_id).price
    return price if price is not None else Decimal("0.00")
