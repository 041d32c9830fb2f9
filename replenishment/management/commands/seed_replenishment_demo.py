"""Seed a demo client with products, supplier stock, and ledger entries.

Re-running is idempotent; existing rows are reused by username/sku.
"""

from decimal import Decimal

from catalog.models import Product
from clients.models import Client
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from inventory.models import StockItem, StockMovement
from inventory.services import apply_movement
from replenishment.models import LedgerEntry

PRODUCTS = [
    # sku, title, price, supplier stock, (current_stock, daily_usage, reorder_point, reorder_qty)
    ("GLV-100", "Nitrile gloves (box of 100)", "12.50", 500, ("10", "3", "5", 20)),
    ("MSK-050", "Surgical masks (box of 50)", "8.90", 300, ("40", "4", "12", 30)),
    ("SYR-005", "Syringes 5 ml (pack of 100)", "21.00", 120, ("6", "1", "6", 10)),
    ("ALC-500", "Hand sanitizer 500 ml", "4.75", 800, ("25", "0", "5", 12)),
]


class Command(BaseCommand):
    help = "Seed a demo client with ledger entries for the automatic replenishment engine"

    def add_arguments(self, parser):
        parser.add_argument("--username", default="demo-clinic")
        parser.add_argument(
            "--customer-id",
            default="",
            help="Stripe customer id (cus_...) to attach; leave empty to see not_configured failures",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write("Seeding replenishment demo data...")

        User = get_user_model()
        username = options["username"]
        user, created = User.objects.get_or_create(username=username, defaults={"email": f"{username}@example.com"})
        if created:
            user.set_password("demo-pass-123")
            user.save(update_fields=["password"])

        client, _ = Client.objects.get_or_create(
            user=user,
            defaults={"company_name": "Demo Clinic", "email": user.email},
        )
        customer_id = options["customer_id"].strip()
        if customer_id and client.gateway_customer_id != customer_id:
            client.gateway_customer_id = customer_id
            client.save(update_fields=["gateway_customer_id", "updated_at"])

        for sku, title, price, supplier_qty, (stock, usage, point, qty) in PRODUCTS:
            product, _ = Product.objects.get_or_create(
                sku=sku, defaults={"title": title, "price": Decimal(price), "category": "Consumables"}
            )
            if not StockItem.objects.filter(product=product).exists():
                apply_movement(
                    product_id=product.id,
                    movement_type=StockMovement.TYPE_INBOUND,
                    quantity=supplier_qty,
                    reason="demo opening stock",
                    reference="SEED",
                )
            LedgerEntry.objects.get_or_create(
                client=client,
                product=product,
                defaults={
                    "current_stock": Decimal(stock),
                    "daily_usage": Decimal(usage),
                    "reorder_point": Decimal(point),
                    "reorder_qty": qty,
                },
            )

        self.stdout.write(
            self.style.SUCCESS(
                f"Seeded client #{client.id} ({client.company_name}) with {client.ledger_entries.count()} ledger entries"
            )
        )
