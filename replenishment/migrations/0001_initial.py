from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        ("clients", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="ConsumptionCycle",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("window", models.DateField(unique=True)),
                ("started_at", models.DateTimeField()),
                ("finished_at", models.DateTimeField(blank=True, null=True)),
                ("entries_decremented", models.PositiveIntegerField(default=0)),
                ("forced_runs", models.PositiveIntegerField(default=0)),
            ],
            options={
                "ordering": ["-window"],
            },
        ),
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("current_stock", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("daily_usage", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("reorder_point", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("reorder_qty", models.PositiveIntegerField(default=0)),
                ("auto_order_enabled", models.BooleanField(db_index=True, default=True)),
                ("last_decremented_at", models.DateTimeField(blank=True, null=True)),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ledger_entries",
                        to="clients.client",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ledger_entries",
                        to="catalog.product",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "ledger entries",
                "ordering": ["client_id", "id"],
                "indexes": [
                    models.Index(fields=["client", "auto_order_enabled"], name="replenishme_client__5e2a1b_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("client", "product"), name="uniq_ledger_client_product"),
                    models.CheckConstraint(
                        condition=models.Q(("current_stock__gte", 0)), name="ledger_stock_non_negative"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("daily_usage__gte", 0)), name="ledger_usage_non_negative"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("reorder_point__gte", 0)), name="ledger_reorder_point_non_negative"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SettlementLease",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("token", models.CharField(max_length=64)),
                ("holder", models.CharField(blank=True, max_length=64)),
                ("expires_at", models.DateTimeField(db_index=True)),
                (
                    "client",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="settlement_lease",
                        to="clients.client",
                    ),
                ),
            ],
        ),
    ]
