from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from catalog.tests.factories import ProductFactory
from clients.tests.factories import ClientFactory
from django.utils import timezone
from inventory.tests.factories import StockItemFactory
from orders.models import IdempotencyKey, Order
from replenishment.models import SettlementLease
from replenishment.tests.factories import LedgerEntryFactory
from rest_framework.test import APIClient
from users.tests.factories import UserFactory

RUN_URL = "/api/v1/replenishment/run/"


def _api_for(client_obj):
    api = APIClient()
    api.force_authenticate(user=client_obj.user)
    return api


def _due_entry(client_obj, **kwargs):
    product = ProductFactory(price=Decimal("12.50"))
    StockItemFactory(product=product, quantity=100)
    return LedgerEntryFactory(client=client_obj, product=product, current_stock=Decimal("4.00"), **kwargs)


@pytest.mark.django_db
def test_run_now_without_due_items_returns_no_action():
    client_obj = ClientFactory()
    LedgerEntryFactory(client=client_obj, current_stock=Decimal("90.00"))

    r = _api_for(client_obj).post(RUN_URL)

    assert r.status_code == 200
    assert r.json() == {"outcome": "no_action"}
    assert Order.objects.count() == 0


@pytest.mark.django_db
def test_run_now_creates_and_pays_order():
    client_obj = ClientFactory()
    _due_entry(client_obj, reorder_qty=20)

    r = _api_for(client_obj).post(RUN_URL)

    assert r.status_code == 201
    body = r.json()
    assert body["outcome"] == "succeeded"
    assert body["order"]["source"] == "auto"
    assert body["order"]["status"] == "confirmed"
    assert body["order"]["payment_status"] == "Paid"
    assert Decimal(body["order"]["total_amount"]) == Decimal("250.00")
    assert body["order"]["number"].startswith("AUTO-")


@pytest.mark.django_db
def test_run_now_payment_failure_returns_structured_reason():
    client_obj = ClientFactory(gateway_customer_id=None)
    _due_entry(client_obj)

    r = _api_for(client_obj).post(RUN_URL)

    assert r.status_code == 402
    body = r.json()
    assert body["outcome"] == "failed"
    assert body["reason"] == "not_configured"
    assert body["detail"]
    assert body["order"]["payment_status"] == "Failed"
    assert body["order"]["failure_reason"] == "not_configured"


@pytest.mark.django_db
def test_run_now_while_settlement_in_flight_returns_conflict():
    client_obj = ClientFactory()
    _due_entry(client_obj)
    SettlementLease.objects.create(client=client_obj, token="cron", expires_at=timezone.now() + timedelta(minutes=5))

    r = _api_for(client_obj).post(RUN_URL)

    assert r.status_code == 409
    assert r.json() == {"outcome": "in_progress"}
    assert Order.objects.count() == 0


@pytest.mark.django_db
def test_run_now_with_idempotency_key_replays_first_response():
    client_obj = ClientFactory()
    _due_entry(client_obj)
    api = _api_for(client_obj)

    r1 = api.post(RUN_URL, HTTP_IDEMPOTENCY_KEY="run-abc")
    r2 = api.post(RUN_URL, HTTP_IDEMPOTENCY_KEY="run-abc")

    assert r1.status_code == r2.status_code == 201
    assert r2.json() == r1.json()
    assert Order.objects.filter(client=client_obj).count() == 1
    idem = IdempotencyKey.objects.get(key="run-abc", user=client_obj.user, path=RUN_URL, method="POST")
    assert idem.response_code == 201


@pytest.mark.django_db
def test_run_now_retry_with_same_key_after_error_runs_again():
    client_obj = ClientFactory()
    _due_entry(client_obj)
    api = _api_for(client_obj)

    with patch("replenishment.views.run_for_client", side_effect=RuntimeError("database went away")):
        with pytest.raises(RuntimeError):
            api.post(RUN_URL, HTTP_IDEMPOTENCY_KEY="run-retry")
    assert not IdempotencyKey.objects.filter(key="run-retry").exists()

    r = api.post(RUN_URL, HTTP_IDEMPOTENCY_KEY="run-retry")

    assert r.status_code == 201
    assert r.json()["outcome"] == "succeeded"
    assert Order.objects.filter(client=client_obj).count() == 1


@pytest.mark.django_db
def test_run_now_requires_client_account_and_authentication():
    api = APIClient()
    assert api.post(RUN_URL).status_code in (401, 403)

    api.force_authenticate(user=UserFactory())
    assert api.post(RUN_URL).status_code == 404


@pytest.mark.django_db
def test_staff_can_run_for_any_client():
    client_obj = ClientFactory()
    _due_entry(client_obj)
    staff = UserFactory(is_staff=True)
    api = APIClient()
    api.force_authenticate(user=staff)

    r = api.post(f"/api/v1/replenishment/clients/{client_obj.id}/run/")

    assert r.status_code == 201
    assert Order.objects.get().client_id == client_obj.id


@pytest.mark.django_db
def test_client_run_endpoint_is_staff_only_and_404s_unknown_clients():
    client_obj = ClientFactory()
    r = _api_for(client_obj).post(f"/api/v1/replenishment/clients/{client_obj.id}/run/")
    assert r.status_code == 403

    staff_api = APIClient()
    staff_api.force_authenticate(user=UserFactory(is_staff=True))
    assert staff_api.post("/api/v1/replenishment/clients/999999/run/").status_code == 404


@pytest.mark.django_db
def test_ledger_lists_only_own_entries():
    client_obj = ClientFactory()
    mine = LedgerEntryFactory(client=client_obj)
    LedgerEntryFactory()

    r = _api_for(client_obj).get("/api/v1/replenishment/ledger/")

    assert r.status_code == 200
    results = r.json()["results"]
    assert [row["id"] for row in results] == [mine.id]
    assert results[0]["product_sku"] == mine.product.sku
    assert Decimal(results[0]["current_stock"]) == Decimal("10.00")


@pytest.mark.django_db
def test_projection_endpoint_defaults_to_seven_days():
    client_obj = ClientFactory()
    LedgerEntryFactory(
        client=client_obj, current_stock=Decimal("10.00"), daily_usage=Decimal("3.00"), reorder_point=Decimal("5.00")
    )

    r = _api_for(client_obj).get("/api/v1/replenishment/projection/")

    assert r.status_code == 200
    [row] = r.json()
    assert row["after_days"] == 7
    assert len(row["trajectory"]) == 7
    assert Decimal(row["projected_stock"]) == Decimal("0.00")
    assert row["hits_reorder"] is True
    assert row["days_until_reorder"] == 2


@pytest.mark.django_db
def test_projection_endpoint_respects_days_and_validates_range():
    client_obj = ClientFactory()
    LedgerEntryFactory(client=client_obj, current_stock=Decimal("10.00"), daily_usage=Decimal("1.00"))
    api = _api_for(client_obj)

    r = api.get("/api/v1/replenishment/projection/?days=3")
    assert r.status_code == 200
    assert [Decimal(v) for v in r.json()[0]["trajectory"]] == [Decimal("9"), Decimal("8"), Decimal("7")]

    assert api.get("/api/v1/replenishment/projection/?days=0").status_code == 400
    assert api.get("/api/v1/replenishment/projection/?days=366").status_code == 400
    assert api.get("/api/v1/replenishment/projection/?days=soon").status_code == 400
