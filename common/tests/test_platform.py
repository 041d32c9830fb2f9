import json
import logging
import sys
from decimal import Decimal
from unittest.mock import patch

import pytest
from config.logging import JsonFormatter, SamplingFilter
from rest_framework.test import APIClient


def _record(msg, level=logging.INFO, **extra):
    record = logging.LogRecord("smartsupply.replenishment", level, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.django_db
def test_health_reports_database_ok():
    resp = APIClient().get("/health/")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "database": "ok"}


@pytest.mark.django_db
def test_health_degrades_when_database_unreachable():
    with patch("config.health.connection") as conn:
        conn.cursor.side_effect = RuntimeError("db down")
        resp = APIClient().get("/health/")

    assert resp.status_code == 503
    assert resp.json()["database"] == "unavailable"


def test_json_formatter_merges_extra_fields():
    line = JsonFormatter().format(
        _record("order_settled", event="order_settled", order_number="AUTO-000001", total_amount=Decimal("250.00"))
    )

    payload = json.loads(line)
    assert payload["message"] == "order_settled"
    assert payload["level"] == "INFO"
    assert payload["order_number"] == "AUTO-000001"
    assert payload["total_amount"] == "250.00"
    assert payload["time"].endswith("Z")


def test_json_formatter_renders_exceptions():
    try:
        raise RuntimeError("gateway exploded")
    except RuntimeError:
        record = _record("gateway_charge_raised", level=logging.ERROR)
        record.exc_info = sys.exc_info()

    payload = json.loads(JsonFormatter().format(record))
    assert "RuntimeError: gateway exploded" in payload["exc"]


def test_sampling_filter_keeps_allowed_events_and_other_levels():
    f = SamplingFilter(rate=0.0, levels=["INFO"], allow_events=["cycle_finished"])

    assert f.filter(_record("cycle_finished")) is True
    assert f.filter(_record("consumption_decremented")) is False
    assert f.filter(_record("order_settlement_failed", level=logging.WARNING)) is True
