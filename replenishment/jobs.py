"""Replenishment passes: one client on demand, or the full daily cycle."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from clients.models import Client
from clients.selectors import list_auto_order_eligible_clients
from common.choices import RunOutcome
from django.conf import settings
from django.db import connection
from django.utils import timezone
from orders.models import Order

from .gateways import PaymentGateway
from .locks import SettlementInProgress, single_flight
from .selectors import due_entries_for_client
from .services import begin_cycle, cycle_window, finish_cycle, synthesize_order
from .settlement import settle_order

logger = logging.getLogger("smartsupply.replenishment")


@dataclass
class RunResult:
    client_id: int
    outcome: str
    order: Optional[Order] = None
    reason: str = ""
    detail: str = ""

    def as_dict(self) -> dict:
        data = {"client_id": self.client_id, "outcome": str(self.outcome)}
        if self.order is not None:
            data["order_id"] = self.order.id
            data["order_number"] = self.order.number
        if self.reason:
            data["reason"] = str(self.reason)
        if self.detail:
            data["detail"] = self.detail
        return data


@dataclass
class CycleReport:
    window: date
    started_at: datetime
    already_ran: bool = False
    decremented: int = 0
    results: list[RunResult] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        out: dict[str, int] = {}
        for result in self.results:
            key = str(result.outcome)
            out[key] = out.get(key, 0) + 1
        return out


def run_for_client(
    client_id: int, *, gateway: Optional[PaymentGateway] = None, holder: str = "manual"
) -> RunResult:
    """Detect, synthesize and settle for one client under its single-flight lease.

    Does not run the global consumption decrement. Raises Client.DoesNotExist
    for unknown ids; storage and unexpected errors propagate.
    """

    try:
        with single_flight(client_id, holder=holder):
            client = Client.objects.select_related("user").get(id=client_id)
            order = synthesize_order(client, due_entries_for_client(client_id))
            if order is None:
                logger.info(
                    "replenishment_no_action",
                    extra={"event": "replenishment_no_action", "client_id": client_id, "holder": holder},
                )
                return RunResult(client_id=client_id, outcome=RunOutcome.NO_ACTION)
            settlement = settle_order(order, gateway=gateway)
    except SettlementInProgress:
        logger.info(
            "replenishment_in_progress",
            extra={"event": "replenishment_in_progress", "client_id": client_id, "holder": holder},
        )
        return RunResult(client_id=client_id, outcome=RunOutcome.IN_PROGRESS)

    return RunResult(
        client_id=client_id,
        outcome=settlement.outcome,
        order=settlement.order,
        reason=settlement.reason,
        detail=settlement.detail,
    )


def _process_client(
    client_id: int, stop_event: Optional[threading.Event], gateway: Optional[PaymentGateway]
) -> RunResult:
    if stop_event is not None and stop_event.is_set():
        return RunResult(client_id=client_id, outcome=RunOutcome.SKIPPED)
    try:
        return run_for_client(client_id, gateway=gateway, holder="cycle")
    except Exception as exc:
        logger.exception("client_run_failed", extra={"event": "client_run_failed", "client_id": client_id})
        return RunResult(client_id=client_id, outcome=RunOutcome.ERROR, detail=f"{exc.__class__.__name__}: {exc}")


def _process_client_in_worker(
    client_id: int, stop_event: Optional[threading.Event], gateway: Optional[PaymentGateway]
) -> RunResult:
    try:
        return _process_client(client_id, stop_event, gateway)
    finally:
        connection.close()


def run_cycle(
    *,
    now: Optional[datetime] = None,
    force: bool = False,
    max_workers: Optional[int] = None,
    stop_event: Optional[threading.Event] = None,
    gateway: Optional[PaymentGateway] = None,
) -> CycleReport:
    """Run one daily cycle: claim the window, decrement once, then settle each eligible client.

    A window already claimed is skipped entirely unless `force` is set. A
    failing client is recorded as `error` and never stops its siblings. Once
    `stop_event` is set, clients not yet started are reported `skipped`.
    """

    now = now or timezone.now()
    started = time.monotonic()
    report = CycleReport(window=cycle_window(now), started_at=now)

    cycle = begin_cycle(now=now, force=force)
    if cycle is None:
        report.already_ran = True
        return report
    report.decremented = cycle.entries_decremented

    client_ids = list_auto_order_eligible_clients()
    workers = max(1, int(max_workers or settings.REPLENISHMENT_MAX_WORKERS))
    logger.info(
        "cycle_started",
        extra={
            "event": "cycle_started",
            "window": report.window.isoformat(),
            "forced": force,
            "clients": len(client_ids),
            "workers": workers,
            "decremented": report.decremented,
        },
    )

    if workers == 1:
        for client_id in client_ids:
            report.results.append(_process_client(client_id, stop_event, gateway))
    else:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="replenishment") as pool:
            futures = [
                pool.submit(_process_client_in_worker, client_id, stop_event, gateway) for client_id in client_ids
            ]
            report.results.extend(future.result() for future in futures)

    finish_cycle(cycle)
    logger.info(
        "cycle_finished",
        extra={
            "event": "cycle_finished",
            "window": report.window.isoformat(),
            "counts": report.counts(),
            "duration_ms": int((time.monotonic() - started) * 1000),
        },
    )
    return report
